"""Admin financial report: daily gross, platform fee and payout per vendor/provider.

Amounts are summed per day and rounded once at the cent (round-half-up), and
period totals are sums of those rounded daily figures. Order payouts are
``subtotal - fee``; booking payouts are ``service + booking_fee - fee`` since
the booking fee is not subject to the percentage cut.
"""
import datetime as dt
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from pydantic import BaseModel

from brazadash.errors import ValidationError
from brazadash.models import utcnow
from brazadash.pricing import platform_fee, round_cents, sum_amounts

DAY_NAMES = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]


@dataclass(frozen=True)
class ReportRange:
    start: datetime
    end: datetime
    week_offset: int = 0

    @property
    def end_exclusive(self) -> datetime:
        return datetime.combine(self.end.date() + timedelta(days=1), time.min)

    @property
    def num_days(self) -> int:
        return (self.end.date() - self.start.date()).days + 1

    def days(self) -> List[date]:
        first = self.start.date()
        return [first + timedelta(days=i) for i in range(self.num_days)]

    def contains(self, moment: Optional[datetime]) -> bool:
        return moment is not None and self.start <= moment < self.end_exclusive


def resolve_range(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    week_offset: int = 0,
    today: Optional[date] = None,
) -> ReportRange:
    """Explicit inclusive dates win; otherwise the Sunday-to-Saturday week ``week_offset`` weeks from today."""
    if start_date and end_date:
        if end_date < start_date:
            raise ValidationError("end_date must not be before start_date")
        return ReportRange(
            start=datetime.combine(start_date, time.min),
            end=datetime.combine(end_date, time.max),
        )

    # Rows are stamped in UTC, so the current week is the UTC week.
    today = today or utcnow().date()
    days_since_sunday = (today.weekday() + 1) % 7
    week_start = today - timedelta(days=days_since_sunday) + timedelta(weeks=week_offset)
    return ReportRange(
        start=datetime.combine(week_start, time.min),
        end=datetime.combine(week_start + timedelta(days=6), time.max),
        week_offset=week_offset,
    )


class RestaurantDay(BaseModel):
    day: str
    date: dt.date
    orders: int
    gross_revenue: Decimal
    platform_fee: Decimal
    net_payout: Decimal


class RestaurantReport(BaseModel):
    type: str = "restaurant"
    id: str
    name: str
    total_orders: int
    gross_revenue: Decimal
    platform_fee: Decimal
    net_payout: Decimal
    daily_breakdown: List[RestaurantDay]


class ProviderDay(BaseModel):
    day: str
    date: dt.date
    bookings: int
    service_revenue: Decimal
    booking_fee_revenue: Decimal
    total_paid: Decimal
    platform_fee: Decimal
    net_payout: Decimal


class ProviderReport(BaseModel):
    type: str = "provider"
    id: str
    name: str
    total_bookings: int
    service_revenue: Decimal
    booking_fee_revenue: Decimal
    total_paid: Decimal
    platform_fee: Decimal
    net_payout: Decimal
    daily_breakdown: List[ProviderDay]


class ReportSummary(BaseModel):
    total_platform_revenue: Decimal
    total_payouts: Decimal
    total_orders: int
    total_bookings: int


class FinancialReport(BaseModel):
    week_start: date
    week_end: date
    week_offset: int
    num_days: int
    restaurants: List[RestaurantReport]
    providers: List[ProviderReport]
    summary: ReportSummary


def _bucket(rows, key) -> Dict[str, Dict[date, list]]:
    buckets = defaultdict(lambda: defaultdict(list))
    for row in rows:
        buckets[key(row)][row.created_at.date()].append(row)
    return buckets


def order_day(day: date, orders: list) -> RestaurantDay:
    gross = round_cents(sum_amounts(o.subtotal for o in orders))
    fee = platform_fee(gross)
    return RestaurantDay(
        day=DAY_NAMES[day.weekday()],
        date=day,
        orders=len(orders),
        gross_revenue=gross,
        platform_fee=fee,
        net_payout=round_cents(gross - fee),
    )


def booking_day(day: date, bookings: list) -> ProviderDay:
    service_revenue = round_cents(sum_amounts(b.price for b in bookings))
    booking_fees = round_cents(sum_amounts(b.booking_fee for b in bookings))
    fee = platform_fee(service_revenue)
    return ProviderDay(
        day=DAY_NAMES[day.weekday()],
        date=day,
        bookings=len(bookings),
        service_revenue=service_revenue,
        booking_fee_revenue=booking_fees,
        total_paid=round_cents(sum_amounts(b.total_paid for b in bookings)),
        platform_fee=fee,
        net_payout=round_cents(service_revenue + booking_fees - fee),
    )


def _total(days, attr) -> Decimal:
    return round_cents(sum_amounts(getattr(d, attr) for d in days))


def build_financial_report(
    rng: ReportRange,
    restaurants: Iterable,
    providers: Iterable,
    orders: Iterable,
    bookings: Iterable,
) -> FinancialReport:
    period_orders = [o for o in orders if rng.contains(o.created_at) and o.status != "cancelled"]
    period_bookings = [
        b for b in bookings
        if rng.contains(b.created_at) and b.is_paid and b.status != "cancelled"
    ]
    orders_by_restaurant = _bucket(period_orders, lambda o: o.restaurant_id)
    bookings_by_provider = _bucket(period_bookings, lambda b: b.provider_id)

    restaurant_reports = []
    for r in sorted(restaurants, key=lambda r: r.name):
        days = [order_day(d, orders_by_restaurant[r.id][d]) for d in rng.days()]
        restaurant_reports.append(RestaurantReport(
            id=r.id,
            name=r.name,
            total_orders=sum(d.orders for d in days),
            gross_revenue=_total(days, "gross_revenue"),
            platform_fee=_total(days, "platform_fee"),
            net_payout=_total(days, "net_payout"),
            daily_breakdown=days,
        ))

    provider_reports = []
    for p in sorted(providers, key=lambda p: p.business_name):
        days = [booking_day(d, bookings_by_provider[p.id][d]) for d in rng.days()]
        provider_reports.append(ProviderReport(
            id=p.id,
            name=p.business_name,
            total_bookings=sum(d.bookings for d in days),
            service_revenue=_total(days, "service_revenue"),
            booking_fee_revenue=_total(days, "booking_fee_revenue"),
            total_paid=_total(days, "total_paid"),
            platform_fee=_total(days, "platform_fee"),
            net_payout=_total(days, "net_payout"),
            daily_breakdown=days,
        ))

    reports = restaurant_reports + provider_reports
    return FinancialReport(
        week_start=rng.start.date(),
        week_end=rng.end.date(),
        week_offset=rng.week_offset,
        num_days=rng.num_days,
        restaurants=restaurant_reports,
        providers=provider_reports,
        summary=ReportSummary(
            total_platform_revenue=_total(reports, "platform_fee"),
            total_payouts=_total(reports, "net_payout"),
            total_orders=len(period_orders),
            total_bookings=len(period_bookings),
        ),
    )
