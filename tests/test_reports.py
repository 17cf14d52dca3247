from datetime import date, datetime
from decimal import Decimal
from types import SimpleNamespace

import pytest

from brazadash.errors import ValidationError
from brazadash.models import Booking, Order, Restaurant
from brazadash.reports import build_financial_report, resolve_range

from conftest import ADMIN_ID, add_role

WEEK = resolve_range(date(2024, 5, 12), date(2024, 5, 18))


def _restaurant(id="r1", name="Feijoada House"):
    return SimpleNamespace(id=id, name=name)


def _provider(id="p1", business_name="Ana Fixes"):
    return SimpleNamespace(id=id, business_name=business_name)


def _order(subtotal, created_at, restaurant_id="r1", status="pending"):
    return SimpleNamespace(
        restaurant_id=restaurant_id, subtotal=Decimal(subtotal), status=status, created_at=created_at
    )


def _booking(price, booking_fee, total_paid, created_at, provider_id="p1", is_paid=True, status="pending"):
    return SimpleNamespace(
        provider_id=provider_id,
        price=Decimal(price),
        booking_fee=Decimal(booking_fee),
        total_paid=Decimal(total_paid),
        is_paid=is_paid,
        status=status,
        created_at=created_at,
    )


def test_week_range_starts_on_sunday():
    rng = resolve_range(today=date(2024, 5, 15))  # a Wednesday
    assert rng.start.date() == date(2024, 5, 12)
    assert rng.end.date() == date(2024, 5, 18)
    assert rng.num_days == 7

    previous = resolve_range(week_offset=-1, today=date(2024, 5, 15))
    assert previous.start.date() == date(2024, 5, 5)
    assert previous.week_offset == -1

    on_sunday = resolve_range(today=date(2024, 5, 12))
    assert on_sunday.start.date() == date(2024, 5, 12)


def test_explicit_range_is_inclusive():
    rng = resolve_range(date(2024, 5, 1), date(2024, 5, 1))
    assert rng.num_days == 1
    assert rng.contains(datetime(2024, 5, 1, 23, 59, 59))
    assert not rng.contains(datetime(2024, 5, 2, 0, 0))


def test_end_before_start_is_rejected():
    with pytest.raises(ValidationError):
        resolve_range(date(2024, 5, 10), date(2024, 5, 1))


def test_daily_sum_is_rounded_once():
    """Two half-cent subtotals on one day round to 20.01, not 20.02."""
    day = datetime(2024, 5, 13, 12, 0)
    report = build_financial_report(
        WEEK, [_restaurant()], [], [_order("10.005", day), _order("10.005", day)], []
    )

    r = report.restaurants[0]
    monday = r.daily_breakdown[1]
    assert monday.day == "Mon"
    assert monday.orders == 2
    assert monday.gross_revenue == Decimal("20.01")
    assert monday.platform_fee == Decimal("1.60")
    assert monday.net_payout == Decimal("18.41")
    assert r.gross_revenue == Decimal("20.01")


def test_entity_totals_sum_rounded_days():
    report = build_financial_report(
        WEEK,
        [_restaurant()],
        [],
        [_order("10.005", datetime(2024, 5, 13, 9)), _order("10.005", datetime(2024, 5, 14, 9))],
        [],
    )
    assert report.restaurants[0].gross_revenue == Decimal("20.02")


def test_booking_payout_keeps_booking_fee():
    report = build_financial_report(
        WEEK, [], [_provider()], [], [_booking("100.00", "13.00", "113.00", datetime(2024, 5, 16, 10))]
    )

    p = report.providers[0]
    assert p.service_revenue == Decimal("100.00")
    assert p.booking_fee_revenue == Decimal("13.00")
    assert p.total_paid == Decimal("113.00")
    assert p.platform_fee == Decimal("8.00")
    assert p.net_payout == Decimal("105.00")


def test_cancelled_unpaid_and_out_of_range_rows_are_excluded():
    inside = datetime(2024, 5, 14, 10)
    orders = [
        _order("40.00", inside),
        _order("99.00", inside, status="cancelled"),
        _order("77.00", datetime(2024, 5, 19, 0, 0)),
    ]
    bookings = [
        _booking("50.00", "4.00", "54.00", inside),
        _booking("60.00", "5.00", "65.00", inside, is_paid=False),
        _booking("70.00", "6.00", "76.00", inside, status="cancelled"),
    ]
    report = build_financial_report(WEEK, [_restaurant()], [_provider()], orders, bookings)

    assert report.summary.total_orders == 1
    assert report.summary.total_bookings == 1
    assert report.restaurants[0].gross_revenue == Decimal("40.00")
    assert report.providers[0].service_revenue == Decimal("50.00")
    # 3.20 + 4.00 platform fees; 36.80 + 50.00 payouts
    assert report.summary.total_platform_revenue == Decimal("7.20")
    assert report.summary.total_payouts == Decimal("86.80")


def test_entities_without_activity_get_zero_days_and_are_sorted():
    report = build_financial_report(
        WEEK, [_restaurant("r2", "Zeca's"), _restaurant("r1", "Acai Bowl")], [], [], []
    )
    assert [r.name for r in report.restaurants] == ["Acai Bowl", "Zeca's"]
    assert len(report.restaurants[0].daily_breakdown) == 7
    assert report.restaurants[0].net_payout == Decimal("0.00")


def test_financial_report_endpoint(client, db, current_user):
    add_role(db, ADMIN_ID, "admin")
    current_user["id"] = ADMIN_ID
    db.add(Restaurant(id="r1", owner_id="v1", name="Feijoada House"))
    db.add(Order(
        customer_id="c1", restaurant_id="r1", items=[], subtotal=Decimal("25.00"),
        delivery_fee=Decimal("3.99"), total=Decimal("30.99"), payment_reference="pi_a",
        created_at=datetime(2024, 5, 13, 18, 30),
    ))
    db.add(Booking(
        customer_id="c1", provider_id="p-x", price=Decimal("10"), booking_fee=Decimal("1"),
        total_paid=Decimal("11"), is_paid=False, payment_reference="cs_b",
        created_at=datetime(2024, 5, 13, 18, 30),
    ))
    db.commit()

    response = client.get("/admin/financial-report?startDate=2024-05-12&endDate=2024-05-18")

    assert response.status_code == 200
    body = response.json()
    assert body["week_start"] == "2024-05-12"
    assert body["num_days"] == 7
    assert body["restaurants"][0]["gross_revenue"] == "25.00"
    assert body["restaurants"][0]["platform_fee"] == "2.00"
    assert body["summary"]["total_orders"] == 1
    assert body["summary"]["total_bookings"] == 0


def test_financial_report_requires_admin(client):
    response = client.get("/admin/financial-report")
    assert response.status_code == 403
    assert response.json() == {"detail": "Admin access required"}


def test_current_week_follows_utc_clock(mocker):
    mocker.patch("brazadash.reports.utcnow", return_value=datetime(2024, 5, 18, 23, 30))
    rng = resolve_range()
    assert rng.start.date() == date(2024, 5, 12)


def test_financial_report_week_offset_query(client, db, current_user, mocker):
    add_role(db, ADMIN_ID, "admin")
    current_user["id"] = ADMIN_ID
    mocker.patch("brazadash.reports.utcnow", return_value=datetime(2024, 5, 15, 12, 0))

    response = client.get("/admin/financial-report?weekOffset=-1")

    body = response.json()
    assert body["week_start"] == "2024-05-05"
    assert body["week_end"] == "2024-05-11"
    assert body["week_offset"] == -1


def test_financial_report_explicit_range_query(client, db, current_user):
    add_role(db, ADMIN_ID, "admin")
    current_user["id"] = ADMIN_ID

    response = client.get("/admin/financial-report?startDate=2024-01-01&endDate=2024-01-03")

    body = response.json()
    assert body["week_start"] == "2024-01-01"
    assert body["week_end"] == "2024-01-03"
    assert body["num_days"] == 3
