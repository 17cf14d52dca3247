"""Money arithmetic shared by checkout, reconciliation and the financial report.

Amounts are ``Decimal`` dollars. Rounding is always round-half-up at the cent.
"""
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional, Union

from brazadash import config

CENT = Decimal("0.01")
PLATFORM_FEE_RATE = Decimal(config.PLATFORM_FEE_RATE)
MIN_CHARGE_CENTS = 50

Number = Union[Decimal, int, float, str, None]


def to_decimal(value: Number) -> Decimal:
    if value is None or value == "":
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    # str() keeps floats like 3.99 from turning into 3.9900000000000002131...
    return Decimal(str(value))


def round_cents(value: Number) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def to_cents(value: Number) -> int:
    return int(round_cents(value) * 100)


def from_cents(cents: int) -> Decimal:
    return round_cents(Decimal(cents) / 100)


def platform_fee(amount: Number) -> Decimal:
    return round_cents(to_decimal(amount) * PLATFORM_FEE_RATE)


def sum_amounts(values: Iterable[Number]) -> Decimal:
    return sum((to_decimal(v) for v in values), Decimal("0"))


@dataclass(frozen=True)
class OrderTotals:
    subtotal: Decimal
    delivery_fee: Decimal
    tip: Decimal
    platform_fee: Decimal

    @property
    def total(self) -> Decimal:
        return round_cents(self.subtotal + self.delivery_fee + self.tip + self.platform_fee)

    @property
    def total_cents(self) -> int:
        return to_cents(self.total)


def order_totals(subtotal: Number, delivery_fee: Number, tip: Number = 0) -> OrderTotals:
    subtotal = round_cents(subtotal)
    return OrderTotals(
        subtotal=subtotal,
        delivery_fee=round_cents(delivery_fee),
        tip=round_cents(tip),
        platform_fee=platform_fee(subtotal),
    )


@dataclass(frozen=True)
class BookingTotals:
    service_price: Decimal
    provider_booking_fee: Decimal
    platform_fee: Decimal

    @property
    def booking_fee(self) -> Decimal:
        """Fee line stored on the booking: provider fee plus platform fee."""
        return self.provider_booking_fee + self.platform_fee

    @property
    def total(self) -> Decimal:
        return round_cents(self.service_price + self.booking_fee)


def booking_totals(service_price: Number, provider_booking_fee: Optional[Number]) -> BookingTotals:
    service_price = round_cents(service_price)
    return BookingTotals(
        service_price=service_price,
        provider_booking_fee=round_cents(provider_booking_fee),
        platform_fee=platform_fee(service_price),
    )
