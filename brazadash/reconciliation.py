"""Turn a successful Stripe payment into exactly one local order or booking.

The confirmation endpoints may be hit more than once for the same payment
(browser retry, page refresh), so every path first looks for a row already
carrying the payment reference and returns it unchanged. The unique
constraint on ``payment_reference`` covers the race where two requests pass
the lookup at the same time.

Amounts are always read from the payment metadata written at checkout, never
from the confirming request.
"""
import json
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from brazadash import storage
from brazadash.errors import Forbidden, PaymentNotCompleted, ValidationError
from brazadash.models import Booking, Order, Restaurant, ServiceProvider, new_id
from brazadash.pricing import from_cents, round_cents
from brazadash.stripe_service import PaymentSnapshot

logger = logging.getLogger(__name__)


def _check_payment(payment: PaymentSnapshot, user_id: str):
    # Ownership first: a stranger learns nothing about the payment's status.
    if payment.metadata.get("user_id") != user_id:
        raise Forbidden()
    if not payment.is_paid:
        raise PaymentNotCompleted()


def _parse_date(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        logger.warning(f"Ignoring unparseable requested date {value!r}")
        return None


def _insert(db: Session, row, lookup):
    """Commit ``row``; if another request won the race, return its row instead."""
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        existing = lookup()
        if existing is None:
            raise
        logger.info(f"Concurrent confirmation for {existing.payment_reference}, returning existing row")
        return existing, False
    db.refresh(row)
    return row, True


def reconcile_order(db: Session, payment: PaymentSnapshot, user_id: str):
    """Return ``(order, created)`` for a paid session or succeeded intent."""
    _check_payment(payment, user_id)

    # Booking sessions and terminal intents are never orders.
    meta = payment.metadata
    if (meta.get("type") or "order") != "order":
        raise ValidationError("Invalid session type")

    existing = storage.get_order_by_payment_reference(db, payment.reference)
    if existing:
        logger.info(f"Order {existing.id} already exists for payment {payment.reference}")
        return existing, False

    order = Order(
        id=new_id(),
        customer_id=user_id,
        restaurant_id=meta.get("restaurant_id", ""),
        status="pending",
        items=json.loads(meta.get("items") or "[]"),
        subtotal=round_cents(meta.get("subtotal")),
        delivery_fee=round_cents(meta.get("delivery_fee")),
        tip=round_cents(meta.get("tip")),
        platform_fee=round_cents(meta.get("platform_fee")),
        total=from_cents(payment.amount_cents),
        delivery_address=meta.get("delivery_address", ""),
        notes=meta.get("notes", ""),
        payment_reference=payment.reference,
    )
    db.add(order)

    short_id = order.id[:8]
    storage.create_notification(
        db, user_id, "Order Placed",
        f"Your order #{short_id} has been placed successfully!", "order",
    )
    restaurant = db.get(Restaurant, order.restaurant_id)
    if restaurant:
        storage.create_notification(
            db, restaurant.owner_id, "New Order",
            f"New paid order #{short_id} for {restaurant.name}. Total ${order.total}.", "order",
        )

    order, created = _insert(
        db, order, lambda: storage.get_order_by_payment_reference(db, payment.reference)
    )
    if created:
        logger.info(f"Created order {order.id} for payment {payment.reference}")
    return order, created


def reconcile_booking(db: Session, payment: PaymentSnapshot, user_id: str):
    """Return ``(booking, created)`` for a paid booking checkout session."""
    _check_payment(payment, user_id)

    meta = payment.metadata
    if meta.get("type") != "booking":
        raise ValidationError("Invalid session type")

    existing = storage.get_booking_by_payment_reference(db, payment.reference)
    if existing:
        logger.info(f"Booking {existing.id} already exists for payment {payment.reference}")
        return existing, False

    requested_date = _parse_date(meta.get("requested_date"))
    booking = Booking(
        customer_id=user_id,
        provider_id=meta.get("provider_id", ""),
        service_id=meta.get("service_id") or None,
        status="pending",
        requested_date=requested_date,
        requested_time=meta.get("requested_time") or None,
        address=meta.get("address") or None,
        notes=meta.get("notes") or None,
        price=round_cents(meta.get("service_price")),
        booking_fee=round_cents(meta.get("booking_fee")),
        total_paid=round_cents(meta.get("total_amount")),
        payment_reference=payment.reference,
        is_paid=True,
    )
    db.add(booking)

    service_name = meta.get("service_name", "your service")
    when = requested_date.strftime("%m/%d/%Y") if requested_date else "a date to be confirmed"
    provider = db.get(ServiceProvider, booking.provider_id)
    if provider:
        storage.create_notification(
            db, provider.user_id, "New Paid Booking",
            f"New booking request for {service_name} on {when}. Payment received.", "booking",
        )
    storage.create_notification(
        db, user_id, "Booking Confirmed",
        f"Your booking for {service_name} has been placed. Payment of ${booking.total_paid} received.",
        "booking",
    )

    booking, created = _insert(
        db, booking, lambda: storage.get_booking_by_payment_reference(db, payment.reference)
    )
    if created:
        logger.info(f"Created booking {booking.id} for payment {payment.reference}")
    return booking, created
