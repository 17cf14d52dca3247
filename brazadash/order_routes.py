import logging
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from brazadash import storage
from brazadash.auth import get_current_user, require_approved_provider, require_approved_vendor
from brazadash.database import get_db
from brazadash.errors import Forbidden, NotFound, ValidationError
from brazadash.models import BOOKING_STATUSES, ORDER_STATUSES, Booking, Notification, Order, Restaurant
from brazadash.schemas import (
    BookingOut,
    BookingStatusUpdate,
    NotificationOut,
    OrderOut,
    OrderStatusUpdate,
    ReviewCreate,
    ReviewOut,
    ServiceReviewCreate,
)

logger = logging.getLogger(__name__)

router = APIRouter()

ORDER_STATUS_MESSAGES = {
    "confirmed": "Your order has been confirmed!",
    "preparing": "Your order is being prepared.",
    "ready": "Your order is ready for pickup!",
    "out_for_delivery": "Your order is out for delivery!",
    "delivered": "Your order has been delivered. Enjoy!",
    "cancelled": "Your order has been cancelled.",
}

BOOKING_STATUS_MESSAGES = {
    "accepted": "Your booking request has been accepted!",
    "declined": "Your booking request was declined.",
    "confirmed": "Your booking is confirmed!",
    "in_progress": "Your service is in progress.",
    "completed": "Your service has been completed. Please leave a review!",
    "cancelled": "Your booking has been cancelled.",
}


@router.get("/orders", response_model=List[OrderOut])
def list_orders(user_id: str = Depends(get_current_user), db: Session = Depends(get_db)):
    return (
        db.query(Order)
        .filter_by(customer_id=user_id)
        .order_by(Order.created_at.desc())
        .all()
    )


@router.get("/orders/{order_id}", response_model=OrderOut)
def get_order(order_id: str, user_id: str = Depends(get_current_user), db: Session = Depends(get_db)):
    order = db.get(Order, order_id)
    if not order:
        raise NotFound("Order not found")
    if order.customer_id != user_id:
        raise Forbidden()
    return order


@router.patch("/vendor/orders/{order_id}", response_model=OrderOut)
def update_order_status(
    order_id: str,
    request: OrderStatusUpdate,
    user_id: str = Depends(require_approved_vendor),
    db: Session = Depends(get_db),
):
    if request.status not in ORDER_STATUSES:
        raise ValidationError(f"Invalid status. Must be one of: {', '.join(ORDER_STATUSES)}")

    order = db.get(Order, order_id)
    if not order:
        raise NotFound("Order not found")
    restaurant = db.get(Restaurant, order.restaurant_id)
    if not restaurant or restaurant.owner_id != user_id:
        raise Forbidden()

    order.status = request.status
    message = ORDER_STATUS_MESSAGES.get(request.status)
    if message:
        storage.create_notification(db, order.customer_id, f"Order #{order.id[:8]} Update", message, "order")
    db.commit()
    db.refresh(order)
    logger.info(f"Order {order.id} moved to {order.status}")
    return order


@router.get("/bookings", response_model=List[BookingOut])
def list_bookings(user_id: str = Depends(get_current_user), db: Session = Depends(get_db)):
    return (
        db.query(Booking)
        .filter_by(customer_id=user_id)
        .order_by(Booking.created_at.desc())
        .all()
    )


@router.get("/bookings/{booking_id}", response_model=BookingOut)
def get_booking(booking_id: str, user_id: str = Depends(get_current_user), db: Session = Depends(get_db)):
    booking = db.get(Booking, booking_id)
    if not booking:
        raise NotFound("Booking not found")
    provider = storage.get_provider_by_user(db, user_id)
    if booking.customer_id != user_id and (not provider or provider.id != booking.provider_id):
        raise Forbidden()
    return booking


@router.patch("/provider/bookings/{booking_id}", response_model=BookingOut)
def update_booking_status(
    booking_id: str,
    request: BookingStatusUpdate,
    user_id: str = Depends(require_approved_provider),
    db: Session = Depends(get_db),
):
    provider = storage.get_provider_by_user(db, user_id)
    if not provider:
        raise NotFound("Provider profile not found")

    booking = db.get(Booking, booking_id)
    if not booking or booking.provider_id != provider.id:
        raise Forbidden()
    if request.status not in BOOKING_STATUSES:
        raise ValidationError(f"Invalid status. Must be one of: {', '.join(BOOKING_STATUSES)}")

    booking.status = request.status
    if request.confirmed_date is not None:
        booking.confirmed_date = request.confirmed_date
    if request.confirmed_time is not None:
        booking.confirmed_time = request.confirmed_time
    if request.price is not None:
        booking.price = request.price

    message = BOOKING_STATUS_MESSAGES.get(request.status)
    if message:
        storage.create_notification(db, booking.customer_id, "Booking Update", message, "booking")
    db.commit()
    db.refresh(booking)
    logger.info(f"Booking {booking.id} moved to {booking.status}")
    return booking


@router.post("/reviews", response_model=ReviewOut, status_code=201)
def create_review(request: ReviewCreate, user_id: str = Depends(get_current_user), db: Session = Depends(get_db)):
    return storage.create_review(db, user_id, request)


@router.post("/services/reviews", response_model=ReviewOut, status_code=201)
def create_service_review(
    request: ServiceReviewCreate,
    user_id: str = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return storage.create_service_review(db, user_id, request)


@router.get("/notifications", response_model=List[NotificationOut])
def list_notifications(user_id: str = Depends(get_current_user), db: Session = Depends(get_db)):
    return (
        db.query(Notification)
        .filter_by(user_id=user_id)
        .order_by(Notification.created_at.desc())
        .all()
    )
