"""Queries and writes shared by the route modules."""
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from brazadash.errors import BusinessRuleError, Forbidden, NotFound
from brazadash.models import (
    Booking,
    MenuItem,
    Notification,
    Order,
    Restaurant,
    Review,
    Service,
    ServiceProvider,
    ServiceReview,
)
from brazadash.pricing import to_decimal


def get_restaurant(db: Session, restaurant_id: Optional[str]) -> Restaurant:
    restaurant = db.get(Restaurant, restaurant_id) if restaurant_id else None
    if not restaurant:
        raise NotFound("Restaurant not found")
    return restaurant


def get_owned_restaurant(db: Session, restaurant_id: Optional[str], user_id: str) -> Restaurant:
    restaurant = db.get(Restaurant, restaurant_id) if restaurant_id else None
    if not restaurant or restaurant.owner_id != user_id:
        raise Forbidden()
    return restaurant


def get_menu_item(db: Session, menu_item_id: str) -> Optional[MenuItem]:
    return db.get(MenuItem, menu_item_id)


def get_service_provider(db: Session, provider_id: str) -> ServiceProvider:
    provider = db.get(ServiceProvider, provider_id)
    if not provider:
        raise NotFound("Provider not found")
    return provider


def get_provider_by_user(db: Session, user_id: str) -> Optional[ServiceProvider]:
    return db.query(ServiceProvider).filter_by(user_id=user_id).first()


def get_service(db: Session, service_id: str) -> Service:
    service = db.get(Service, service_id)
    if not service:
        raise NotFound("Service not found")
    return service


def get_order_by_payment_reference(db: Session, reference: str) -> Optional[Order]:
    return db.query(Order).filter_by(payment_reference=reference).first()


def get_booking_by_payment_reference(db: Session, reference: str) -> Optional[Booking]:
    return db.query(Booking).filter_by(payment_reference=reference).first()


def create_notification(db: Session, user_id: str, title: str, message: str, type: str = "system"):
    notification = Notification(user_id=user_id, title=title, message=message, type=type)
    db.add(notification)
    return notification


# ==================== REVIEWS ====================

def _average(db: Session, column, key_column, key) -> tuple:
    avg, count = db.query(func.avg(column), func.count(column)).filter(key_column == key).one()
    return avg, count


def _one_decimal(value) -> Decimal:
    return to_decimal(value).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)


def update_restaurant_rating(db: Session, restaurant_id: str):
    avg, count = _average(db, Review.rating, Review.restaurant_id, restaurant_id)
    if not count:
        return
    restaurant = db.get(Restaurant, restaurant_id)
    if restaurant:
        restaurant.rating = _one_decimal(avg)
        restaurant.review_count = count


def update_provider_rating(db: Session, provider_id: str):
    avg, count = _average(db, ServiceReview.rating, ServiceReview.provider_id, provider_id)
    if not count:
        return
    provider = db.get(ServiceProvider, provider_id)
    if provider:
        provider.rating = _one_decimal(avg)
        provider.review_count = count


def _check_rating(*ratings):
    for rating in ratings:
        if rating is not None and not 1 <= rating <= 5:
            raise BusinessRuleError("Rating must be between 1 and 5")


def create_review(db: Session, user_id: str, data) -> Review:
    _check_rating(data.rating, data.food_rating, data.delivery_rating)

    order = db.get(Order, data.order_id)
    if not order or order.customer_id != user_id:
        raise Forbidden()
    if order.status != "delivered":
        raise BusinessRuleError("Can only review delivered orders")
    if db.query(Review).filter_by(order_id=order.id).first():
        raise BusinessRuleError("Order already reviewed")

    review = Review(
        order_id=order.id,
        customer_id=user_id,
        restaurant_id=order.restaurant_id,
        rating=data.rating,
        food_rating=data.food_rating,
        delivery_rating=data.delivery_rating,
        comment=data.comment,
        photo_urls=list(data.photo_urls),
    )
    db.add(review)
    db.flush()
    update_restaurant_rating(db, order.restaurant_id)
    db.commit()
    db.refresh(review)
    return review


def create_service_review(db: Session, user_id: str, data) -> ServiceReview:
    _check_rating(data.rating, data.quality_rating, data.communication_rating, data.value_rating)

    booking = db.get(Booking, data.booking_id)
    if not booking or booking.customer_id != user_id:
        raise Forbidden()
    if booking.status != "completed":
        raise BusinessRuleError("Can only review completed bookings")
    if db.query(ServiceReview).filter_by(booking_id=booking.id).first():
        raise BusinessRuleError("Booking already reviewed")

    review = ServiceReview(
        booking_id=booking.id,
        customer_id=user_id,
        provider_id=booking.provider_id,
        rating=data.rating,
        quality_rating=data.quality_rating,
        communication_rating=data.communication_rating,
        value_rating=data.value_rating,
        comment=data.comment,
        photo_urls=list(data.photo_urls),
    )
    db.add(review)
    db.flush()
    update_provider_rating(db, booking.provider_id)
    db.commit()
    db.refresh(review)
    return review
