import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import Column, String, Integer, Numeric, Boolean, DateTime, Text, JSON
from brazadash.database import Base

ORDER_STATUSES = ("pending", "confirmed", "preparing", "ready", "out_for_delivery", "delivered", "cancelled")
BOOKING_STATUSES = ("pending", "accepted", "declined", "confirmed", "in_progress", "completed", "cancelled")


def new_id():
    return str(uuid.uuid4())


def utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


class UserRole(Base):
    __tablename__ = "user_roles"

    id = Column(String, primary_key=True, default=new_id)
    user_id = Column(String, index=True, nullable=False)
    role = Column(String, nullable=False, default="customer")              # customer | vendor | service_provider | admin
    approval_status = Column(String, nullable=False, default="approved")   # pending | approved | rejected
    created_at = Column(DateTime, default=utcnow)


class Restaurant(Base):
    __tablename__ = "restaurants"

    id = Column(String, primary_key=True, default=new_id)
    owner_id = Column(String, index=True, nullable=False)
    name = Column(String(255), nullable=False)
    address = Column(Text)
    city = Column(String(100))
    delivery_fee = Column(Numeric(10, 2), default=Decimal("3.99"))
    rating = Column(Numeric(2, 1), default=0)
    review_count = Column(Integer, default=0)
    is_active = Column(Boolean, default=True)
    terminal_enabled = Column(Boolean, default=False)
    terminal_location_id = Column(String)
    created_at = Column(DateTime, default=utcnow)


class MenuItem(Base):
    __tablename__ = "menu_items"

    id = Column(String, primary_key=True, default=new_id)
    restaurant_id = Column(String, index=True, nullable=False)
    name = Column(String(255), nullable=False)
    description = Column(Text)
    price = Column(Numeric(10, 2), nullable=False)
    is_available = Column(Boolean, default=True)


class ServiceProvider(Base):
    __tablename__ = "service_providers"

    id = Column(String, primary_key=True, default=new_id)
    user_id = Column(String, index=True, nullable=False)
    business_name = Column(String(255), nullable=False)
    booking_fee = Column(Numeric(10, 2), default=0)
    rating = Column(Numeric(2, 1), default=0)
    review_count = Column(Integer, default=0)
    created_at = Column(DateTime, default=utcnow)


class Service(Base):
    __tablename__ = "services"

    id = Column(String, primary_key=True, default=new_id)
    provider_id = Column(String, index=True, nullable=False)
    name = Column(String(255), nullable=False)
    description = Column(Text)
    price = Column(Numeric(10, 2))


class Order(Base):
    __tablename__ = "orders"

    id = Column(String, primary_key=True, default=new_id)
    customer_id = Column(String, index=True, nullable=False)
    restaurant_id = Column(String, index=True, nullable=False)
    status = Column(String, nullable=False, default="pending")
    items = Column(JSON, nullable=False)                    # [{menu_item_id, name, price, quantity}]
    subtotal = Column(Numeric(10, 2), nullable=False)
    delivery_fee = Column(Numeric(10, 2), nullable=False)
    tip = Column(Numeric(10, 2), default=0)
    platform_fee = Column(Numeric(10, 2), default=0)
    total = Column(Numeric(10, 2), nullable=False)
    delivery_address = Column(Text)
    notes = Column(Text)
    payment_reference = Column(String, unique=True, index=True)   # Stripe session or PaymentIntent ID
    created_at = Column(DateTime, default=utcnow, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(String, primary_key=True, default=new_id)
    customer_id = Column(String, index=True, nullable=False)
    provider_id = Column(String, index=True, nullable=False)
    service_id = Column(String)
    status = Column(String, nullable=False, default="pending")
    requested_date = Column(DateTime)
    requested_time = Column(String(20))
    confirmed_date = Column(DateTime)
    confirmed_time = Column(String(20))
    address = Column(Text)
    notes = Column(Text)
    price = Column(Numeric(10, 2), default=0)
    booking_fee = Column(Numeric(10, 2), default=0)       # provider fee + platform fee
    total_paid = Column(Numeric(10, 2), default=0)
    payment_reference = Column(String, unique=True, index=True)
    is_paid = Column(Boolean, default=False)
    created_at = Column(DateTime, default=utcnow, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class Review(Base):
    __tablename__ = "reviews"

    id = Column(String, primary_key=True, default=new_id)
    order_id = Column(String, unique=True, nullable=False)
    customer_id = Column(String, nullable=False)
    restaurant_id = Column(String, index=True, nullable=False)
    rating = Column(Integer, nullable=False)
    food_rating = Column(Integer)
    delivery_rating = Column(Integer)
    comment = Column(Text)
    photo_urls = Column(JSON, default=list)
    created_at = Column(DateTime, default=utcnow)


class ServiceReview(Base):
    __tablename__ = "service_reviews"

    id = Column(String, primary_key=True, default=new_id)
    booking_id = Column(String, unique=True, nullable=False)
    customer_id = Column(String, nullable=False)
    provider_id = Column(String, index=True, nullable=False)
    rating = Column(Integer, nullable=False)
    quality_rating = Column(Integer)
    communication_rating = Column(Integer)
    value_rating = Column(Integer)
    comment = Column(Text)
    photo_urls = Column(JSON, default=list)
    created_at = Column(DateTime, default=utcnow)


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(String, primary_key=True, default=new_id)
    user_id = Column(String, index=True, nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    type = Column(String, nullable=False, default="system")   # order | booking | system
    is_read = Column(Boolean, default=False)
    created_at = Column(DateTime, default=utcnow)
