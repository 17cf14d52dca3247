from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class CartItem(BaseModel):
    menu_item_id: str
    quantity: int = Field(gt=0)


class OrderCheckoutRequest(BaseModel):
    restaurant_id: str
    items: List[CartItem]
    delivery_address: str
    notes: Optional[str] = None
    tip: Optional[Decimal] = None


class ConfirmPaymentRequest(BaseModel):
    payment_intent_id: str


class CompleteSessionRequest(BaseModel):
    session_id: str


class BookingCheckoutRequest(BaseModel):
    provider_id: str
    service_id: Optional[str] = None
    requested_date: Optional[str] = None
    requested_time: Optional[str] = None
    address: Optional[str] = None
    notes: Optional[str] = None


class OrderItem(BaseModel):
    menu_item_id: str
    name: str
    price: str
    quantity: int


class OrderOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    customer_id: str
    restaurant_id: str
    status: str
    items: List[OrderItem]
    subtotal: Decimal
    delivery_fee: Decimal
    tip: Decimal
    platform_fee: Decimal
    total: Decimal
    delivery_address: Optional[str] = None
    notes: Optional[str] = None
    payment_reference: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class BookingOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    customer_id: str
    provider_id: str
    service_id: Optional[str] = None
    status: str
    requested_date: Optional[datetime] = None
    requested_time: Optional[str] = None
    confirmed_date: Optional[datetime] = None
    confirmed_time: Optional[str] = None
    address: Optional[str] = None
    notes: Optional[str] = None
    price: Decimal
    booking_fee: Decimal
    total_paid: Decimal
    payment_reference: Optional[str] = None
    is_paid: bool
    created_at: datetime


class OrderStatusUpdate(BaseModel):
    status: str


class BookingStatusUpdate(BaseModel):
    status: str
    confirmed_date: Optional[datetime] = None
    confirmed_time: Optional[str] = None
    price: Optional[Decimal] = None


class ReviewCreate(BaseModel):
    order_id: str
    rating: int
    food_rating: Optional[int] = None
    delivery_rating: Optional[int] = None
    comment: Optional[str] = None
    photo_urls: List[str] = []


class ServiceReviewCreate(BaseModel):
    booking_id: str
    rating: int
    quality_rating: Optional[int] = None
    communication_rating: Optional[int] = None
    value_rating: Optional[int] = None
    comment: Optional[str] = None
    photo_urls: List[str] = []


class ReviewOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    rating: int
    comment: Optional[str] = None
    photo_urls: List[str] = []
    created_at: datetime


class NotificationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    message: str
    type: str
    is_read: bool
    created_at: datetime


class TerminalPaymentRequest(BaseModel):
    restaurant_id: str
    amount: Decimal
    description: Optional[str] = None
    reader_id: Optional[str] = None


class TerminalLocationRequest(BaseModel):
    restaurant_id: str
    postal_code: str = "00000"


class ReaderCancelRequest(BaseModel):
    restaurant_id: str


class TerminalSettingsUpdate(BaseModel):
    restaurant_id: str
    terminal_enabled: bool
