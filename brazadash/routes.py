import json

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from brazadash import config, storage, stripe_service
from brazadash.auth import get_current_user
from brazadash.database import get_db
from brazadash.errors import ValidationError
from brazadash.pricing import booking_totals, order_totals, sum_amounts, to_cents, to_decimal
from brazadash.reconciliation import reconcile_booking, reconcile_order
from brazadash.schemas import (
    BookingCheckoutRequest,
    BookingOut,
    CompleteSessionRequest,
    ConfirmPaymentRequest,
    OrderCheckoutRequest,
    OrderOut,
)

router = APIRouter()


def _line_item(name: str, unit_amount: int, quantity: int = 1, description: str = None):
    product = {"name": name}
    if description:
        product["description"] = description
    return {
        "price_data": {
            "currency": config.CURRENCY,
            "product_data": product,
            "unit_amount": unit_amount,
        },
        "quantity": quantity,
    }


def _price_cart(db: Session, request: OrderCheckoutRequest):
    """Price the cart from stored menu prices; client prices are never trusted."""
    if not request.items:
        raise ValidationError("Cart is empty")
    if not request.delivery_address or len(request.delivery_address.strip()) < 5:
        raise ValidationError("Delivery address is required")
    if request.tip is not None and request.tip < 0:
        raise ValidationError("Tip cannot be negative")

    restaurant = storage.get_restaurant(db, request.restaurant_id)

    items = []
    for item in request.items:
        menu_item = storage.get_menu_item(db, item.menu_item_id)
        if not menu_item or menu_item.restaurant_id != restaurant.id:
            raise ValidationError(f"Menu item not found: {item.menu_item_id}")
        items.append({
            "menu_item_id": menu_item.id,
            "name": menu_item.name,
            "price": str(menu_item.price),
            "quantity": item.quantity,
        })

    subtotal = sum_amounts(to_decimal(i["price"]) * i["quantity"] for i in items)
    delivery_fee = restaurant.delivery_fee if restaurant.delivery_fee is not None else config.DEFAULT_DELIVERY_FEE
    totals = order_totals(subtotal, delivery_fee, request.tip or 0)
    return restaurant, items, totals


def _order_metadata(user_id, request, items, totals):
    return {
        "type": "order",
        "user_id": user_id,
        "restaurant_id": request.restaurant_id,
        "delivery_address": request.delivery_address,
        "notes": request.notes or "",
        "items": json.dumps(items),
        "subtotal": str(totals.subtotal),
        "delivery_fee": str(totals.delivery_fee),
        "tip": str(totals.tip),
        "platform_fee": str(totals.platform_fee),
    }


@router.get("/stripe/config")
def stripe_config():
    return {"publishable_key": stripe_service.publishable_key()}


@router.post("/checkout/create-payment-intent")
def create_payment_intent(
    request: OrderCheckoutRequest,
    user_id: str = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    restaurant, items, totals = _price_cart(db, request)

    result = stripe_service.create_payment_intent(
        totals.total_cents,
        config.CURRENCY,
        _order_metadata(user_id, request, items, totals),
        statement_descriptor_suffix=stripe_service.descriptor_suffix(restaurant.name),
    )
    return {**result, "total": totals.total}


@router.post("/checkout/confirm-payment", response_model=OrderOut)
def confirm_payment(
    request: ConfirmPaymentRequest,
    user_id: str = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    payment = stripe_service.retrieve_intent(request.payment_intent_id)
    order, _ = reconcile_order(db, payment, user_id)
    return order


@router.post("/checkout/create-session")
def create_checkout_session(
    request: OrderCheckoutRequest,
    user_id: str = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    restaurant, items, totals = _price_cart(db, request)

    line_items = [
        _line_item(i["name"], to_cents(i["price"]), i["quantity"]) for i in items
    ]
    line_items.append(_line_item("Delivery Fee", to_cents(totals.delivery_fee)))
    if totals.platform_fee > 0:
        line_items.append(_line_item("Platform Fee", to_cents(totals.platform_fee), description="Platform fee (8%)"))
    if totals.tip > 0:
        line_items.append(_line_item("Tip", to_cents(totals.tip)))

    base_url = config.public_base_url()
    return stripe_service.create_checkout_session(
        line_items,
        success_url=f"{base_url}/checkout/success?session_id={{CHECKOUT_SESSION_ID}}",
        cancel_url=f"{base_url}/checkout",
        metadata=_order_metadata(user_id, request, items, totals),
        payment_intent_data={
            "statement_descriptor_suffix": stripe_service.descriptor_suffix(restaurant.name),
        },
    )


@router.post("/checkout/complete", response_model=OrderOut)
def complete_checkout(
    request: CompleteSessionRequest,
    user_id: str = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    payment = stripe_service.retrieve_session(request.session_id)
    order, _ = reconcile_order(db, payment, user_id)
    return order


@router.get("/checkout/session/{session_id}")
def checkout_session_status(session_id: str, user_id: str = Depends(get_current_user)):
    payment = stripe_service.retrieve_session(session_id)
    return {"status": payment.status, "customer_email": payment.customer_email}


@router.post("/bookings/checkout")
def create_booking_checkout(
    request: BookingCheckoutRequest,
    user_id: str = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    provider = storage.get_service_provider(db, request.provider_id)

    service_name = provider.business_name
    service_price = 0
    if request.service_id:
        service = storage.get_service(db, request.service_id)
        service_name = service.name
        service_price = service.price or 0

    totals = booking_totals(service_price, provider.booking_fee)
    if totals.total <= 0:
        raise ValidationError("No amount to charge. Service price or booking fee must be set.")

    line_items = []
    if totals.service_price > 0:
        line_items.append(_line_item(
            service_name, to_cents(totals.service_price), description=f"Service by {provider.business_name}"
        ))
    if totals.platform_fee > 0:
        line_items.append(_line_item("Platform Fee", to_cents(totals.platform_fee), description="Platform fee (8%)"))
    if totals.provider_booking_fee > 0:
        line_items.append(_line_item(
            "Booking Fee", to_cents(totals.provider_booking_fee),
            description=f"Reservation fee set by {provider.business_name}",
        ))

    base_url = config.public_base_url()
    return stripe_service.create_checkout_session(
        line_items,
        success_url=f"{base_url}/bookings?payment=success&session_id={{CHECKOUT_SESSION_ID}}",
        cancel_url=f"{base_url}/services/provider/{provider.id}",
        metadata={
            "type": "booking",
            "user_id": user_id,
            "provider_id": provider.id,
            "service_id": request.service_id or "",
            "service_name": service_name,
            "service_price": str(totals.service_price),
            "booking_fee": str(totals.booking_fee),
            "platform_fee": str(totals.platform_fee),
            "provider_booking_fee": str(totals.provider_booking_fee),
            "total_amount": str(totals.total),
            "requested_date": request.requested_date or "",
            "requested_time": request.requested_time or "",
            "address": request.address or "",
            "notes": request.notes or "",
        },
        payment_intent_data={
            "statement_descriptor_suffix": stripe_service.descriptor_suffix(provider.business_name, "Booking"),
        },
    )


@router.post("/bookings/checkout/complete", response_model=BookingOut)
def complete_booking_checkout(
    request: CompleteSessionRequest,
    user_id: str = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    payment = stripe_service.retrieve_session(request.session_id)
    booking, _ = reconcile_booking(db, payment, user_id)
    return booking
