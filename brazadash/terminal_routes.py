import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from brazadash import storage, stripe_service
from brazadash.auth import require_approved_vendor
from brazadash.database import get_db
from brazadash.errors import UpstreamError, ValidationError
from brazadash.pricing import platform_fee, to_cents
from brazadash.schemas import (
    ReaderCancelRequest,
    TerminalLocationRequest,
    TerminalPaymentRequest,
    TerminalSettingsUpdate,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/terminal")


def _owned_intent(db: Session, intent_id: str, user_id: str):
    payment = stripe_service.retrieve_intent(intent_id)
    restaurant_id = payment.metadata.get("restaurant_id")
    if not restaurant_id:
        raise ValidationError("Invalid payment intent")
    storage.get_owned_restaurant(db, restaurant_id, user_id)
    return payment


@router.post("/connection-token")
def connection_token(user_id: str = Depends(require_approved_vendor)):
    return {"secret": stripe_service.create_connection_token()}


@router.post("/locations")
def create_location(
    request: TerminalLocationRequest,
    user_id: str = Depends(require_approved_vendor),
    db: Session = Depends(get_db),
):
    restaurant = storage.get_owned_restaurant(db, request.restaurant_id, user_id)
    if restaurant.terminal_location_id:
        return {"location_id": restaurant.terminal_location_id}

    location_id = stripe_service.create_terminal_location(
        restaurant.name,
        restaurant.address or "Address not set",
        restaurant.city or "Unknown",
        request.postal_code,
    )
    restaurant.terminal_location_id = location_id
    restaurant.terminal_enabled = True
    db.commit()
    return {"location_id": location_id}


@router.get("/readers")
def list_readers(
    restaurant_id: str,
    user_id: str = Depends(require_approved_vendor),
    db: Session = Depends(get_db),
):
    restaurant = storage.get_owned_restaurant(db, restaurant_id, user_id)
    if not restaurant.terminal_location_id:
        return {"readers": []}
    return {"readers": stripe_service.list_readers(restaurant.terminal_location_id)}


@router.post("/payment-intents")
def create_terminal_payment(
    request: TerminalPaymentRequest,
    user_id: str = Depends(require_approved_vendor),
    db: Session = Depends(get_db),
):
    restaurant = storage.get_owned_restaurant(db, request.restaurant_id, user_id)
    if not restaurant.terminal_enabled:
        raise ValidationError("Terminal is not enabled for this restaurant")

    amount_cents = to_cents(request.amount)
    fee_cents = to_cents(platform_fee(request.amount))

    result = stripe_service.create_terminal_payment_intent(
        amount_cents,
        {
            "restaurant_id": restaurant.id,
            "restaurant_name": restaurant.name,
            "type": "terminal_in_person",
            "description": request.description or "In-person payment",
            "platform_fee": str(fee_cents),
        },
    )

    reader_action = None
    if request.reader_id:
        # The intent exists either way; the vendor can re-send it to a reader.
        try:
            reader_action = stripe_service.process_on_reader(request.reader_id, result["payment_intent_id"])
        except UpstreamError as e:
            reader_action = {"error": e.message}

    return {
        **result,
        "amount": amount_cents,
        "platform_fee": fee_cents,
        "reader_action": reader_action,
    }


@router.get("/payment-intents/{intent_id}/status")
def terminal_payment_status(
    intent_id: str,
    user_id: str = Depends(require_approved_vendor),
    db: Session = Depends(get_db),
):
    payment = _owned_intent(db, intent_id, user_id)
    return {"id": payment.reference, "status": payment.status, "amount": payment.amount_cents}


@router.post("/payment-intents/{intent_id}/capture")
def capture_terminal_payment(
    intent_id: str,
    user_id: str = Depends(require_approved_vendor),
    db: Session = Depends(get_db),
):
    _owned_intent(db, intent_id, user_id)
    captured = stripe_service.capture_intent(intent_id)
    return {
        "id": captured.id,
        "status": captured.status,
        "amount": captured.amount,
        "tip_amount": captured.tip_amount,
    }


@router.post("/readers/{reader_id}/cancel")
def cancel_reader(
    reader_id: str,
    request: ReaderCancelRequest,
    user_id: str = Depends(require_approved_vendor),
    db: Session = Depends(get_db),
):
    storage.get_owned_restaurant(db, request.restaurant_id, user_id)
    result = stripe_service.cancel_reader_action(reader_id)
    logger.info(f"Cancelled action on reader {reader_id}")
    return result


@router.patch("/settings")
def update_terminal_settings(
    request: TerminalSettingsUpdate,
    user_id: str = Depends(require_approved_vendor),
    db: Session = Depends(get_db),
):
    restaurant = storage.get_owned_restaurant(db, request.restaurant_id, user_id)
    restaurant.terminal_enabled = request.terminal_enabled
    db.commit()
    return {
        "id": restaurant.id,
        "terminal_enabled": restaurant.terminal_enabled,
        "terminal_location_id": restaurant.terminal_location_id,
    }
