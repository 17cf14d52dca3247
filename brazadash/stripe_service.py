import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import stripe

from brazadash import config
from brazadash.credentials import get_credentials
from brazadash.errors import CaptureFailed, InvalidAmount, UpstreamError
from brazadash.pricing import MIN_CHARGE_CENTS

logger = logging.getLogger(__name__)

SUCCESS_STATES = ("paid", "succeeded")


@dataclass
class PaymentSnapshot:
    """Current state of a Checkout Session or PaymentIntent, as read from Stripe."""

    reference: str
    status: str
    amount_cents: int
    metadata: Dict[str, str] = field(default_factory=dict)
    customer_email: Optional[str] = None

    @property
    def is_paid(self) -> bool:
        return self.status in SUCCESS_STATES


@dataclass
class CaptureResult:
    id: str
    status: str
    amount: int
    tip_amount: int = 0


def _api_key():
    return get_credentials().secret_key


def publishable_key():
    return get_credentials().publishable_key


def descriptor_suffix(name: Optional[str], fallback: str = "Order") -> str:
    return re.sub(r"[^a-zA-Z0-9 ]", "", name or fallback)[:22].strip()


def _check_amount(amount_cents: int):
    if amount_cents < MIN_CHARGE_CENTS:
        raise InvalidAmount("Amount must be at least $0.50")


def _metadata(obj) -> Dict[str, str]:
    return dict(obj.get("metadata") or {})


def _tip_amount(intent) -> int:
    details = intent.get("amount_details") or {}
    tip = details.get("tip") or {}
    return tip.get("amount") or 0


def create_payment_intent(
    amount_cents: int,
    currency: str,
    metadata: Dict[str, str],
    statement_descriptor_suffix: Optional[str] = None,
    idempotency_key: Optional[str] = None,
):
    _check_amount(amount_cents)
    params = dict(
        amount=amount_cents,
        currency=currency,
        automatic_payment_methods={"enabled": True},
        metadata=metadata,
    )
    if statement_descriptor_suffix:
        params["statement_descriptor_suffix"] = statement_descriptor_suffix
    if idempotency_key:
        params["idempotency_key"] = idempotency_key

    try:
        intent = stripe.PaymentIntent.create(api_key=_api_key(), **params)
    except stripe.StripeError as e:
        logger.error(f"Stripe error creating payment intent: {str(e)}")
        raise UpstreamError("Failed to create payment intent") from e

    logger.info(f"Created payment intent: {intent['id']}")
    return {"client_secret": intent["client_secret"], "payment_intent_id": intent["id"]}


def create_checkout_session(
    line_items: List[dict],
    success_url: str,
    cancel_url: str,
    metadata: Dict[str, str],
    payment_intent_data: Optional[dict] = None,
):
    _check_amount(sum(li["price_data"]["unit_amount"] * li["quantity"] for li in line_items))
    params = dict(
        payment_method_types=["card"],
        line_items=line_items,
        mode="payment",
        success_url=success_url,
        cancel_url=cancel_url,
        metadata=metadata,
    )
    if payment_intent_data:
        params["payment_intent_data"] = payment_intent_data

    try:
        session = stripe.checkout.Session.create(api_key=_api_key(), **params)
    except stripe.StripeError as e:
        logger.error(f"Stripe error creating checkout session: {str(e)}")
        raise UpstreamError("Failed to create checkout session") from e

    logger.info(f"Created checkout session: {session['id']}")
    return {"session_id": session["id"], "url": session["url"]}


def retrieve_session(session_id: str) -> PaymentSnapshot:
    try:
        session = stripe.checkout.Session.retrieve(session_id, api_key=_api_key())
    except stripe.StripeError as e:
        logger.error(f"Stripe error retrieving session {session_id}: {str(e)}")
        raise UpstreamError("Failed to retrieve checkout session") from e

    details = session.get("customer_details") or {}
    return PaymentSnapshot(
        reference=session["id"],
        status=session["payment_status"],
        amount_cents=session.get("amount_total") or 0,
        metadata=_metadata(session),
        customer_email=session.get("customer_email") or details.get("email"),
    )


def retrieve_intent(intent_id: str) -> PaymentSnapshot:
    try:
        intent = stripe.PaymentIntent.retrieve(intent_id, api_key=_api_key())
    except stripe.StripeError as e:
        logger.error(f"Stripe error retrieving payment intent {intent_id}: {str(e)}")
        raise UpstreamError("Failed to retrieve payment intent") from e

    return PaymentSnapshot(
        reference=intent["id"],
        status=intent["status"],
        amount_cents=intent.get("amount") or 0,
        metadata=_metadata(intent),
    )


def capture_intent(intent_id: str) -> CaptureResult:
    try:
        captured = stripe.PaymentIntent.capture(intent_id, api_key=_api_key())
    except stripe.InvalidRequestError as e:
        # Already captured, canceled, or never authorized
        logger.error(f"Capture rejected for {intent_id}: {str(e)}")
        raise CaptureFailed("The payment was authorized but could not be captured") from e
    except stripe.StripeError as e:
        logger.error(f"Stripe error capturing {intent_id}: {str(e)}")
        raise UpstreamError("Failed to capture payment") from e

    logger.info(f"Captured payment intent: {captured['id']}")
    return CaptureResult(
        id=captured["id"],
        status=captured["status"],
        amount=captured["amount"],
        tip_amount=_tip_amount(captured),
    )


# ==================== TERMINAL ====================

def create_terminal_payment_intent(amount_cents: int, metadata: Dict[str, str]):
    _check_amount(amount_cents)
    try:
        intent = stripe.PaymentIntent.create(
            api_key=_api_key(),
            amount=amount_cents,
            currency=config.CURRENCY,
            payment_method_types=["card_present"],
            capture_method="manual",
            statement_descriptor=f"{config.STATEMENT_DESCRIPTOR} ORDER",
            metadata=metadata,
        )
    except stripe.StripeError as e:
        logger.error(f"Stripe error creating terminal payment intent: {str(e)}")
        raise UpstreamError("Failed to create payment intent") from e

    logger.info(f"Created terminal payment intent: {intent['id']}")
    return {"client_secret": intent["client_secret"], "payment_intent_id": intent["id"]}


def process_on_reader(reader_id: str, intent_id: str):
    try:
        reader = stripe.terminal.Reader.process_payment_intent(
            reader_id, payment_intent=intent_id, api_key=_api_key()
        )
    except stripe.StripeError as e:
        logger.error(f"Stripe error sending {intent_id} to reader {reader_id}: {str(e)}")
        raise UpstreamError(str(e)) from e
    action = reader.get("action") or {}
    return {"status": action.get("status"), "type": action.get("type")}


def cancel_reader_action(reader_id: str):
    try:
        reader = stripe.terminal.Reader.cancel_action(reader_id, api_key=_api_key())
    except stripe.StripeError as e:
        logger.error(f"Stripe error cancelling reader {reader_id}: {str(e)}")
        raise UpstreamError("Failed to cancel reader action") from e
    return {"id": reader["id"], "status": reader.get("status")}


def list_readers(location_id: str):
    try:
        readers = stripe.terminal.Reader.list(location=location_id, limit=100, api_key=_api_key())
    except stripe.StripeError as e:
        logger.error(f"Stripe error listing readers: {str(e)}")
        raise UpstreamError("Failed to list readers") from e
    return [
        {
            "id": r["id"],
            "label": r.get("label"),
            "device_type": r.get("device_type"),
            "status": r.get("status"),
            "serial_number": r.get("serial_number"),
            "ip_address": r.get("ip_address"),
        }
        for r in readers["data"]
    ]


def create_terminal_location(display_name: str, line1: str, city: str, postal_code: str):
    try:
        location = stripe.terminal.Location.create(
            api_key=_api_key(),
            display_name=display_name,
            address={
                "line1": line1,
                "city": city,
                "state": "CA",
                "country": "US",
                "postal_code": postal_code,
            },
        )
    except stripe.StripeError as e:
        logger.error(f"Stripe error creating terminal location: {str(e)}")
        raise UpstreamError("Failed to create terminal location") from e
    return location["id"]


def create_connection_token():
    try:
        token = stripe.terminal.ConnectionToken.create(api_key=_api_key())
    except stripe.StripeError as e:
        logger.error(f"Stripe error creating connection token: {str(e)}")
        raise UpstreamError("Failed to create connection token") from e
    return token["secret"]
