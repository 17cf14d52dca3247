"""Polling loop for an in-person (card reader) payment.

After a charge is sent to a reader, the intent's status is polled every
``interval`` seconds until the card is presented and the authorization can be
captured, the payment fails or is cancelled, or ``max_polls`` lookups pass
without a result::

    idle -> waiting_for_card -> capturing -> completed
                                          -> capture_failed
                             -> payment_failed | cancelled | timed_out

A failed capture is never retried automatically; the operator calls
``retry_capture()`` or ``dismiss()``. A timed-out intent stays open at Stripe.
"""
import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, Optional

import httpx

logger = logging.getLogger(__name__)

POLL_INTERVAL = 2.0
MAX_POLLS = 150


class TerminalState(str, Enum):
    IDLE = "idle"
    WAITING_FOR_CARD = "waiting_for_card"
    CAPTURING = "capturing"
    COMPLETED = "completed"
    CAPTURE_FAILED = "capture_failed"
    PAYMENT_FAILED = "payment_failed"
    CANCELLED = "cancelled"
    TIMED_OUT = "timed_out"


FINAL_STATES = {
    TerminalState.COMPLETED,
    TerminalState.CAPTURE_FAILED,
    TerminalState.PAYMENT_FAILED,
    TerminalState.CANCELLED,
    TerminalState.TIMED_OUT,
}


class IntentStatus(str, Enum):
    REQUIRES_PAYMENT_METHOD = "requires_payment_method"
    REQUIRES_CAPTURE = "requires_capture"
    SUCCEEDED = "succeeded"
    CANCELED = "canceled"
    OTHER = "other"

    @classmethod
    def parse(cls, value: Optional[str]) -> "IntentStatus":
        if value == "cancelled":
            return cls.CANCELED
        try:
            return cls(value)
        except ValueError:
            return cls.OTHER


StatusFetcher = Callable[[str], Awaitable[str]]
Capturer = Callable[[str], Awaitable[dict]]


class TerminalPaymentPoller:
    def __init__(
        self,
        intent_id: str,
        fetch_status: StatusFetcher,
        capture: Capturer,
        interval: float = POLL_INTERVAL,
        max_polls: int = MAX_POLLS,
        on_change: Optional[Callable[[TerminalState], None]] = None,
    ):
        self.intent_id = intent_id
        self.fetch_status = fetch_status
        self.capture = capture
        self.interval = interval
        self.max_polls = max_polls
        self.on_change = on_change

        self.state = TerminalState.IDLE
        self.poll_count = 0
        self.amount: Optional[int] = None
        self.tip_amount = 0
        self.error: Optional[str] = None
        self._in_flight = False
        self._stop = asyncio.Event()

    @property
    def done(self) -> bool:
        return self.state in FINAL_STATES

    def _set(self, state: TerminalState):
        if state == self.state:
            return
        logger.info(f"Terminal payment {self.intent_id}: {self.state.value} -> {state.value}")
        self.state = state
        if state in FINAL_STATES:
            self._stop.set()
        if self.on_change:
            self.on_change(state)

    def start(self):
        self.poll_count = 0
        self.error = None
        self._stop.clear()
        self._set(TerminalState.WAITING_FOR_CARD)

    async def tick(self):
        """Run one poll. Skipped while the previous one is still in flight."""
        if self._in_flight or self.state != TerminalState.WAITING_FOR_CARD:
            return
        self._in_flight = True
        try:
            self.poll_count += 1
            try:
                raw = await self.fetch_status(self.intent_id)
            except Exception as e:
                logger.warning(f"Status lookup for {self.intent_id} failed (poll {self.poll_count}): {e}")
                raw = None

            # Cancelled while the request was in flight: drop the result.
            if self.state != TerminalState.WAITING_FOR_CARD:
                return
            if raw is not None:
                await self._dispatch(IntentStatus.parse(raw))

            if self.state == TerminalState.WAITING_FOR_CARD and self.poll_count >= self.max_polls:
                self._set(TerminalState.TIMED_OUT)
        finally:
            self._in_flight = False

    async def _dispatch(self, status: IntentStatus):
        if status == IntentStatus.REQUIRES_CAPTURE:
            await self._capture()
        elif status == IntentStatus.SUCCEEDED:
            # Captured elsewhere already
            self._set(TerminalState.COMPLETED)
        elif status == IntentStatus.CANCELED:
            self._set(TerminalState.CANCELLED)
        elif status == IntentStatus.REQUIRES_PAYMENT_METHOD:
            self._set(TerminalState.PAYMENT_FAILED)
        else:
            pass  # still waiting for the card

    async def _capture(self):
        self._set(TerminalState.CAPTURING)
        try:
            result = await self.capture(self.intent_id)
        except Exception as e:
            if self.state != TerminalState.CAPTURING:
                return
            logger.error(f"Capture of {self.intent_id} failed: {e}")
            self.error = str(e)
            self._set(TerminalState.CAPTURE_FAILED)
            return

        if self.state != TerminalState.CAPTURING:
            return
        self.amount = result.get("amount")
        self.tip_amount = result.get("tip_amount") or 0
        self._set(TerminalState.COMPLETED)

    async def retry_capture(self) -> TerminalState:
        if self.state != TerminalState.CAPTURE_FAILED:
            raise RuntimeError(f"Cannot retry capture from state {self.state.value}")
        self.error = None
        await self._capture()
        return self.state

    def dismiss(self):
        self._stop.set()
        self.state = TerminalState.IDLE

    def cancel(self):
        if self.done or self.state == TerminalState.IDLE:
            return
        self._set(TerminalState.CANCELLED)

    async def run(self) -> TerminalState:
        if self.state == TerminalState.IDLE:
            self.start()
        while self.state == TerminalState.WAITING_FOR_CARD:
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                pass
            await self.tick()
        return self.state


class TerminalApiClient:
    """Calls this service's terminal endpoints on behalf of a vendor."""

    def __init__(self, base_url: str, token: str, client: Optional[httpx.AsyncClient] = None):
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=10.0)
        self._headers = {"Authorization": f"Bearer {token}"}

    async def fetch_status(self, intent_id: str) -> str:
        resp = await self._client.get(f"/terminal/payment-intents/{intent_id}/status", headers=self._headers)
        resp.raise_for_status()
        return resp.json()["status"]

    async def capture(self, intent_id: str) -> dict:
        resp = await self._client.post(f"/terminal/payment-intents/{intent_id}/capture", headers=self._headers)
        resp.raise_for_status()
        return resp.json()

    async def aclose(self):
        await self._client.aclose()


def _log_failure(task: asyncio.Task):
    if not task.cancelled() and task.exception() is not None:
        logger.error("Terminal poller stopped unexpectedly", exc_info=task.exception())


class TerminalChargeSession:
    """At most one live poller; starting a new charge cancels the previous one."""

    def __init__(self, api: TerminalApiClient, interval: float = POLL_INTERVAL, max_polls: int = MAX_POLLS):
        self.api = api
        self.interval = interval
        self.max_polls = max_polls
        self.poller: Optional[TerminalPaymentPoller] = None
        self.task: Optional[asyncio.Task] = None

    def start(self, intent_id: str) -> TerminalPaymentPoller:
        previous = self.task
        self.cancel()
        if previous is not None and not previous.done():
            previous.cancel()
        self.poller = TerminalPaymentPoller(
            intent_id,
            self.api.fetch_status,
            self.api.capture,
            interval=self.interval,
            max_polls=self.max_polls,
        )
        self.poller.start()
        self.task = asyncio.create_task(self.poller.run())
        self.task.add_done_callback(_log_failure)
        return self.poller

    async def wait(self) -> Optional[TerminalState]:
        if self.task is None:
            return None
        return await self.task

    def cancel(self):
        if self.poller is not None:
            self.poller.cancel()
