"""
Checkout Poller — Client-side M-Pesa confirmation flow.

Drives the payment modal: once the STK push is accepted, one timer polls the
status endpoint and a second one counts down the wall-clock budget. Whichever
reaches a terminal state first stops both. Closing the modal stops both
as well; the charge already sent to the gateway cannot be cancelled.
"""
import asyncio
from typing import Any, Awaitable, Callable, Dict, NamedTuple, Optional

import httpx

from app.config import get_settings
from app.utils.logger import log_event

IDLE = "idle"
PROCESSING = "processing"
COMPLETED = "completed"
FAILED = "failed"

TIMEOUT_MESSAGE = "Payment request timed out"
COUNTDOWN_MESSAGE = "Payment request timed out. Please try again."
VERIFY_FAILED_MESSAGE = "Failed to verify payment"
ACTIVATION_WARNING = (
    "Payment received, but we could not activate your subscription. "
    "Please contact support."
)

StatusCheck = Callable[[str], Awaitable[Optional[Dict[str, Any]]]]
Activation = Callable[[str], Awaitable[Any]]


class CheckoutOutcome(NamedTuple):
    status: str
    message: str
    checkout_request_id: Optional[str]
    attempts: int
    warning: Optional[str] = None


class CheckoutError(Exception):
    """The backend refused to start the checkout."""


class CheckoutPoller:
    """Polls a checkout to a terminal state within an attempt and time budget.

    Args:
        check_status: Coroutine returning the status payload
            ({"status", "message"}) or None when the endpoint answered with
            an error. Exceptions are treated like None.
        activate: Coroutine run once after COMPLETED. Its failure only
            produces a warning; the payment itself stays successful.
    """

    def __init__(
        self,
        check_status: StatusCheck,
        activate: Optional[Activation] = None,
        initial_delay: Optional[float] = None,
        interval: Optional[float] = None,
        max_attempts: Optional[int] = None,
        timeout: Optional[float] = None,
        tick: float = 1.0,
    ):
        settings = get_settings()
        self.check_status = check_status
        self.activate = activate
        self.initial_delay = settings.POLL_INITIAL_DELAY_SECONDS if initial_delay is None else initial_delay
        self.interval = settings.POLL_INTERVAL_SECONDS if interval is None else interval
        self.max_attempts = settings.POLL_MAX_ATTEMPTS if max_attempts is None else max_attempts
        self.timeout = settings.CHECKOUT_TIMEOUT_SECONDS if timeout is None else timeout
        self.tick = tick

        self._poll_task: Optional[asyncio.Task] = None
        self._countdown_task: Optional[asyncio.Task] = None
        self._done: Optional[asyncio.Event] = None
        self._reset()

    def _reset(self):
        self.state = IDLE
        self.message = ""
        self.attempts = 0
        self.time_remaining = float(self.timeout)
        self.checkout_request_id: Optional[str] = None
        self.warning: Optional[str] = None

    @property
    def timers_active(self) -> bool:
        return any(t is not None and not t.done() for t in (self._poll_task, self._countdown_task))

    def _finish(self, state: str, message: str):
        # First terminal signal wins
        if self._done is None or self._done.is_set():
            return
        self.state = state
        self.message = message
        self._done.set()

    async def _poll(self, checkout_request_id: str):
        await asyncio.sleep(self.initial_delay)
        while True:
            self.attempts += 1
            try:
                result = await self.check_status(checkout_request_id)
            except Exception as e:
                log_event("checkout", f"Status check {self.attempts}/{self.max_attempts} failed: {e}")
                result = None

            if result is not None:
                status = result.get("status")
                message = result.get("message")
                if status == "COMPLETED":
                    self._finish(COMPLETED, "Payment successful!")
                    return
                if status == "FAILED":
                    self._finish(FAILED, message or "Payment failed")
                    return
                self.message = message or "Waiting for payment confirmation..."

            if self.attempts >= self.max_attempts:
                self._finish(FAILED, TIMEOUT_MESSAGE if result is not None else VERIFY_FAILED_MESSAGE)
                return
            await asyncio.sleep(self.interval)

    async def _countdown(self):
        while self.time_remaining > 0:
            await asyncio.sleep(self.tick)
            self.time_remaining = max(self.time_remaining - self.tick, 0.0)
        self._finish(FAILED, COUNTDOWN_MESSAGE)

    async def _stop_timers(self):
        tasks = [t for t in (self._poll_task, self._countdown_task) if t is not None]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    async def run(self, checkout_request_id: str) -> CheckoutOutcome:
        """Poll until COMPLETED, FAILED, budget exhaustion or close()."""
        self._reset()
        self.state = PROCESSING
        self.message = "Check your phone for the M-Pesa prompt..."
        self.checkout_request_id = checkout_request_id

        self._done = asyncio.Event()
        self._poll_task = asyncio.create_task(self._poll(checkout_request_id))
        self._countdown_task = asyncio.create_task(self._countdown())
        try:
            await self._done.wait()
        finally:
            await self._stop_timers()

        if self.state == COMPLETED and self.activate is not None:
            try:
                await self.activate(checkout_request_id)
            except Exception as e:
                log_event("checkout", f"Subscription activation failed for {checkout_request_id}: {e}")
                self.warning = ACTIVATION_WARNING

        return CheckoutOutcome(
            status=self.state,
            message=self.message,
            checkout_request_id=self.checkout_request_id,
            attempts=self.attempts,
            warning=self.warning,
        )

    def close(self):
        """Modal closed: stop both timers and forget everything shown."""
        for task in (self._poll_task, self._countdown_task):
            if task is not None:
                task.cancel()
        if self._done is not None:
            self._done.set()
        self._reset()


class CheckoutClient:
    """Async HTTP client for the checkout endpoints of this API."""

    def __init__(self, base_url: str, user_id: str, http_client: Optional[httpx.AsyncClient] = None):
        self.user_id = user_id
        self.http = http_client or httpx.AsyncClient(base_url=base_url, timeout=30.0)

    @property
    def _headers(self) -> Dict[str, str]:
        return {"user-id": self.user_id}

    async def initiate(self, phone_number: str, amount: int, plan: str, interval: str) -> Dict[str, Any]:
        response = await self.http.post(
            "/api/mpesa/stk-push",
            json={"phoneNumber": phone_number, "amount": amount, "plan": plan, "interval": interval},
            headers=self._headers,
        )
        if response.status_code != 200:
            try:
                detail = response.json().get("detail")
            except ValueError:
                detail = None
            raise CheckoutError(detail or f"Payment failed: {response.status_code}")
        data = response.json()
        if not data.get("success") or not data.get("CheckoutRequestID"):
            raise CheckoutError("Invalid response from payment service")
        return data

    async def check_status(self, checkout_request_id: str) -> Optional[Dict[str, Any]]:
        response = await self.http.post(
            "/api/mpesa/status",
            json={"CheckoutRequestID": checkout_request_id},
            headers=self._headers,
        )
        if response.status_code != 200:
            return None
        return response.json()

    async def activate(self, checkout_request_id: str, plan: str, interval: str) -> Dict[str, Any]:
        response = await self.http.post(
            "/api/subscriptions/activate",
            json={"CheckoutRequestID": checkout_request_id, "plan": plan, "interval": interval},
            headers=self._headers,
        )
        response.raise_for_status()
        return response.json()

    async def aclose(self):
        await self.http.aclose()


async def run_checkout(
    client: CheckoutClient,
    phone_number: str,
    amount: int,
    plan: str,
    interval: str,
    poller: Optional[CheckoutPoller] = None,
) -> CheckoutOutcome:
    """Full modal flow: STK push, poll to a terminal state, activate on success."""
    try:
        data = await client.initiate(phone_number, amount, plan, interval)
    except (CheckoutError, httpx.HTTPError) as e:
        return CheckoutOutcome(FAILED, str(e) or "Payment failed", None, 0)

    checkout_request_id = data["CheckoutRequestID"]
    if poller is None:
        poller = CheckoutPoller(client.check_status)
    poller.activate = lambda cid: client.activate(cid, plan, interval)
    return await poller.run(checkout_request_id)
