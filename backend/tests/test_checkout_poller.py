"""
Client-side checkout flow. Timers run with tiny or zero intervals so the
scenarios finish instantly; asyncio.run keeps the tests plain functions.
"""
import asyncio
import json

import httpx

from app.services.checkout_poller import (
    ACTIVATION_WARNING, COUNTDOWN_MESSAGE, TIMEOUT_MESSAGE, VERIFY_FAILED_MESSAGE,
    CheckoutClient, CheckoutPoller, run_checkout,
)

CHECKOUT_ID = "ws_CO_191220191020363925"


def scripted(*responses):
    """Status check returning the given payloads in order, then repeating the last."""
    calls = []

    async def check(checkout_request_id):
        calls.append(checkout_request_id)
        item = responses[min(len(calls), len(responses)) - 1]
        if isinstance(item, Exception):
            raise item
        return item

    check.calls = calls
    return check


def fast_poller(check, activate=None, **overrides):
    options = dict(initial_delay=0, interval=0, max_attempts=24, timeout=1000, tick=0.01)
    options.update(overrides)
    return CheckoutPoller(check, activate=activate, **options)


PENDING = {"status": "PENDING", "message": "Payment is being processed"}
COMPLETED = {"status": "COMPLETED", "message": "Payment completed successfully"}


def test_times_out_after_attempt_budget():
    check = scripted(PENDING)
    poller = fast_poller(check)

    outcome = asyncio.run(poller.run(CHECKOUT_ID))

    assert outcome.status == "failed"
    assert outcome.message == TIMEOUT_MESSAGE
    assert outcome.attempts == 24
    assert len(check.calls) == 24
    assert poller.timers_active is False


def test_completed_stops_polling_and_activates_once():
    activations = []

    async def activate(checkout_request_id):
        activations.append(checkout_request_id)

    check = scripted(PENDING, PENDING, COMPLETED)
    poller = fast_poller(check, activate=activate)

    outcome = asyncio.run(poller.run(CHECKOUT_ID))

    assert outcome.status == "completed"
    assert outcome.attempts == 3
    assert outcome.warning is None
    assert activations == [CHECKOUT_ID]
    assert poller.timers_active is False


def test_activation_failure_is_only_a_warning():
    async def activate(checkout_request_id):
        raise RuntimeError("insert failed")

    outcome = asyncio.run(fast_poller(scripted(COMPLETED), activate=activate).run(CHECKOUT_ID))

    assert outcome.status == "completed"
    assert outcome.message == "Payment successful!"
    assert outcome.warning == ACTIVATION_WARNING


def test_failed_status_ends_without_activation():
    activations = []

    async def activate(checkout_request_id):
        activations.append(checkout_request_id)

    check = scripted({"status": "FAILED", "message": "Request cancelled by user"})
    outcome = asyncio.run(fast_poller(check, activate=activate).run(CHECKOUT_ID))

    assert outcome.status == "failed"
    assert outcome.message == "Request cancelled by user"
    assert activations == []


def test_status_errors_are_transient():
    check = scripted(RuntimeError("network down"), None, COMPLETED)

    outcome = asyncio.run(fast_poller(check).run(CHECKOUT_ID))

    assert outcome.status == "completed"
    assert outcome.attempts == 3


def test_persistent_status_errors_fail_at_budget():
    outcome = asyncio.run(fast_poller(scripted(RuntimeError("boom")), max_attempts=5).run(CHECKOUT_ID))

    assert outcome.status == "failed"
    assert outcome.message == VERIFY_FAILED_MESSAGE
    assert outcome.attempts == 5


def test_countdown_expiry_stops_both_timers():
    check = scripted(PENDING)
    poller = fast_poller(check, interval=60, timeout=0.05)

    outcome = asyncio.run(poller.run(CHECKOUT_ID))

    assert outcome.status == "failed"
    assert outcome.message == COUNTDOWN_MESSAGE
    assert outcome.attempts == 1
    assert poller.time_remaining == 0
    assert poller.timers_active is False


def test_close_cancels_timers_and_resets_state():
    async def scenario():
        poller = fast_poller(scripted(PENDING), interval=0.01, max_attempts=10_000)
        task = asyncio.create_task(poller.run(CHECKOUT_ID))
        await asyncio.sleep(0.05)
        assert poller.state == "processing"
        poller.close()
        return poller, await task

    poller, outcome = asyncio.run(scenario())

    assert outcome.status == "idle"
    assert poller.attempts == 0
    assert poller.message == ""
    assert poller.checkout_request_id is None
    assert poller.timers_active is False


def api_transport(status_responses, initiate_status=200):
    """MockTransport playing the backend endpoints."""
    seen = {"status": 0, "activations": []}

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/api/mpesa/stk-push":
            if initiate_status != 200:
                return httpx.Response(initiate_status, json={"detail": "Invalid phone number format. Use: 254XXXXXXXXX"})
            return httpx.Response(200, json={"success": True, "CheckoutRequestID": CHECKOUT_ID})
        if request.url.path == "/api/mpesa/status":
            code, body = status_responses[min(seen["status"], len(status_responses) - 1)]
            seen["status"] += 1
            return httpx.Response(code, json=body)
        if request.url.path == "/api/subscriptions/activate":
            seen["activations"].append((request.headers["user-id"], json.loads(request.content)))
            return httpx.Response(200, json={"success": True, "created": True})
        return httpx.Response(404)

    return httpx.MockTransport(handler), seen


def test_run_checkout_end_to_end():
    transport, seen = api_transport([(500, {"detail": "oops"}), (200, PENDING), (200, COMPLETED)])

    async def scenario():
        http = httpx.AsyncClient(transport=transport, base_url="http://api.test")
        client = CheckoutClient("http://api.test", "user-123", http_client=http)
        try:
            poller = CheckoutPoller(client.check_status, initial_delay=0, interval=0, max_attempts=24, timeout=1000)
            return await run_checkout(client, "0712345678", 20, "Basic", "month", poller=poller)
        finally:
            await client.aclose()

    outcome = asyncio.run(scenario())

    assert outcome.status == "completed"
    assert outcome.checkout_request_id == CHECKOUT_ID
    assert outcome.attempts == 3
    assert seen["activations"] == [
        ("user-123", {"CheckoutRequestID": CHECKOUT_ID, "plan": "Basic", "interval": "month"}),
    ]


def test_run_checkout_reports_rejected_initiation():
    transport, seen = api_transport([(200, PENDING)], initiate_status=400)

    async def scenario():
        http = httpx.AsyncClient(transport=transport, base_url="http://api.test")
        client = CheckoutClient("http://api.test", "user-123", http_client=http)
        try:
            return await run_checkout(client, "123", 20, "Basic", "month")
        finally:
            await client.aclose()

    outcome = asyncio.run(scenario())

    assert outcome.status == "failed"
    assert outcome.message == "Invalid phone number format. Use: 254XXXXXXXXX"
    assert outcome.checkout_request_id is None
    assert seen["status"] == 0
