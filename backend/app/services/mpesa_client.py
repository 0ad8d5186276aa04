"""
M-Pesa Daraja Client — OAuth token, STK push and STK push query.

Documentation: https://developer.safaricom.co.ke/APIs/MpesaExpressSimulate
"""
import base64
import time
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Any, Dict, Optional, Tuple

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from app.config import Settings, get_settings
from app.utils.logger import log_event

# Daraja expects timestamps in East Africa Time (UTC+3, no DST)
EAT = timezone(timedelta(hours=3))

AUTH_PATH = "/oauth/v1/generate?grant_type=client_credentials"
STK_PUSH_PATH = "/mpesa/stkpush/v1/processrequest"
STK_QUERY_PATH = "/mpesa/stkpushquery/v1/query"


class MpesaError(Exception):
    """Base exception for M-Pesa gateway errors."""

    def __init__(self, message: str, status_code: Optional[int] = None, response_data: Optional[Dict] = None):
        super().__init__(message)
        self.status_code = status_code
        self.response_data = response_data or {}


class MpesaAuthError(MpesaError):
    """The OAuth token request failed."""


class MpesaRequestError(MpesaError):
    """The STK push was rejected or answered with something unusable."""


def build_timestamp(now: Optional[datetime] = None) -> str:
    """Return the YYYYMMDDHHmmss timestamp Daraja signs requests with."""
    now = now or datetime.now(EAT)
    return now.astimezone(EAT).strftime("%Y%m%d%H%M%S")


def build_password(shortcode: str, passkey: str, timestamp: str) -> str:
    """base64(shortcode + passkey + timestamp)."""
    return base64.b64encode(f"{shortcode}{passkey}{timestamp}".encode("utf-8")).decode("ascii")


class MpesaClient:
    """
    Client for the Safaricom Daraja API.

    The access token is cached until shortly before it expires. Pass an
    ``http_client`` to route requests through a custom transport.
    """

    def __init__(self, settings: Optional[Settings] = None, http_client: Optional[httpx.Client] = None):
        self.settings = settings or get_settings()
        self.base_url = self.settings.MPESA_BASE_URL.rstrip("/")
        self.shortcode = self.settings.MPESA_SHORTCODE
        self.passkey = self.settings.MPESA_PASSKEY
        self.http = http_client or httpx.Client(timeout=self.settings.MPESA_HTTP_TIMEOUT)

        self._token: Optional[str] = None
        self._token_expires_at: float = 0.0

        if not self.settings.MPESA_CONSUMER_KEY or not self.settings.MPESA_CONSUMER_SECRET:
            log_event("mpesa", "MPESA_CONSUMER_KEY/SECRET not set - gateway calls will fail")

    def _basic_auth(self) -> str:
        raw = f"{self.settings.MPESA_CONSUMER_KEY}:{self.settings.MPESA_CONSUMER_SECRET}"
        return base64.b64encode(raw.encode("utf-8")).decode("ascii")

    @retry(
        retry=retry_if_exception_type(httpx.TransportError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        reraise=True,
    )
    def _fetch_token(self) -> Dict[str, Any]:
        response = self.http.get(
            f"{self.base_url}{AUTH_PATH}",
            headers={"Authorization": f"Basic {self._basic_auth()}", "Accept": "application/json"},
        )
        if response.status_code != 200:
            log_event("mpesa", f"Auth failed: {response.status_code} {response.text}")
            raise MpesaAuthError(f"Auth failed: {response.status_code}", status_code=response.status_code)
        try:
            return response.json()
        except ValueError:
            raise MpesaAuthError("Invalid response format from M-Pesa", status_code=response.status_code)

    def get_access_token(self) -> str:
        """Return a valid OAuth access token, fetching a new one when needed."""
        if self._token and time.time() < self._token_expires_at:
            return self._token

        try:
            data = self._fetch_token()
        except httpx.TransportError as e:
            raise MpesaAuthError(f"Failed to authenticate with M-Pesa: {e}")

        token = data.get("access_token")
        if not token:
            raise MpesaAuthError("No access token in response", response_data=data)

        try:
            expires_in = int(data.get("expires_in", 3599))
        except (TypeError, ValueError):
            expires_in = 3599
        self._token = token
        self._token_expires_at = time.time() + max(expires_in - self.settings.MPESA_TOKEN_REFRESH_MARGIN, 0)
        return token

    def _signed_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.get_access_token()}",
            "Content-Type": "application/json",
        }

    def stk_push(self, phone_number: str, amount: int, description: str) -> Dict[str, Any]:
        """Send the STK push prompt to the payer's phone.

        Args:
            phone_number: Normalized 254XXXXXXXXX number.
            amount: Whole-shilling amount.
            description: TransactionDesc shown on the statement.

        Returns:
            The gateway response, guaranteed to carry a CheckoutRequestID.

        Raises:
            MpesaAuthError: Token request failed.
            MpesaRequestError: The gateway rejected the charge.
        """
        headers = self._signed_headers()
        timestamp = build_timestamp()
        body = {
            "BusinessShortCode": self.shortcode,
            "Password": build_password(self.shortcode, self.passkey, timestamp),
            "Timestamp": timestamp,
            "TransactionType": "CustomerPayBillOnline",
            "Amount": int(round(amount)),
            "PartyA": phone_number,
            "PartyB": self.shortcode,
            "PhoneNumber": phone_number,
            "CallBackURL": self.settings.MPESA_CALLBACK_URL,
            "AccountReference": self.settings.MPESA_ACCOUNT_REFERENCE,
            "TransactionDesc": description,
        }

        try:
            response = self.http.post(f"{self.base_url}{STK_PUSH_PATH}", json=body, headers=headers)
        except httpx.HTTPError as e:
            raise MpesaRequestError(f"STK Push failed: {e}")

        if response.status_code != 200:
            log_event("mpesa", f"STK Push failed: {response.status_code} {response.text}")
            raise MpesaRequestError(
                f"STK Push failed: {response.status_code} - {response.text}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError:
            raise MpesaRequestError("Invalid response from M-Pesa API", status_code=response.status_code)

        if not data.get("CheckoutRequestID"):
            raise MpesaRequestError("Invalid response from M-Pesa - no CheckoutRequestID", response_data=data)

        code = str(data.get("ResponseCode", "0"))
        if code != "0":
            desc = data.get("ResponseDescription") or data.get("CustomerMessage")
            raise MpesaRequestError(f"M-Pesa error ({code}): {desc}", response_data=data)

        return data

    def stk_query(self, checkout_request_id: str) -> Tuple[bool, Optional[Dict[str, Any]]]:
        """Ask the gateway for the current state of a charge.

        Returns:
            (ok, body): ok is False for non-200 answers; body is None when the
            response is not JSON.
        """
        timestamp = build_timestamp()
        body = {
            "BusinessShortCode": self.shortcode,
            "Password": build_password(self.shortcode, self.passkey, timestamp),
            "Timestamp": timestamp,
            "CheckoutRequestID": checkout_request_id,
        }
        response = self.http.post(f"{self.base_url}{STK_QUERY_PATH}", json=body, headers=self._signed_headers())
        try:
            data = response.json()
        except ValueError:
            data = None
        return response.status_code == 200, data


@lru_cache()
def get_mpesa_client() -> MpesaClient:
    """FastAPI dependency: process-wide gateway client."""
    return MpesaClient()
