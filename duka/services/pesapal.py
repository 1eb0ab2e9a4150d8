# duka/services/pesapal.py
"""
Pesapal v3 client: token exchange, order submission and status queries.

A fresh token is requested for every call. Every request has a timeout.
"""
from __future__ import annotations

import json
import logging
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from duka.domain.money import round_money
from duka.errors import GatewayError

log = logging.getLogger(__name__)

SANDBOX_URL = "https://cybqa.pesapal.com/pesapalv3"
LIVE_URL = "https://pay.pesapal.com/v3"
CURRENCY = "TZS"

PAID_STATUSES = {"completed", "paid", "success", "successful"}
FAILED_STATUSES = {"failed", "invalid", "reversed"}


@dataclass(frozen=True)
class GatewayOrder:
    redirect_url: str
    tracking_id: str
    merchant_reference: str


@dataclass(frozen=True)
class GatewayStatus:
    status: str
    is_paid: bool
    is_failed: bool
    payment_method: str = "pesapal"


class PesapalClient:
    def __init__(
        self,
        consumer_key: Optional[str],
        consumer_secret: Optional[str],
        notification_id: Optional[str],
        environment: str = "live",
        timeout: float = 15,
        default_email: str = "customer@example.co.tz",
    ):
        self.consumer_key = consumer_key
        self.consumer_secret = consumer_secret
        self.notification_id = notification_id
        self.base_url = SANDBOX_URL if (environment or "").lower() == "sandbox" else LIVE_URL
        self.timeout = timeout
        self.default_email = default_email

    @classmethod
    def from_config(cls, config) -> "PesapalClient":
        return cls(
            consumer_key=config.get("PESAPAL_CONSUMER_KEY"),
            consumer_secret=config.get("PESAPAL_CONSUMER_SECRET"),
            notification_id=config.get("PESAPAL_NOTIFICATION_ID"),
            environment=config.get("PESAPAL_ENVIRONMENT", "live"),
            timeout=config.get("PESAPAL_TIMEOUT_SECONDS", 15),
            default_email=config.get("PESAPAL_DEFAULT_EMAIL") or "customer@example.co.tz",
        )

    def missing_config(self) -> List[str]:
        missing = []
        if not self.consumer_key:
            missing.append("PESAPAL_CONSUMER_KEY")
        if not self.consumer_secret:
            missing.append("PESAPAL_CONSUMER_SECRET")
        if not self.notification_id:
            missing.append("PESAPAL_NOTIFICATION_ID")
        return missing

    @property
    def is_configured(self) -> bool:
        return not self.missing_config()

    def _ensure_configured(self):
        missing = self.missing_config()
        if missing:
            raise GatewayError(f"Pesapal is not configured. Missing: {', '.join(missing)}")

    def _request(self, method: str, path: str, payload=None, token: Optional[str] = None):
        """Returns (http_status, decoded JSON or {})."""
        headers = {"Accept": "application/json"}
        data = None
        if payload is not None:
            headers["Content-Type"] = "application/json"
            data = json.dumps(payload).encode("utf-8")
        if token:
            headers["Authorization"] = f"Bearer {token}"

        req = urllib.request.Request(f"{self.base_url}{path}", data=data, headers=headers, method=method)
        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:
                status, body = resp.status, resp.read()
        except urllib.error.HTTPError as exc:
            status, body = exc.code, exc.read()
        except (urllib.error.URLError, TimeoutError, OSError) as exc:
            log.warning("Pesapal %s %s failed: %s", method, path, exc)
            raise GatewayError(f"Pesapal is unreachable: {exc}") from exc

        try:
            decoded = json.loads(body.decode("utf-8")) if body else {}
        except ValueError:
            decoded = {}
        return status, decoded if isinstance(decoded, dict) else {}

    @staticmethod
    def _error_message(payload: Dict[str, Any], fallback: str) -> str:
        error = payload.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        return str(payload.get("status") or fallback)

    def _token(self) -> str:
        status, payload = self._request(
            "POST",
            "/api/Auth/RequestToken",
            {"consumer_key": self.consumer_key, "consumer_secret": self.consumer_secret},
        )
        token = payload.get("token")
        if not (200 <= status < 300) or not token:
            raise GatewayError(self._error_message(payload, "Unable to authenticate with Pesapal"))
        return token

    def create_order(
        self,
        order_id: str,
        amount,
        description: str,
        callback_url: str,
        customer_name: str,
        customer_phone: str,
        customer_email: Optional[str] = None,
    ) -> GatewayOrder:
        """Submit a payable order; `order_id` becomes Pesapal's merchant reference."""
        self._ensure_configured()
        token = self._token()

        status, payload = self._request(
            "POST",
            "/api/Transactions/SubmitOrderRequest",
            {
                "id": order_id,
                "currency": CURRENCY,
                "amount": float(round_money(amount)),
                "description": description[:100],
                "callback_url": callback_url,
                "notification_id": self.notification_id,
                "billing_address": {
                    "phone_number": customer_phone,
                    "email_address": customer_email or self.default_email,
                    "first_name": customer_name,
                },
            },
            token=token,
        )
        redirect_url = payload.get("redirect_url")
        tracking_id = payload.get("order_tracking_id")
        if not (200 <= status < 300) or not redirect_url or not tracking_id:
            raise GatewayError(self._error_message(payload, "Unable to submit payment request to Pesapal"))

        log.info("Pesapal order submitted: reference=%s tracking=%s", order_id, tracking_id)
        return GatewayOrder(
            redirect_url=redirect_url,
            tracking_id=tracking_id,
            merchant_reference=payload.get("merchant_reference") or order_id,
        )

    def get_transaction_status(self, tracking_id: str) -> GatewayStatus:
        self._ensure_configured()
        tracking_id = (tracking_id or "").strip()
        if not tracking_id:
            raise GatewayError("Missing Pesapal tracking id", status_code=400)

        token = self._token()
        query = urllib.parse.urlencode({"orderTrackingId": tracking_id})
        status, payload = self._request(
            "GET", f"/api/Transactions/GetTransactionStatus?{query}", token=token
        )
        if not (200 <= status < 300):
            raise GatewayError(self._error_message(payload, "Unable to fetch transaction status"))

        normalized = str(
            payload.get("payment_status_description") or payload.get("status") or "pending"
        ).strip().lower()
        return GatewayStatus(
            status=normalized,
            is_paid=normalized in PAID_STATUSES,
            is_failed=normalized in FAILED_STATUSES,
            payment_method=str(payload.get("payment_method") or "pesapal"),
        )
