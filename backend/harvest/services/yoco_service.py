# Overview: Yoco card gateway client used by the payment recorder.

"""
Yoco Payment Gateway Client

WHY: Card payments taken online arrive as a one-time Yoco token. The
charge must succeed before anything is written to the ledger.

DESIGN:
- charge() never raises for declines or transport problems; it returns a
  ChargeResult and the caller decides (payment_service aborts the unit)
- No secret key configured = dev mode, charges are simulated as successful
- No retries here; retrying a charge is the caller's decision
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from urllib.parse import urlencode

import httpx
from flask import current_app


CHARGE_STATUS_SUCCESSFUL = "successful"


@dataclass(frozen=True)
class ChargeResult:
    success: bool
    charge_id: str | None = None
    error_message: str | None = None
    status: str | None = None


class YocoClient:
    def __init__(
        self,
        *,
        secret_key: str,
        api_url: str,
        payment_page_base_url: str = "",
        currency: str = "ZAR",
        timeout: float = 15.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self.secret_key = secret_key
        self.api_url = api_url.rstrip("/")
        self.payment_page_base_url = payment_page_base_url.rstrip("/")
        self.currency = currency
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_config(cls, config, transport: httpx.BaseTransport | None = None) -> "YocoClient":
        return cls(
            secret_key=config.get("YOCO_SECRET_KEY", ""),
            api_url=config.get("YOCO_API_URL", "https://online.yoco.com/v1"),
            payment_page_base_url=config.get("YOCO_PAYMENT_PAGE_URL", ""),
            currency=config.get("YOCO_CURRENCY", "ZAR"),
            timeout=config.get("YOCO_TIMEOUT_SECONDS", 15.0),
            transport=transport,
        )

    @property
    def is_live(self) -> bool:
        return bool(self.secret_key)

    def charge(self, token: str, amount_in_cents: int, currency: str | None = None) -> ChargeResult:
        """
        Charge a card token.

        Returns:
            ChargeResult(success=True, charge_id=...) on an approved charge,
            otherwise success=False with the provider's message.
        """
        if not self.is_live:
            current_app.logger.warning(
                "[DEV MODE] Yoco secret key not configured, simulating successful charge"
            )
            return ChargeResult(
                success=True,
                charge_id=f"mock_charge_{int(time.time() * 1000)}",
                status=CHARGE_STATUS_SUCCESSFUL,
            )

        body = {
            "token": token,
            "amountInCents": amount_in_cents,
            "currency": currency or self.currency,
        }
        headers = {
            "Authorization": f"Bearer {self.secret_key}",
            "Content-Type": "application/json",
        }

        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.post(f"{self.api_url}/charges", json=body, headers=headers)
        except httpx.HTTPError as exc:
            current_app.logger.error("Yoco charge transport error: %s", exc)
            return ChargeResult(success=False, error_message="Connection to payment gateway failed")

        data = _json_or_empty(response)

        if response.is_error:
            current_app.logger.warning(
                "Yoco charge rejected with HTTP %s: %s", response.status_code, data
            )
            return ChargeResult(
                success=False,
                error_message=data.get("displayMessage") or "Payment gateway error",
                status=data.get("status"),
            )

        if data.get("status") == CHARGE_STATUS_SUCCESSFUL:
            return ChargeResult(success=True, charge_id=data.get("id"), status=data.get("status"))

        return ChargeResult(
            success=False,
            error_message=data.get("errorMessage") or "Charge failed",
            status=data.get("status"),
        )

    def payment_page_url(self, invoice_id: int, amount_cents: int) -> str:
        """Hosted payment link for an invoice (sent to customers by the notifier)."""
        query = urlencode({"invoice": invoice_id, "amountInCents": amount_cents, "currency": self.currency})
        return f"{self.payment_page_base_url}?{query}"


def _json_or_empty(response: httpx.Response) -> dict:
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


def get_gateway() -> YocoClient:
    """Gateway configured from the current Flask app."""
    return YocoClient.from_config(current_app.config)
