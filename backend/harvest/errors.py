# Overview: Typed error taxonomy raised by the billing services.

from __future__ import annotations


class BillingError(Exception):
    """Base class for billing failures; `code` is the stable machine-readable kind."""

    code = "BILLING_ERROR"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        payload = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class NotFoundError(BillingError):
    """404-level: referenced order, invoice, payment or customer does not exist."""

    code = "NOT_FOUND"


class ConflictError(BillingError):
    """409-level business rule conflict (duplicate invoice, customer mismatch)."""

    code = "CONFLICT"


class ValidationError(BillingError):
    """400-level input problem."""

    code = "VALIDATION"


class GatewayError(BillingError):
    """Payment provider declined or could not be reached."""

    code = "GATEWAY_FAILURE"
