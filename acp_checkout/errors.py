"""
Structured checkout errors.

Raise any `ACPCheckoutError` subclass inside the checkout core; the router
turns it into an `ACPErrorResponse` with the matching HTTP status.
"""

from __future__ import annotations

from typing import Optional

from acp_checkout.models import ACPError, ACPErrorResponse


class ACPCheckoutError(Exception):
    """Base class for every error surfaced to the calling agent."""

    status_code: int = 400
    error_type: str = "invalid_request"
    code: str = "invalid_request"

    def __init__(self, message: str, param: Optional[str] = None):
        self.message = message
        self.param = param
        super().__init__(message)

    @property
    def body(self) -> ACPErrorResponse:
        return ACPErrorResponse(
            error=ACPError(
                type=self.error_type,
                code=self.code,
                message=self.message,
                param=self.param,
            )
        )


class Unauthorized(ACPCheckoutError):
    status_code = 401
    code = "unauthorized"


class InvalidSignature(ACPCheckoutError):
    status_code = 401
    code = "invalid_signature"


class UnsupportedApiVersion(ACPCheckoutError):
    code = "unsupported_api_version"


class InvalidRequest(ACPCheckoutError):
    code = "invalid_request"


class MissingItems(ACPCheckoutError):
    code = "missing_items"


class InvalidItemId(ACPCheckoutError):
    code = "invalid_item_id"


class InvalidPrice(ACPCheckoutError):
    code = "invalid_price"


class ProductNotFound(ACPCheckoutError):
    status_code = 404
    error_type = "not_found"
    code = "product_not_found"


class InvalidCurrency(ACPCheckoutError):
    code = "invalid_currency"


class InvalidReturnUrl(ACPCheckoutError):
    code = "invalid_return_url"


class InvalidCustomerEmail(ACPCheckoutError):
    code = "invalid_customer_email"


class SessionNotFound(ACPCheckoutError):
    status_code = 404
    error_type = "not_found"
    code = "session_not_found"


class InvalidSessionState(ACPCheckoutError):
    status_code = 409
    error_type = "conflict"
    code = "invalid_session_state"


class ConcurrentModification(ACPCheckoutError):
    status_code = 409
    error_type = "conflict"
    code = "concurrent_modification"


class PaymentCaptureFailed(ACPCheckoutError):
    status_code = 502
    error_type = "processing_error"
    code = "payment_capture_failed"


class BackendUnavailable(ACPCheckoutError):
    status_code = 503
    error_type = "service_unavailable"
    code = "backend_unavailable"
