"""
Payment Pipeline Exceptions

Domain errors raised by the order registry, the reconciler and the HTTP
layer on top of them. Every error carries the HTTP status it maps to, a
stable ``error_code`` for clients and a ``retryable`` flag that tells the
caller whether the same request may succeed later.

Taxonomy:
- Verification errors (bad webhook signature): rejected before any mutation
- Gateway errors (PayOS unreachable or 5xx): retryable, order untouched
- Conflict errors (duplicate grant): resolved internally, never raised here
- Authorization errors (no entitlement): structured deny, not an exception

Author: Lingua Development Team
Version: 1.0.0
"""

from typing import Any, Dict, Optional


class PaymentError(Exception):
    """
    Base class for all payment pipeline errors.

    Attributes:
        message (str): Human-readable error message
        status_code (int): HTTP status the error is answered with
        error_code (str): Stable machine-readable identifier
        retryable (bool): Whether the caller may retry the same request
        details (Dict[str, Any]): Additional context returned to the client
    """

    status_code: int = 400
    error_code: str = "payment_error"
    retryable: bool = False
    default_message: str = "Payment request failed"

    def __init__(self, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None) -> None:
        self.message = message or self.default_message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "success": False,
            "message": self.message,
            "error_code": self.error_code,
            "retryable": self.retryable,
        }
        if self.details:
            payload["details"] = self.details
        return payload


class OrderNotFound(PaymentError):
    status_code = 404
    error_code = "order_not_found"
    default_message = "Order not found"


class OrderAccessDenied(OrderNotFound):
    """
    Raised when a buyer asks for somebody else's order.

    Answered exactly like an unknown order so order codes cannot be enumerated.
    """


class TargetUnavailable(PaymentError):
    status_code = 404
    error_code = "target_unavailable"
    default_message = "The requested course or level package is not available"


class AlreadyEntitled(PaymentError):
    status_code = 409
    error_code = "already_entitled"
    default_message = "You already have access to this item"


class DuplicateCheckout(PaymentError):
    """Raised when an open checkout for the same buyer and target exists."""

    status_code = 409
    error_code = "duplicate_checkout"
    default_message = "A checkout for this item is already in progress"

    def __init__(self, order_code: int, message: Optional[str] = None) -> None:
        self.order_code = order_code
        super().__init__(message, details={"orderCode": order_code})


class OrderCodeExhausted(PaymentError):
    status_code = 503
    error_code = "order_code_exhausted"
    retryable = True
    default_message = "Could not allocate an order code, please try again"


class SignatureVerificationFailed(PaymentError):
    status_code = 401
    error_code = "invalid_signature"
    default_message = "Webhook signature verification failed"


class GatewayFailure(PaymentError):
    """Wraps a retryable PayOS failure. Order state is left unchanged."""

    status_code = 503
    error_code = "gateway_unavailable"
    retryable = True
    default_message = "Payment gateway temporarily unavailable, please retry"


class GatewayRejected(PaymentError):
    """PayOS refused the request. Retrying the same request will not help."""

    status_code = 502
    error_code = "gateway_rejected"
    default_message = "Payment gateway rejected the request"


class GrantFailed(PaymentError):
    """
    Raised when an order is PAID but the entitlement could not be written.

    The order stays PAID; any later poll, confirm or webhook retries the grant.
    """

    status_code = 503
    error_code = "grant_failed"
    retryable = True
    default_message = "Payment received, access is being activated. Please retry shortly"

    def __init__(self, order_code: int, message: Optional[str] = None) -> None:
        self.order_code = order_code
        super().__init__(message, details={"orderCode": order_code})
