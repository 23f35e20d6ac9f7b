"""
PayOS Gateway Custom Exceptions

This module provides the exception hierarchy raised by the PayOS gateway
client. The hierarchy lets callers distinguish between failures that are
worth retrying (network errors, timeouts, garbled answers) and failures that
will not go away on their own (rejected credentials, malformed requests).

None of these exceptions is ever raised for an order the gateway no longer
knows about: that case is reported as the ``NOT_FOUND`` remote status.

Author: Lingua Development Team
Version: 1.0.0
"""

from typing import Optional, Dict, Any


class PayOSException(Exception):
    """
    Base exception class for all PayOS gateway related errors.

    Attributes:
        message (str): Human-readable error message
        status_code (Optional[int]): HTTP status code if applicable
        error_code (Optional[str]): PayOS-specific error code
        details (Optional[Dict[str, Any]]): Additional error details
        retryable (bool): Whether the same call may succeed later

    Example:
        >>> try:
        ...     client.query_status(order_code)
        ... except PayOSException as e:
        ...     logger.error("PayOS error: %s", e.message)
    """

    retryable: bool = False

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Initialize a PayOS gateway exception.

        Args:
            message: Human-readable error description
            status_code: HTTP status code from the API response
            error_code: PayOS ``code`` field from the response envelope
            details: Additional context or error details
        """
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert exception to dictionary for serialization.

        Returns:
            Dictionary representation of the exception
        """
        return {
            "message": self.message,
            "status_code": self.status_code,
            "error_code": self.error_code,
            "details": self.details,
            "retryable": self.retryable,
            "exception_type": self.__class__.__name__,
        }


class GatewayUnavailableException(PayOSException):
    """
    Raised when PayOS cannot be reached or answers with a server error.

    Covers connection failures and timeouts. Callers may
    retry with backoff; order state must not be changed on this error.
    """

    retryable = True

    def __init__(
        self,
        message: str = "PayOS service temporarily unavailable",
        status_code: Optional[int] = 503,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            message=message,
            status_code=status_code,
            error_code="GatewayUnavailable",
            details=details,
        )


class GatewayRequestException(PayOSException):
    """
    Raised when PayOS refuses a request as invalid.

    Attributes:
        error_code: the PayOS ``code`` value, e.g. ``"20"`` for invalid input
    """

    def __init__(
        self,
        message: str = "Bad request to PayOS",
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            message=message,
            status_code=400,
            error_code=error_code or "BadRequest",
            details=details,
        )


class GatewayResponseException(PayOSException):
    """Raised when a PayOS answer cannot be parsed or lacks required fields."""

    retryable = True

    def __init__(self, message: str = "Unexpected response from PayOS") -> None:
        super().__init__(message=message, status_code=502, error_code="BadGatewayResponse")

