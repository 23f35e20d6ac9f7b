"""
PayOS Gateway Client

Thin, synchronous wrapper around the official ``payos`` SDK for the three
merchant operations the payment pipeline needs:

- ``create_session``: create a hosted payment link (checkout URL + VietQR payload)
- ``query_status``:   read the current state of a payment link
- ``cancel``:         cancel an open payment link

The SDK signs requests and checks response signatures itself. What it
does not do is bound its calls in time or tell transient failures apart
from refusals, so every call goes through ``_call``:

- the call runs on a small worker pool and is abandoned after the
  configured timeout (``GatewayUnavailableException``)
- transport failures become ``GatewayUnavailableException`` (retryable)
- a PayOS ``code`` other than "00" becomes ``GatewayRequestException``,
  except "101", which is reported as ``RemoteStatus(NOT_FOUND)`` because
  PayOS garbage-collects expired links

The client performs no retries of its own.

Author: Lingua Development Team
Version: 1.1.0
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass
from typing import Any, Callable, Optional

import requests
from django.conf import settings
from payos import ItemData, PaymentData, PayOS

from .exceptions import (
    GatewayRequestException,
    GatewayResponseException,
    GatewayUnavailableException,
)

logger = logging.getLogger(__name__)


# Remote statuses as reported by PayOS, plus NOT_FOUND for forgotten orders
REMOTE_PENDING = "PENDING"
REMOTE_PROCESSING = "PROCESSING"
REMOTE_PAID = "PAID"
REMOTE_CANCELLED = "CANCELLED"
REMOTE_EXPIRED = "EXPIRED"
REMOTE_NOT_FOUND = "NOT_FOUND"

KNOWN_REMOTE_STATUSES = {
    REMOTE_PENDING,
    REMOTE_PROCESSING,
    REMOTE_PAID,
    REMOTE_CANCELLED,
    REMOTE_EXPIRED,
    REMOTE_NOT_FOUND,
}

# "Payment request does not exist"
PAYOS_NOT_FOUND_CODES = {"101"}

# SDK calls block on requests without a timeout, so they are bounded here
_executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="payos-call")


@dataclass(frozen=True)
class CheckoutSession:
    """Result of creating a payment link."""

    order_code: int
    checkout_url: str
    qr_payload: str
    payment_link_id: Optional[str] = None


@dataclass(frozen=True)
class RemoteStatus:
    """State of a payment link as seen by the gateway."""

    order_code: int
    status: str
    amount: Optional[int] = None
    amount_paid: Optional[int] = None
    reference: Optional[str] = None

    @property
    def is_not_found(self) -> bool:
        return self.status == REMOTE_NOT_FOUND


class _RemoteNotFound(Exception):
    pass


class PayOSClient:
    """
    PayOS merchant client built on the ``payos`` SDK.

    Attributes:
        DEFAULT_TIMEOUT (int): Per-call timeout in seconds

    Example:
        >>> client = PayOSClient(client_id="...", api_key="...", checksum_key="...")
        >>> session = client.create_session(order)
        >>> client.query_status(session.order_code).status
        'PENDING'
    """

    DEFAULT_TIMEOUT = 10

    def __init__(
        self,
        client_id: str,
        api_key: str,
        checksum_key: str,
        timeout: Optional[float] = None,
        return_url: str = "",
        cancel_url: str = "",
        sdk: Optional[Any] = None,
    ) -> None:
        self.timeout = timeout or self.DEFAULT_TIMEOUT
        self.return_url = return_url
        self.cancel_url = cancel_url
        self.sdk = sdk or PayOS(client_id=client_id, api_key=api_key, checksum_key=checksum_key)

    # ---------- public operations ----------

    def create_session(self, order) -> CheckoutSession:
        """
        Create a hosted payment link for ``order``.

        The description carries only the order code. The purchased target
        lives on the Order row and is looked up by code, never parsed back
        out of gateway text.

        Raises:
            GatewayUnavailableException: network error or timeout
            GatewayRequestException: PayOS refused the request
            GatewayResponseException: unusable answer
        """
        try:
            payment_data = PaymentData(
                orderCode=int(order.order_code),
                amount=int(order.amount),
                description=self.describe(order.order_code),
                items=[ItemData(name=order.item_label[:25], quantity=1, price=int(order.amount))],
                cancelUrl=self.cancel_url,
                returnUrl=self.return_url,
                buyerEmail=getattr(order.buyer, "email", "") or None,
                expiredAt=int(order.expires_at.timestamp()),
            )
        except (TypeError, ValueError) as e:
            raise GatewayRequestException(f"Invalid payment data: {e}")

        result = self._call("createPaymentLink", self.sdk.createPaymentLink, paymentData=payment_data)

        checkout_url = getattr(result, "checkoutUrl", None)
        if not checkout_url:
            raise GatewayResponseException("PayOS response is missing checkoutUrl")

        link_id = getattr(result, "paymentLinkId", None)
        logger.info("Created PayOS payment link order=%s link=%s", order.order_code, link_id)
        return CheckoutSession(
            order_code=int(getattr(result, "orderCode", None) or order.order_code),
            checkout_url=checkout_url,
            qr_payload=getattr(result, "qrCode", "") or "",
            payment_link_id=link_id,
        )

    def query_status(self, order_code: int) -> RemoteStatus:
        """
        Fetch the current state of a payment link.

        Returns:
            RemoteStatus; ``status == "NOT_FOUND"`` when PayOS forgot the order

        Raises:
            GatewayUnavailableException: network error or timeout
        """
        try:
            info = self._call("getPaymentLinkInformation", self.sdk.getPaymentLinkInformation, int(order_code))
        except _RemoteNotFound:
            logger.info("PayOS does not know order=%s any more", order_code)
            return RemoteStatus(order_code=int(order_code), status=REMOTE_NOT_FOUND)
        return self._to_remote_status(order_code, info)

    def cancel(self, order_code: int, reason: str = "User cancelled") -> RemoteStatus:
        """
        Cancel an open payment link.

        Raises:
            GatewayUnavailableException: network error or timeout
            GatewayRequestException: PayOS refused the cancellation
        """
        try:
            info = self._call(
                "cancelPaymentLink", self.sdk.cancelPaymentLink, int(order_code), cancellationReason=reason
            )
        except _RemoteNotFound:
            return RemoteStatus(order_code=int(order_code), status=REMOTE_NOT_FOUND)
        logger.info("Cancelled PayOS payment link order=%s reason=%s", order_code, reason)
        return self._to_remote_status(order_code, info)

    @staticmethod
    def describe(order_code: int) -> str:
        # PayOS limits descriptions to 25 characters
        return f"DH{order_code}"

    # ---------- transport ----------

    def _call(self, name: str, func: Callable[..., Any], *args, **kwargs) -> Any:
        logger.debug("PayOS call: %s%r", name, args)
        future = _executor.submit(func, *args, **kwargs)
        try:
            return future.result(timeout=self.timeout)
        except FutureTimeout:
            future.cancel()
            raise GatewayUnavailableException(
                f"PayOS call timed out after {self.timeout}s",
                details={"operation": name},
            )
        except requests.exceptions.RequestException as e:
            raise GatewayUnavailableException(
                f"PayOS request failed: {e}",
                details={"operation": name},
            )
        except Exception as e:
            code = getattr(e, "code", None)
            if code is None:
                # SDK raises plain exceptions for non-200 answers and bad response signatures
                logger.error("PayOS %s failed: %s", name, e)
                raise GatewayResponseException(f"PayOS {name} failed: {e}")
            code = str(code)
            if code in PAYOS_NOT_FOUND_CODES:
                raise _RemoteNotFound(name)
            message = getattr(e, "message", None) or str(e) or "PayOS refused the request"
            logger.error("PayOS refused %s: code=%s desc=%s", name, code, message)
            raise GatewayRequestException(message, error_code=code, details={"operation": name})

    def _to_remote_status(self, order_code: int, info: Any) -> RemoteStatus:
        status = str(getattr(info, "status", "") or "").upper()
        if status not in KNOWN_REMOTE_STATUSES:
            logger.warning("Unknown PayOS status %r for order=%s, treating as PENDING", status, order_code)
            status = REMOTE_PENDING
        return RemoteStatus(
            order_code=int(getattr(info, "orderCode", None) or order_code),
            status=status,
            amount=getattr(info, "amount", None),
            amount_paid=getattr(info, "amountPaid", None),
            reference=getattr(info, "id", None),
        )


# ---------- module-level client (swappable in tests) ----------

_current_client: Optional[PayOSClient] = None


def build_client_from_settings() -> PayOSClient:
    return PayOSClient(
        client_id=settings.PAYOS_CLIENT_ID,
        api_key=settings.PAYOS_API_KEY,
        checksum_key=settings.PAYOS_CHECKSUM_KEY,
        timeout=settings.PAYOS_REQUEST_TIMEOUT,
        return_url=settings.PAYOS_RETURN_URL,
        cancel_url=settings.PAYOS_CANCEL_URL,
    )


def get_gateway_client() -> PayOSClient:
    """Return the active gateway client, building it from settings on first use."""
    global _current_client
    if _current_client is None:
        _current_client = build_client_from_settings()
    return _current_client


def set_gateway_client(client) -> None:
    """Override the active gateway client (tests, sandbox tooling)."""
    global _current_client
    _current_client = client


def reset_gateway_client() -> None:
    global _current_client
    _current_client = None
