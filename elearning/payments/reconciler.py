"""
Payment Event Reconciler
========================

Single state machine behind the three unsynchronized channels that can
report a payment:

- ``on_webhook``:         signed push from PayOS (verified by the view first)
- ``on_poll``:            client asks for the status, PayOS is queried
- ``on_manual_confirm``:  client claims success, PayOS is queried anyway

plus ``on_cancel`` for buyer-initiated cancellation.

Every channel ends in ``apply_status``:

1. Terminal order: nothing changes. A PAID order whose grant never
   completed gets the grant retried, nothing else.
2. ``NOT_FOUND`` / ``EXPIRED`` reports, and pending reports on an order
   past ``expires_at``, become ``EXPIRED``. Other pending reports are a no-op.
3. The transition is one conditional UPDATE ``WHERE status = 'PENDING'``.
   Zero rows means another channel settled the order first: reload and
   continue with step 1.
4. ``PAID`` triggers the entitlement grant. A grant failure is recorded on
   the order and raised as ``GrantFailed``; the order stays PAID.

The order transition and the grant are two separately idempotent steps.
No lock is held across a PayOS call.

Author: Lingua Development Team
Date: 2025-10-02
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from django.utils import timezone

from core.payos_integration.client import (
    REMOTE_CANCELLED,
    REMOTE_EXPIRED,
    REMOTE_NOT_FOUND,
    REMOTE_PAID,
    get_gateway_client,
)
from core.payos_integration.exceptions import PayOSException
from elearning.catalog.services import resolve_target
from elearning.enrollments.granter import EntitlementGranter

from .exceptions import GatewayFailure, GatewayRejected, GrantFailed
from .models import Order
from .registry import get_order_for_buyer

logger = logging.getLogger(__name__)

REVIEW_UNDERPAID = "underpaid"

# PayOS envelope code for a successful payment
PAYOS_SUCCESS_CODE = "00"


class MalformedWebhook(ValueError):
    """Signed webhook body that does not describe an order status."""


@dataclass(frozen=True)
class WebhookEvent:
    """
    Normalized PayOS webhook.

    Two body shapes are accepted:

    - wrapped: ``{"code": "00", "desc": "...", "data": {"orderCode": ..., "amount": ...}}``
      where ``code == "00"`` means PAID and anything else CANCELLED
    - direct: ``{"orderCode": ..., "status": "PAID"}``
    """

    order_code: int
    status: str
    amount_paid: Optional[int] = None
    reference: Optional[str] = None
    payload: Dict[str, Any] = field(default_factory=dict, compare=False)

    @classmethod
    def from_payload(cls, payload: Any) -> "WebhookEvent":
        if not isinstance(payload, dict):
            raise MalformedWebhook("Webhook body is not a JSON object")

        if isinstance(payload.get("data"), dict):
            data = payload["data"]
            status = REMOTE_PAID if str(payload.get("code")) == PAYOS_SUCCESS_CODE else REMOTE_CANCELLED
        else:
            data = payload
            if not payload.get("status"):
                raise MalformedWebhook("Webhook body has no status")
            status = str(payload["status"]).upper()

        try:
            order_code = int(data.get("orderCode"))
        except (TypeError, ValueError):
            raise MalformedWebhook("Webhook body has no usable orderCode")

        amount = data.get("amount")
        try:
            amount_paid = int(amount) if amount is not None else None
        except (TypeError, ValueError):
            amount_paid = None

        return cls(
            order_code=order_code,
            status=status,
            amount_paid=amount_paid,
            reference=data.get("reference") or data.get("paymentLinkId"),
            payload=payload,
        )


@dataclass(frozen=True)
class ReconcileResult:
    order_code: int
    status: str
    transitioned: bool = False
    granted: bool = False
    entitlement_created: bool = False
    review_reason: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "orderCode": self.order_code,
            "status": self.status,
            "transitioned": self.transitioned,
            "granted": self.granted,
            "reviewReason": self.review_reason or None,
        }


class PaymentReconciler:
    """
    Merges webhook, poll and confirm signals into one order status.

    Args:
        gateway: PayOS client (``query_status`` / ``cancel``)
        granter: Entitlement granter
        clock: Returns the current aware datetime
    """

    def __init__(self, gateway, granter, clock: Callable = timezone.now) -> None:
        self.gateway = gateway
        self.granter = granter
        self.clock = clock

    # ---------- entry points ----------

    def on_webhook(self, event: WebhookEvent) -> Optional[ReconcileResult]:
        """
        Apply a verified webhook. Returns None for unknown orders.
        """
        order = Order.objects.select_related("buyer").filter(order_code=event.order_code).first()
        if order is None:
            logger.warning("Webhook for unknown order %s ignored", event.order_code)
            return None

        Order.objects.filter(pk=order.pk).update(webhook_payload=event.payload)
        logger.info("[webhook] order=%s reported=%s amount=%s", order.order_code, event.status, event.amount_paid)
        return self.apply_status(
            order,
            event.status,
            Order.Channel.WEBHOOK,
            amount_paid=event.amount_paid,
            reference=event.reference,
        )

    def on_poll(self, order_code, buyer) -> ReconcileResult:
        """
        Return the order status, asking PayOS while the order is still open.

        Raises:
            OrderNotFound: unknown code or not the buyer's order
            GatewayFailure: PayOS unreachable, order untouched
        """
        order = get_order_for_buyer(order_code, buyer)
        if order.is_terminal:
            return self._settled(order)
        return self.refresh(order, Order.Channel.POLL)

    def on_manual_confirm(self, order_code, buyer) -> ReconcileResult:
        """
        Handle the client's "I have paid" call.

        The claim itself is never trusted: PayOS is asked whenever the
        order is still open. A settled order is answered locally.
        """
        order = get_order_for_buyer(order_code, buyer)
        if order.is_terminal:
            return self._settled(order)
        return self.refresh(order, Order.Channel.CONFIRM)

    def on_cancel(self, order_code, buyer, reason: str = "") -> ReconcileResult:
        """
        Cancel the payment request at PayOS, then settle the order with
        whatever PayOS answers (normally CANCELLED).
        """
        order = get_order_for_buyer(order_code, buyer)
        if order.is_terminal:
            return self._settled(order)

        remote = self._gateway_call(self.gateway.cancel, order.order_code, reason or "Cancelled by buyer")
        return self.apply_status(
            order,
            remote.status,
            Order.Channel.CANCEL,
            amount_paid=remote.amount_paid,
            reference=remote.reference,
        )

    def refresh(self, order: Order, channel: str) -> ReconcileResult:
        """Query PayOS for ``order`` and apply the answer."""
        remote = self._gateway_call(self.gateway.query_status, order.order_code)
        return self.apply_status(
            order,
            remote.status,
            channel,
            amount_paid=remote.amount_paid,
            reference=remote.reference,
        )

    # ---------- transition function ----------

    def apply_status(
        self,
        order: Order,
        reported: str,
        channel: str,
        amount_paid: Optional[int] = None,
        reference: Optional[str] = None,
    ) -> ReconcileResult:
        if order.is_terminal:
            return self._settled(order)

        now = self.clock()
        reported = (reported or "").upper()

        if reported == REMOTE_PAID:
            new_status = Order.Status.PAID
        elif reported == REMOTE_CANCELLED:
            new_status = Order.Status.CANCELLED
        elif reported in (REMOTE_NOT_FOUND, REMOTE_EXPIRED):
            new_status = Order.Status.EXPIRED
        elif order.is_expired(now):
            new_status = Order.Status.EXPIRED
        else:
            return ReconcileResult(order_code=order.order_code, status=Order.Status.PENDING)

        updates: Dict[str, Any] = {"status": new_status, "last_channel": channel}
        if new_status == Order.Status.PAID:
            updates["paid_at"] = now
            updates["amount_paid"] = amount_paid
            if reference:
                updates["gateway_reference"] = reference[:100]
            if amount_paid is not None and amount_paid < order.amount:
                updates["review_reason"] = REVIEW_UNDERPAID
        elif new_status == Order.Status.CANCELLED:
            updates["cancelled_at"] = now
        else:
            updates["expired_at"] = now

        won = Order.objects.filter(pk=order.pk, status=Order.Status.PENDING).update(**updates)
        order.refresh_from_db()

        if not won:
            logger.info(
                "Order %s already settled as %s, %s report via %s ignored",
                order.order_code, order.status, reported, channel,
            )
            return self._settled(order)

        logger.info("Order %s: PENDING -> %s via %s", order.order_code, new_status, channel)

        if new_status != Order.Status.PAID:
            return ReconcileResult(order_code=order.order_code, status=new_status, transitioned=True)

        if order.review_reason:
            logger.warning(
                "Order %s paid %s of %s %s, held for review instead of granting",
                order.order_code, amount_paid, order.amount, order.currency,
            )
            return ReconcileResult(
                order_code=order.order_code,
                status=order.status,
                transitioned=True,
                review_reason=order.review_reason,
            )

        return self._grant(order, transitioned=True)

    # ---------- helpers ----------

    def _settled(self, order: Order) -> ReconcileResult:
        if order.needs_grant:
            logger.info("Order %s is PAID without a recorded grant, retrying the grant", order.order_code)
            return self._grant(order, transitioned=False)
        return ReconcileResult(
            order_code=order.order_code,
            status=order.status,
            granted=order.granted_at is not None,
            review_reason=order.review_reason,
        )

    def _grant(self, order: Order, transitioned: bool) -> ReconcileResult:
        try:
            target = resolve_target(order.target_kind, order.target_id, require_purchasable=False)
            result = self.granter.grant(
                order.buyer,
                target,
                order.order_code,
                order.amount_paid if order.amount_paid is not None else order.amount,
            )
        except Exception as exc:
            logger.exception("Grant for paid order %s failed", order.order_code)
            Order.objects.filter(pk=order.pk).update(grant_error=f"{type(exc).__name__}: {exc}"[:1000])
            raise GrantFailed(order.order_code) from exc

        Order.objects.filter(pk=order.pk, granted_at__isnull=True).update(granted_at=self.clock(), grant_error="")
        return ReconcileResult(
            order_code=order.order_code,
            status=Order.Status.PAID,
            transitioned=transitioned,
            granted=True,
            entitlement_created=result.created,
        )

    def _gateway_call(self, func, *args):
        try:
            return func(*args)
        except PayOSException as exc:
            logger.warning("PayOS call %s%s failed: %s", getattr(func, "__name__", func), args, exc.message)
            if exc.retryable:
                raise GatewayFailure() from exc
            raise GatewayRejected(exc.message) from exc


def get_reconciler() -> PaymentReconciler:
    """Reconciler wired to the active gateway client and the default granter."""
    return PaymentReconciler(gateway=get_gateway_client(), granter=EntitlementGranter())
