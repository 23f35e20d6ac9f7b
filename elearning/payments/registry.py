"""
Order Registry

Creates and looks up payment orders. An order maps a random order code to a
structured purchase intent: who buys, what is bought and for how much.

Guarantees:
- Order codes are drawn from ``secrets`` and inserted under the unique
  constraint; a collision simply draws again (bounded number of attempts).
- A buyer cannot open a second checkout for the same target while an
  unexpired PENDING order exists, and cannot buy what they already own.
  The database backs this with a partial unique constraint on
  (buyer, target) over PENDING rows, so two concurrent requests cannot
  both insert. Stale PENDING rows are expired before the insert: the
  PayOS link carries the same ``expiredAt`` and can no longer be paid.

Author: Lingua Development Team
Version: 1.0.0
"""

from __future__ import annotations

import logging
import secrets
from datetime import timedelta
from typing import Callable, Optional

from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone

from core.payos_integration.exceptions import PayOSException
from elearning.catalog.services import PurchaseTarget, resolve_target
from elearning.enrollments.granter import holds_entitlement

from .exceptions import (
    AlreadyEntitled,
    DuplicateCheckout,
    GatewayFailure,
    GatewayRejected,
    OrderAccessDenied,
    OrderCodeExhausted,
    OrderNotFound,
)
from .models import Order

logger = logging.getLogger(__name__)

# 12 digits: wide enough to make collisions rare, small enough to stay
# below 2**53 for JavaScript clients of the gateway
ORDER_CODE_MIN = 10 ** 11
ORDER_CODE_MAX = 10 ** 12 - 1
ORDER_CODE_MAX_ATTEMPTS = 5


def generate_order_code() -> int:
    return ORDER_CODE_MIN + secrets.randbelow(ORDER_CODE_MAX - ORDER_CODE_MIN + 1)


def find_open_order(buyer, target: PurchaseTarget) -> Optional[Order]:
    """Return the buyer's unexpired PENDING order for ``target``, if any."""
    return (
        Order.objects.filter(
            buyer=buyer,
            target_kind=target.kind,
            target_id=target.id,
            status=Order.Status.PENDING,
            expires_at__gt=timezone.now(),
        )
        .order_by("-created_at")
        .first()
    )


def expire_stale_pending(cutoff=None, **filters) -> int:
    """
    Move PENDING orders whose checkout window closed at or before ``cutoff``
    (default: now) to EXPIRED. Returns the number of orders expired.
    """
    now = timezone.now()
    return Order.objects.filter(
        status=Order.Status.PENDING,
        expires_at__lte=cutoff or now,
        **filters,
    ).update(status=Order.Status.EXPIRED, expired_at=now)


def create_order(
    buyer,
    target: PurchaseTarget,
    amount: Optional[int] = None,
    code_factory: Callable[[], int] = generate_order_code,
) -> Order:
    """
    Register a new PENDING order for ``buyer`` and ``target``.

    Args:
        buyer: Authenticated user paying for the target
        target: Resolved purchase target
        amount: Expected amount, defaults to the target's price
        code_factory: Source of candidate order codes

    Raises:
        AlreadyEntitled: the buyer already has access to the target
        DuplicateCheckout: an unexpired PENDING order for the same target exists
        OrderCodeExhausted: no free order code after several attempts
    """
    if holds_entitlement(buyer, target):
        raise AlreadyEntitled()

    open_order = find_open_order(buyer, target)
    if open_order is not None:
        raise DuplicateCheckout(open_order.order_code)

    expire_stale_pending(buyer=buyer, target_kind=target.kind, target_id=target.id)

    amount = target.price if amount is None else amount
    expires_at = timezone.now() + timedelta(minutes=settings.PAYMENT_ORDER_TTL_MINUTES)

    for attempt in range(1, ORDER_CODE_MAX_ATTEMPTS + 1):
        code = code_factory()
        try:
            with transaction.atomic():
                order = Order.objects.create(
                    order_code=code,
                    buyer=buyer,
                    target_kind=target.kind,
                    target_id=target.id,
                    item_label=target.label[:200],
                    amount=amount,
                    currency=settings.PAYMENT_CURRENCY,
                    expires_at=expires_at,
                )
        except IntegrityError:
            # either the code is taken or a concurrent request opened the same checkout
            open_order = find_open_order(buyer, target)
            if open_order is not None:
                logger.info("Concurrent checkout for user %s on %s %s", buyer.pk, target.kind, target.id)
                raise DuplicateCheckout(open_order.order_code)
            logger.warning("Order code collision on attempt %s (code=%s), drawing again", attempt, code)
            continue

        logger.info(
            "Created order %s for user %s: %s %s amount=%s",
            order.order_code,
            buyer.pk,
            target.kind,
            target.id,
            amount,
        )
        return order

    logger.error("Gave up allocating an order code after %s attempts", ORDER_CODE_MAX_ATTEMPTS)
    raise OrderCodeExhausted()


def start_checkout(buyer, target_kind: str, target_id, gateway) -> Order:
    """
    Resolve the target, register an order and open the PayOS payment request.

    When PayOS cannot create the payment request the order is cancelled
    right away, so it does not block a new attempt as a duplicate checkout.

    Raises:
        TargetUnavailable, AlreadyEntitled, DuplicateCheckout, OrderCodeExhausted
        GatewayFailure: PayOS unreachable (retryable)
        GatewayRejected: PayOS refused the payment request
    """
    target = resolve_target(target_kind, target_id)
    order = create_order(buyer, target)

    try:
        session = gateway.create_session(order)
    except PayOSException as exc:
        Order.objects.filter(pk=order.pk, status=Order.Status.PENDING).update(
            status=Order.Status.CANCELLED,
            cancelled_at=timezone.now(),
            last_channel=Order.Channel.CANCEL,
        )
        logger.error("PayOS could not open order %s: %s", order.order_code, exc.message)
        if exc.retryable:
            raise GatewayFailure() from exc
        raise GatewayRejected(exc.message) from exc

    order.checkout_url = session.checkout_url
    order.qr_payload = session.qr_payload
    order.gateway_reference = session.payment_link_id or ""
    order.save(update_fields=["checkout_url", "qr_payload", "gateway_reference"])
    return order


def get_order(order_code) -> Order:
    """
    Look up an order by code.

    Raises:
        OrderNotFound: unknown or malformed order code
    """
    try:
        return Order.objects.select_related("buyer").get(order_code=int(order_code))
    except (TypeError, ValueError, Order.DoesNotExist):
        raise OrderNotFound()


def get_order_for_buyer(order_code, buyer) -> Order:
    """
    Look up an order that belongs to ``buyer``. Staff may read any order.

    Raises:
        OrderNotFound: unknown order code
        OrderAccessDenied: the order belongs to somebody else
    """
    order = get_order(order_code)
    if order.buyer_id != buyer.pk and not getattr(buyer, "is_staff", False):
        logger.warning("User %s asked for order %s owned by user %s", buyer.pk, order.order_code, order.buyer_id)
        raise OrderAccessDenied()
    return order
