"""
Bounded Payment Polling

Server-side counterpart of the client's status polling: ask the reconciler
until the order settles, backing off exponentially, and stop at the order's
``expires_at``. One last poll after the deadline lets lazy expiry move a
still-pending order to EXPIRED.

Used by the ``await_payment`` management command.

Author: Lingua Development Team
Version: 1.0.0
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from django.conf import settings
from django.utils import timezone

from .exceptions import GatewayFailure
from .models import Order
from .reconciler import PaymentReconciler, ReconcileResult
from .registry import get_order_for_buyer

logger = logging.getLogger(__name__)


def backoff_delays(initial: float, factor: float, maximum: float):
    """Yield ``initial, initial*factor, ...`` capped at ``maximum``."""
    delay = initial
    while True:
        yield min(delay, maximum)
        delay = min(delay * factor, maximum)


def poll_until_settled(
    order_code,
    buyer,
    reconciler: PaymentReconciler,
    clock: Callable = timezone.now,
    sleep: Callable[[float], None] = time.sleep,
) -> Optional[ReconcileResult]:
    """
    Poll ``order_code`` until it leaves PENDING or its checkout window closes.

    Gateway failures are retried on the same schedule. A failure on the
    final poll after the deadline is raised.

    Returns:
        The last ReconcileResult observed

    Raises:
        OrderNotFound: unknown order or not the buyer's
        GatewayFailure: PayOS still unreachable after the deadline
    """
    order = get_order_for_buyer(order_code, buyer)
    deadline = order.expires_at
    delays = backoff_delays(
        settings.PAYMENT_POLL_INITIAL_DELAY,
        settings.PAYMENT_POLL_BACKOFF_FACTOR,
        settings.PAYMENT_POLL_MAX_DELAY,
    )
    result: Optional[ReconcileResult] = None
    attempt = 0

    while True:
        attempt += 1
        try:
            result = reconciler.on_poll(order_code, buyer)
        except GatewayFailure:
            logger.warning("Poll %s for order %s: gateway unavailable, retrying", attempt, order_code)
        else:
            if result.status != Order.Status.PENDING:
                logger.info("Order %s settled as %s after %s poll(s)", order_code, result.status, attempt)
                return result

        remaining = (deadline - clock()).total_seconds()
        if remaining <= 0:
            break
        sleep(min(next(delays), remaining))

    logger.info("Order %s reached its deadline after %s poll(s), final check", order_code, attempt)
    return reconciler.on_poll(order_code, buyer)
