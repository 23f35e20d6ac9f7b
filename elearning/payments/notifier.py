"""
Payment Confirmation Notifier

Sends the "payment successful" email once an enrollment was granted.

The notifier is strictly best effort:
- it is scheduled with ``transaction.on_commit`` so no mail leaves for a
  grant that was rolled back
- the SMTP round trip runs on a small thread pool, the request that
  granted the enrollment never waits for it
- every failure is logged and swallowed; a lost email never affects
  the enrollment

Set ``PAYMENT_NOTIFY_ASYNC = False`` to send inline after commit (tests,
management commands).

Author: Lingua Development Team
Version: 1.0.0
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, Optional

from django.conf import settings
from django.core.mail import send_mail
from django.db import transaction
from django.template.loader import render_to_string

logger = logging.getLogger(__name__)

SUBJECT = "Lingua - Payment successful"
TEMPLATE_HTML = "payments/payment_success_email.html"
TEMPLATE_TEXT = "payments/payment_success_email.txt"


def format_amount(amount: Optional[int], currency: str = "VND") -> str:
    if amount is None:
        return "-"
    return f"{amount:,}".replace(",", ".") + f" {currency}"


class PaymentNotifier:
    """
    Renders and sends payment confirmation emails.

    Example:
        >>> notifier = PaymentNotifier()
        >>> notifier.schedule(enrollment, order_code=123456789012, amount=10000)
    """

    def __init__(self, executor: Optional[ThreadPoolExecutor] = None) -> None:
        self._executor = executor

    @property
    def executor(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="payment-notifier")
        return self._executor

    def schedule(self, entitlement, order_code: Optional[int] = None, amount: Optional[int] = None) -> None:
        """Queue the confirmation email for after the current transaction commits."""

        def _dispatch() -> None:
            try:
                context = self.build_context(entitlement, order_code, amount)
            except Exception:
                logger.exception("Could not prepare payment email for order %s", order_code)
                return
            if context is None:
                return

            if settings.PAYMENT_NOTIFY_ASYNC:
                self.executor.submit(self.send, context)
            else:
                self.send(context)

        transaction.on_commit(_dispatch)

    def payment_succeeded(self, entitlement, order_code: Optional[int] = None, amount: Optional[int] = None) -> bool:
        """Send the confirmation email right away. Returns True if it was sent."""
        try:
            context = self.build_context(entitlement, order_code, amount)
        except Exception:
            logger.exception("Could not prepare payment email for order %s", order_code)
            return False
        if context is None:
            return False
        return self.send(context)

    def build_context(self, entitlement, order_code, amount) -> Optional[Dict[str, Any]]:
        # Everything the templates need is read here, on the caller's thread,
        # so pool threads never touch the database.
        buyer = entitlement.buyer
        if not buyer.email:
            logger.info("User %s has no email address, skipping payment email for order %s", buyer.pk, order_code)
            return None

        level = getattr(entitlement, "level", None)
        if level:
            package = getattr(entitlement, "package", None)
            item_label = package.name if package else f"Level {level}"
        else:
            item_label = entitlement.course.title

        return {
            "recipient": buyer.email,
            "buyer_name": buyer.get_full_name() or buyer.get_username(),
            "item_label": item_label,
            "order_code": order_code,
            "amount_display": format_amount(amount, settings.PAYMENT_CURRENCY),
            "payment_date": entitlement.payment_date,
            "expires_at": getattr(entitlement, "expires_at", None),
            "learn_url": f"{settings.FRONTEND_URL.rstrip('/')}/my-courses",
        }

    def send(self, context: Dict[str, Any]) -> bool:
        try:
            send_mail(
                subject=SUBJECT,
                message=render_to_string(TEMPLATE_TEXT, context),
                from_email=settings.DEFAULT_FROM_EMAIL,
                recipient_list=[context["recipient"]],
                html_message=render_to_string(TEMPLATE_HTML, context),
                fail_silently=False,
            )
        except Exception:
            logger.exception("Failed to send payment email to %s (order %s)", context["recipient"], context["order_code"])
            return False

        logger.info("Payment email sent to %s (order %s)", context["recipient"], context["order_code"])
        return True


_notifier: Optional[PaymentNotifier] = None


def get_notifier() -> PaymentNotifier:
    global _notifier
    if _notifier is None:
        _notifier = PaymentNotifier()
    return _notifier
