"""
Await Payment Management Command - Lingua

Operator tool: polls PayOS for one order with exponential backoff until it
settles or its checkout window closes, applying the result exactly like the
client status endpoint would (including the entitlement grant).

Usage:
    python manage.py await_payment 123456789012

Author: Lingua Development Team
Version: 1.0.0
"""

import logging

from django.core.management.base import BaseCommand, CommandError

from elearning.payments.exceptions import PaymentError
from elearning.payments.polling import poll_until_settled
from elearning.payments.reconciler import get_reconciler
from elearning.payments.registry import get_order

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Polls PayOS for an order until it is paid, cancelled or expired."

    def add_arguments(self, parser):
        parser.add_argument("order_code", type=int, help="Order code to wait for.")

    def handle(self, *args, **options):
        order_code = options["order_code"]
        try:
            order = get_order(order_code)
            self.stdout.write(f"Waiting for order {order_code} (expires {order.expires_at:%Y-%m-%d %H:%M:%S})...")
            result = poll_until_settled(order_code, order.buyer, get_reconciler())
        except PaymentError as e:
            logger.error("await_payment for order %s failed: %s", order_code, e.message)
            raise CommandError(e.message)

        message = f"Order {order_code}: {result.status}"
        if result.review_reason:
            message += f" (held for review: {result.review_reason})"
        elif result.granted:
            message += " (access granted)"
        self.stdout.write(self.style.SUCCESS(message))
