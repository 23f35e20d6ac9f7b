"""
Purge Stale Orders Management Command - Lingua

Deletes CANCELLED and EXPIRED payment orders whose checkout window closed
more than ``PAYMENT_ORDER_RETENTION_HOURS`` ago. PENDING orders abandoned
for that long are expired first (conditional update on ``status=PENDING``)
and purged with them. PAID orders are kept: they are the provenance of
enrollments.

Intended to run from cron, e.g. hourly.

Author: Lingua Development Team
Version: 1.1.0
"""

import logging
from datetime import timedelta

from django.conf import settings
from django.core.management.base import BaseCommand, CommandError
from django.db import DatabaseError, transaction
from django.utils import timezone

from elearning.payments.models import Order
from elearning.payments.registry import expire_stale_pending

logger = logging.getLogger(__name__)

PURGEABLE_STATUSES = [Order.Status.CANCELLED, Order.Status.EXPIRED]


class Command(BaseCommand):
    help = "Deletes cancelled, expired and abandoned payment orders older than the retention period."

    def add_arguments(self, parser):
        parser.add_argument(
            "--hours",
            type=int,
            default=None,
            help="Retention in hours after expiry (default: PAYMENT_ORDER_RETENTION_HOURS).",
        )
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Only report how many orders would be deleted.",
        )

    def handle(self, *args, **options):
        hours = options["hours"] if options["hours"] is not None else settings.PAYMENT_ORDER_RETENTION_HOURS
        cutoff = timezone.now() - timedelta(hours=hours)

        if options["dry_run"]:
            count = Order.objects.filter(
                status__in=PURGEABLE_STATUSES + [Order.Status.PENDING],
                expires_at__lt=cutoff,
            ).count()
            self.stdout.write(f"{count} order(s) would be deleted (expired before {cutoff:%Y-%m-%d %H:%M:%S}).")
            return

        try:
            with transaction.atomic():
                abandoned = expire_stale_pending(cutoff)
                deleted_count, _ = Order.objects.filter(
                    status__in=PURGEABLE_STATUSES,
                    expires_at__lt=cutoff,
                ).delete()
        except DatabaseError as e:
            logger.error("purge_stale_orders failed: %s", e, exc_info=True)
            raise CommandError(f"Could not delete stale orders: {e}")

        if abandoned:
            logger.info("Expired %s abandoned pending order(s)", abandoned)
        logger.info("Purged %s stale order(s) older than %s", deleted_count, cutoff)
        self.stdout.write(self.style.SUCCESS(f"{deleted_count} stale order(s) deleted."))
