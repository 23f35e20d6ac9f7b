"""
Payment Order Model

One row per purchase attempt against PayOS. The order carries the purchased
target structurally (``target_kind`` + ``target_id``) so that nothing ever
has to be recovered from gateway description text.

Lifecycle::

    PENDING --> PAID
            --> CANCELLED
            --> EXPIRED

The status leaves ``PENDING`` exactly once. Every transition is written with
a conditional update keyed on ``status=PENDING`` (see ``reconciler.py``), so
concurrent webhook, poll and confirm calls cannot both win.

Author: Lingua Development Team
Version: 1.0.0
"""

from django.conf import settings
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _


class Order(models.Model):
    """
    Purchase attempt keyed by a random, unique order code.

    Attributes:
        order_code: Unique positive integer shared with PayOS
        buyer: User paying for the target
        target_kind / target_id: What is being bought (course pk or CEFR level)
        amount: Expected amount in the smallest currency unit
        status: PENDING, PAID, CANCELLED or EXPIRED
        expires_at: End of the checkout window; pending orders past it expire lazily
        granted_at / grant_error: Outcome of the entitlement grant for PAID orders
        review_reason: Set when a PAID order needs manual review (e.g. under-payment)
    """

    class Status(models.TextChoices):
        PENDING = "PENDING", _("Pending")
        PAID = "PAID", _("Paid")
        CANCELLED = "CANCELLED", _("Cancelled")
        EXPIRED = "EXPIRED", _("Expired")

    class TargetKind(models.TextChoices):
        COURSE = "course", _("Course")
        LEVEL = "level", _("Level Package")

    class Channel(models.TextChoices):
        WEBHOOK = "webhook", _("Webhook")
        POLL = "poll", _("Status Poll")
        CONFIRM = "confirm", _("Manual Confirm")
        CANCEL = "cancel", _("Cancel Request")

    TERMINAL_STATUSES = (Status.PAID, Status.CANCELLED, Status.EXPIRED)

    order_code = models.BigIntegerField(
        unique=True,
        verbose_name=_("Order Code"),
        help_text=_("Random positive integer shared with the payment gateway"),
    )

    buyer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="payment_orders",
        verbose_name=_("Buyer"),
    )

    target_kind = models.CharField(
        max_length=10,
        choices=TargetKind.choices,
        verbose_name=_("Target Kind"),
    )

    target_id = models.CharField(
        max_length=64,
        verbose_name=_("Target ID"),
        help_text=_("Course primary key or CEFR level code"),
    )

    item_label = models.CharField(
        max_length=200,
        blank=True,
        verbose_name=_("Item"),
        help_text=_("Snapshot of the purchased item's name"),
    )

    amount = models.PositiveIntegerField(verbose_name=_("Amount"))

    currency = models.CharField(max_length=3, default="VND", verbose_name=_("Currency"))

    status = models.CharField(
        max_length=10,
        choices=Status.choices,
        default=Status.PENDING,
        db_index=True,
        verbose_name=_("Status"),
    )

    created_at = models.DateTimeField(auto_now_add=True, verbose_name=_("Created At"))
    expires_at = models.DateTimeField(verbose_name=_("Expires At"))

    checkout_url = models.URLField(max_length=500, blank=True, verbose_name=_("Checkout URL"))
    qr_payload = models.TextField(blank=True, verbose_name=_("QR Payload"))
    gateway_reference = models.CharField(max_length=100, blank=True, verbose_name=_("Gateway Reference"))

    paid_at = models.DateTimeField(null=True, blank=True, verbose_name=_("Paid At"))
    cancelled_at = models.DateTimeField(null=True, blank=True, verbose_name=_("Cancelled At"))
    expired_at = models.DateTimeField(null=True, blank=True, verbose_name=_("Expired At"))
    amount_paid = models.PositiveIntegerField(null=True, blank=True, verbose_name=_("Amount Paid"))

    last_channel = models.CharField(
        max_length=10,
        choices=Channel.choices,
        blank=True,
        verbose_name=_("Settled Via"),
        help_text=_("Channel that moved the order out of PENDING"),
    )

    granted_at = models.DateTimeField(null=True, blank=True, verbose_name=_("Granted At"))
    grant_error = models.TextField(blank=True, verbose_name=_("Grant Error"))
    review_reason = models.CharField(max_length=50, blank=True, verbose_name=_("Review Reason"))

    webhook_payload = models.JSONField(
        null=True,
        blank=True,
        verbose_name=_("Webhook Payload"),
        help_text=_("Last verified webhook body received for this order"),
    )

    class Meta:
        verbose_name = _("Payment Order")
        verbose_name_plural = _("Payment Orders")
        db_table = "elearning_payment_order"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["buyer", "target_kind", "target_id", "status"], name="order_buyer_target_idx"),
        ]
        constraints = [
            # at most one open checkout per buyer and target
            models.UniqueConstraint(
                fields=["buyer", "target_kind", "target_id"],
                condition=models.Q(status="PENDING"),
                name="uniq_open_order_per_buyer_target",
            ),
        ]

    def __str__(self) -> str:
        return f"Order {self.order_code} ({self.status})"

    @property
    def is_terminal(self) -> bool:
        return self.status in self.TERMINAL_STATUSES

    def is_expired(self, now=None) -> bool:
        return (now or timezone.now()) >= self.expires_at

    @property
    def needs_grant(self) -> bool:
        """PAID, not granted yet and not held for review."""
        return self.status == self.Status.PAID and self.granted_at is None and not self.review_reason
