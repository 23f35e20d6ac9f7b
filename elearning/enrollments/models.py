"""
E-Learning Enrollment Models

Entitlements granted after a successful payment. A buyer holds at most one
enrollment per course and at most one per CEFR level; both rules are
enforced by unique constraints, which the granter relies on as the final
arbiter when several payment channels race to grant the same order.

Models:
- CourseEnrollment: Access to one course
- LevelEnrollment: Access to every course of one CEFR level

Enrollments are never deleted. Refunds move them to ``refunded``.

Author: Lingua Development Team
Version: 1.0.0
"""

from django.conf import settings
from django.db import models
from django.utils.translation import gettext_lazy as _

from elearning.catalog.models import CEFRLevel, Course, LevelPackage


class EnrollmentProvenance(models.Model):
    """Payment provenance and access bookkeeping shared by both enrollment kinds."""

    enrolled_at = models.DateTimeField(
        auto_now_add=True,
        verbose_name=_("Enrolled At"),
    )

    order_code = models.BigIntegerField(
        null=True,
        blank=True,
        db_index=True,
        verbose_name=_("Order Code"),
        help_text=_("Payment order that created this enrollment"),
    )

    paid_amount = models.PositiveIntegerField(
        null=True,
        blank=True,
        verbose_name=_("Paid Amount"),
    )

    payment_date = models.DateTimeField(
        null=True,
        blank=True,
        verbose_name=_("Payment Date"),
    )

    last_accessed_at = models.DateTimeField(
        null=True,
        blank=True,
        verbose_name=_("Last Accessed At"),
        help_text=_("Refreshed whenever the access guard allows a course"),
    )

    class Meta:
        abstract = True


class CourseEnrollment(EnrollmentProvenance):
    """
    Direct enrollment of a buyer into a single course.

    Attributes:
        buyer: Enrolled user
        course: Purchased course
        status: active, completed, paused or refunded
    """

    class Status(models.TextChoices):
        ACTIVE = "active", _("Active")
        COMPLETED = "completed", _("Completed")
        PAUSED = "paused", _("Paused")
        REFUNDED = "refunded", _("Refunded")

    # statuses that still grant access
    ACCESS_STATUSES = (Status.ACTIVE, Status.COMPLETED, Status.PAUSED)

    buyer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="course_enrollments",
        verbose_name=_("Buyer"),
    )

    course = models.ForeignKey(
        Course,
        on_delete=models.PROTECT,
        related_name="enrollments",
        verbose_name=_("Course"),
    )

    status = models.CharField(
        max_length=10,
        choices=Status.choices,
        default=Status.ACTIVE,
        verbose_name=_("Status"),
    )

    class Meta:
        verbose_name = _("Course Enrollment")
        verbose_name_plural = _("Course Enrollments")
        db_table = "elearning_course_enrollment"
        ordering = ["-enrolled_at"]
        constraints = [
            models.UniqueConstraint(fields=["buyer", "course"], name="uniq_course_enrollment_per_buyer"),
        ]

    def __str__(self) -> str:
        return f"{self.buyer} -> {self.course} ({self.status})"


class LevelEnrollment(EnrollmentProvenance):
    """
    Enrollment of a buyer into a whole CEFR level.

    Grants access to every published course of ``level``.

    Attributes:
        buyer: Enrolled user
        level: CEFR level unlocked
        package: Package that was purchased (kept for reporting)
        expires_at: Informational end of the access period
        status: active, paused or refunded
    """

    class Status(models.TextChoices):
        ACTIVE = "active", _("Active")
        PAUSED = "paused", _("Paused")
        REFUNDED = "refunded", _("Refunded")

    ACCESS_STATUSES = (Status.ACTIVE, Status.PAUSED)

    buyer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="level_enrollments",
        verbose_name=_("Buyer"),
    )

    level = models.CharField(
        max_length=2,
        choices=CEFRLevel.choices,
        verbose_name=_("Level"),
    )

    package = models.ForeignKey(
        LevelPackage,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="enrollments",
        verbose_name=_("Level Package"),
    )

    expires_at = models.DateTimeField(
        null=True,
        blank=True,
        verbose_name=_("Expires At"),
    )

    status = models.CharField(
        max_length=10,
        choices=Status.choices,
        default=Status.ACTIVE,
        verbose_name=_("Status"),
    )

    class Meta:
        verbose_name = _("Level Enrollment")
        verbose_name_plural = _("Level Enrollments")
        db_table = "elearning_level_enrollment"
        ordering = ["-enrolled_at"]
        constraints = [
            models.UniqueConstraint(fields=["buyer", "level"], name="uniq_level_enrollment_per_buyer"),
        ]

    def __str__(self) -> str:
        return f"{self.buyer} -> Level {self.level} ({self.status})"
