"""
E-Learning Catalog Models

This module defines the purchasable items of the Lingua course marketplace.
Only the attributes the purchase and access pipeline relies on are modeled
here: CEFR level, price, publish state and the aggregate student counter.

Models:
- LevelPackage: Bundle granting access to every course of one CEFR level
- Course: Single purchasable course belonging to a CEFR level

Features:
- One package per CEFR level (A1 to C2), enforced by a unique constraint
- Publish / activation flags checked before a purchase is accepted
- Informational ``students_count`` counters maintained by the enrollment granter

Author: Lingua Development Team
Version: 1.0.0
"""

from django.db import models
from django.utils.translation import gettext_lazy as _


class CEFRLevel(models.TextChoices):
    """Common European Framework of Reference levels sold on the platform."""

    A1 = "A1", _("A1 - Beginner")
    A2 = "A2", _("A2 - Elementary")
    B1 = "B1", _("B1 - Intermediate")
    B2 = "B2", _("B2 - Upper-Intermediate")
    C1 = "C1", _("C1 - Advanced")
    C2 = "C2", _("C2 - Proficiency")


class LevelPackage(models.Model):
    """
    Level package giving access to all courses of one CEFR level.

    Attributes:
        level: CEFR level covered by this package (unique)
        name: Display name shown in the shop
        price: Sale price in the smallest currency unit (VND has no minor unit)
        status: Only ``active`` packages can be purchased
        students_count: Number of non-refunded level enrollments

    Example:
        >>> package = LevelPackage.objects.create(level="B1", name="Level B1", price=10000)
        >>> package.is_purchasable
        True
    """

    class Status(models.TextChoices):
        ACTIVE = "active", _("Active")
        INACTIVE = "inactive", _("Inactive")

    level = models.CharField(
        max_length=2,
        choices=CEFRLevel.choices,
        unique=True,
        verbose_name=_("Level"),
        help_text=_("CEFR level covered by this package"),
    )

    name = models.CharField(
        max_length=200,
        verbose_name=_("Name"),
        help_text=_("Display name of the package"),
    )

    description = models.TextField(
        blank=True,
        verbose_name=_("Description"),
    )

    price = models.PositiveIntegerField(
        verbose_name=_("Price"),
        help_text=_("Sale price in the smallest currency unit"),
    )

    original_price = models.PositiveIntegerField(
        null=True,
        blank=True,
        verbose_name=_("Original Price"),
        help_text=_("List price shown struck through next to the sale price"),
    )

    duration = models.CharField(
        max_length=50,
        blank=True,
        verbose_name=_("Duration"),
        help_text=_("Suggested study duration, e.g. '3-4 months'"),
    )

    status = models.CharField(
        max_length=10,
        choices=Status.choices,
        default=Status.ACTIVE,
        verbose_name=_("Status"),
    )

    students_count = models.PositiveIntegerField(
        default=0,
        verbose_name=_("Students"),
        help_text=_("Number of buyers holding a non-refunded enrollment"),
    )

    created_at = models.DateTimeField(auto_now_add=True, verbose_name=_("Created At"))
    updated_at = models.DateTimeField(auto_now=True, verbose_name=_("Updated At"))

    class Meta:
        verbose_name = _("Level Package")
        verbose_name_plural = _("Level Packages")
        ordering = ["level"]
        db_table = "elearning_level_package"

    def __str__(self) -> str:
        return f"{self.level} - {self.name}"

    @property
    def is_purchasable(self) -> bool:
        return self.status == self.Status.ACTIVE


class Course(models.Model):
    """
    Single course belonging to a CEFR level.

    A course can be bought on its own or unlocked through the level package
    of its level. Unpublished courses can neither be bought nor opened.

    Attributes:
        title: Course title
        level: CEFR level the course belongs to
        price: Sale price in the smallest currency unit
        is_published: Visibility flag checked by the purchase and access paths
        students_count: Number of non-refunded direct course enrollments
    """

    title = models.CharField(
        max_length=200,
        verbose_name=_("Title"),
    )

    description = models.TextField(
        blank=True,
        verbose_name=_("Description"),
    )

    level = models.CharField(
        max_length=2,
        choices=CEFRLevel.choices,
        db_index=True,
        verbose_name=_("Level"),
        help_text=_("CEFR level the course belongs to"),
    )

    price = models.PositiveIntegerField(
        default=0,
        verbose_name=_("Price"),
        help_text=_("Sale price in the smallest currency unit"),
    )

    is_published = models.BooleanField(
        default=True,
        verbose_name=_("Published"),
        help_text=_("Unpublished courses cannot be purchased or opened"),
    )

    students_count = models.PositiveIntegerField(
        default=0,
        verbose_name=_("Students"),
    )

    created_at = models.DateTimeField(auto_now_add=True, verbose_name=_("Created At"))
    updated_at = models.DateTimeField(auto_now=True, verbose_name=_("Updated At"))

    class Meta:
        verbose_name = _("Course")
        verbose_name_plural = _("Courses")
        ordering = ["level", "title"]
        db_table = "elearning_course"

    def __str__(self) -> str:
        return f"[{self.level}] {self.title}"
