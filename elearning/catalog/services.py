"""
Catalog Services

Resolution of purchase targets and maintenance of the aggregate student
counters. The payment pipeline never works with raw model instances from
request data: a ``(kind, id)`` pair is turned into a ``PurchaseTarget``
here, after checking that the item can actually be sold.

Author: Lingua Development Team
Version: 1.0.0
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from django.db.models import F

from elearning.payments.exceptions import TargetUnavailable

from .models import CEFRLevel, Course, LevelPackage

logger = logging.getLogger(__name__)

TARGET_COURSE = "course"
TARGET_LEVEL = "level"
TARGET_KINDS = (TARGET_COURSE, TARGET_LEVEL)


@dataclass(frozen=True)
class PurchaseTarget:
    """
    Structured identity of something a buyer can pay for.

    ``id`` is the CEFR level code for level packages and the course primary
    key (as string) for courses, which is exactly what is stored on orders.
    """

    kind: str
    id: str
    label: str
    price: int
    instance: Any = field(default=None, compare=False, repr=False)

    @property
    def is_level(self) -> bool:
        return self.kind == TARGET_LEVEL


def resolve_target(target_kind: str, target_id: Union[str, int], require_purchasable: bool = True) -> PurchaseTarget:
    """
    Turn a ``(kind, id)`` pair into a ``PurchaseTarget``.

    Args:
        target_kind: ``"course"`` or ``"level"``
        target_id: Course primary key or CEFR level code (case-insensitive)
        require_purchasable: When False, inactive packages and unpublished
            courses are resolved too (used when granting an already paid order)

    Raises:
        TargetUnavailable: unknown kind, unknown id or item not for sale
    """
    if target_kind == TARGET_LEVEL:
        level = str(target_id or "").strip().upper()
        if level not in CEFRLevel.values:
            raise TargetUnavailable(f"Unknown level '{target_id}'")
        package = LevelPackage.objects.filter(level=level).first()
        if package is None or (require_purchasable and not package.is_purchasable):
            raise TargetUnavailable(f"Level package {level} is not available")
        return PurchaseTarget(
            kind=TARGET_LEVEL,
            id=package.level,
            label=package.name,
            price=package.price,
            instance=package,
        )

    if target_kind == TARGET_COURSE:
        try:
            course_pk = int(target_id)
        except (TypeError, ValueError):
            raise TargetUnavailable(f"Unknown course '{target_id}'")
        course = Course.objects.filter(pk=course_pk).first()
        if course is None or (require_purchasable and not course.is_published):
            raise TargetUnavailable(f"Course {target_id} is not available")
        return PurchaseTarget(
            kind=TARGET_COURSE,
            id=str(course.pk),
            label=course.title,
            price=course.price,
            instance=course,
        )

    raise TargetUnavailable(f"Unknown target kind '{target_kind}'")


def _counter_queryset(target: PurchaseTarget):
    if target.kind == TARGET_LEVEL:
        return LevelPackage.objects.filter(level=target.id)
    return Course.objects.filter(pk=int(target.id))


def increment_students(target: PurchaseTarget) -> None:
    updated = _counter_queryset(target).update(students_count=F("students_count") + 1)
    if not updated:
        logger.warning("students_count not incremented: %s %s does not exist", target.kind, target.id)


def decrement_students(target: PurchaseTarget) -> None:
    # never below zero
    _counter_queryset(target).filter(students_count__gt=0).update(students_count=F("students_count") - 1)


def get_students_count(target: PurchaseTarget) -> Optional[int]:
    return _counter_queryset(target).values_list("students_count", flat=True).first()
