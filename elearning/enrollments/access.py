"""
Course Access Guard

Decides whether a user may open a course, based only on the enrollments
that exist, never on how or through which payment channel they were
created.

Decision order:
    1. Course missing or unpublished  -> deny ``target_unavailable``
    2. Level enrollment for the course's level (active or paused) -> allow
    3. Direct course enrollment (active, completed or paused)     -> allow
    4. Otherwise                                                  -> deny ``no_entitlement``

On allow, ``last_accessed_at`` of the matching enrollment is refreshed.
That write is best effort: a failure is logged and the decision stands.

Author: Lingua Development Team
Version: 1.0.0
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from django.db import DatabaseError
from django.utils import timezone

from elearning.catalog.models import Course

from .models import CourseEnrollment, LevelEnrollment

logger = logging.getLogger(__name__)

DENY_NO_ENTITLEMENT = "no_entitlement"
DENY_TARGET_UNAVAILABLE = "target_unavailable"


@dataclass(frozen=True)
class AccessDecision:
    allowed: bool
    reason: Optional[str] = None
    level: Optional[str] = None
    via: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "allowed": self.allowed,
            "reason": self.reason,
            "level": self.level,
            "via": self.via,
        }


def _touch(model, pk) -> None:
    try:
        model.objects.filter(pk=pk).update(last_accessed_at=timezone.now())
    except DatabaseError:
        logger.exception("Could not refresh last_accessed_at for %s %s", model.__name__, pk)


def authorize(buyer, course_id) -> AccessDecision:
    """
    Authorize ``buyer`` for the course ``course_id``.

    Returns:
        AccessDecision with ``allowed`` and, on deny, a structured ``reason``
    """
    try:
        course = Course.objects.filter(pk=int(course_id)).only("id", "level", "is_published").first()
    except (TypeError, ValueError):
        course = None

    if course is None or not course.is_published:
        return AccessDecision(allowed=False, reason=DENY_TARGET_UNAVAILABLE)

    if buyer is None or not getattr(buyer, "is_authenticated", False):
        return AccessDecision(allowed=False, reason=DENY_NO_ENTITLEMENT, level=course.level)

    level_enrollment_id = (
        LevelEnrollment.objects.filter(
            buyer=buyer, level=course.level, status__in=LevelEnrollment.ACCESS_STATUSES
        )
        .values_list("pk", flat=True)
        .first()
    )
    if level_enrollment_id is not None:
        _touch(LevelEnrollment, level_enrollment_id)
        return AccessDecision(allowed=True, level=course.level, via="level")

    course_enrollment_id = (
        CourseEnrollment.objects.filter(
            buyer=buyer, course=course, status__in=CourseEnrollment.ACCESS_STATUSES
        )
        .values_list("pk", flat=True)
        .first()
    )
    if course_enrollment_id is not None:
        _touch(CourseEnrollment, course_enrollment_id)
        return AccessDecision(allowed=True, level=course.level, via="course")

    return AccessDecision(allowed=False, reason=DENY_NO_ENTITLEMENT, level=course.level)
