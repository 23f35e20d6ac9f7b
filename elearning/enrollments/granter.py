"""
Entitlement Granter

Turns a paid order into a course or level enrollment. The grant is
idempotent on its own, independently of the order state machine:

1. An existing enrollment for (buyer, target) is returned as ``created=False``.
2. Otherwise the row is inserted inside a savepoint. The unique constraint
   is the final arbiter: if a concurrent grant inserted first, the
   ``IntegrityError`` is swallowed and the winner's row is returned.
3. The aggregate ``students_count`` is incremented only for a new row, in
   the same savepoint as the insert.
4. The confirmation email is scheduled after commit and never awaited.

A refunded enrollment that is paid for again is reactivated instead of
duplicated, which keeps the counter equal to the number of non-refunded rows.

Author: Lingua Development Team
Date: 2025-10-02
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Optional

from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone

from elearning.catalog.models import Course, LevelPackage
from elearning.catalog.services import (
    TARGET_COURSE,
    TARGET_LEVEL,
    PurchaseTarget,
    decrement_students,
    increment_students,
)

from .models import CourseEnrollment, LevelEnrollment

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GrantResult:
    created: bool
    entitlement: Any


def holds_entitlement(buyer, target: PurchaseTarget) -> bool:
    """
    Check whether ``buyer`` already has access to ``target``.

    A course counts as owned when it was bought directly or when the buyer
    holds the level package of the course's level.
    """
    if target.kind == TARGET_LEVEL:
        return LevelEnrollment.objects.filter(
            buyer=buyer, level=target.id, status__in=LevelEnrollment.ACCESS_STATUSES
        ).exists()

    if CourseEnrollment.objects.filter(
        buyer=buyer, course_id=int(target.id), status__in=CourseEnrollment.ACCESS_STATUSES
    ).exists():
        return True

    level = getattr(target.instance, "level", None)
    if level is None:
        level = Course.objects.filter(pk=int(target.id)).values_list("level", flat=True).first()
    return bool(level) and LevelEnrollment.objects.filter(
        buyer=buyer, level=level, status__in=LevelEnrollment.ACCESS_STATUSES
    ).exists()


def target_of(entitlement) -> PurchaseTarget:
    """Rebuild the purchase target an enrollment stands for."""
    if isinstance(entitlement, LevelEnrollment):
        return PurchaseTarget(kind=TARGET_LEVEL, id=entitlement.level, label=f"Level {entitlement.level}", price=0)
    return PurchaseTarget(kind=TARGET_COURSE, id=str(entitlement.course_id), label=str(entitlement.course_id), price=0)


class EntitlementGranter:
    """
    Idempotent creator of enrollments.

    Example:
        >>> granter = EntitlementGranter()
        >>> granter.grant(user, resolve_target("level", "B1"), 123456789012, 10000).created
        True
        >>> granter.grant(user, resolve_target("level", "B1"), 123456789012, 10000).created
        False
    """

    def __init__(self, notifier=None) -> None:
        if notifier is None:
            from elearning.payments.notifier import get_notifier

            notifier = get_notifier()
        self.notifier = notifier

    def grant(self, buyer, target: PurchaseTarget, order_code: Optional[int], amount: Optional[int]) -> GrantResult:
        model, lookup, defaults = self._describe(buyer, target, order_code, amount)

        existing = model.objects.filter(**lookup).first()
        if existing is not None:
            if existing.status != model.Status.REFUNDED:
                logger.info(
                    "Enrollment already exists for user %s and %s %s (order %s).",
                    buyer.pk, target.kind, target.id, order_code,
                )
                return GrantResult(created=False, entitlement=existing)
            return self._reactivate(existing, target, defaults)

        try:
            with transaction.atomic():
                entitlement = model.objects.create(**lookup, **defaults)
                increment_students(target)
        except IntegrityError:
            # a concurrent grant won the insert
            entitlement = model.objects.get(**lookup)
            logger.info(
                "Concurrent grant for user %s and %s %s resolved to existing enrollment %s.",
                buyer.pk, target.kind, target.id, entitlement.pk,
            )
            return GrantResult(created=False, entitlement=entitlement)

        logger.info(
            "Enrolled user %s into %s %s (order=%s, amount=%s).",
            buyer.pk, target.kind, target.id, order_code, amount,
        )
        self.notifier.schedule(entitlement, order_code=order_code, amount=amount)
        return GrantResult(created=True, entitlement=entitlement)

    def revoke(self, entitlement, reason: str = "") -> bool:
        """
        Move an enrollment to ``refunded`` and release its counter slot.

        Returns:
            True if the enrollment was revoked by this call
        """
        model = type(entitlement)
        updated = (
            model.objects.filter(pk=entitlement.pk)
            .exclude(status=model.Status.REFUNDED)
            .update(status=model.Status.REFUNDED)
        )
        if not updated:
            return False

        decrement_students(target_of(entitlement))
        entitlement.status = model.Status.REFUNDED
        logger.info("Revoked %s %s (reason=%s).", model.__name__, entitlement.pk, reason or "-")
        return True

    # ---------- helpers ----------

    def _describe(self, buyer, target: PurchaseTarget, order_code, amount):
        now = timezone.now()
        provenance = {
            "order_code": order_code,
            "paid_amount": amount,
            "payment_date": now,
        }
        if target.kind == TARGET_LEVEL:
            package = target.instance if isinstance(target.instance, LevelPackage) else None
            if package is None:
                package = LevelPackage.objects.filter(level=target.id).first()
            defaults = dict(
                provenance,
                package=package,
                expires_at=now + timedelta(days=settings.LEVEL_ENROLLMENT_DURATION_DAYS),
            )
            return LevelEnrollment, {"buyer": buyer, "level": target.id}, defaults

        return CourseEnrollment, {"buyer": buyer, "course_id": int(target.id)}, provenance

    def _reactivate(self, entitlement, target: PurchaseTarget, defaults) -> GrantResult:
        model = type(entitlement)
        fields = {key: value for key, value in defaults.items() if key != "package"}
        with transaction.atomic():
            updated = model.objects.filter(pk=entitlement.pk, status=model.Status.REFUNDED).update(
                status=model.Status.ACTIVE, **fields
            )
            if updated:
                increment_students(target)
        entitlement.refresh_from_db()
        if not updated:
            return GrantResult(created=False, entitlement=entitlement)

        logger.info("Reactivated refunded %s %s (order=%s).", model.__name__, entitlement.pk, fields.get("order_code"))
        self.notifier.schedule(entitlement, order_code=fields.get("order_code"), amount=fields.get("paid_amount"))
        return GrantResult(created=True, entitlement=entitlement)
