from unittest import mock

from django.db.models.query import QuerySet
from django.test import TestCase

from elearning.catalog.models import Course, LevelPackage
from elearning.catalog.services import resolve_target
from elearning.enrollments.granter import EntitlementGranter, holds_entitlement
from elearning.enrollments.models import CourseEnrollment, LevelEnrollment
from elearning.tests.utils import make_course, make_package, make_user


class EntitlementGranterTests(TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.buyer = make_user("anna")
        cls.package = make_package("B1")
        cls.course = make_course(level="A2")

    def setUp(self):
        self.notifier = mock.Mock()
        self.granter = EntitlementGranter(notifier=self.notifier)

    def _students(self, model, **lookup):
        return model.objects.get(**lookup).students_count

    def test_level_grant_creates_one_enrollment(self):
        target = resolve_target("level", "B1")
        result = self.granter.grant(self.buyer, target, 1234567890, 10000)

        self.assertTrue(result.created)
        enrollment = result.entitlement
        self.assertIsInstance(enrollment, LevelEnrollment)
        self.assertEqual(enrollment.level, "B1")
        self.assertEqual(enrollment.package, self.package)
        self.assertEqual(enrollment.order_code, 1234567890)
        self.assertEqual(enrollment.paid_amount, 10000)
        self.assertIsNotNone(enrollment.expires_at)
        self.assertEqual(self._students(LevelPackage, level="B1"), 1)
        self.notifier.schedule.assert_called_once_with(enrollment, order_code=1234567890, amount=10000)

    def test_repeated_grants_are_idempotent(self):
        target = resolve_target("level", "B1")
        results = [self.granter.grant(self.buyer, target, 1234567890, 10000) for _ in range(5)]

        self.assertEqual([r.created for r in results], [True, False, False, False, False])
        self.assertEqual(len({r.entitlement.pk for r in results}), 1)
        self.assertEqual(LevelEnrollment.objects.filter(buyer=self.buyer, level="B1").count(), 1)
        self.assertEqual(self._students(LevelPackage, level="B1"), 1)
        self.assertEqual(self.notifier.schedule.call_count, 1)

    def test_course_grant(self):
        target = resolve_target("course", self.course.pk)
        result = self.granter.grant(self.buyer, target, 111, 5000)

        self.assertTrue(result.created)
        self.assertIsInstance(result.entitlement, CourseEnrollment)
        self.assertEqual(self._students(Course, pk=self.course.pk), 1)

    def test_lost_insert_race_resolves_to_existing_enrollment(self):
        target = resolve_target("level", "B1")
        winner = LevelEnrollment.objects.create(buyer=self.buyer, level="B1", package=self.package, order_code=1)

        # the existence check misses the concurrent winner, the unique constraint catches it
        with mock.patch.object(QuerySet, "first", return_value=None):
            result = self.granter.grant(self.buyer, target, 2, 10000)

        self.assertFalse(result.created)
        self.assertEqual(result.entitlement.pk, winner.pk)
        self.assertEqual(LevelEnrollment.objects.filter(buyer=self.buyer, level="B1").count(), 1)
        self.assertEqual(self._students(LevelPackage, level="B1"), 0)
        self.notifier.schedule.assert_not_called()

    def test_revoke_releases_counter_once(self):
        target = resolve_target("level", "B1")
        enrollment = self.granter.grant(self.buyer, target, 1, 10000).entitlement

        self.assertTrue(self.granter.revoke(enrollment, reason="refund"))
        self.assertFalse(self.granter.revoke(enrollment, reason="refund"))

        enrollment.refresh_from_db()
        self.assertEqual(enrollment.status, LevelEnrollment.Status.REFUNDED)
        self.assertEqual(self._students(LevelPackage, level="B1"), 0)

    def test_paying_again_after_refund_reactivates(self):
        target = resolve_target("level", "B1")
        enrollment = self.granter.grant(self.buyer, target, 1, 10000).entitlement
        self.granter.revoke(enrollment)

        result = self.granter.grant(self.buyer, target, 2, 10000)

        self.assertTrue(result.created)
        self.assertEqual(result.entitlement.pk, enrollment.pk)
        self.assertEqual(result.entitlement.status, LevelEnrollment.Status.ACTIVE)
        self.assertEqual(result.entitlement.order_code, 2)
        self.assertEqual(self._students(LevelPackage, level="B1"), 1)
        self.assertEqual(self.notifier.schedule.call_count, 2)


class HoldsEntitlementTests(TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.buyer = make_user("binh")
        cls.package = make_package("B2")
        cls.course = make_course(level="B2")

    def test_level_enrollment_covers_courses_of_the_level(self):
        LevelEnrollment.objects.create(buyer=self.buyer, level="B2", package=self.package)
        self.assertTrue(holds_entitlement(self.buyer, resolve_target("level", "B2")))
        self.assertTrue(holds_entitlement(self.buyer, resolve_target("course", self.course.pk)))

    def test_refunded_enrollment_does_not_count(self):
        CourseEnrollment.objects.create(
            buyer=self.buyer, course=self.course, status=CourseEnrollment.Status.REFUNDED
        )
        self.assertFalse(holds_entitlement(self.buyer, resolve_target("course", self.course.pk)))
