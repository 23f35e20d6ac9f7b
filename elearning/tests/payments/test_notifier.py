from unittest import mock

from django.core import mail
from django.db import transaction
from django.test import TestCase, override_settings
from django.utils import timezone

from elearning.enrollments.models import CourseEnrollment, LevelEnrollment
from elearning.payments.notifier import PaymentNotifier, format_amount
from elearning.tests.utils import make_course, make_package, make_user


class FormatAmountTests(TestCase):
    def test_format(self):
        self.assertEqual(format_amount(10000), "10.000 VND")
        self.assertEqual(format_amount(1250000, "VND"), "1.250.000 VND")
        self.assertEqual(format_amount(None), "-")


@override_settings(PAYMENT_NOTIFY_ASYNC=False, FRONTEND_URL="https://lingua.example/")
class PaymentNotifierTests(TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.buyer = make_user("lan", email="lan@example.com", first_name="Lan", last_name="Nguyen")
        cls.package = make_package("B1", price=10000)
        cls.enrollment = LevelEnrollment.objects.create(
            buyer=cls.buyer,
            level="B1",
            package=cls.package,
            order_code=1234567890,
            paid_amount=10000,
            payment_date=timezone.now(),
        )

    def setUp(self):
        self.notifier = PaymentNotifier()

    def test_payment_succeeded_sends_email(self):
        self.assertTrue(self.notifier.payment_succeeded(self.enrollment, order_code=1234567890, amount=10000))

        self.assertEqual(len(mail.outbox), 1)
        message = mail.outbox[0]
        self.assertEqual(message.to, ["lan@example.com"])
        self.assertIn("Payment successful", message.subject)
        self.assertIn("Level B1", message.body)
        self.assertIn("10.000 VND", message.body)
        self.assertIn("https://lingua.example/my-courses", message.body)
        self.assertEqual(message.alternatives[0][1], "text/html")

    def test_course_enrollment_context(self):
        course = make_course(title="Daily Conversations")
        enrollment = CourseEnrollment.objects.create(buyer=self.buyer, course=course, payment_date=timezone.now())

        context = self.notifier.build_context(enrollment, 42, 5000)

        self.assertEqual(context["item_label"], "Daily Conversations")
        self.assertEqual(context["buyer_name"], "Lan Nguyen")
        self.assertIsNone(context["expires_at"])

    def test_buyer_without_email_is_skipped(self):
        buyer = make_user("noemail", email="")
        enrollment = LevelEnrollment.objects.create(buyer=buyer, level="B1", package=self.package)

        self.assertFalse(self.notifier.payment_succeeded(enrollment, order_code=1, amount=10000))
        self.assertEqual(mail.outbox, [])

    def test_send_failure_is_logged_not_raised(self):
        with mock.patch("elearning.payments.notifier.send_mail", side_effect=OSError("smtp down")):
            with self.assertLogs("elearning.payments.notifier", level="ERROR"):
                sent = self.notifier.payment_succeeded(self.enrollment, order_code=1234567890, amount=10000)
        self.assertFalse(sent)

    def test_schedule_sends_after_commit(self):
        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            self.notifier.schedule(self.enrollment, order_code=1234567890, amount=10000)
            self.assertEqual(mail.outbox, [])

        self.assertEqual(len(callbacks), 1)
        self.assertEqual(len(mail.outbox), 1)

    def test_schedule_in_rolled_back_transaction_sends_nothing(self):
        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            try:
                with transaction.atomic():
                    self.notifier.schedule(self.enrollment, order_code=1234567890, amount=10000)
                    raise RuntimeError("grant aborted")
            except RuntimeError:
                pass

        self.assertEqual(callbacks, [])
        self.assertEqual(mail.outbox, [])

    @override_settings(PAYMENT_NOTIFY_ASYNC=True)
    def test_schedule_hands_sending_to_the_executor(self):
        executor = mock.Mock()
        notifier = PaymentNotifier(executor=executor)

        with self.captureOnCommitCallbacks(execute=True):
            notifier.schedule(self.enrollment, order_code=1234567890, amount=10000)

        executor.submit.assert_called_once()
        send, context = executor.submit.call_args[0]
        self.assertEqual(send, notifier.send)
        self.assertEqual(context["recipient"], "lan@example.com")
        self.assertEqual(mail.outbox, [])
