from datetime import date, datetime, timedelta
from unittest import mock

from django.test import TestCase, override_settings
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APIClient

from core.payos_integration.client import reset_gateway_client, set_gateway_client
from elearning.catalog.models import LevelPackage
from elearning.enrollments.models import LevelEnrollment
from elearning.payments.models import Order
from elearning.tests.utils import (
    WEBHOOK_SECRET,
    FakeGateway,
    make_order,
    make_package,
    make_user,
    signed_body,
)

BASE_URL = "/api/elearning/payments/"


@override_settings(PAYMENT_NOTIFY_ASYNC=False, PAYOS_CHECKSUM_KEY=WEBHOOK_SECRET)
class PaymentsAPITestCase(TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.buyer = make_user("lan")
        cls.package = make_package("B1", price=10000)

    def setUp(self):
        self.gateway = FakeGateway()
        set_gateway_client(self.gateway)
        self.client = APIClient()
        self.client.force_authenticate(user=self.buyer)

    def tearDown(self):
        reset_gateway_client()


class CheckoutSessionViewTests(PaymentsAPITestCase):
    def test_create_session(self):
        response = self.client.post(f"{BASE_URL}sessions/", {"targetKind": "level", "targetId": "B1"}, format="json")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        data = response.json()
        order = Order.objects.get(order_code=data["orderCode"])
        self.assertEqual(order.buyer, self.buyer)
        self.assertEqual(order.status, Order.Status.PENDING)
        self.assertEqual(data["amount"], 10000)
        self.assertEqual(data["targetKind"], "level")
        self.assertEqual(data["targetId"], "B1")
        self.assertTrue(data["checkoutUrl"].endswith(str(order.order_code)))
        self.assertTrue(data["qrPayload"])
        self.assertEqual(self.gateway.call_count("create_session"), 1)

    def test_second_checkout_for_the_same_target_conflicts(self):
        first = self.client.post(f"{BASE_URL}sessions/", {"targetKind": "level", "targetId": "B1"}, format="json")
        second = self.client.post(f"{BASE_URL}sessions/", {"targetKind": "level", "targetId": "B1"}, format="json")

        self.assertEqual(second.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(second.json()["error_code"], "duplicate_checkout")
        self.assertEqual(second.json()["details"]["orderCode"], first.json()["orderCode"])

    def test_unknown_target(self):
        response = self.client.post(f"{BASE_URL}sessions/", {"targetKind": "level", "targetId": "C2"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.json()["error_code"], "target_unavailable")
        self.assertFalse(Order.objects.exists())

    def test_invalid_body(self):
        response = self.client.post(f"{BASE_URL}sessions/", {"targetKind": "bundle"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(response.json()["success"])

    def test_gateway_down_is_retryable(self):
        self.gateway.unavailable = True
        response = self.client.post(f"{BASE_URL}sessions/", {"targetKind": "level", "targetId": "B1"}, format="json")

        self.assertEqual(response.status_code, status.HTTP_503_SERVICE_UNAVAILABLE)
        self.assertTrue(response.json()["retryable"])
        self.assertEqual(Order.objects.get().status, Order.Status.CANCELLED)

    def test_requires_authentication(self):
        response = APIClient().post(f"{BASE_URL}sessions/", {"targetKind": "level", "targetId": "B1"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)


class OrderChannelViewTests(PaymentsAPITestCase):
    def setUp(self):
        super().setUp()
        self.order = make_order(self.buyer, order_code=1234567890)

    def test_status_pending(self):
        response = self.client.get(f"{BASE_URL}sessions/1234567890/status/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()["status"], "PENDING")
        self.assertFalse(response.json()["granted"])

    def test_status_paid_grants(self):
        self.gateway.set_status(1234567890, "PAID", amount_paid=10000)
        response = self.client.get(f"{BASE_URL}sessions/1234567890/status/")

        self.assertEqual(response.json()["status"], "PAID")
        self.assertTrue(response.json()["granted"])
        self.assertTrue(LevelEnrollment.objects.filter(buyer=self.buyer, level="B1").exists())

    def test_other_users_order_is_not_found(self):
        self.client.force_authenticate(user=make_user("mallory"))
        for method, suffix in (("get", "status"), ("post", "confirm"), ("post", "cancel")):
            with self.subTest(suffix=suffix):
                response = getattr(self.client, method)(f"{BASE_URL}sessions/1234567890/{suffix}/")
                self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
                self.assertEqual(response.json()["error_code"], "order_not_found")
        self.assertEqual(self.gateway.calls, [])

    def test_unknown_order(self):
        response = self.client.get(f"{BASE_URL}sessions/999999999999/status/")
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_confirm_asks_the_gateway(self):
        response = self.client.post(f"{BASE_URL}sessions/1234567890/confirm/")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()["status"], "PENDING")
        self.assertEqual(self.gateway.call_count("query_status"), 1)
        self.assertFalse(LevelEnrollment.objects.exists())

    def test_cancel(self):
        response = self.client.post(f"{BASE_URL}sessions/1234567890/cancel/", {"reason": "wrong level"}, format="json")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()["status"], "CANCELLED")
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.Status.CANCELLED)

    def test_status_gateway_down(self):
        self.gateway.unavailable = True
        response = self.client.get(f"{BASE_URL}sessions/1234567890/status/")

        self.assertEqual(response.status_code, status.HTTP_503_SERVICE_UNAVAILABLE)
        self.assertEqual(response.json()["error_code"], "gateway_unavailable")
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.Status.PENDING)


class WebhookViewTests(PaymentsAPITestCase):
    def setUp(self):
        super().setUp()
        self.order = make_order(self.buyer, order_code=1234567890)
        self.anonymous = APIClient()

    def post_webhook(self, payload, signature=None, body=None):
        signed, good_signature = signed_body(payload)
        return self.anonymous.post(
            f"{BASE_URL}webhook/",
            data=body if body is not None else signed,
            content_type="application/json",
            HTTP_X_PAYOS_SIGNATURE=signature if signature is not None else good_signature,
        )

    def test_paid_webhook(self):
        response = self.post_webhook({"code": "00", "desc": "success", "data": {"orderCode": 1234567890, "amount": 10000}})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.json()["success"])
        self.assertEqual(response.json()["status"], "PAID")
        self.assertEqual(LevelEnrollment.objects.filter(buyer=self.buyer, level="B1").count(), 1)
        self.assertEqual(LevelPackage.objects.get(level="B1").students_count, 1)

    def test_bad_signature_is_rejected_without_side_effects(self):
        response = self.post_webhook({"orderCode": 1234567890, "status": "PAID"}, signature="0" * 64)

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.json()["error_code"], "invalid_signature")
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.Status.PENDING)
        self.assertEqual(self.order.webhook_payload, None)
        self.assertFalse(LevelEnrollment.objects.exists())

    def test_missing_signature(self):
        body, _ = signed_body({"orderCode": 1234567890, "status": "PAID"})
        response = self.anonymous.post(f"{BASE_URL}webhook/", data=body, content_type="application/json")
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_non_ascii_signature_is_rejected(self):
        response = self.post_webhook({"orderCode": 1234567890, "status": "PAID"}, signature="\u00e9")

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.Status.PENDING)

    def test_signature_is_checked_against_the_raw_body(self):
        body, signature = signed_body({"orderCode": 1234567890, "status": "PAID"})
        tampered = body.replace(b"PAID", b"PAID ")
        response = self.post_webhook({}, signature=signature, body=tampered)
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_unknown_order_is_acknowledged(self):
        response = self.post_webhook({"orderCode": 111111111111, "status": "PAID"})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()["message"], "Ignored: unknown order")

    def test_malformed_payload_is_acknowledged(self):
        response = self.post_webhook({"status": "PAID"})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()["message"], "Ignored: malformed payload")

    def test_direct_payload_without_status_is_not_treated_as_paid(self):
        response = self.post_webhook({"orderCode": 1234567890})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()["message"], "Ignored: malformed payload")
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.Status.PENDING)
        self.assertFalse(LevelEnrollment.objects.exists())

    def test_replay_is_idempotent(self):
        payload = {"orderCode": 1234567890, "status": "PAID"}
        self.post_webhook(payload)
        response = self.post_webhook(payload)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.json()["transitioned"])
        self.assertEqual(LevelEnrollment.objects.count(), 1)
        self.assertEqual(LevelPackage.objects.get(level="B1").students_count, 1)

    def test_grant_failure_still_answers_200(self):
        with mock.patch(
            "elearning.enrollments.granter.EntitlementGranter.grant", side_effect=RuntimeError("db down")
        ):
            response = self.post_webhook({"orderCode": 1234567890, "status": "PAID"})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.json()["success"])
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.Status.PAID)
        self.assertIsNone(self.order.granted_at)

        # the next poll completes the grant
        response = self.client.get(f"{BASE_URL}sessions/1234567890/status/")
        self.assertTrue(response.json()["granted"])
        self.assertEqual(LevelEnrollment.objects.count(), 1)


class StatsAndHealthViewTests(PaymentsAPITestCase):
    def test_stats_admin_only(self):
        response = self.client.get(f"{BASE_URL}stats/")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_stats(self):
        make_order(self.buyer, order_code=100000000001, status=Order.Status.PAID, amount_paid=10000)
        make_order(self.buyer, order_code=100000000002, status=Order.Status.PAID, amount_paid=4000, review_reason="underpaid")
        make_order(self.buyer, order_code=100000000003)
        admin = make_user("admin", is_staff=True)
        self.client.force_authenticate(user=admin)

        data = self.client.get(f"{BASE_URL}stats/").json()

        self.assertEqual(data["totalOrders"], 3)
        self.assertEqual(data["byStatus"]["PAID"], 2)
        self.assertEqual(data["byStatus"]["PENDING"], 1)
        self.assertEqual(data["byStatus"]["EXPIRED"], 0)
        self.assertEqual(data["revenue"], 14000)
        self.assertEqual(data["heldForReview"], 1)
        self.assertEqual(data["awaitingGrant"], 2)

    @override_settings(PAYOS_CLIENT_ID="", PAYOS_API_KEY="")
    def test_health_is_public(self):
        response = APIClient().get(f"{BASE_URL}health/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.json()["configured"])


def _local(*args):
    return timezone.make_aware(datetime(*args))


def _order_created_at(buyer, order_code, created_at, **extra):
    order = make_order(buyer, order_code=order_code, **extra)
    Order.objects.filter(pk=order.pk).update(created_at=created_at)
    return order


class PaymentHistoryViewTests(PaymentsAPITestCase):
    def setUp(self):
        super().setUp()
        self.admin = make_user("admin", is_staff=True)
        self.client.force_authenticate(user=self.admin)
        _order_created_at(
            self.buyer, 100000000001, _local(2025, 9, 14, 0, 5), status=Order.Status.PAID, amount_paid=10000
        )
        _order_created_at(self.buyer, 100000000002, _local(2025, 9, 21, 23, 30), status=Order.Status.CANCELLED)
        _order_created_at(self.buyer, 100000000003, _local(2025, 9, 22, 0, 30), status=Order.Status.EXPIRED)

    def codes(self, response):
        return [row["orderCode"] for row in response.json()["payments"]]

    def test_admin_only(self):
        self.client.force_authenticate(user=self.buyer)
        response = self.client.get(f"{BASE_URL}history/")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_newest_first_with_statistics(self):
        response = self.client.get(f"{BASE_URL}history/")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(self.codes(response), [100000000003, 100000000002, 100000000001])
        data = response.json()
        self.assertEqual(data["pagination"], {"current": 1, "pages": 1, "total": 3, "limit": 20})
        self.assertEqual(data["statistics"]["totalOrders"], 3)
        self.assertEqual(data["payments"][2]["amountPaid"], 10000)
        self.assertEqual(data["payments"][2]["buyer"], "lan")

    def test_local_date_range_includes_whole_end_day(self):
        response = self.client.get(f"{BASE_URL}history/", {"startDate": "2025-09-14", "endDate": "2025-09-21"})
        self.assertEqual(self.codes(response), [100000000002, 100000000001])

    def test_status_filter(self):
        response = self.client.get(f"{BASE_URL}history/", {"status": "paid"})
        self.assertEqual(self.codes(response), [100000000001])

        response = self.client.get(f"{BASE_URL}history/", {"status": "all"})
        self.assertEqual(len(self.codes(response)), 3)

    def test_pagination(self):
        response = self.client.get(f"{BASE_URL}history/", {"page": 2, "limit": 2})
        self.assertEqual(self.codes(response), [100000000001])
        self.assertEqual(response.json()["pagination"], {"current": 2, "pages": 2, "total": 3, "limit": 2})

    def test_invalid_filters(self):
        for params in ({"startDate": "14/09/2025"}, {"status": "REFUNDED"}, {"page": "x"}, {"limit": 0}):
            with self.subTest(params=params):
                response = self.client.get(f"{BASE_URL}history/", params)
                self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
                self.assertFalse(response.json()["success"])


class PeriodStatsViewTests(PaymentsAPITestCase):
    def setUp(self):
        super().setUp()
        self.admin = make_user("admin", is_staff=True)
        self.client.force_authenticate(user=self.admin)

    def test_admin_only(self):
        self.client.force_authenticate(user=self.buyer)
        for period in ("today", "week", "month", "success-rate"):
            with self.subTest(period=period):
                response = self.client.get(f"{BASE_URL}stats/{period}/")
                self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_today(self):
        make_order(self.buyer, order_code=100000000001, status=Order.Status.PAID, amount_paid=10000)
        make_order(self.buyer, order_code=100000000002, target_id="A2")
        _order_created_at(
            self.buyer,
            100000000003,
            timezone.now() - timedelta(days=1, hours=1),
            status=Order.Status.PAID,
            amount_paid=50000,
        )

        data = self.client.get(f"{BASE_URL}stats/today/").json()

        self.assertEqual(data["todayRevenue"], 10000)
        self.assertEqual(data["todayTransactions"], 2)
        self.assertEqual(data["paidTransactions"], 1)

    @mock.patch("elearning.payments.reporting.local_today", return_value=date(2025, 9, 17))
    def test_week_runs_monday_to_sunday(self, _today):
        _order_created_at(self.buyer, 100000000001, _local(2025, 9, 15, 0, 0), status=Order.Status.PAID)
        _order_created_at(
            self.buyer, 100000000002, _local(2025, 9, 21, 23, 59), status=Order.Status.PAID, amount_paid=7000
        )
        _order_created_at(self.buyer, 100000000003, _local(2025, 9, 22, 0, 0), status=Order.Status.PAID)
        _order_created_at(self.buyer, 100000000004, _local(2025, 9, 16, 9, 0), status=Order.Status.CANCELLED)

        data = self.client.get(f"{BASE_URL}stats/week/").json()

        # amount is used when PayOS reported no paid amount
        self.assertEqual(data["weekRevenue"], 17000)
        self.assertEqual(data["weekTransactions"], 3)
        self.assertEqual(data["paidTransactions"], 2)
        self.assertEqual((data["startDate"], data["endDate"]), ("2025-09-15", "2025-09-21"))

    @mock.patch("elearning.payments.reporting.local_today", return_value=date(2025, 9, 17))
    def test_month(self, _today):
        _order_created_at(self.buyer, 100000000001, _local(2025, 8, 31, 23, 59), status=Order.Status.PAID)
        _order_created_at(self.buyer, 100000000002, _local(2025, 9, 1, 0, 0), status=Order.Status.PAID)
        _order_created_at(self.buyer, 100000000003, _local(2025, 9, 30, 23, 0), status=Order.Status.PAID)

        data = self.client.get(f"{BASE_URL}stats/month/").json()

        self.assertEqual(data["monthRevenue"], 20000)
        self.assertEqual(data["monthTransactions"], 2)
        self.assertEqual((data["startDate"], data["endDate"]), ("2025-09-01", "2025-09-30"))

    def test_success_rate(self):
        self.assertEqual(self.client.get(f"{BASE_URL}stats/success-rate/").json()["successRate"], 0.0)

        make_order(self.buyer, order_code=100000000001, status=Order.Status.PAID)
        make_order(self.buyer, order_code=100000000002, status=Order.Status.CANCELLED)
        make_order(self.buyer, order_code=100000000003, status=Order.Status.EXPIRED)

        data = self.client.get(f"{BASE_URL}stats/success-rate/").json()

        self.assertEqual(data["successRate"], 33.3)
        self.assertEqual((data["paidTransactions"], data["totalTransactions"]), (1, 3))
