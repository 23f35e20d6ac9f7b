"""
Shared helpers for the E-Learning test-suite: a scripted stand-in for the
PayOS client and small factories for users, catalog items and orders.
"""

import hashlib
import hmac
import json
from datetime import timedelta

from django.contrib.auth.models import User
from django.utils import timezone

from core.payos_integration.client import CheckoutSession, RemoteStatus
from core.payos_integration.exceptions import GatewayUnavailableException
from elearning.catalog.models import Course, LevelPackage
from elearning.payments.models import Order

WEBHOOK_SECRET = "test-checksum-key"


class FakeGateway:
    """Scripted PayOS client. Unknown order codes report PENDING."""

    def __init__(self):
        self.statuses = {}
        self.calls = []
        self.unavailable = False

    def set_status(self, order_code, status, amount_paid=None):
        self.statuses[int(order_code)] = (status, amount_paid)

    def create_session(self, order):
        self.calls.append(("create_session", order.order_code))
        if self.unavailable:
            raise GatewayUnavailableException()
        return CheckoutSession(
            order_code=order.order_code,
            checkout_url=f"https://pay.payos.vn/web/{order.order_code}",
            qr_payload=f"00020101021238570010A000000727{order.order_code}",
            payment_link_id=f"link-{order.order_code}",
        )

    def query_status(self, order_code):
        self.calls.append(("query_status", int(order_code)))
        if self.unavailable:
            raise GatewayUnavailableException()
        status, amount_paid = self.statuses.get(int(order_code), ("PENDING", None))
        return RemoteStatus(order_code=int(order_code), status=status, amount_paid=amount_paid)

    def cancel(self, order_code, reason=""):
        self.calls.append(("cancel", int(order_code)))
        if self.unavailable:
            raise GatewayUnavailableException()
        self.statuses[int(order_code)] = ("CANCELLED", None)
        return RemoteStatus(order_code=int(order_code), status="CANCELLED")

    def call_count(self, name):
        return sum(1 for call in self.calls if call[0] == name)


def make_user(username="buyer", email=None, **extra):
    return User.objects.create_user(
        username=username,
        password="Testpassword123",
        email=email if email is not None else f"{username}@example.com",
        **extra,
    )


def make_package(level="B1", price=10000, **extra):
    return LevelPackage.objects.create(level=level, name=f"Level {level}", price=price, **extra)


def make_course(title="Daily Conversations", level="B1", price=5000, **extra):
    return Course.objects.create(title=title, level=level, price=price, **extra)


def make_order(buyer, target_kind="level", target_id="B1", amount=10000, order_code=1234567890, **extra):
    extra.setdefault("expires_at", timezone.now() + timedelta(minutes=15))
    return Order.objects.create(
        order_code=order_code,
        buyer=buyer,
        target_kind=target_kind,
        target_id=target_id,
        item_label=f"{target_kind} {target_id}",
        amount=amount,
        **extra,
    )


def signed_body(payload, secret=WEBHOOK_SECRET):
    body = json.dumps(payload).encode("utf-8")
    signature = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return body, signature
