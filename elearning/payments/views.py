"""
Payments Views for PayOS Integration
====================================

API endpoints of the purchase flow. All state changes go through the
reconciler, the views only translate HTTP to reconciler calls and
reconciler errors to JSON.

Endpoints (mounted under ``/api/elearning/payments/``):

1. CreateCheckoutSessionView
   - URL: sessions/
   - Method: POST, auth required
   - Body: ``{"targetKind": "level", "targetId": "B1"}``
   - Returns 201 ``{orderCode, checkoutUrl, qrPayload, expiresAt, amount, ...}``

2. OrderStatusView
   - URL: sessions/<order_code>/status/
   - Method: GET, auth required
   - Asks PayOS while the order is open; returns the resulting status so
     the client knows when to stop polling

3. ConfirmPaymentView
   - URL: sessions/<order_code>/confirm/
   - Method: POST, auth required
   - Called by the client after it saw success; PayOS is asked again

4. CancelPaymentView
   - URL: sessions/<order_code>/cancel/
   - Method: POST, auth required, optional body ``{"reason": "..."}``

5. PayOSWebhookView
   - URL: webhook/
   - Method: POST, no auth, HMAC signature in the configured header
   - 401 on a bad signature, 200 for everything else so PayOS stops retrying

6. PaymentStatsView
   - URL: stats/
   - Method: GET, admin only

7. PaymentHistoryView
   - URL: history/
   - Method: GET, admin only; ``status``, ``startDate``, ``endDate``, ``page``, ``limit``

8. PeriodStatsView / SuccessRateView
   - URL: stats/today/, stats/week/, stats/month/, stats/success-rate/
   - Method: GET, admin only

9. PaymentHealthView
   - URL: health/
   - Method: GET, public

Errors:
-------
Every ``PaymentError`` is answered with
``{"success": false, "message": ..., "error_code": ..., "retryable": ...}``
and the error's HTTP status.

Author: Lingua Development Team
Date: 2025-10-02
"""

import json
import logging
from datetime import timedelta

from django.conf import settings
from django.utils import timezone
from rest_framework import status
from rest_framework.permissions import AllowAny, IsAdminUser, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from core.payos_integration.client import get_gateway_client
from core.payos_integration.signatures import get_signature_verifier

from . import reporting
from .exceptions import GrantFailed, PaymentError, SignatureVerificationFailed
from .reconciler import MalformedWebhook, WebhookEvent, get_reconciler
from .registry import start_checkout
from .serializers import (
    CancelRequestSerializer,
    CheckoutRequestSerializer,
    CheckoutSessionSerializer,
    OrderHistorySerializer,
)

logger = logging.getLogger(__name__)


class PaymentErrorMixin:
    """Turns ``PaymentError`` into the JSON error envelope."""

    def handle_exception(self, exc):
        if isinstance(exc, PaymentError):
            if exc.status_code >= 500:
                logger.warning("%s: %s (%s)", self.__class__.__name__, exc.message, exc.error_code)
            return Response(exc.to_dict(), status=exc.status_code)
        return super().handle_exception(exc)


class CreateCheckoutSessionView(PaymentErrorMixin, APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request):
        serializer = CheckoutRequestSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(
                {"success": False, "message": "targetKind and targetId are required.", "errors": serializer.errors},
                status=status.HTTP_400_BAD_REQUEST,
            )

        order = start_checkout(
            request.user,
            serializer.validated_data["targetKind"],
            serializer.validated_data["targetId"],
            gateway=get_gateway_client(),
        )
        return Response(CheckoutSessionSerializer(order).data, status=status.HTTP_201_CREATED)


class OrderStatusView(PaymentErrorMixin, APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request, order_code):
        result = get_reconciler().on_poll(order_code, request.user)
        return Response({"success": True, **result.to_dict()}, status=status.HTTP_200_OK)


class ConfirmPaymentView(PaymentErrorMixin, APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request, order_code):
        result = get_reconciler().on_manual_confirm(order_code, request.user)
        return Response({"success": True, **result.to_dict()}, status=status.HTTP_200_OK)


class CancelPaymentView(PaymentErrorMixin, APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request, order_code):
        serializer = CancelRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = get_reconciler().on_cancel(order_code, request.user, serializer.validated_data.get("reason", ""))
        return Response({"success": True, **result.to_dict()}, status=status.HTTP_200_OK)


class PayOSWebhookView(APIView):
    """
    PayOS webhook receiver.

    The signature is checked on the raw body before it is parsed. Anything
    after a valid signature answers 200, including unknown orders and
    failed grants (recorded on the order and retried by poll or confirm).
    """

    permission_classes = [AllowAny]
    authentication_classes = []

    def post(self, request):
        raw_body = request.body
        signature = request.headers.get(settings.PAYOS_SIGNATURE_HEADER)

        if not get_signature_verifier().verify(raw_body, signature):
            return Response(SignatureVerificationFailed().to_dict(), status=status.HTTP_401_UNAUTHORIZED)

        try:
            event = WebhookEvent.from_payload(json.loads(raw_body.decode("utf-8")))
        except (ValueError, MalformedWebhook) as exc:
            logger.warning("Signed webhook ignored: %s", exc)
            return Response({"success": True, "message": "Ignored: malformed payload"}, status=status.HTTP_200_OK)

        try:
            result = get_reconciler().on_webhook(event)
        except GrantFailed as exc:
            return Response(
                {"success": False, "message": exc.message, "orderCode": exc.order_code},
                status=status.HTTP_200_OK,
            )

        if result is None:
            return Response({"success": True, "message": "Ignored: unknown order"}, status=status.HTTP_200_OK)

        return Response(
            {"success": True, "message": "Webhook processed successfully", **result.to_dict()},
            status=status.HTTP_200_OK,
        )


class PaymentStatsView(APIView):
    permission_classes = [IsAdminUser]

    def get(self, request):
        return Response({"success": True, **reporting.overall_statistics()}, status=status.HTTP_200_OK)


class PaymentHistoryView(APIView):
    """
    Admin order history, newest first.

    Query parameters: ``status`` (``all`` for any), ``startDate`` and
    ``endDate`` as local ``YYYY-MM-DD`` days (both inclusive), ``page``
    (default 1) and ``limit`` (default 20, at most 100).
    """

    permission_classes = [IsAdminUser]

    def get(self, request):
        params = request.query_params
        try:
            queryset = reporting.order_history(
                status=params.get("status"),
                start_date=params.get("startDate"),
                end_date=params.get("endDate"),
            )
            page, pagination = reporting.paginate(queryset, params.get("page"), params.get("limit"))
        except reporting.InvalidReportFilter as e:
            return Response({"success": False, "message": str(e)}, status=status.HTTP_400_BAD_REQUEST)

        return Response(
            {
                "success": True,
                "payments": OrderHistorySerializer(page, many=True).data,
                "pagination": pagination,
                "statistics": reporting.overall_statistics(),
            },
            status=status.HTTP_200_OK,
        )


class PeriodStatsView(APIView):
    """
    Revenue of the current local day, week (Monday to Sunday) or month.

    The response keys carry the period name: ``todayRevenue``,
    ``weekTransactions``, ``monthRevenue``...
    """

    permission_classes = [IsAdminUser]
    period = "today"

    RANGES = {
        "today": reporting.day_range,
        "week": reporting.week_range,
        "month": reporting.month_range,
    }

    def get(self, request):
        start, end = self.RANGES[self.period](reporting.local_today())
        summary = reporting.period_summary(start, end)
        return Response(
            {
                "success": True,
                f"{self.period}Revenue": summary["revenue"],
                f"{self.period}Transactions": summary["transactions"],
                "paidTransactions": summary["paid"],
                "currency": settings.PAYMENT_CURRENCY,
                "startDate": timezone.localtime(start).date().isoformat(),
                "endDate": (timezone.localtime(end) - timedelta(days=1)).date().isoformat(),
            },
            status=status.HTTP_200_OK,
        )


class SuccessRateView(APIView):
    permission_classes = [IsAdminUser]

    def get(self, request):
        return Response({"success": True, **reporting.success_rate()}, status=status.HTTP_200_OK)


class PaymentHealthView(APIView):
    permission_classes = [AllowAny]
    authentication_classes = []

    def get(self, request):
        return Response(
            {
                "success": True,
                "message": "PayOS payment service is running",
                "configured": bool(settings.PAYOS_CLIENT_ID and settings.PAYOS_API_KEY and settings.PAYOS_CHECKSUM_KEY),
                "timestamp": timezone.now().isoformat(),
            },
            status=status.HTTP_200_OK,
        )
