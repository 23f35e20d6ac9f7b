from django.urls import path

from .views import (
    CancelPaymentView,
    ConfirmPaymentView,
    CreateCheckoutSessionView,
    OrderStatusView,
    PaymentHealthView,
    PaymentHistoryView,
    PaymentStatsView,
    PayOSWebhookView,
    PeriodStatsView,
    SuccessRateView,
)

app_name = "payments"

urlpatterns = [
    path("sessions/", CreateCheckoutSessionView.as_view(), name="checkout-session"),
    path("sessions/<int:order_code>/status/", OrderStatusView.as_view(), name="order-status"),
    path("sessions/<int:order_code>/confirm/", ConfirmPaymentView.as_view(), name="order-confirm"),
    path("sessions/<int:order_code>/cancel/", CancelPaymentView.as_view(), name="order-cancel"),
    path("webhook/", PayOSWebhookView.as_view(), name="payos-webhook"),
    path("stats/", PaymentStatsView.as_view(), name="payment-stats"),
    path("stats/today/", PeriodStatsView.as_view(period="today"), name="payment-stats-today"),
    path("stats/week/", PeriodStatsView.as_view(period="week"), name="payment-stats-week"),
    path("stats/month/", PeriodStatsView.as_view(period="month"), name="payment-stats-month"),
    path("stats/success-rate/", SuccessRateView.as_view(), name="payment-success-rate"),
    path("history/", PaymentHistoryView.as_view(), name="payment-history"),
    path("health/", PaymentHealthView.as_view(), name="payment-health"),
]
