from rest_framework import serializers

from elearning.catalog.services import TARGET_KINDS

from .models import Order


class CheckoutRequestSerializer(serializers.Serializer):
    targetKind = serializers.ChoiceField(choices=TARGET_KINDS)
    targetId = serializers.CharField(max_length=64)


class CancelRequestSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=200, required=False, allow_blank=True)


class CheckoutSessionSerializer(serializers.ModelSerializer):
    orderCode = serializers.IntegerField(source="order_code")
    checkoutUrl = serializers.CharField(source="checkout_url")
    qrPayload = serializers.CharField(source="qr_payload")
    expiresAt = serializers.DateTimeField(source="expires_at")
    targetKind = serializers.CharField(source="target_kind")
    targetId = serializers.CharField(source="target_id")

    class Meta:
        model = Order
        fields = ["orderCode", "checkoutUrl", "qrPayload", "expiresAt", "amount", "currency", "targetKind", "targetId"]


class OrderHistorySerializer(serializers.ModelSerializer):
    orderCode = serializers.IntegerField(source="order_code")
    buyer = serializers.CharField(source="buyer.username")
    buyerEmail = serializers.EmailField(source="buyer.email")
    targetKind = serializers.CharField(source="target_kind")
    targetId = serializers.CharField(source="target_id")
    item = serializers.CharField(source="item_label")
    amountPaid = serializers.IntegerField(source="amount_paid")
    lastChannel = serializers.CharField(source="last_channel")
    reviewReason = serializers.CharField(source="review_reason")
    createdAt = serializers.DateTimeField(source="created_at")
    paidAt = serializers.DateTimeField(source="paid_at")

    class Meta:
        model = Order
        fields = [
            "orderCode",
            "buyer",
            "buyerEmail",
            "targetKind",
            "targetId",
            "item",
            "amount",
            "amountPaid",
            "currency",
            "status",
            "lastChannel",
            "reviewReason",
            "createdAt",
            "paidAt",
        ]
