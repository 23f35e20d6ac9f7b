"""
E-Learning Application Django Admin Configuration

This module provides the Django admin interface configuration for all
E-Learning models of the Lingua marketplace.

The admin interface is organized into logical sections:
- Catalog: Level packages and courses
- Enrollments: Course and level entitlements, with a refund action
- Payments: PayOS orders, read-only, with a "re-check with PayOS" action

Author: Lingua Development Team
Version: 1.0.0
"""

from django.contrib import admin, messages
from django.db.models import QuerySet
from django.http import HttpRequest
from django.utils.translation import gettext_lazy as _

from core.payos_integration.client import get_gateway_client

from .enrollments.granter import EntitlementGranter
from .models import Course, CourseEnrollment, LevelEnrollment, LevelPackage, Order
from .payments.exceptions import PaymentError
from .payments.reconciler import PaymentReconciler

# --- Catalog Administration ---


@admin.register(LevelPackage)
class LevelPackageAdmin(admin.ModelAdmin):
    """Administration interface for CEFR level packages."""

    list_display = ("level", "name", "price", "status", "students_count")
    list_filter = ("status",)
    search_fields = ("name", "level")
    readonly_fields = ("students_count", "created_at", "updated_at")
    ordering = ("level",)

    fieldsets = (
        (_("Basic Information"), {"fields": ("level", "name", "description", "duration")}),
        (_("Pricing"), {"fields": ("price", "original_price", "status")}),
        (_("Statistics"), {"fields": ("students_count", "created_at", "updated_at")}),
    )


@admin.register(Course)
class CourseAdmin(admin.ModelAdmin):
    """Administration interface for courses."""

    list_display = ("title", "level", "price", "is_published", "students_count")
    list_filter = ("level", "is_published")
    search_fields = ("title", "description")
    readonly_fields = ("students_count", "created_at", "updated_at")


# --- Enrollment Administration ---


@admin.action(description=_("Refund selected enrollments (revoke access)"))
def revoke_enrollments(modeladmin, request: HttpRequest, queryset: QuerySet) -> None:
    granter = EntitlementGranter()
    revoked = sum(1 for enrollment in queryset if granter.revoke(enrollment, reason=f"admin:{request.user.pk}"))
    modeladmin.message_user(request, _("%(count)d enrollment(s) refunded.") % {"count": revoked}, messages.SUCCESS)


@admin.register(CourseEnrollment)
class CourseEnrollmentAdmin(admin.ModelAdmin):
    """Administration interface for direct course enrollments."""

    list_display = ("buyer", "course", "status", "order_code", "paid_amount", "enrolled_at", "last_accessed_at")
    list_filter = ("status", "course__level")
    search_fields = ("buyer__username", "buyer__email", "course__title", "order_code")
    readonly_fields = ("enrolled_at", "order_code", "paid_amount", "payment_date", "last_accessed_at")
    actions = [revoke_enrollments]

    def get_queryset(self, request: HttpRequest) -> QuerySet:
        """Optimize queryset with related object prefetch."""
        return super().get_queryset(request).select_related("buyer", "course")


@admin.register(LevelEnrollment)
class LevelEnrollmentAdmin(admin.ModelAdmin):
    """Administration interface for level package enrollments."""

    list_display = ("buyer", "level", "status", "order_code", "paid_amount", "enrolled_at", "expires_at")
    list_filter = ("status", "level")
    search_fields = ("buyer__username", "buyer__email", "order_code")
    readonly_fields = ("enrolled_at", "order_code", "paid_amount", "payment_date", "last_accessed_at")
    actions = [revoke_enrollments]

    def get_queryset(self, request: HttpRequest) -> QuerySet:
        return super().get_queryset(request).select_related("buyer", "package")


# --- Payment Administration ---


@admin.action(description=_("Re-check selected orders with PayOS"))
def recheck_with_gateway(modeladmin, request: HttpRequest, queryset: QuerySet) -> None:
    reconciler = PaymentReconciler(gateway=get_gateway_client(), granter=EntitlementGranter())
    for order in queryset.select_related("buyer"):
        try:
            result = reconciler.refresh(order, Order.Channel.POLL)
        except PaymentError as exc:
            modeladmin.message_user(request, f"{order.order_code}: {exc.message}", messages.ERROR)
            continue
        modeladmin.message_user(request, f"{order.order_code}: {result.status}", messages.INFO)


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    """
    Read-only view of payment orders.

    Orders change state only through the reconciler, never by hand.
    """

    list_display = (
        "order_code",
        "buyer",
        "target_kind",
        "target_id",
        "amount",
        "status",
        "last_channel",
        "granted_at",
        "review_reason",
        "created_at",
    )
    list_filter = ("status", "target_kind", "last_channel", "review_reason")
    search_fields = ("order_code", "buyer__username", "buyer__email", "gateway_reference")
    date_hierarchy = "created_at"
    actions = [recheck_with_gateway]

    def get_readonly_fields(self, request: HttpRequest, obj=None):
        return [field.name for field in self.model._meta.fields]

    def has_add_permission(self, request: HttpRequest) -> bool:
        return False

    def get_queryset(self, request: HttpRequest) -> QuerySet:
        return super().get_queryset(request).select_related("buyer")
