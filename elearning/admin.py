"""
E-Learning Application Django Admin Configuration

Admin interface for the enrollment/payment core. Administrative state
changes (approving a physical enrollment, dropping an enrollment, reviewing
certificates) go through admin actions that call the same services as the
API, so the lifecycle rules are enforced here too. Payments are read-only:
only the verification service completes or fails them.

Sections:
- Catalog: Courses
- Enrollments: Enrollments and pending enrollment intents
- Payments: Payment records (read-only)
- Certificates: Certificate requests with review actions
- Notifications: Notification event log

Author: LearnHub Development Team
Version: 1.0.0
"""

from django.contrib import admin, messages
from django.db.models import QuerySet
from django.http import HttpRequest
from django.utils.translation import gettext_lazy as _

from .certificates.services import CertificateAwarder
from .enrollments.services import EnrollmentStateManager
from .exceptions import EnrollmentFlowError
from .models import (
    CertificateRequest,
    Course,
    Enrollment,
    EnrollmentIntent,
    NotificationEvent,
    Payment,
)


def _apply(modeladmin, request: HttpRequest, queryset: QuerySet, operation, label: str) -> None:
    done, failed = 0, 0
    for obj in queryset:
        try:
            operation(obj)
            done += 1
        except EnrollmentFlowError as exc:
            failed += 1
            modeladmin.message_user(request, f"#{obj.pk}: {exc.message}", level=messages.WARNING)
    if done:
        modeladmin.message_user(request, f"{label}: {done}", level=messages.SUCCESS)
    if failed and not done:
        modeladmin.message_user(request, f"{label}: nothing changed", level=messages.ERROR)


# --- Catalog ---


@admin.register(Course)
class CourseAdmin(admin.ModelAdmin):
    list_display = ("title", "price", "currency", "created_at")
    search_fields = ("title",)


# --- Enrollments ---


@admin.register(Enrollment)
class EnrollmentAdmin(admin.ModelAdmin):
    list_display = ("id", "student", "course", "status", "payment_verified", "progress", "enrolled_at")
    list_filter = ("status", "payment_verified")
    search_fields = ("student__username", "student__email", "course__title")
    readonly_fields = ("status", "payment_verified", "progress", "enrolled_at", "completed_at", "updated_at")
    actions = ["approve_enrollments", "drop_enrollments"]

    def get_queryset(self, request: HttpRequest) -> QuerySet:
        return super().get_queryset(request).select_related("student", "course")

    @admin.action(description=_("Approve selected pending enrollments"))
    def approve_enrollments(self, request: HttpRequest, queryset: QuerySet) -> None:
        manager = EnrollmentStateManager()
        _apply(self, request, queryset, lambda e: manager.approve(e, actor=request.user), "Approved")

    @admin.action(description=_("Drop selected enrollments"))
    def drop_enrollments(self, request: HttpRequest, queryset: QuerySet) -> None:
        manager = EnrollmentStateManager()
        _apply(self, request, queryset, lambda e: manager.drop(e, actor=request.user), "Dropped")


@admin.register(EnrollmentIntent)
class EnrollmentIntentAdmin(admin.ModelAdmin):
    list_display = ("student", "course", "kind", "created_at", "expires_at")
    list_filter = ("kind",)


# --- Payments ---


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "student",
        "course",
        "payment_method",
        "amount",
        "currency",
        "settlement_amount",
        "settlement_currency",
        "status",
        "created_at",
    )
    list_filter = ("status", "payment_method", "currency")
    search_fields = (
        "student__email",
        "email",
        "full_name",
        "paystack_reference",
        "stripe_payment_intent_id",
        "stripe_session_id",
    )

    def get_queryset(self, request: HttpRequest) -> QuerySet:
        return super().get_queryset(request).select_related("student", "course", "enrollment")

    def has_add_permission(self, request: HttpRequest) -> bool:
        return False

    def has_change_permission(self, request: HttpRequest, obj=None) -> bool:
        return False


# --- Certificates ---


@admin.register(CertificateRequest)
class CertificateRequestAdmin(admin.ModelAdmin):
    list_display = ("id", "student", "course", "status", "requested_at", "approved_at", "approved_by")
    list_filter = ("status",)
    readonly_fields = ("status", "requested_at", "approved_at", "approved_by")
    actions = ["approve_certificates", "reject_certificates"]

    @admin.action(description=_("Approve selected certificate requests"))
    def approve_certificates(self, request: HttpRequest, queryset: QuerySet) -> None:
        awarder = CertificateAwarder()
        _apply(self, request, queryset, lambda c: awarder.approve(c, reviewer=request.user), "Approved")

    @admin.action(description=_("Reject selected certificate requests"))
    def reject_certificates(self, request: HttpRequest, queryset: QuerySet) -> None:
        awarder = CertificateAwarder()
        _apply(self, request, queryset, lambda c: awarder.reject(c, reviewer=request.user), "Rejected")


# --- Notifications ---


@admin.register(NotificationEvent)
class NotificationEventAdmin(admin.ModelAdmin):
    list_display = ("id", "topic", "recipient", "title", "created_at", "read_at")
    list_filter = ("topic",)
    search_fields = ("recipient__email", "title")
