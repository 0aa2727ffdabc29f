"""
E-Learning Application URL Configuration

URL routing of the course marketplace enrollment core. Every route below is
mounted under /api/elearning/.

URL Structure:
- token/: JWT token management (session token used by every endpoint)
- payments/: Provider config, intents, verification, provider webhooks
- enrollments/: Free/physical enrollment, intents, staff transitions
- certificates/: Certificate requests and staff review
- notifications/: Notification event log of the current user

Author: LearnHub Development Team
Version: 1.0.0
"""

from typing import List

from django.urls import URLPattern, path
from rest_framework_simplejwt.views import (
    TokenObtainPairView,
    TokenRefreshView,
    TokenVerifyView,
)

from .certificates import views as certificate_views
from .enrollments import views as enrollment_views
from .notifications import views as notification_views
from .payments import views as payment_views
from .payments import webhooks as payment_webhooks

app_name = "elearning"

# --- Authentication and Token Management ---
token_patterns: List[URLPattern] = [
    path("token/", TokenObtainPairView.as_view(), name="token_obtain_pair"),
    path("token/refresh/", TokenRefreshView.as_view(), name="token_refresh"),
    path("token/verify/", TokenVerifyView.as_view(), name="token_verify"),
]

# --- Payments ---
payment_patterns: List[URLPattern] = [
    path("payments/config/", payment_views.PaymentConfigView.as_view(), name="payment-config"),
    path(
        "payments/card/intent/",
        payment_views.CreateCardPaymentIntentView.as_view(),
        name="card-payment-intent",
    ),
    path(
        "payments/card/checkout-session/",
        payment_views.CreateCardCheckoutSessionView.as_view(),
        name="card-checkout-session",
    ),
    path("payments/regional/", payment_views.CreateRegionalPaymentView.as_view(), name="regional-payment"),
    path("payments/verify/", payment_views.VerifyPaymentView.as_view(), name="verify-payment"),
    path("payments/mine/", payment_views.MyPaymentsView.as_view(), name="my-payments"),
    path(
        "payments/webhooks/regional/",
        payment_webhooks.RegionalWebhookView.as_view(),
        name="regional-webhook",
    ),
]

# --- Enrollments ---
enrollment_patterns: List[URLPattern] = [
    path("enrollments/free/", enrollment_views.FreeEnrollmentView.as_view(), name="enroll-free"),
    path("enrollments/physical/", enrollment_views.PhysicalEnrollmentView.as_view(), name="enroll-physical"),
    path("enrollments/mine/", enrollment_views.MyEnrollmentsView.as_view(), name="my-enrollments"),
    path("enrollments/intents/", enrollment_views.EnrollmentIntentView.as_view(), name="enrollment-intent"),
    path(
        "enrollments/intents/consume/",
        enrollment_views.ConsumeEnrollmentIntentView.as_view(),
        name="enrollment-intent-consume",
    ),
    path(
        "enrollments/<int:enrollment_id>/approve/",
        enrollment_views.ApproveEnrollmentView.as_view(),
        name="enrollment-approve",
    ),
    path(
        "enrollments/<int:enrollment_id>/drop/",
        enrollment_views.DropEnrollmentView.as_view(),
        name="enrollment-drop",
    ),
    path(
        "enrollments/<int:enrollment_id>/progress/",
        enrollment_views.EnrollmentProgressView.as_view(),
        name="enrollment-progress",
    ),
]

# --- Certificates ---
certificate_patterns: List[URLPattern] = [
    path("certificates/mine/", certificate_views.MyCertificatesView.as_view(), name="my-certificates"),
    path(
        "certificates/<int:certificate_id>/approve/",
        certificate_views.ApproveCertificateView.as_view(),
        name="certificate-approve",
    ),
    path(
        "certificates/<int:certificate_id>/reject/",
        certificate_views.RejectCertificateView.as_view(),
        name="certificate-reject",
    ),
]

# --- Notifications ---
notification_patterns: List[URLPattern] = [
    path("notifications/", notification_views.NotificationListView.as_view(), name="notifications"),
    path(
        "notifications/unread-count/",
        notification_views.UnreadCountView.as_view(),
        name="notifications-unread-count",
    ),
    path(
        "notifications/<int:event_id>/read/",
        notification_views.MarkNotificationReadView.as_view(),
        name="notification-read",
    ),
]

urlpatterns: List[URLPattern] = (
    token_patterns
    + payment_patterns
    + enrollment_patterns
    + certificate_patterns
    + notification_patterns
)
