"""
E-Learning Application Configuration

This module contains the Django application configuration for the E-Learning
marketplace core: course catalog, enrollments, payments, certificates and
notifications.

Author: LearnHub Development Team
Version: 1.0.0
"""

from typing import Optional

from django.apps import AppConfig


class ElearningConfig(AppConfig):
    """
    Configuration class for the E-Learning Django application.

    Attributes:
        default_auto_field: Default primary key field type for models
        name: Application name for Django registration
        verbose_name: Human-readable application name for admin interface
        payment_gateways: Provider adapters built once per process
            (see `elearning.payments.providers.gateways`)
    """

    default_auto_field: str = "django.db.models.BigAutoField"
    name: str = "elearning"
    verbose_name: str = "E-Learning System"
    payment_gateways: Optional[object] = None

    def ready(self) -> None:
        """
        Connect signal receivers and build the payment gateways.

        Building the gateways only reads settings; no network or database
        access happens here.
        """
        super().ready()
        from .certificates import signals  # noqa: F401
        from .payments.providers.gateways import PaymentGateways

        if self.payment_gateways is None:
            self.payment_gateways = PaymentGateways.from_settings()
