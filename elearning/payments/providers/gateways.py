"""
Payment Gateway Factory

Builds the provider adapters and the currency converter once per process from
Django settings. The instance lives on the `elearning` app config and is
passed to services explicitly; nothing is cached at module scope.

    >>> gateways = get_payment_gateways()
    >>> gateways.for_method("regional").create_intent(...)

Tests swap the whole set with `use_payment_gateways(fake_gateways)`.

Author: LearnHub Development Team
Version: 1.0.0
"""

from contextlib import contextmanager
from typing import Dict, Optional

from django.apps import apps
from django.conf import settings

from ..currency import CurrencyConverter, ExchangeRateClient
from ..models import Payment
from .base import PaymentProvider
from .card import StripeCardProvider
from .regional import PaystackProvider

APP_LABEL = "elearning"


class PaymentGateways:
    def __init__(
        self,
        card: PaymentProvider,
        regional: PaymentProvider,
        converter: Optional[CurrencyConverter] = None,
    ) -> None:
        self.card = card
        self.regional = regional
        self.converter = converter

    @classmethod
    def from_settings(cls) -> "PaymentGateways":
        converter = CurrencyConverter(ExchangeRateClient.from_settings())
        timeout = settings.PAYMENT_PROVIDER_TIMEOUT_SECONDS
        frontend_url = settings.FRONTEND_URL.rstrip("/")

        card = StripeCardProvider(
            secret_key=settings.STRIPE_SECRET_KEY,
            publishable_key=settings.STRIPE_PUBLISHABLE_KEY,
            frontend_url=frontend_url,
            timeout=timeout,
        )
        regional = PaystackProvider(
            secret_key=settings.PAYSTACK_SECRET_KEY,
            public_key=settings.PAYSTACK_PUBLIC_KEY,
            converter=converter,
            base_url=settings.PAYSTACK_API_BASE_URL,
            settlement_currency=settings.PAYSTACK_SETTLEMENT_CURRENCY,
            callback_url=f"{frontend_url}/payments/regional/callback",
            timeout=timeout,
        )
        return cls(card=card, regional=regional, converter=converter)

    def for_method(self, method: str) -> PaymentProvider:
        if method == Payment.Method.CARD:
            return self.card
        if method == Payment.Method.REGIONAL:
            return self.regional
        raise ValueError(f"Unknown payment method: {method}")

    def for_payment(self, payment: Payment) -> PaymentProvider:
        return self.for_method(payment.payment_method)

    def public_config(self) -> Dict[str, str]:
        """Publishable keys only. Secret keys never leave the server."""
        return {
            "cardProviderPublicKey": self.card.public_key(),
            "regionalProviderPublicKey": self.regional.public_key(),
        }


def get_payment_gateways() -> PaymentGateways:
    config = apps.get_app_config(APP_LABEL)
    gateways = getattr(config, "payment_gateways", None)
    if gateways is None:
        gateways = PaymentGateways.from_settings()
        config.payment_gateways = gateways
    return gateways


@contextmanager
def use_payment_gateways(gateways: PaymentGateways):
    """Temporarily replace the process-wide gateways (tests, scripts)."""
    config = apps.get_app_config(APP_LABEL)
    previous = getattr(config, "payment_gateways", None)
    config.payment_gateways = gateways
    try:
        yield gateways
    finally:
        config.payment_gateways = previous
