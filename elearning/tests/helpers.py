"""
Shared fixtures for the enrollment core tests: users, courses and a fake
payment provider driven by the test.
"""

from decimal import Decimal
from typing import Optional

from django.contrib.auth.models import User

from elearning.courses.models import Course
from elearning.payments.descriptors import (
    IntentDescriptor,
    ProviderState,
    ProviderStatus,
    Quote,
)
from elearning.payments.models import Payment
from elearning.payments.providers.base import PaymentProvider
from elearning.payments.providers.gateways import PaymentGateways


def make_user(username: str = "student", **extra) -> User:
    return User.objects.create_user(
        username=username, email=f"{username}@example.com", password="testPassword", **extra
    )


def make_course(title: str = "Data Science 101", price: Optional[str] = "100.00", currency: str = "USD") -> Course:
    return Course.objects.create(
        title=title,
        price=Decimal(price) if price is not None else None,
        currency=currency,
    )


def make_payment(student, course, method: str = Payment.Method.CARD, **fields) -> Payment:
    defaults = {
        "amount": course.price,
        "currency": course.currency,
        "settlement_amount": course.price,
        "settlement_currency": course.currency,
    }
    defaults.update(fields)
    return Payment.objects.create(student=student, course=course, payment_method=method, **defaults)


class FakeProvider(PaymentProvider):
    """
    Provider whose answers are set by the test.

    `status` is returned by fetch_status; `error` is raised instead when set.
    """

    def __init__(self, method: str = Payment.Method.CARD, status: Optional[ProviderState] = None, error=None):
        super().__init__()
        self.name = f"fake-{method}"
        self.method = method
        self.state = status or ProviderState.PENDING
        self.error = error
        self.open_error = None
        self.fetch_calls = []

    def public_key(self) -> str:
        return f"pk_{self.method}"

    def quote(self, amount, currency) -> Quote:
        return Quote(amount, currency, amount, currency)

    def open_transaction(self, payment, course, quote, payer) -> IntentDescriptor:
        if self.open_error is not None:
            raise self.open_error
        reference = f"ref_{payment.pk}"
        return IntentDescriptor(
            payment_id=payment.pk,
            provider=self.name,
            reference=reference,
            client_token=f"secret_{payment.pk}",
            quote=quote,
        )

    def fetch_status(self, payment, correlation_id=None) -> ProviderStatus:
        self.fetch_calls.append((payment.pk, correlation_id))
        if self.error is not None:
            raise self.error
        reason = "declined" if self.state is ProviderState.FAILED else ""
        return ProviderStatus(self.state, correlation_id or f"ref_{payment.pk}", raw_status=self.state.value, reason=reason)


def fake_gateways(card_status=None, regional_status=None) -> PaymentGateways:
    return PaymentGateways(
        card=FakeProvider(Payment.Method.CARD, card_status),
        regional=FakeProvider(Payment.Method.REGIONAL, regional_status),
    )


class StaticRates:
    """Exchange-rate client stand-in with a fixed rate table."""

    def __init__(self, rates=None):
        self.rates = rates if rates is not None else {("USD", "NGN"): Decimal("1600")}
        self.calls = 0

    def get_rate(self, from_currency: str, to_currency: str) -> Decimal:
        self.calls += 1
        return self.rates[(from_currency, to_currency)]
