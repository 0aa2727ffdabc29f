"""
Card-Network Provider (Stripe)

Two ways of collecting a card payment:

- Payment intent: returns the intent's client secret, used by Stripe.js to
  render the card form. Settlement amount/currency equal the catalog price.
- Checkout session: returns the URL of Stripe's hosted checkout page.

Both attach `metadata.payment_id` so webhooks and verification can prove the
Stripe object belongs to the local Payment.

The secret key is passed per call (`api_key=`) instead of being assigned to the
module-level `stripe.api_key`; the provider instance is built once per process
by the gateway factory.

Author: LearnHub Development Team
Version: 1.0.0
"""

import logging
from decimal import Decimal
from typing import Any, Optional

import stripe

from ...courses.models import Course
from ...exceptions import CorrelationMismatch, ProviderUnavailable
from ..descriptors import IntentDescriptor, Payer, ProviderState, ProviderStatus, Quote, to_minor_units
from ..models import Payment
from .base import PaymentProvider, provider_field

logger = logging.getLogger(__name__)

StripeError = getattr(stripe, "StripeError", None) or stripe.error.StripeError
InvalidRequestError = getattr(stripe, "InvalidRequestError", None) or stripe.error.InvalidRequestError
RequestsClient = getattr(stripe, "RequestsClient", None) or stripe.http_client.RequestsClient


class StripeCardProvider(PaymentProvider):
    """
    Stripe adapter.

    Example:
        >>> provider = StripeCardProvider(secret_key="sk_test_...", publishable_key="pk_test_...")
        >>> descriptor = provider.create_intent(user, course_id=3, amount="100.00", currency="USD")
        >>> descriptor.client_token
        'pi_..._secret_...'
    """

    name = "stripe"
    method = Payment.Method.CARD

    SESSION_PREFIX = "cs_"
    INTENT_PREFIX = "pi_"

    def __init__(
        self,
        secret_key: str,
        publishable_key: str = "",
        frontend_url: str = "",
        timeout: int = 30,
        client: Any = None,
        records=None,
    ) -> None:
        super().__init__(records=records)
        self.secret_key = secret_key
        self.publishable_key = publishable_key
        self.frontend_url = (frontend_url or "").rstrip("/")
        self.timeout = timeout
        if client is None:
            # The SDK takes no per-request timeout; its shared HTTP client does.
            stripe.default_http_client = RequestsClient(timeout=timeout)
        self.client = client or stripe

    def public_key(self) -> str:
        return self.publishable_key

    def quote(self, amount: Decimal, currency: str) -> Quote:
        return Quote(
            amount=amount,
            currency=currency.upper(),
            settlement_amount=amount,
            settlement_currency=currency.upper(),
        )

    def _require_key(self) -> None:
        if not self.secret_key:
            raise ProviderUnavailable("Card payments are not configured", provider=self.name)

    def _unavailable(self, exc: Exception, action: str) -> ProviderUnavailable:
        logger.error("Stripe %s failed: %s", action, exc)
        return ProviderUnavailable(
            f"Card provider error during {action}",
            provider=self.name,
            details={"reason": getattr(exc, "user_message", None) or str(exc)},
        )

    # ---------- payment intent ----------

    def open_transaction(self, payment: Payment, course: Course, quote: Quote, payer: Payer) -> IntentDescriptor:
        self._require_key()
        params = {
            "amount": to_minor_units(quote.settlement_amount),
            "currency": quote.settlement_currency.lower(),
            "automatic_payment_methods": {"enabled": True},
            "description": f"Enrollment: {course.title}",
            "metadata": dict(self.metadata_for(payment)),
        }
        if payer.email:
            params["receipt_email"] = payer.email

        try:
            intent = self.client.PaymentIntent.create(
                api_key=self.secret_key,
                idempotency_key=f"payment-{payment.pk}-intent",
                **params,
            )
        except StripeError as exc:
            raise self._unavailable(exc, "payment intent creation")

        intent_id = provider_field(intent, "id")
        self.records.attach_provider_refs(payment, stripe_payment_intent_id=intent_id)
        logger.info("Stripe payment intent %s opened for payment %s", intent_id, payment.pk)

        return IntentDescriptor(
            payment_id=payment.pk,
            provider=self.name,
            reference=intent_id,
            client_token=provider_field(intent, "client_secret", ""),
            quote=quote,
        )

    # ---------- checkout session ----------

    def create_checkout_session(self, user, course_id, amount=None, currency=None, payer=None) -> IntentDescriptor:
        return self._create(user, course_id, amount, currency, payer, opener=self._open_checkout_session)

    def _open_checkout_session(self, payment: Payment, course: Course, quote: Quote, payer: Payer) -> IntentDescriptor:
        self._require_key()
        metadata = dict(self.metadata_for(payment))
        params = {
            "mode": "payment",
            "line_items": [
                {
                    "price_data": {
                        "currency": quote.settlement_currency.lower(),
                        "unit_amount": to_minor_units(quote.settlement_amount),
                        "product_data": {"name": course.title},
                    },
                    "quantity": 1,
                }
            ],
            "client_reference_id": str(payment.pk),
            "metadata": metadata,
            "payment_intent_data": {"metadata": metadata},
            "success_url": (
                f"{self.frontend_url}/payments/checkout/success"
                f"?session_id={{CHECKOUT_SESSION_ID}}&payment={payment.pk}"
            ),
            "cancel_url": f"{self.frontend_url}/payments/cancel?course={course.pk}&payment={payment.pk}",
        }
        if payer.email:
            params["customer_email"] = payer.email

        try:
            session = self.client.checkout.Session.create(
                api_key=self.secret_key,
                idempotency_key=f"payment-{payment.pk}-checkout",
                **params,
            )
        except StripeError as exc:
            raise self._unavailable(exc, "checkout session creation")

        session_id = provider_field(session, "id")
        self.records.attach_provider_refs(payment, stripe_session_id=session_id)
        logger.info("Stripe checkout session %s opened for payment %s", session_id, payment.pk)

        return IntentDescriptor(
            payment_id=payment.pk,
            provider=self.name,
            reference=session_id,
            client_token=provider_field(session, "url", ""),
            authorization_url=provider_field(session, "url", ""),
            quote=quote,
        )

    # ---------- verification ----------

    def fetch_status(self, payment: Payment, correlation_id: Optional[str] = None) -> ProviderStatus:
        correlation_id = correlation_id or payment.stripe_session_id or payment.stripe_payment_intent_id
        if not correlation_id:
            return ProviderStatus(ProviderState.PENDING, "", raw_status="missing_reference")

        self._require_key()
        if correlation_id.startswith(self.SESSION_PREFIX):
            return self._session_status(payment, correlation_id)
        return self._intent_status(payment, correlation_id)

    def _retrieve(self, resource, object_id: str, payment: Payment):
        try:
            return resource.retrieve(object_id, api_key=self.secret_key)
        except InvalidRequestError as exc:
            logger.warning("Stripe object %s not found for payment %s: %s", object_id, payment.pk, exc)
            raise CorrelationMismatch(details={"payment_id": payment.pk, "reference": object_id})
        except StripeError as exc:
            raise self._unavailable(exc, "status lookup")

    def _check_owner(self, obj, payment: Payment, object_id: str) -> None:
        """Only objects opened for this payment carry its id in `metadata.payment_id`."""
        metadata = provider_field(obj, "metadata") or {}
        owner = provider_field(metadata, "payment_id")
        if owner is None or str(owner) != str(payment.pk):
            logger.warning(
                "Stripe object %s belongs to payment %s, not %s", object_id, owner, payment.pk
            )
            raise CorrelationMismatch(details={"payment_id": payment.pk, "reference": object_id})

    def _settled_as_charged(self, payment: Payment, object_id: str, amount, currency) -> bool:
        expected = to_minor_units(payment.charged_amount)
        currency = (currency or "").upper()
        if amount is not None and int(amount) == expected and currency == payment.charged_currency.upper():
            return True
        logger.error(
            "Stripe %s settled %s %s, expected %s %s",
            object_id,
            amount,
            currency,
            expected,
            payment.charged_currency,
        )
        return False

    def _session_status(self, payment: Payment, session_id: str) -> ProviderStatus:
        if payment.stripe_session_id != session_id:
            raise CorrelationMismatch(details={"payment_id": payment.pk, "reference": session_id})

        session = self._retrieve(self.client.checkout.Session, session_id, payment)
        self._check_owner(session, payment, session_id)

        payment_status = provider_field(session, "payment_status", "")
        session_status = provider_field(session, "status", "")
        extra = {"session_id": session_id}
        payment_intent = provider_field(session, "payment_intent")
        if isinstance(payment_intent, str):
            extra["payment_intent"] = payment_intent
        elif payment_intent:
            extra["payment_intent"] = provider_field(payment_intent, "id")

        if payment_status == "paid":
            amount = provider_field(session, "amount_total")
            if not self._settled_as_charged(payment, session_id, amount, provider_field(session, "currency")):
                return ProviderStatus(
                    ProviderState.FAILED, session_id, raw_status=payment_status, reason="amount_mismatch", extra=extra
                )
            return ProviderStatus(ProviderState.SUCCEEDED, session_id, raw_status=payment_status, extra=extra)
        if session_status == "expired":
            return ProviderStatus(
                ProviderState.FAILED, session_id, raw_status=session_status, reason="checkout_expired", extra=extra
            )
        return ProviderStatus(
            ProviderState.PENDING, session_id, raw_status=payment_status or session_status, extra=extra
        )

    def _intent_status(self, payment: Payment, intent_id: str) -> ProviderStatus:
        if payment.stripe_payment_intent_id and payment.stripe_payment_intent_id != intent_id:
            raise CorrelationMismatch(details={"payment_id": payment.pk, "reference": intent_id})

        intent = self._retrieve(self.client.PaymentIntent, intent_id, payment)
        self._check_owner(intent, payment, intent_id)

        status = provider_field(intent, "status", "")
        extra = {"payment_intent": intent_id}

        if status == "succeeded":
            received = provider_field(intent, "amount_received") or provider_field(intent, "amount")
            if not self._settled_as_charged(payment, intent_id, received, provider_field(intent, "currency")):
                return ProviderStatus(
                    ProviderState.FAILED, intent_id, raw_status=status, reason="amount_mismatch", extra=extra
                )
            return ProviderStatus(ProviderState.SUCCEEDED, intent_id, raw_status=status, extra=extra)

        if status == "canceled":
            reason = provider_field(intent, "cancellation_reason") or "canceled"
            return ProviderStatus(ProviderState.FAILED, intent_id, raw_status=status, reason=reason, extra=extra)

        # A declined card leaves the intent in requires_payment_method; the
        # customer may still retry it in the same form.
        last_error = provider_field(intent, "last_payment_error")
        if last_error:
            extra["last_error"] = provider_field(last_error, "code") or provider_field(last_error, "message")
        return ProviderStatus(ProviderState.PENDING, intent_id, raw_status=status, extra=extra)
