import hashlib
import hmac
from decimal import Decimal
from unittest import mock

import requests
from django.contrib.auth.models import AnonymousUser
from django.test import TestCase

from elearning.exceptions import (
    CorrelationMismatch,
    CourseNotFound,
    CourseNotPriced,
    PriceMismatch,
    ProviderUnavailable,
    RateUnavailable,
    Unauthenticated,
)
from elearning.payments.currency import CurrencyConverter
from elearning.payments.descriptors import Payer, ProviderState
from elearning.payments.models import Payment
from elearning.payments.providers.card import StripeCardProvider, StripeError
from elearning.payments.providers.regional import PaystackProvider

from elearning.tests.helpers import StaticRates, make_course, make_payment, make_user


def http_response(status_code=200, payload=None):
    response = mock.Mock(status_code=status_code, text=str(payload))
    response.json.return_value = payload if payload is not None else {}
    return response


class StripeCardProviderTests(TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.student = make_user()
        cls.course = make_course(price="100.00")
        cls.free_course = make_course(title="Intro", price=None)

    def setUp(self):
        self.stripe = mock.Mock()
        self.stripe.PaymentIntent.create.return_value = {"id": "pi_123", "client_secret": "pi_123_secret_abc"}
        self.provider = StripeCardProvider(
            secret_key="sk_test_123",
            publishable_key="pk_test_123",
            frontend_url="http://localhost:5173",
            client=self.stripe,
        )

    def test_create_intent_records_pending_payment(self):
        payer = Payer(full_name="Ada Obi", email="ada@example.com", country="NG")

        descriptor = self.provider.create_intent(self.student, self.course.pk, "100.00", "USD", payer)

        payment = Payment.objects.get(pk=descriptor.payment_id)
        self.assertEqual(descriptor.client_token, "pi_123_secret_abc")
        self.assertEqual(payment.status, Payment.Status.PENDING)
        self.assertEqual(payment.payment_method, Payment.Method.CARD)
        self.assertEqual(payment.amount, Decimal("100.00"))
        self.assertEqual(payment.settlement_currency, "USD")
        self.assertEqual(payment.stripe_payment_intent_id, "pi_123")
        self.assertEqual(payment.full_name, "Ada Obi")
        self.assertEqual(payment.country, "NG")

        kwargs = self.stripe.PaymentIntent.create.call_args.kwargs
        self.assertEqual(kwargs["amount"], 10000)
        self.assertEqual(kwargs["currency"], "usd")
        self.assertEqual(kwargs["api_key"], "sk_test_123")
        self.assertEqual(kwargs["metadata"]["payment_id"], str(payment.pk))
        self.assertEqual(kwargs["receipt_email"], "ada@example.com")

    def test_amount_is_read_from_the_course(self):
        with self.assertRaises(PriceMismatch):
            self.provider.create_intent(self.student, self.course.pk, "1.00", "USD")
        with self.assertRaises(PriceMismatch):
            self.provider.create_intent(self.student, self.course.pk, "100.00", "EUR")

        self.assertFalse(Payment.objects.exists())
        self.stripe.PaymentIntent.create.assert_not_called()

    def test_free_course_is_not_priced(self):
        with self.assertRaises(CourseNotPriced):
            self.provider.create_intent(self.student, self.free_course.pk, "0", "USD")
        self.assertFalse(Payment.objects.exists())

    def test_unknown_course(self):
        with self.assertRaises(CourseNotFound):
            self.provider.create_intent(self.student, 999999, "100.00", "USD")

    def test_anonymous_caller(self):
        with self.assertRaises(Unauthenticated):
            self.provider.create_intent(AnonymousUser(), self.course.pk, "100.00", "USD")

    def test_provider_error_fails_the_pending_row(self):
        self.stripe.PaymentIntent.create.side_effect = StripeError("network down")

        with self.assertRaises(ProviderUnavailable):
            self.provider.create_intent(self.student, self.course.pk, "100.00", "USD")

        payment = Payment.objects.get()
        self.assertEqual(payment.status, Payment.Status.FAILED)
        self.assertEqual(payment.failure_reason, "provider_unavailable")

    def test_missing_secret_key(self):
        provider = StripeCardProvider(secret_key="", client=self.stripe)
        with self.assertRaises(ProviderUnavailable):
            provider.create_intent(self.student, self.course.pk, "100.00", "USD")

    def test_checkout_session(self):
        self.stripe.checkout.Session.create.return_value = {
            "id": "cs_test_1",
            "url": "https://checkout.stripe.com/c/pay/cs_test_1",
        }

        descriptor = self.provider.create_checkout_session(self.student, self.course.pk, "100.00", "USD")

        payment = Payment.objects.get(pk=descriptor.payment_id)
        self.assertEqual(payment.stripe_session_id, "cs_test_1")
        self.assertEqual(descriptor.authorization_url, "https://checkout.stripe.com/c/pay/cs_test_1")
        kwargs = self.stripe.checkout.Session.create.call_args.kwargs
        self.assertEqual(kwargs["line_items"][0]["price_data"]["unit_amount"], 10000)
        self.assertIn("{CHECKOUT_SESSION_ID}", kwargs["success_url"])
        self.assertEqual(kwargs["client_reference_id"], str(payment.pk))

    # ---------- status ----------

    def _payment(self, **fields):
        return make_payment(self.student, self.course, **fields)

    def test_paid_checkout_session_succeeds(self):
        payment = self._payment(stripe_session_id="cs_1")
        self.stripe.checkout.Session.retrieve.return_value = {
            "id": "cs_1",
            "payment_status": "paid",
            "status": "complete",
            "payment_intent": "pi_9",
            "amount_total": 10000,
            "currency": "usd",
            "metadata": {"payment_id": str(payment.pk)},
        }

        status = self.provider.fetch_status(payment, "cs_1")

        self.assertEqual(status.state, ProviderState.SUCCEEDED)
        self.assertEqual(status.extra["payment_intent"], "pi_9")

    def test_expired_checkout_session_fails(self):
        payment = self._payment(stripe_session_id="cs_1")
        self.stripe.checkout.Session.retrieve.return_value = {
            "id": "cs_1",
            "payment_status": "unpaid",
            "status": "expired",
            "metadata": {"payment_id": str(payment.pk)},
        }

        self.assertEqual(self.provider.fetch_status(payment, "cs_1").state, ProviderState.FAILED)

    def test_open_checkout_session_is_pending(self):
        payment = self._payment(stripe_session_id="cs_1")
        self.stripe.checkout.Session.retrieve.return_value = {
            "id": "cs_1",
            "payment_status": "unpaid",
            "status": "open",
            "metadata": {"payment_id": str(payment.pk)},
        }

        self.assertEqual(self.provider.fetch_status(payment).state, ProviderState.PENDING)

    def test_session_of_another_payment_is_rejected(self):
        payment = self._payment(stripe_session_id="cs_other")
        self.stripe.checkout.Session.retrieve.return_value = {
            "id": "cs_other",
            "payment_status": "paid",
            "metadata": {"payment_id": str(payment.pk + 1)},
        }

        with self.assertRaises(CorrelationMismatch):
            self.provider.fetch_status(payment, "cs_other")

    def test_session_id_must_match_stored_one(self):
        payment = self._payment(stripe_session_id="cs_1")
        with self.assertRaises(CorrelationMismatch):
            self.provider.fetch_status(payment, "cs_2")
        self.stripe.checkout.Session.retrieve.assert_not_called()

    def test_succeeded_intent(self):
        payment = self._payment(stripe_payment_intent_id="pi_1")
        self.stripe.PaymentIntent.retrieve.return_value = {
            "id": "pi_1",
            "status": "succeeded",
            "amount_received": 10000,
            "currency": "usd",
            "metadata": {"payment_id": str(payment.pk)},
        }

        self.assertTrue(self.provider.fetch_status(payment, "pi_1").succeeded)

    def test_intent_with_wrong_amount_is_a_failure(self):
        payment = self._payment(stripe_payment_intent_id="pi_1")
        self.stripe.PaymentIntent.retrieve.return_value = {
            "id": "pi_1",
            "status": "succeeded",
            "amount_received": 100,
            "currency": "usd",
            "metadata": {"payment_id": str(payment.pk)},
        }

        status = self.provider.fetch_status(payment, "pi_1")
        self.assertEqual(status.state, ProviderState.FAILED)
        self.assertEqual(status.reason, "amount_mismatch")

    def test_declined_intent_can_still_be_retried(self):
        payment = self._payment(stripe_payment_intent_id="pi_1")
        self.stripe.PaymentIntent.retrieve.return_value = {
            "id": "pi_1",
            "status": "requires_payment_method",
            "last_payment_error": {"code": "card_declined", "message": "Your card was declined."},
            "metadata": {"payment_id": str(payment.pk)},
        }

        status = self.provider.fetch_status(payment, "pi_1")
        self.assertEqual(status.state, ProviderState.PENDING)
        self.assertEqual(status.extra["last_error"], "card_declined")

    def test_canceled_intent_fails(self):
        payment = self._payment(stripe_payment_intent_id="pi_1")
        self.stripe.PaymentIntent.retrieve.return_value = {
            "id": "pi_1",
            "status": "canceled",
            "cancellation_reason": "abandoned",
            "metadata": {"payment_id": str(payment.pk)},
        }

        status = self.provider.fetch_status(payment, "pi_1")
        self.assertEqual(status.state, ProviderState.FAILED)
        self.assertEqual(status.reason, "abandoned")

    def test_intent_without_payment_metadata_is_rejected(self):
        payment = self._payment()
        self.stripe.PaymentIntent.retrieve.return_value = {
            "id": "pi_foreign",
            "status": "succeeded",
            "amount_received": 10000,
            "currency": "usd",
            "metadata": {},
        }

        with self.assertRaises(CorrelationMismatch):
            self.provider.fetch_status(payment, "pi_foreign")

    def test_session_without_payment_metadata_is_rejected(self):
        payment = self._payment(stripe_session_id="cs_1")
        self.stripe.checkout.Session.retrieve.return_value = {
            "id": "cs_1",
            "payment_status": "paid",
            "amount_total": 10000,
            "currency": "usd",
            "metadata": {},
        }

        with self.assertRaises(CorrelationMismatch):
            self.provider.fetch_status(payment, "cs_1")

    def test_session_id_for_an_intent_payment_is_rejected(self):
        payment = self._payment(stripe_payment_intent_id="pi_1")

        with self.assertRaises(CorrelationMismatch):
            self.provider.fetch_status(payment, "cs_foreign")
        self.stripe.checkout.Session.retrieve.assert_not_called()

    def test_paid_session_with_wrong_amount_is_a_failure(self):
        payment = self._payment(stripe_session_id="cs_1")
        for amount_total, currency in ((100, "usd"), (10000, "eur"), (None, "usd")):
            self.stripe.checkout.Session.retrieve.return_value = {
                "id": "cs_1",
                "payment_status": "paid",
                "amount_total": amount_total,
                "currency": currency,
                "metadata": {"payment_id": str(payment.pk)},
            }

            status = self.provider.fetch_status(payment, "cs_1")
            self.assertEqual(status.state, ProviderState.FAILED)
            self.assertEqual(status.reason, "amount_mismatch")

    def test_timeout_is_applied_to_the_stripe_http_client(self):
        with mock.patch("elearning.payments.providers.card.RequestsClient") as requests_client, mock.patch(
            "elearning.payments.providers.card.stripe"
        ) as stripe_module:
            provider = StripeCardProvider(secret_key="sk_test_123", timeout=12)

        requests_client.assert_called_once_with(timeout=12)
        self.assertIs(stripe_module.default_http_client, requests_client.return_value)
        self.assertIs(provider.client, stripe_module)

    def test_injected_client_leaves_the_global_http_client_alone(self):
        with mock.patch("elearning.payments.providers.card.RequestsClient") as requests_client:
            StripeCardProvider(secret_key="sk_test_123", client=self.stripe)

        requests_client.assert_not_called()

    def test_processing_intent_is_pending(self):
        payment = self._payment(stripe_payment_intent_id="pi_1")
        self.stripe.PaymentIntent.retrieve.return_value = {
            "id": "pi_1",
            "status": "processing",
            "metadata": {"payment_id": str(payment.pk)},
        }

        self.assertEqual(self.provider.fetch_status(payment).state, ProviderState.PENDING)

    def test_lookup_error_is_provider_unavailable(self):
        payment = self._payment(stripe_payment_intent_id="pi_1")
        self.stripe.PaymentIntent.retrieve.side_effect = StripeError("timeout")

        with self.assertRaises(ProviderUnavailable):
            self.provider.fetch_status(payment)

    def test_payment_without_reference_is_pending(self):
        payment = self._payment()
        self.assertEqual(self.provider.fetch_status(payment).state, ProviderState.PENDING)


class PaystackProviderTests(TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.student = make_user()
        cls.course = make_course(price="100.00", currency="USD")

    def setUp(self):
        self.session = mock.Mock()
        self.rates = StaticRates()
        self.provider = PaystackProvider(
            secret_key="sk_test_paystack",
            public_key="pk_test_paystack",
            converter=CurrencyConverter(self.rates),
            callback_url="http://localhost:5173/payments/regional/callback",
            session=self.session,
        )

    def _initialized(self):
        return http_response(
            payload={
                "status": True,
                "message": "Authorization URL created",
                "data": {
                    "authorization_url": "https://checkout.paystack.com/abc",
                    "access_code": "abc",
                    "reference": "ignored",
                },
            }
        )

    def test_create_intent_converts_to_naira(self):
        self.session.request.return_value = self._initialized()

        descriptor = self.provider.create_intent(
            self.student, self.course.pk, "100.00", "USD", Payer(email="ada@example.com")
        )

        payment = Payment.objects.get(pk=descriptor.payment_id)
        self.assertEqual(descriptor.reference, f"PAY-{payment.pk}")
        self.assertEqual(descriptor.authorization_url, "https://checkout.paystack.com/abc")
        self.assertEqual(payment.paystack_reference, f"PAY-{payment.pk}")
        self.assertEqual(payment.paystack_access_code, "abc")
        self.assertEqual(payment.amount, Decimal("100.00"))
        self.assertEqual(payment.currency, "USD")
        self.assertEqual(payment.settlement_amount, Decimal("160000.00"))
        self.assertEqual(payment.settlement_currency, "NGN")
        self.assertEqual(payment.exchange_rate, Decimal("1600"))
        self.assertTrue(descriptor.quote.converted)

        method, url = self.session.request.call_args.args
        body = self.session.request.call_args.kwargs["json"]
        self.assertEqual((method, url), ("POST", "https://api.paystack.co/transaction/initialize"))
        self.assertEqual(body["amount"], 16000000)
        self.assertEqual(body["currency"], "NGN")
        self.assertEqual(body["reference"], f"PAY-{payment.pk}")
        self.assertEqual(body["email"], "ada@example.com")

    def test_naira_course_is_not_converted(self):
        course = make_course(title="Lagos Bootcamp", price="50000.00", currency="NGN")
        self.session.request.return_value = self._initialized()

        descriptor = self.provider.create_intent(self.student, course.pk, "50000.00", "NGN")

        payment = Payment.objects.get(pk=descriptor.payment_id)
        self.assertIsNone(payment.exchange_rate)
        self.assertEqual(payment.settlement_amount, Decimal("50000.00"))
        self.assertEqual(self.rates.calls, 0)

    def test_rate_unavailable_creates_no_payment(self):
        rate_client = mock.Mock()
        rate_client.get_rate.side_effect = RateUnavailable("USD", "NGN")
        self.provider.converter = CurrencyConverter(rate_client)

        with self.assertRaises(RateUnavailable):
            self.provider.create_intent(self.student, self.course.pk, "100.00", "USD")

        self.assertFalse(Payment.objects.exists())
        self.session.request.assert_not_called()

    def test_initialize_rejected(self):
        self.session.request.return_value = http_response(400, {"status": False, "message": "Invalid key"})

        with self.assertRaises(ProviderUnavailable):
            self.provider.create_intent(self.student, self.course.pk, "100.00", "USD")

        self.assertEqual(Payment.objects.get().status, Payment.Status.FAILED)

    # ---------- status ----------

    def _payment(self):
        payment = make_payment(
            self.student,
            self.course,
            method=Payment.Method.REGIONAL,
            settlement_amount=Decimal("160000.00"),
            settlement_currency="NGN",
            exchange_rate=Decimal("1600"),
        )
        payment.paystack_reference = f"PAY-{payment.pk}"
        payment.save()
        return payment

    def _verified(self, status, amount=16000000, currency="NGN"):
        return http_response(
            payload={
                "status": True,
                "data": {"status": status, "amount": amount, "currency": currency, "gateway_response": "Declined"},
            }
        )

    def test_success(self):
        payment = self._payment()
        self.session.request.return_value = self._verified("success")

        status = self.provider.fetch_status(payment, payment.paystack_reference)

        self.assertEqual(status.state, ProviderState.SUCCEEDED)
        self.assertEqual(
            self.session.request.call_args.args,
            ("GET", f"https://api.paystack.co/transaction/verify/PAY-{payment.pk}"),
        )

    def test_success_with_wrong_amount_fails(self):
        payment = self._payment()
        self.session.request.return_value = self._verified("success", amount=10000)

        status = self.provider.fetch_status(payment)
        self.assertEqual(status.state, ProviderState.FAILED)
        self.assertEqual(status.reason, "amount_mismatch")

    def test_success_without_amount_or_currency_fails(self):
        payment = self._payment()
        for amount, currency in ((None, "NGN"), (16000000, None)):
            self.session.request.return_value = self._verified("success", amount=amount, currency=currency)

            status = self.provider.fetch_status(payment)
            self.assertEqual(status.state, ProviderState.FAILED)
            self.assertEqual(status.reason, "amount_mismatch")

    def test_failed(self):
        payment = self._payment()
        self.session.request.return_value = self._verified("failed")

        status = self.provider.fetch_status(payment)
        self.assertEqual(status.state, ProviderState.FAILED)
        self.assertEqual(status.reason, "Declined")

    def test_abandoned_is_pending(self):
        payment = self._payment()
        for raw in ("abandoned", "ongoing", "pending", "processing"):
            self.session.request.return_value = self._verified(raw)
            self.assertEqual(self.provider.fetch_status(payment).state, ProviderState.PENDING)

    def test_unknown_reference_is_pending(self):
        payment = self._payment()
        self.session.request.return_value = http_response(
            400, {"status": False, "message": "Transaction reference not found"}
        )

        self.assertEqual(self.provider.fetch_status(payment).state, ProviderState.PENDING)

    def test_timeout_is_provider_unavailable(self):
        payment = self._payment()
        self.session.request.side_effect = requests.exceptions.Timeout()

        with self.assertRaises(ProviderUnavailable):
            self.provider.fetch_status(payment)

    def test_server_error_is_provider_unavailable(self):
        payment = self._payment()
        self.session.request.return_value = http_response(502, {})

        with self.assertRaises(ProviderUnavailable):
            self.provider.fetch_status(payment)

    def test_reference_of_another_payment(self):
        payment = self._payment()
        with self.assertRaises(CorrelationMismatch):
            self.provider.fetch_status(payment, "PAY-999999")
        self.session.request.assert_not_called()

    def test_webhook_signature(self):
        body = b'{"event":"charge.success"}'
        signature = hmac.new(b"sk_test_paystack", body, hashlib.sha512).hexdigest()

        self.assertTrue(self.provider.is_valid_signature(body, signature))
        self.assertFalse(self.provider.is_valid_signature(body, "0" * 128))
        self.assertFalse(self.provider.is_valid_signature(body, ""))

    def test_payment_id_from_reference(self):
        self.assertEqual(PaystackProvider.payment_id_from_reference("PAY-42"), 42)
        self.assertIsNone(PaystackProvider.payment_id_from_reference("T123"))
        self.assertIsNone(PaystackProvider.payment_id_from_reference("PAY-x"))
