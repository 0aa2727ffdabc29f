import hashlib
import hmac
import json
from types import SimpleNamespace
from unittest import mock

from django.test import TestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from core.stripe_integration import signals as stripe_signals
from elearning.enrollments.models import Enrollment
from elearning.exceptions import PaymentNotFound
from elearning.payments.currency import CurrencyConverter
from elearning.payments.models import Payment
from elearning.payments.providers.gateways import PaymentGateways, use_payment_gateways
from elearning.payments.providers.regional import PaystackProvider

from elearning.tests.helpers import FakeProvider, StaticRates, make_course, make_payment, make_user

SECRET = "sk_test_paystack"


def sign(body: bytes) -> str:
    return hmac.new(SECRET.encode("utf-8"), body, hashlib.sha512).hexdigest()


class RegionalWebhookTests(APITestCase):
    @classmethod
    def setUpTestData(cls):
        cls.student = make_user()
        cls.course = make_course(price="50000.00", currency="NGN")

    def setUp(self):
        self.session = mock.Mock()
        verified = mock.Mock(status_code=200)
        verified.json.return_value = {
            "status": True,
            "data": {"status": "success", "amount": 5000000, "currency": "NGN"},
        }
        self.session.request.return_value = verified

        context = use_payment_gateways(
            PaymentGateways(
                card=FakeProvider(Payment.Method.CARD),
                regional=PaystackProvider(SECRET, converter=CurrencyConverter(StaticRates()), session=self.session),
            )
        )
        context.__enter__()
        self.addCleanup(context.__exit__, None, None, None)

        self.payment = make_payment(self.student, self.course, method=Payment.Method.REGIONAL)
        self.payment.paystack_reference = f"PAY-{self.payment.pk}"
        self.payment.save()
        self.url = reverse("elearning:regional-webhook")

    def _post(self, event, signature=None):
        body = json.dumps(event).encode("utf-8")
        return self.client.post(
            self.url,
            data=body,
            content_type="application/json",
            HTTP_X_PAYSTACK_SIGNATURE=sign(body) if signature is None else signature,
        )

    def test_charge_success_re_verifies_with_provider(self):
        response = self._post({"event": "charge.success", "data": {"reference": self.payment.paystack_reference}})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json(), {"received": True})
        self.payment.refresh_from_db()
        self.assertEqual(self.payment.status, Payment.Status.COMPLETED)
        self.assertEqual(Enrollment.objects.get().status, Enrollment.Status.ACTIVE)
        method, url = self.session.request.call_args.args
        self.assertEqual(method, "GET")
        self.assertTrue(url.endswith(f"/transaction/verify/PAY-{self.payment.pk}"))

    def test_duplicate_delivery_enrolls_once(self):
        event = {"event": "charge.success", "data": {"reference": self.payment.paystack_reference}}

        self._post(event)
        self._post(event)

        self.assertEqual(Enrollment.objects.count(), 1)
        self.assertEqual(self.session.request.call_count, 1)

    def test_invalid_signature(self):
        response = self._post(
            {"event": "charge.success", "data": {"reference": self.payment.paystack_reference}},
            signature="forged",
        )

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.payment.refresh_from_db()
        self.assertEqual(self.payment.status, Payment.Status.PENDING)
        self.session.request.assert_not_called()

    def test_foreign_reference_is_acknowledged(self):
        response = self._post({"event": "charge.success", "data": {"reference": "T0123456789"}})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.session.request.assert_not_called()

    def test_unknown_payment_is_acknowledged(self):
        response = self._post({"event": "charge.success", "data": {"reference": "PAY-999999"}})
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_other_events_are_ignored(self):
        response = self._post({"event": "transfer.success", "data": {"reference": self.payment.paystack_reference}})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.session.request.assert_not_called()


class StripeEventHandlerTests(TestCase):
    def test_handled_event_re_drives_verification(self):
        verifier = mock.Mock()

        stripe_signals.handle_stripe_event(
            "checkout.session.completed",
            {"id": "cs_1", "metadata": {"payment_id": "12"}},
            verifier=verifier,
        )

        verifier.verify_from_provider_event.assert_called_once_with("12", "cs_1")

    def test_client_reference_id_is_a_fallback(self):
        verifier = mock.Mock()

        stripe_signals.handle_stripe_event(
            "checkout.session.expired", {"id": "cs_2", "client_reference_id": "7"}, verifier=verifier
        )

        verifier.verify_from_provider_event.assert_called_once_with("7", "cs_2")

    def test_unhandled_or_unlinked_events_are_skipped(self):
        verifier = mock.Mock()

        stripe_signals.handle_stripe_event("customer.created", {"id": "cus_1"}, verifier=verifier)
        stripe_signals.handle_stripe_event("payment_intent.succeeded", {"id": "pi_1"}, verifier=verifier)

        verifier.verify_from_provider_event.assert_not_called()

    def test_saved_event_is_dispatched(self):
        instance = SimpleNamespace(
            id=1,
            type="payment_intent.succeeded",
            data={"data": {"object": {"id": "pi_1", "metadata": {"payment_id": "3"}}}},
        )

        with mock.patch.object(stripe_signals, "VerificationService") as service:
            stripe_signals.on_djstripe_event_created(sender=None, instance=instance, created=True)

        service.return_value.verify_from_provider_event.assert_called_once_with("3", "pi_1")

    def test_handler_errors_are_not_raised(self):
        instance = SimpleNamespace(
            id=2,
            type="payment_intent.succeeded",
            data={"object": {"id": "pi_9", "metadata": {"payment_id": "999"}}},
        )

        with mock.patch.object(stripe_signals, "VerificationService") as service:
            service.return_value.verify_from_provider_event.side_effect = PaymentNotFound()
            stripe_signals.on_djstripe_event_created(sender=None, instance=instance, created=True)

            service.return_value.verify_from_provider_event.side_effect = RuntimeError("boom")
            stripe_signals.on_djstripe_event_created(sender=None, instance=instance, created=True)

        self.assertEqual(service.return_value.verify_from_provider_event.call_count, 2)

    def test_updated_event_is_ignored(self):
        instance = SimpleNamespace(id=3, type="payment_intent.succeeded", data={})

        with mock.patch.object(stripe_signals, "VerificationService") as service:
            stripe_signals.on_djstripe_event_created(sender=None, instance=instance, created=False)

        service.assert_not_called()
