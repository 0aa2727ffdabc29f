"""
Regional Provider (Paystack)

Paystack settles in NGN. When the catalog currency differs, the catalog price
is converted with the live exchange rate before the transaction is opened, and
the rate/settlement amount are stored on the Payment row.

API calls (https://api.paystack.co):
- POST /transaction/initialize  -> authorization_url, access_code, reference
- GET  /transaction/verify/{ref} -> data.status in success | failed |
  reversed | abandoned | ongoing | pending | processing | queued

Amounts are sent in kobo (minor units). The reference is `PAY-<payment id>`.

Author: LearnHub Development Team
Version: 1.0.0
"""

import hashlib
import hmac
import logging
from decimal import Decimal
from typing import Any, Dict, Optional

import requests

from ...courses.models import Course
from ...exceptions import CorrelationMismatch, ProviderUnavailable
from ..currency import CurrencyConverter
from ..descriptors import (
    IntentDescriptor,
    Payer,
    ProviderState,
    ProviderStatus,
    Quote,
    to_minor_units,
)
from ..models import Payment
from .base import PaymentProvider

logger = logging.getLogger(__name__)


class PaystackProvider(PaymentProvider):
    """
    Paystack adapter.

    Attributes:
        REFERENCE_PREFIX (str): Prefix of transaction references
        FAILED_STATUSES (set): Paystack statuses that are terminal failures
    """

    name = "paystack"
    method = Payment.Method.REGIONAL

    REFERENCE_PREFIX = "PAY-"
    FAILED_STATUSES = {"failed", "reversed"}

    def __init__(
        self,
        secret_key: str,
        public_key: str = "",
        converter: Optional[CurrencyConverter] = None,
        base_url: str = "https://api.paystack.co",
        settlement_currency: str = "NGN",
        callback_url: str = "",
        timeout: int = 30,
        session: Optional[requests.Session] = None,
        records=None,
    ) -> None:
        super().__init__(records=records)
        self.secret_key = secret_key
        self.paystack_public_key = public_key
        self.converter = converter
        self.base_url = base_url.rstrip("/")
        self.settlement_currency = settlement_currency.upper()
        self.callback_url = callback_url
        self.timeout = timeout
        self.session = session or requests.Session()

    def public_key(self) -> str:
        return self.paystack_public_key

    @classmethod
    def reference_for(cls, payment: Payment) -> str:
        return f"{cls.REFERENCE_PREFIX}{payment.pk}"

    def quote(self, amount: Decimal, currency: str) -> Quote:
        currency = currency.upper()
        if currency == self.settlement_currency:
            return Quote(amount, currency, amount, currency)
        if self.converter is None:
            raise ProviderUnavailable("Currency conversion is not configured", provider=self.name)

        conversion = self.converter.convert(amount, currency, self.settlement_currency)
        logger.info(
            "Converted %s %s to %s %s at %s",
            amount,
            currency,
            conversion.converted_amount,
            self.settlement_currency,
            conversion.rate,
        )
        return Quote(
            amount=amount,
            currency=currency,
            settlement_amount=conversion.converted_amount,
            settlement_currency=self.settlement_currency,
            exchange_rate=conversion.rate,
        )

    # ---------- HTTP ----------

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.secret_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        if not self.secret_key:
            raise ProviderUnavailable("Regional payments are not configured", provider=self.name)
        url = f"{self.base_url}{path}"
        try:
            return self.session.request(
                method, url, headers=self._headers(), timeout=self.timeout, **kwargs
            )
        except requests.exceptions.Timeout:
            logger.warning("Paystack %s %s timed out after %ss", method, path, self.timeout)
            raise ProviderUnavailable(
                f"Regional provider timed out after {self.timeout}s", provider=self.name
            )
        except requests.exceptions.RequestException as exc:
            logger.error("Paystack %s %s failed: %s", method, path, exc)
            raise ProviderUnavailable("Failed to reach the regional provider", provider=self.name)

    @staticmethod
    def _json(response: requests.Response) -> Dict[str, Any]:
        try:
            body = response.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}

    # ---------- intent ----------

    def open_transaction(self, payment: Payment, course: Course, quote: Quote, payer: Payer) -> IntentDescriptor:
        reference = self.reference_for(payment)
        self.records.attach_provider_refs(payment, paystack_reference=reference)

        email = payer.email or getattr(payment.student, "email", "")
        callback = f"{self.callback_url}?payment={payment.pk}&reference={reference}" if self.callback_url else ""
        body = {
            "email": email,
            "amount": to_minor_units(quote.settlement_amount),
            "currency": quote.settlement_currency,
            "reference": reference,
            "metadata": dict(self.metadata_for(payment), course_title=course.title),
        }
        if callback:
            body["callback_url"] = callback

        response = self._request("POST", "/transaction/initialize", json=body)
        data = self._json(response)
        if response.status_code >= 400 or not data.get("status"):
            logger.error(
                "Paystack initialize failed for payment %s (%s): %s",
                payment.pk,
                response.status_code,
                data.get("message") or response.text,
            )
            raise ProviderUnavailable(
                "Regional provider rejected the transaction",
                provider=self.name,
                details={"reason": data.get("message", "")},
            )

        payload = data.get("data") or {}
        access_code = payload.get("access_code", "")
        self.records.attach_provider_refs(payment, paystack_access_code=access_code)
        logger.info("Paystack transaction %s opened for payment %s", reference, payment.pk)

        return IntentDescriptor(
            payment_id=payment.pk,
            provider=self.name,
            reference=reference,
            client_token=access_code,
            authorization_url=payload.get("authorization_url", ""),
            quote=quote,
        )

    # ---------- verification ----------

    def fetch_status(self, payment: Payment, correlation_id: Optional[str] = None) -> ProviderStatus:
        expected = payment.paystack_reference or self.reference_for(payment)
        reference = correlation_id or expected
        if reference != expected:
            raise CorrelationMismatch(details={"payment_id": payment.pk, "reference": reference})

        response = self._request("GET", f"/transaction/verify/{reference}")
        if response.status_code >= 500:
            logger.warning("Paystack verify %s answered %s", reference, response.status_code)
            raise ProviderUnavailable(
                f"Regional provider answered {response.status_code}", provider=self.name
            )

        data = self._json(response)
        if response.status_code >= 400 or not data.get("status"):
            # Unknown or not-yet-created transaction: not a confirmed failure.
            logger.info(
                "Paystack verify %s inconclusive (%s): %s",
                reference,
                response.status_code,
                data.get("message", ""),
            )
            return ProviderStatus(ProviderState.PENDING, reference, raw_status="unknown")

        payload = data.get("data") or {}
        status = str(payload.get("status") or "").lower()

        if status == "success":
            return self._check_settled_amount(payment, reference, payload)
        if status in self.FAILED_STATUSES:
            reason = payload.get("gateway_response") or status
            return ProviderStatus(ProviderState.FAILED, reference, raw_status=status, reason=reason)
        return ProviderStatus(ProviderState.PENDING, reference, raw_status=status)

    def _check_settled_amount(self, payment: Payment, reference: str, payload: Dict[str, Any]) -> ProviderStatus:
        expected_amount = to_minor_units(payment.charged_amount)
        expected_currency = payment.charged_currency.upper()
        amount = payload.get("amount")
        currency = str(payload.get("currency") or "").upper()

        if amount is None or int(amount) != expected_amount or currency != expected_currency:
            logger.error(
                "Paystack %s settled %s %s, expected %s %s",
                reference,
                amount,
                currency,
                expected_amount,
                expected_currency,
            )
            return ProviderStatus(
                ProviderState.FAILED, reference, raw_status="success", reason="amount_mismatch"
            )
        return ProviderStatus(ProviderState.SUCCEEDED, reference, raw_status="success")

    # ---------- webhook ----------

    def is_valid_signature(self, raw_body: bytes, signature: str) -> bool:
        """Check the `x-paystack-signature` header (HMAC-SHA512 of the raw body)."""
        if not self.secret_key or not signature:
            return False
        digest = hmac.new(self.secret_key.encode("utf-8"), raw_body, hashlib.sha512).hexdigest()
        return hmac.compare_digest(digest, signature)

    @classmethod
    def payment_id_from_reference(cls, reference: str) -> Optional[int]:
        if not reference or not reference.startswith(cls.REFERENCE_PREFIX):
            return None
        try:
            return int(reference[len(cls.REFERENCE_PREFIX):])
        except ValueError:
            return None
