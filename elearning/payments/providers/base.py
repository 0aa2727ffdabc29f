"""
Payment Provider Interface

Common capability interface of the card-network and regional adapters.

Every intent creation runs the same steps:

1. The caller must be authenticated.
2. The price is read server-side from the course. A free course is rejected
   (`CourseNotPriced`); a client-supplied amount/currency that differs from
   the catalog price is rejected (`PriceMismatch`).
3. The provider-specific quote is computed (conversion for the regional
   provider).
4. A `pending` Payment row is created before talking to the provider, so a
   record exists even if the client disappears mid-flow.
5. The provider-side transaction is opened. If the provider is unreachable,
   the row is marked failed and `ProviderUnavailable` propagates to the caller.

Author: LearnHub Development Team
Version: 1.0.0
"""

import logging
from abc import ABC, abstractmethod
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Mapping, Optional

from ...courses.models import Course
from ...exceptions import (
    CourseNotFound,
    CourseNotPriced,
    InvalidAmount,
    PriceMismatch,
    ProviderUnavailable,
    Unauthenticated,
)
from ..descriptors import IntentDescriptor, Payer, ProviderStatus, Quote
from ..models import Payment
from ..records import PaymentRecordManager

logger = logging.getLogger(__name__)


def provider_field(obj: Any, name: str, default: Any = None) -> Any:
    """Read a field from a provider object or a plain dict."""
    if obj is None:
        return default
    getter = getattr(obj, "get", None)
    if callable(getter):
        return getter(name, default)
    return getattr(obj, name, default)


class PaymentProvider(ABC):
    """
    Base class of the provider adapters.

    Attributes:
        name (str): Provider name used in logs and error details
        method (str): `Payment.Method` value written to rows it creates
    """

    name = "provider"
    method = ""

    def __init__(self, records: Optional[PaymentRecordManager] = None) -> None:
        self.records = records or PaymentRecordManager()

    # ---------- template ----------

    def _create(
        self,
        user,
        course_id,
        amount=None,
        currency: Optional[str] = None,
        payer: Optional[Payer] = None,
        opener: Optional[Callable[[Payment, Course, Quote, Payer], IntentDescriptor]] = None,
    ) -> IntentDescriptor:
        if user is None or not getattr(user, "is_authenticated", False):
            raise Unauthenticated()

        course = self.resolve_course_price(course_id, amount, currency)
        quote = self.quote(course.price, course.currency)
        payer = payer or Payer()

        payment = self.records.create_pending(
            student=user, course=course, method=self.method, quote=quote, payer=payer
        )

        opener = opener or self.open_transaction
        try:
            return opener(payment, course, quote, payer)
        except ProviderUnavailable:
            self.records.fail(payment, "provider_unavailable")
            logger.warning(
                "%s unavailable while opening payment %s; marked failed", self.name, payment.pk
            )
            raise

    @staticmethod
    def resolve_course_price(course_id, amount=None, currency: Optional[str] = None) -> Course:
        """
        Load the course and make sure the client is paying its current price.

        Raises:
            CourseNotFound: Unknown course id
            CourseNotPriced: Free course (price null or zero)
            PriceMismatch: Client amount/currency differs from the catalog price
        """
        course = Course.objects.filter(pk=course_id).first()
        if course is None:
            raise CourseNotFound(details={"course_id": course_id})
        if course.is_free:
            raise CourseNotPriced(details={"course_id": course.pk})

        if amount is not None:
            try:
                client_amount = Decimal(str(amount))
            except InvalidOperation:
                raise InvalidAmount()
            if client_amount != course.price:
                logger.warning(
                    "Price mismatch for course %s: client sent %s, catalog price is %s",
                    course.pk,
                    client_amount,
                    course.price,
                )
                raise PriceMismatch(
                    details={"expected": str(course.price), "received": str(client_amount)}
                )

        if currency and currency.upper() != course.currency.upper():
            raise PriceMismatch(
                message="Currency does not match the course currency",
                details={"expected": course.currency, "received": currency.upper()},
            )
        return course

    # ---------- provider capabilities ----------

    def create_intent(self, user, course_id, amount=None, currency=None, payer=None) -> IntentDescriptor:
        return self._create(user, course_id, amount, currency, payer)

    @abstractmethod
    def quote(self, amount: Decimal, currency: str) -> Quote:
        """Compute what the provider will be asked to collect."""

    @abstractmethod
    def open_transaction(self, payment: Payment, course: Course, quote: Quote, payer: Payer) -> IntentDescriptor:
        """Create the provider-side transaction for a pending payment."""

    @abstractmethod
    def fetch_status(self, payment: Payment, correlation_id: Optional[str] = None) -> ProviderStatus:
        """
        Re-query the provider for the payment's real settlement state.

        Raises:
            CorrelationMismatch: The provider object belongs to another payment
            ProviderUnavailable: The provider could not be reached
        """

    @abstractmethod
    def public_key(self) -> str:
        """Publishable (non-secret) key handed to the frontend."""

    @staticmethod
    def metadata_for(payment: Payment) -> Mapping[str, str]:
        return {
            "payment_id": str(payment.pk),
            "course_id": str(payment.course_id),
            "student_id": str(payment.student_id),
        }
