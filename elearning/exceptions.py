"""
Enrollment & Payment Flow Exceptions

This module provides the exception classes raised by the enrollment payment
reconciliation core (currency conversion, provider adapters, payment records,
enrollment state machine, verification and certificate awarding). They follow
a hierarchical structure so API views can translate any of them into a JSON
error response with a single handler.

"Try again later" verification results and duplicate-enrollment resolution are
not exceptions: they are reported as outcome codes on result objects
(see `elearning.payments.verification` and `elearning.enrollments.services`).

Author: LearnHub Development Team
Version: 1.0.0
"""

from typing import Optional, Dict, Any


class EnrollmentFlowError(Exception):
    """
    Base exception class for all enrollment/payment flow errors.

    Attributes:
        message (str): Human-readable error message
        status_code (int): HTTP status code used when surfaced by the API
        error_code (str): Stable machine-readable identifier
        details (Dict[str, Any]): Additional error details
        retryable (bool): Whether the caller may retry the same request

    Example:
        >>> try:
        ...     service.verify(user, payment_id)
        ... except EnrollmentFlowError as e:
        ...     logger.error(f"Verification failed: {e.message}")
    """

    default_message = "Enrollment flow error"
    default_status_code = 400
    default_error_code = "EnrollmentFlowError"
    retryable = False

    def __init__(
        self,
        message: Optional[str] = None,
        status_code: Optional[int] = None,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Initialize an enrollment flow exception.

        Args:
            message: Human-readable error description
            status_code: HTTP status code override
            error_code: Error identifier override
            details: Additional context or error details
        """
        self.message = message or self.default_message
        self.status_code = status_code or self.default_status_code
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert exception to dictionary for serialization.

        Returns:
            Dictionary representation of the exception
        """
        return {
            "error": self.message,
            "error_code": self.error_code,
            "details": self.details,
            "retryable": self.retryable,
        }


class Unauthenticated(EnrollmentFlowError):
    """
    Raised when the caller is not an authenticated student, or is not the
    student a payment belongs to.
    """

    default_message = "User not authenticated"
    default_status_code = 401
    default_error_code = "Unauthenticated"


class CourseNotFound(EnrollmentFlowError):
    default_message = "Course not found"
    default_status_code = 404
    default_error_code = "CourseNotFound"


class CourseNotPriced(EnrollmentFlowError):
    """
    Raised when a payment is requested for a free course (price null or zero).
    The free-enrollment path must be used instead.
    """

    default_message = "Course has no price; use the free enrollment path"
    default_status_code = 400
    default_error_code = "CourseNotPriced"


class CourseNotFree(EnrollmentFlowError):
    default_message = "Course is priced; a verified payment is required"
    default_status_code = 400
    default_error_code = "CourseNotFree"


class PriceMismatch(EnrollmentFlowError):
    """
    Raised when a client-supplied amount or currency differs from the price
    read server-side from the course.
    """

    default_message = "Amount does not match the current course price"
    default_status_code = 400
    default_error_code = "PriceMismatch"


class InvalidAmount(EnrollmentFlowError):
    default_message = "Amount must be greater than zero"
    default_status_code = 400
    default_error_code = "InvalidAmount"


class PaymentNotFound(EnrollmentFlowError):
    default_message = "Payment not found"
    default_status_code = 404
    default_error_code = "PaymentNotFound"


class CorrelationMismatch(EnrollmentFlowError):
    """
    Raised when the provider session/intent/reference supplied for verification
    does not belong to the payment being verified.
    """

    default_message = "Provider reference does not belong to this payment"
    default_status_code = 400
    default_error_code = "CorrelationMismatch"


class ProviderUnavailable(EnrollmentFlowError):
    """
    Raised on network or configuration errors while talking to a payment
    provider. The caller may retry.
    """

    default_message = "Payment provider is unavailable"
    default_status_code = 503
    default_error_code = "ProviderUnavailable"
    retryable = True

    def __init__(
        self,
        message: Optional[str] = None,
        provider: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        details = dict(details or {})
        if provider:
            details["provider"] = provider
        super().__init__(message=message, details=details)


class RateUnavailable(EnrollmentFlowError):
    """
    Raised when no live exchange rate could be obtained. Callers must never
    fall back to a rate of 1 for non-matching currencies.
    """

    default_message = "Exchange rate is unavailable"
    default_status_code = 503
    default_error_code = "RateUnavailable"
    retryable = True

    def __init__(
        self,
        from_currency: str,
        to_currency: str,
        message: Optional[str] = None,
    ) -> None:
        super().__init__(
            message=message or f"Exchange rate {from_currency}->{to_currency} is unavailable",
            details={"from_currency": from_currency, "to_currency": to_currency},
        )


class EnrollmentNotFound(EnrollmentFlowError):
    default_message = "Enrollment not found"
    default_status_code = 404
    default_error_code = "EnrollmentNotFound"


class InvalidEnrollmentTransition(EnrollmentFlowError):
    """
    Raised when an enrollment state change is not allowed by the lifecycle
    none -> pending -> active -> completed (with administrative drops).
    """

    default_message = "Enrollment transition not allowed"
    default_status_code = 409
    default_error_code = "InvalidEnrollmentTransition"

    def __init__(self, current: str, target: str) -> None:
        super().__init__(
            message=f"Cannot move enrollment from '{current}' to '{target}'",
            details={"current": current, "target": target},
        )


class InvalidProgress(EnrollmentFlowError):
    default_message = "Progress must be an integer between 0 and 100"
    default_status_code = 400
    default_error_code = "InvalidProgress"


class EnrollmentIntentNotFound(EnrollmentFlowError):
    default_message = "No pending enrollment intent for this course"
    default_status_code = 404
    default_error_code = "EnrollmentIntentNotFound"


class InvalidCertificateTransition(EnrollmentFlowError):
    default_message = "Certificate request has already been reviewed"
    default_status_code = 409
    default_error_code = "InvalidCertificateTransition"
