"""
Payment Descriptors

Small immutable value objects passed between the provider adapters, the
payment record manager and the verification service. Provider SDK objects
never leave the adapters; everything downstream works on these.

Author: LearnHub Development Team
Version: 1.0.0
"""

from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Any, Dict, Mapping, Optional

CENT = Decimal("0.01")


def to_minor_units(amount: Decimal) -> int:
    """Convert a major-unit amount (e.g. 160000.00 NGN) to minor units (kobo, cents)."""
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class ProviderState(str, Enum):
    """Settlement state as reported by the provider itself."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    PENDING = "pending"


@dataclass(frozen=True)
class ProviderStatus:
    """
    Result of re-querying a provider for one payment.

    Attributes:
        state: Provider-confirmed settlement state
        correlation_id: Provider object id that was queried
        raw_status: Provider's own status string, kept for logging/audit
        reason: Failure reason when state is FAILED
        extra: Provider-specific ids learned during the query
            (e.g. the payment intent behind a checkout session)
    """

    state: ProviderState
    correlation_id: str
    raw_status: str = ""
    reason: str = ""
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.state is ProviderState.SUCCEEDED

    @property
    def failed(self) -> bool:
        return self.state is ProviderState.FAILED


@dataclass(frozen=True)
class Payer:
    """Payer details captured at intent time."""

    full_name: str = ""
    email: str = ""
    phone: str = ""
    address: str = ""
    city: str = ""
    state: str = ""
    country: str = ""
    postal_code: str = ""

    FIELD_MAP = {
        "fullName": "full_name",
        "email": "email",
        "phone": "phone",
        "address": "address",
        "city": "city",
        "state": "state",
        "country": "country",
        "postalCode": "postal_code",
    }

    @classmethod
    def from_payload(cls, payload: Optional[Mapping[str, Any]]) -> "Payer":
        """Build from the camelCase `payer` object sent by the frontend."""
        payload = payload or {}
        values = {}
        for key, attr in cls.FIELD_MAP.items():
            value = payload.get(key, payload.get(attr))
            if value is not None:
                values[attr] = str(value).strip()
        return cls(**values)

    def as_model_fields(self) -> Dict[str, str]:
        return {attr: getattr(self, attr) for attr in self.FIELD_MAP.values()}


@dataclass(frozen=True)
class Quote:
    """
    What the provider will be asked to collect.

    `amount`/`currency` are the catalog price; `settlement_*` is what the
    provider settles in, with the `exchange_rate` used (None when no conversion
    happened).
    """

    amount: Decimal
    currency: str
    settlement_amount: Decimal
    settlement_currency: str
    exchange_rate: Optional[Decimal] = None

    @property
    def converted(self) -> bool:
        return self.exchange_rate is not None


@dataclass(frozen=True)
class IntentDescriptor:
    """
    Provider-specific charge descriptor returned to the client.

    Card provider: `client_token` is the payment intent client secret (or the
    hosted checkout URL for checkout sessions).
    Regional provider: `reference` plus the authorization URL/access code.
    """

    payment_id: int
    provider: str
    reference: str
    client_token: str = ""
    authorization_url: str = ""
    quote: Optional[Quote] = None
