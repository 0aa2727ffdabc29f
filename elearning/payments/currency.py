"""
Currency Conversion

Converts a catalog-currency amount (USD) into the settlement currency a
provider requires (NGN for the regional provider) using a live exchange rate.

Components:
- ExchangeRateClient: Fetches rates over HTTP with a timeout, bounded retries
  and a short-lived cache entry per currency pair
- CurrencyConverter: Pure conversion over a fetched rate

A missing rate is always an error (`RateUnavailable`). There is no fallback
to a rate of 1 for non-matching currencies.

Author: LearnHub Development Team
Version: 1.0.0
"""

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from time import sleep
from typing import Any, Dict, Optional

import requests
from django.conf import settings
from django.core.cache import cache

from ..exceptions import InvalidAmount, RateUnavailable
from .descriptors import CENT

logger = logging.getLogger(__name__)

RATE_PRECISION = Decimal("0.000001")


@dataclass(frozen=True)
class Conversion:
    converted_amount: Decimal
    rate: Decimal
    from_currency: str
    to_currency: str


class ExchangeRateClient:
    """
    HTTP exchange-rate client.

    Expects `GET {base_url}/{FROM}` to answer
    `{"result": "success", "rates": {"NGN": 1600.0, ...}}`.

    Attributes:
        CACHE_PREFIX (str): Prefix for cache keys
        RETRYABLE_STATUS (set): HTTP statuses worth another attempt

    Example:
        >>> client = ExchangeRateClient.from_settings()
        >>> client.get_rate("USD", "NGN")
        Decimal('1600.000000')
    """

    CACHE_PREFIX = "fx_rate"
    RETRYABLE_STATUS = {429, 500, 502, 503, 504}

    def __init__(
        self,
        base_url: str,
        timeout: int = 10,
        max_retries: int = 2,
        cache_seconds: int = 300,
        session: Optional[requests.Session] = None,
        backoff_seconds: float = 0.5,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max(0, max_retries)
        self.cache_seconds = cache_seconds
        self.backoff_seconds = backoff_seconds
        self.session = session or requests.Session()

    @classmethod
    def from_settings(cls) -> "ExchangeRateClient":
        return cls(
            base_url=settings.EXCHANGE_RATE_API_URL,
            timeout=settings.EXCHANGE_RATE_TIMEOUT_SECONDS,
            max_retries=settings.EXCHANGE_RATE_MAX_RETRIES,
            cache_seconds=settings.EXCHANGE_RATE_CACHE_SECONDS,
        )

    def _cache_key(self, from_currency: str, to_currency: str) -> str:
        return f"{self.CACHE_PREFIX}_{from_currency}_{to_currency}"

    def get_rate(self, from_currency: str, to_currency: str) -> Decimal:
        """
        Return the rate to multiply a `from_currency` amount by.

        Raises:
            RateUnavailable: If no valid rate could be fetched
        """
        from_currency = from_currency.upper()
        to_currency = to_currency.upper()
        if from_currency == to_currency:
            return Decimal("1")

        cache_key = self._cache_key(from_currency, to_currency)
        cached = cache.get(cache_key)
        if cached is not None:
            logger.debug("Using cached exchange rate %s->%s", from_currency, to_currency)
            return Decimal(cached)

        payload = self._fetch(from_currency, to_currency)
        rate = self._extract_rate(payload, from_currency, to_currency)

        cache.set(cache_key, str(rate), timeout=self.cache_seconds)
        logger.info("Fetched exchange rate %s->%s = %s", from_currency, to_currency, rate)
        return rate

    def _fetch(self, from_currency: str, to_currency: str) -> Dict[str, Any]:
        url = f"{self.base_url}/{from_currency}"
        last_error = ""

        for attempt in range(self.max_retries + 1):
            try:
                response = self.session.get(url, timeout=self.timeout)
            except requests.exceptions.Timeout:
                last_error = f"timed out after {self.timeout}s"
            except requests.exceptions.RequestException as exc:
                last_error = str(exc)
            else:
                if response.status_code == 200:
                    try:
                        return response.json()
                    except ValueError:
                        raise RateUnavailable(
                            from_currency, to_currency, "Exchange rate API returned invalid JSON"
                        )
                if response.status_code not in self.RETRYABLE_STATUS:
                    logger.error(
                        "Exchange rate API answered %s for %s", response.status_code, url
                    )
                    raise RateUnavailable(from_currency, to_currency)
                last_error = f"HTTP {response.status_code}"

            logger.warning(
                "Exchange rate fetch %s->%s failed (attempt %s): %s",
                from_currency,
                to_currency,
                attempt + 1,
                last_error,
            )
            if attempt < self.max_retries and self.backoff_seconds:
                # Exponential backoff between attempts
                sleep(self.backoff_seconds * (2**attempt))

        raise RateUnavailable(
            from_currency,
            to_currency,
            f"Exchange rate {from_currency}->{to_currency} is unavailable ({last_error})",
        )

    @staticmethod
    def _extract_rate(payload: Dict[str, Any], from_currency: str, to_currency: str) -> Decimal:
        if payload.get("result") not in (None, "success"):
            raise RateUnavailable(from_currency, to_currency)

        raw = (payload.get("rates") or {}).get(to_currency)
        if raw is None:
            raise RateUnavailable(from_currency, to_currency)
        try:
            rate = Decimal(str(raw)).quantize(RATE_PRECISION, rounding=ROUND_HALF_UP)
        except InvalidOperation:
            raise RateUnavailable(from_currency, to_currency)
        if rate <= 0:
            raise RateUnavailable(from_currency, to_currency)
        return rate

    def invalidate(self, from_currency: str, to_currency: str) -> None:
        cache.delete(self._cache_key(from_currency.upper(), to_currency.upper()))


class CurrencyConverter:
    """
    Converts amounts between currencies.

    Example:
        >>> converter = CurrencyConverter(rate_client)
        >>> converter.convert(Decimal("100"), "USD", "NGN")
        Conversion(converted_amount=Decimal('160000.00'), rate=Decimal('1600.000000'), ...)
    """

    def __init__(self, rate_client: ExchangeRateClient) -> None:
        self.rate_client = rate_client

    def convert(self, amount: Decimal, from_currency: str, to_currency: str) -> Conversion:
        """
        Convert `amount` from `from_currency` to `to_currency`.

        Raises:
            InvalidAmount: If amount is not greater than zero
            RateUnavailable: If the rate cannot be fetched
        """
        try:
            amount = Decimal(str(amount))
        except InvalidOperation:
            raise InvalidAmount()
        if amount <= 0:
            raise InvalidAmount()

        from_currency = from_currency.upper()
        to_currency = to_currency.upper()
        if from_currency == to_currency:
            return Conversion(amount.quantize(CENT), Decimal("1"), from_currency, to_currency)

        rate = self.rate_client.get_rate(from_currency, to_currency)
        converted = (amount * rate).quantize(CENT, rounding=ROUND_HALF_UP)
        return Conversion(converted, rate, from_currency, to_currency)
