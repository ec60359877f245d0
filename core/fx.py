"""FX-rate providers used to normalise rents into the tenant's budget currency."""

import logging
import threading
import time
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Dict, Optional, Tuple

import requests
from tenacity import (
    Retrying,
    stop_after_attempt,
    wait_fixed,
    retry_if_exception,
    before_sleep_log,
)

from core.config_loader import FxConfig
from core.errors import ExternalDependencyError
from core.utils import is_retryable_error

logger = logging.getLogger(__name__)


class FxRateProvider(ABC):
    """
    Interface: (from, to) -> rate.

    get_rate returns None when the provider knows no rate for the pair; it
    raises ExternalDependencyError when the provider could not be reached.
    """

    @abstractmethod
    def get_rate(self, from_currency: str, to_currency: str) -> Optional[Decimal]:
        pass

    def convert(self, amount, from_currency: str, to_currency: str) -> Optional[Decimal]:
        amount = Decimal(str(amount))
        if from_currency.upper() == to_currency.upper():
            return amount
        rate = self.get_rate(from_currency.upper(), to_currency.upper())
        if rate is None:
            return None
        return amount * rate


class StaticFxRateProvider(FxRateProvider):
    """Fixed table keyed "FROM/TO"; inverse pairs are derived."""

    def __init__(self, rates: Optional[Dict[str, float]] = None):
        self.rates: Dict[Tuple[str, str], Decimal] = {}
        for key, value in (rates or {}).items():
            src, dst = key.upper().split("/")
            self.rates[(src, dst)] = Decimal(str(value))

    def get_rate(self, from_currency: str, to_currency: str) -> Optional[Decimal]:
        if from_currency == to_currency:
            return Decimal(1)
        direct = self.rates.get((from_currency, to_currency))
        if direct is not None:
            return direct
        inverse = self.rates.get((to_currency, from_currency))
        if inverse:
            return Decimal(1) / inverse
        return None


class HttpFxRateProvider(FxRateProvider):
    """
    Rate provider backed by an HTTP service.

    GET {base_url}/rate?from=USD&to=EUR -> {"rate": 0.92}; 404 means the pair
    is unsupported. Rates are cached for cache_ttl_seconds.
    """

    def __init__(self, config: FxConfig):
        if not config.base_url:
            raise ValueError("FX base_url is required for the HTTP provider")
        self.base_url = config.base_url.rstrip("/")
        self.api_key = config.api_key
        self.timeout_seconds = config.timeout_seconds
        self.max_attempts = config.max_attempts
        self.cache_ttl_seconds = config.cache_ttl_seconds

        self.session = requests.Session()
        self._cache: Dict[Tuple[str, str], Tuple[float, Optional[Decimal]]] = {}
        self._lock = threading.Lock()

        logger.info(f"HttpFxRateProvider initialized: base_url={self.base_url}")

    def get_rate(self, from_currency: str, to_currency: str) -> Optional[Decimal]:
        if from_currency == to_currency:
            return Decimal(1)

        key = (from_currency, to_currency)
        with self._lock:
            cached = self._cache.get(key)
            if cached and time.monotonic() - cached[0] < self.cache_ttl_seconds:
                return cached[1]

        try:
            rate = self._fetch_with_retry(from_currency, to_currency)
        except requests.RequestException as e:
            raise ExternalDependencyError(f"FX lookup {from_currency}->{to_currency} failed: {e}") from e

        with self._lock:
            self._cache[key] = (time.monotonic(), rate)
        return rate

    def _fetch_with_retry(self, from_currency: str, to_currency: str) -> Optional[Decimal]:
        retrying = Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_fixed(1),
            retry=retry_if_exception(is_retryable_error),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        return retrying(self._fetch, from_currency, to_currency)

    def _fetch(self, from_currency: str, to_currency: str) -> Optional[Decimal]:
        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}
        response = self.session.get(
            f"{self.base_url}/rate",
            params={"from": from_currency, "to": to_currency},
            headers=headers,
            timeout=self.timeout_seconds,
        )
        if response.status_code == 404:
            return None
        response.raise_for_status()
        rate = response.json().get("rate")
        return Decimal(str(rate)) if rate is not None else None


def build_fx_provider(config: FxConfig) -> FxRateProvider:
    if config.base_url:
        return HttpFxRateProvider(config)
    return StaticFxRateProvider(config.static_rates)
