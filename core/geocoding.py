"""Optional geocoding of listing addresses. Never used by hard filters."""

import logging
from typing import Optional, Tuple

import requests
from tenacity import Retrying, stop_after_attempt, wait_fixed, retry_if_exception, before_sleep_log

from core.config_loader import GeocodingConfig
from core.errors import ExternalDependencyError
from core.utils import is_retryable_error

logger = logging.getLogger(__name__)


class GeocodingClient:
    """GET {base_url}/geocode?address=... -> {"lat": .., "lng": ..}"""

    def __init__(self, config: GeocodingConfig):
        self.base_url = (config.base_url or "").rstrip("/")
        self.api_key = config.api_key
        self.timeout_seconds = config.timeout_seconds
        self.max_attempts = config.max_attempts
        self.session = requests.Session()

    def geocode(self, address: str) -> Optional[Tuple[float, float]]:
        retrying = Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_fixed(1),
            retry=retry_if_exception(is_retryable_error),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        try:
            return retrying(self._fetch, address)
        except requests.RequestException as e:
            raise ExternalDependencyError(f"Geocoding failed: {e}") from e

    def _fetch(self, address: str) -> Optional[Tuple[float, float]]:
        params = {"address": address}
        if self.api_key:
            params["key"] = self.api_key
        response = self.session.get(f"{self.base_url}/geocode", params=params, timeout=self.timeout_seconds)
        if response.status_code == 404:
            return None
        response.raise_for_status()
        data = response.json()
        if data.get("lat") is None or data.get("lng") is None:
            return None
        return float(data["lat"]), float(data["lng"])
