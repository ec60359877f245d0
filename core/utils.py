import logging
from typing import Iterable, Set

import requests

logger = logging.getLogger(__name__)


def clip_unit(value: float) -> float:
    """Clip a factor to [0, 1]."""
    if value < 0.0:
        return 0.0
    if value > 1.0:
        return 1.0
    return float(value)


def normalize_label(value: str) -> str:
    """Case/whitespace-insensitive form of a city, amenity or neighborhood name."""
    return " ".join(str(value).lower().split())


def normalize_labels(values: Iterable[str]) -> Set[str]:
    return {normalize_label(v) for v in (values or []) if v is not None and str(v).strip()}


def is_retryable_error(exc: Exception) -> bool:
    """
    Determine if an HTTP exception is retryable.

    Only retries on:
    - Timeouts
    - Server errors (5xx)
    - Connection errors without a response

    Does NOT retry on client errors (4xx).
    """
    if isinstance(exc, requests.Timeout):
        return True

    if isinstance(exc, requests.HTTPError):
        response = getattr(exc, 'response', None)
        if response is not None:
            return response.status_code >= 500
        return True

    if isinstance(exc, requests.RequestException):
        response = getattr(exc, 'response', None)
        if response is not None and 400 <= response.status_code < 500:
            return False
        return True

    return False
