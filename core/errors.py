"""
Error taxonomy of the matching engine.

Hard-filter failures are not errors: they surface as ScoreResult.hard_fail.
"""

from typing import Any, Optional


class HousingError(Exception):
    """Base class for all matching-engine errors."""
    status_code = 500

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(HousingError):
    """Malformed profile, listing or message input."""
    status_code = 422


class NotFoundError(HousingError):
    status_code = 404


class ExternalDependencyError(HousingError):
    """FX or geocoding collaborator failed or timed out."""
    status_code = 503


class ConcurrencyConflict(HousingError):
    """Version mismatch persisted after one retry against a fresh read."""
    status_code = 409


class NotAParty(HousingError):
    """Caller is neither the tenant nor the landlord of the match."""
    status_code = 403


class InvalidSender(NotAParty):
    pass


class MatchTerminalError(HousingError):
    """Operation attempted on a declined or expired match."""
    status_code = 409


class InvalidTransition(HousingError):
    status_code = 409
