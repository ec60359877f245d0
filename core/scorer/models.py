#!/usr/bin/env python3
"""
Scoring Models - Data structures for compatibility results.
"""

import math
from dataclasses import dataclass, fields, asdict
from decimal import Decimal
from typing import Dict, Optional


@dataclass(frozen=True)
class MatchFactors:
    """
    Normalised (0..1) soft factors of one tenant/listing pair.

    Fixed keys: every factor must be present and in range, so a stored
    breakdown can always be reconstructed and re-validated.
    """
    budget_fit: float
    location: float
    amenity_coverage: float
    lifestyle: float
    move_in: float
    stay_overlap: float

    def __post_init__(self):
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise TypeError(f"factor {f.name} must be a number, got {type(value).__name__}")
            if not math.isfinite(value) or value < 0.0 or value > 1.0:
                raise ValueError(f"factor {f.name} out of range: {value}")
            object.__setattr__(self, f.name, float(value))

    @classmethod
    def names(cls):
        return tuple(f.name for f in fields(cls))

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, float]) -> "MatchFactors":
        expected = set(cls.names())
        if set(data) != expected:
            raise ValueError(f"factor keys mismatch: expected {sorted(expected)}, got {sorted(data)}")
        return cls(**data)


@dataclass(frozen=True)
class ScoreResult:
    """Outcome of scoring one pair. Hard failures carry total 0 and no factors."""
    total: float
    factors: Optional[MatchFactors] = None
    hard_fail: bool = False
    failed_filter: Optional[str] = None
    # Listing rent expressed in the tenant's budget currency
    normalized_rent: Optional[Decimal] = None

    @classmethod
    def failed(cls, filter_name: str) -> "ScoreResult":
        return cls(total=0.0, factors=None, hard_fail=True, failed_filter=filter_name)
