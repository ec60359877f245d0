#!/usr/bin/env python3
"""
Scoring Module - compatibility scoring of tenant/listing pairs.

Public API:
- CompatibilityScorer: pure scorer (hard filters, then weighted soft factors)
- MatchFactors: fixed-key factor breakdown
- ScoreResult: total, factors, hard-fail flag

- models.py: Data structures (MatchFactors, ScoreResult)
- hard_filters.py: Binary eligibility gates
- factors.py: Soft factor calculations
- service.py: CompatibilityScorer orchestrator
"""

from core.scorer.models import MatchFactors, ScoreResult
from core.scorer.service import CompatibilityScorer

__all__ = ['CompatibilityScorer', 'MatchFactors', 'ScoreResult']
