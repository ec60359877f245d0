#!/usr/bin/env python3
"""
Compatibility Scorer - 0..100 score and factor breakdown for one pair.

Pure with respect to persistence: reads the two entities and the injected
FX provider only. ExternalDependencyError from the FX provider propagates so
callers can skip and retry the pair.
"""

import logging
from datetime import datetime
from typing import Optional

from database.models import TenantProfile, PropertyListing
from database.types import utcnow
from core.config_loader import ScoringWeights
from core.fx import FxRateProvider
from core.scorer.models import MatchFactors, ScoreResult
from core.scorer import factors as soft
from core.scorer.hard_filters import first_failure, budget_contains

logger = logging.getLogger(__name__)


class CompatibilityScorer:
    def __init__(
        self,
        weights: ScoringWeights,
        fx_provider: FxRateProvider,
        neutral_factor: float = 0.5,
    ):
        self.weights = weights
        self.fx_provider = fx_provider
        self.neutral_factor = neutral_factor

    def score(
        self,
        tenant: TenantProfile,
        listing: PropertyListing,
        now: Optional[datetime] = None,
    ) -> ScoreResult:
        now = now or utcnow()

        failed = first_failure(tenant, listing, now)
        if failed:
            logger.debug(f"Pair {tenant.id}/{listing.id} failed hard filter: {failed}")
            return ScoreResult.failed(failed)

        normalized_rent = self.fx_provider.convert(listing.rent_amount, listing.currency, tenant.currency)
        if normalized_rent is None:
            logger.debug(f"No FX rate {listing.currency}->{tenant.currency} for pair {tenant.id}/{listing.id}")
            return ScoreResult.failed('currency')
        if not budget_contains(tenant, normalized_rent):
            return ScoreResult.failed('budget')

        neutral = self.neutral_factor
        factors = MatchFactors(
            budget_fit=soft.budget_fit(tenant, normalized_rent),
            location=soft.location_specificity(tenant, listing, neutral),
            amenity_coverage=soft.amenity_coverage(tenant, listing, neutral),
            lifestyle=soft.lifestyle_agreement(tenant, listing, neutral),
            move_in=soft.move_in_proximity(tenant, listing),
            stay_overlap=soft.stay_overlap(tenant, listing, neutral),
        )

        return ScoreResult(
            total=self.weighted_total(factors),
            factors=factors,
            hard_fail=False,
            normalized_rent=normalized_rent,
        )

    def weighted_total(self, factors: MatchFactors) -> float:
        w = self.weights
        weighted = (
            w.budget * factors.budget_fit
            + w.location * factors.location
            + w.amenities * factors.amenity_coverage
            + w.lifestyle * factors.lifestyle
            + w.move_in * factors.move_in
            + w.stay * factors.stay_overlap
        )
        return round(min(100.0, max(0.0, 100.0 * weighted)), 2)
