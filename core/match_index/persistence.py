"""
Per-pair persistence rules of the Match Index.

One call handles one scored pair inside the caller's unit of work:
- live match present: refresh score/factors in place (status, counters and
  lifecycle timestamps untouched)
- no live match: create one only if the score clears the threshold and the
  pair is allowed to re-qualify
"""

import logging
from datetime import datetime
from typing import Optional, Tuple

from database.models import HousingMatch, MatchStatus, PropertyListing, TenantProfile
from database.repository import HousingRepository
from core.scorer.models import ScoreResult

logger = logging.getLogger(__name__)


class UpsertOutcome:
    CREATED = 'created'
    UPDATED = 'updated'
    UNCHANGED = 'unchanged'
    EXPIRED = 'expired'
    REJECTED = 'rejected'
    BELOW_THRESHOLD = 'below_threshold'
    SUPPRESSED = 'suppressed'
    FAILED = 'failed'


def may_requalify(retired: HousingMatch, tenant: TenantProfile, listing: PropertyListing) -> bool:
    """
    Declined pairs stay closed. Expired pairs reopen only once either side
    has changed since the match was retired.
    """
    if retired.status == MatchStatus.DECLINED:
        return False
    last_change = max(tenant.updated_at, listing.updated_at)
    return last_change > retired.updated_at


def rank_key(tenant: TenantProfile, listing: PropertyListing, result: ScoreResult):
    """Order for capping new matches: score, amenity coverage, newer listing, lower rent."""
    return (
        -result.total,
        -result.factors.amenity_coverage,
        -listing.created_at.timestamp(),
        float(result.normalized_rent),
        str(listing.id),
        str(tenant.id),
    )


def persist_score(
    repo: HousingRepository,
    tenant: TenantProfile,
    listing: PropertyListing,
    result: ScoreResult,
    threshold: float,
    now: datetime,
) -> Tuple[str, Optional[HousingMatch]]:
    live = repo.matches.get_live(tenant.id, listing.id)

    if result.hard_fail:
        return UpsertOutcome.REJECTED, live

    factors = result.factors.to_dict()

    if live is not None:
        if float(live.compatibility_score) == result.total and live.match_factors == factors:
            return UpsertOutcome.UNCHANGED, live
        repo.matches.update_score(live.id, result.total, factors, now)
        return UpsertOutcome.UPDATED, live

    if result.total < threshold:
        return UpsertOutcome.BELOW_THRESHOLD, None

    retired = repo.matches.latest_retired(tenant.id, listing.id)
    if retired is not None and not may_requalify(retired, tenant, listing):
        logger.debug(f"Pair {tenant.id}/{listing.id} stays retired ({retired.status})")
        return UpsertOutcome.SUPPRESSED, None

    match = repo.matches.create(tenant.id, listing.id, result.total, factors, now)
    return UpsertOutcome.CREATED, match
