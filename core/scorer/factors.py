#!/usr/bin/env python3
"""
Soft Factors - Normalised (0..1) components of the compatibility score.

Optional tenant preferences that are unset score the neutral factor.
"""

from decimal import Decimal

from database.models import TenantProfile, PropertyListing
from core.utils import clip_unit, normalize_label, normalize_labels
from core.scorer.hard_filters import move_in_offset_days

NEIGHBORHOOD_MATCH = 1.0
CITY_MATCH = 0.75
CITY_MATCH_NEIGHBORHOOD_MISSED = 0.6
COUNTRY_MATCH = 0.4


def budget_fit(tenant: TenantProfile, normalized_rent: Decimal) -> float:
    """1.0 at the midpoint of the budget range, falling linearly to 0.0 at either bound."""
    low = float(tenant.min_budget)
    high = float(tenant.max_budget)
    half_range = (high - low) / 2
    if half_range <= 0:
        return 1.0
    midpoint = low + half_range
    return clip_unit(1.0 - abs(float(normalized_rent) - midpoint) / half_range)


def location_specificity(tenant: TenantProfile, listing: PropertyListing, neutral: float) -> float:
    neighborhoods = normalize_labels(tenant.neighborhoods)
    if neighborhoods and listing.neighborhood and normalize_label(listing.neighborhood) in neighborhoods:
        return NEIGHBORHOOD_MATCH
    if tenant.target_cities:
        return CITY_MATCH_NEIGHBORHOOD_MISSED if neighborhoods else CITY_MATCH
    if tenant.target_countries:
        return COUNTRY_MATCH
    return neutral


def amenity_coverage(tenant: TenantProfile, listing: PropertyListing, neutral: float) -> float:
    """Share of the tenant's required and preferred amenities offered by the listing."""
    wanted = normalize_labels(tenant.required_amenities) | normalize_labels(tenant.preferred_amenities)
    if not wanted:
        return neutral
    offered = normalize_labels(listing.amenities)
    return len(wanted & offered) / len(wanted)


def lifestyle_agreement(tenant: TenantProfile, listing: PropertyListing, neutral: float) -> float:
    """Fraction of the tenant's stated lifestyle flags the listing agrees with."""
    checks = []
    if tenant.wants_furnished is not None:
        checks.append(tenant.wants_furnished == listing.furnished)
    if tenant.has_pets is not None:
        checks.append(listing.pet_friendly or not tenant.has_pets)
    if tenant.smokes is not None:
        checks.append(listing.smoking_allowed or not tenant.smokes)
    if tenant.prefers_quiet is not None and listing.quiet_building is not None:
        checks.append(tenant.prefers_quiet == listing.quiet_building)
    if not checks:
        return neutral
    return sum(1 for ok in checks if ok) / len(checks)


def move_in_proximity(tenant: TenantProfile, listing: PropertyListing) -> float:
    offset = move_in_offset_days(tenant, listing)
    flexibility = tenant.move_in_flexibility_days
    if flexibility <= 0:
        return 1.0 if offset == 0 else 0.0
    return clip_unit(1.0 - offset / flexibility)


def stay_overlap(tenant: TenantProfile, listing: PropertyListing, neutral: float) -> float:
    """Overlap of the stay ranges as a share of the tenant's range; open-ended tenants score neutral."""
    if tenant.max_stay_months is None:
        return neutral
    low = max(tenant.min_stay_months, listing.min_stay_months)
    high = tenant.max_stay_months
    if listing.max_stay_months is not None:
        high = min(high, listing.max_stay_months)
    span = tenant.max_stay_months - tenant.min_stay_months
    if span <= 0:
        return 1.0 if high >= low else 0.0
    return clip_unit((high - low) / span)
