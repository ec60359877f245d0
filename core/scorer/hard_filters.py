#!/usr/bin/env python3
"""
Hard Filters - Binary eligibility gates for a tenant/listing pair.

Each gate returns True when the pair is eligible. Gates are evaluated in
order and the first failure names the result; the budget gate needs an FX
lookup and is evaluated last by the scorer.
"""

from datetime import datetime
from decimal import Decimal
from typing import Callable, List, Optional, Tuple

from database.models import TenantProfile, PropertyListing
from core.utils import normalize_label, normalize_labels


def move_in_offset_days(tenant: TenantProfile, listing: PropertyListing) -> int:
    """Whole calendar days between the move-in date and the listing's availability."""
    return abs((listing.available_from.date() - tenant.move_in_date.date()).days)


def listing_is_live(tenant: TenantProfile, listing: PropertyListing, now: datetime) -> bool:
    return listing.is_live(now)


def tenant_is_active(tenant: TenantProfile, listing: PropertyListing, now: datetime) -> bool:
    return bool(tenant.is_active)


def location_matches(tenant: TenantProfile, listing: PropertyListing, now: datetime) -> bool:
    if tenant.target_cities and normalize_label(listing.city) not in normalize_labels(tenant.target_cities):
        return False
    if tenant.target_countries and normalize_label(listing.country) not in normalize_labels(tenant.target_countries):
        return False
    return True


def property_type_matches(tenant: TenantProfile, listing: PropertyListing, now: datetime) -> bool:
    return not tenant.property_types or listing.property_type in tenant.property_types


def bedrooms_in_range(tenant: TenantProfile, listing: PropertyListing, now: datetime) -> bool:
    if listing.bedrooms < tenant.min_bedrooms:
        return False
    return tenant.max_bedrooms is None or listing.bedrooms <= tenant.max_bedrooms


def required_amenities_present(tenant: TenantProfile, listing: PropertyListing, now: datetime) -> bool:
    return normalize_labels(tenant.required_amenities) <= normalize_labels(listing.amenities)


def move_in_window(tenant: TenantProfile, listing: PropertyListing, now: datetime) -> bool:
    if move_in_offset_days(tenant, listing) > tenant.move_in_flexibility_days:
        return False
    # A listing whose availability ends before the move-in date cannot host the stay at all
    return listing.available_to is None or listing.available_to.date() >= tenant.move_in_date.date()


def stay_ranges_overlap(tenant: TenantProfile, listing: PropertyListing, now: datetime) -> bool:
    low = max(tenant.min_stay_months, listing.min_stay_months)
    highs = [v for v in (tenant.max_stay_months, listing.max_stay_months) if v is not None]
    return not highs or low <= min(highs)


def budget_contains(tenant: TenantProfile, normalized_rent: Optional[Decimal]) -> bool:
    if normalized_rent is None:
        return False
    return Decimal(str(tenant.min_budget)) <= normalized_rent <= Decimal(str(tenant.max_budget))


HardFilter = Callable[[TenantProfile, PropertyListing, datetime], bool]

HARD_FILTERS: List[Tuple[str, HardFilter]] = [
    ('listing_status', listing_is_live),
    ('tenant_status', tenant_is_active),
    ('location', location_matches),
    ('property_type', property_type_matches),
    ('bedrooms', bedrooms_in_range),
    ('required_amenities', required_amenities_present),
    ('move_in', move_in_window),
    ('stay_duration', stay_ranges_overlap),
]


def first_failure(tenant: TenantProfile, listing: PropertyListing, now: datetime) -> Optional[str]:
    """Name of the first failing gate (excluding budget), or None."""
    for name, check in HARD_FILTERS:
        if not check(tenant, listing, now):
            return name
    return None
