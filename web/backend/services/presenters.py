#!/usr/bin/env python3
"""
Conversion of ORM rows into API response models.
"""

from database.models import HousingMatch, HousingMessage, PropertyListing, TenantProfile
from ..models.responses import ListingOut, MatchSummary, MessageOut, TenantProfileOut
from ..utils import safe_float, safe_str, safe_datetime_iso


def tenant_profile_out(profile: TenantProfile) -> TenantProfileOut:
    return TenantProfileOut(
        tenant_profile_id=str(profile.id),
        user_id=profile.user_id,
        target_cities=list(profile.target_cities or []),
        target_countries=list(profile.target_countries or []),
        neighborhoods=list(profile.neighborhoods or []),
        min_budget=safe_float(profile.min_budget),
        max_budget=safe_float(profile.max_budget),
        currency=profile.currency,
        property_types=list(profile.property_types or []),
        min_bedrooms=profile.min_bedrooms,
        max_bedrooms=profile.max_bedrooms,
        move_in_date=safe_datetime_iso(profile.move_in_date),
        move_in_flexibility_days=profile.move_in_flexibility_days,
        min_stay_months=profile.min_stay_months,
        max_stay_months=profile.max_stay_months,
        wants_furnished=profile.wants_furnished,
        has_pets=profile.has_pets,
        smokes=profile.smokes,
        prefers_quiet=profile.prefers_quiet,
        required_amenities=list(profile.required_amenities or []),
        preferred_amenities=list(profile.preferred_amenities or []),
        bio=profile.bio,
        age=profile.age,
        occupation=profile.occupation,
        languages=list(profile.languages or []),
        is_active=bool(profile.is_active),
        last_active_at=safe_datetime_iso(profile.last_active_at),
        created_at=safe_datetime_iso(profile.created_at),
        updated_at=safe_datetime_iso(profile.updated_at),
    )


def listing_out(listing: PropertyListing) -> ListingOut:
    return ListingOut(
        listing_id=str(listing.id),
        landlord_id=listing.landlord_id,
        title=listing.title,
        description=listing.description,
        property_type=listing.property_type,
        address=listing.address,
        city=listing.city,
        country=listing.country,
        neighborhood=listing.neighborhood,
        latitude=safe_float(listing.latitude, None),
        longitude=safe_float(listing.longitude, None),
        rent_amount=safe_float(listing.rent_amount),
        currency=listing.currency,
        deposit_amount=safe_float(listing.deposit_amount, None),
        utilities_included=bool(listing.utilities_included),
        bedrooms=listing.bedrooms,
        bathrooms=listing.bathrooms,
        square_meters=listing.square_meters,
        furnished=bool(listing.furnished),
        pet_friendly=bool(listing.pet_friendly),
        smoking_allowed=bool(listing.smoking_allowed),
        quiet_building=listing.quiet_building,
        amenities=list(listing.amenities or []),
        images=list(listing.images or []),
        available_from=safe_datetime_iso(listing.available_from),
        available_to=safe_datetime_iso(listing.available_to),
        min_stay_months=listing.min_stay_months,
        max_stay_months=listing.max_stay_months,
        status=listing.status,
        is_verified=bool(listing.is_verified),
        listing_tier=listing.listing_tier,
        listing_expires_at=safe_datetime_iso(listing.listing_expires_at),
        total_views=listing.total_views or 0,
        created_at=safe_datetime_iso(listing.created_at),
        updated_at=safe_datetime_iso(listing.updated_at),
    )


def match_summary(match: HousingMatch) -> MatchSummary:
    """Convert ORM model to MatchSummary response model."""
    return MatchSummary(
        match_id=str(match.id),
        tenant_profile_id=str(match.tenant_profile_id),
        listing_id=str(match.listing_id),
        compatibility_score=safe_float(match.compatibility_score),
        match_factors={name: float(value) for name, value in (match.match_factors or {}).items()},
        status=match.status,
        status_reason=match.status_reason,
        tenant_interest=match.tenant_interest,
        landlord_interest=match.landlord_interest,
        messages_count=match.messages_count or 0,
        last_message_at=safe_datetime_iso(match.last_message_at),
        created_at=safe_datetime_iso(match.created_at),
        updated_at=safe_datetime_iso(match.updated_at),
    )


def message_out(message: HousingMessage) -> MessageOut:
    return MessageOut(
        message_id=str(message.id),
        match_id=str(message.match_id),
        sender_id=message.sender_id,
        recipient_id=message.recipient_id,
        body=message.body,
        message_type=safe_str(message.message_type, "text"),
        attachments=list(message.attachments or []),
        is_read=bool(message.is_read),
        read_at=safe_datetime_iso(message.read_at),
        created_at=safe_datetime_iso(message.created_at),
    )
