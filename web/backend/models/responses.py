#!/usr/bin/env python3
"""
Response models for API endpoints.
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional, Dict


class TenantProfileOut(BaseModel):
    tenant_profile_id: str
    user_id: str
    target_cities: List[str]
    target_countries: List[str]
    neighborhoods: List[str]
    min_budget: float
    max_budget: float
    currency: str
    property_types: List[str]
    min_bedrooms: int
    max_bedrooms: Optional[int]
    move_in_date: Optional[str]
    move_in_flexibility_days: int
    min_stay_months: int
    max_stay_months: Optional[int]
    wants_furnished: Optional[bool]
    has_pets: Optional[bool]
    smokes: Optional[bool]
    prefers_quiet: Optional[bool]
    required_amenities: List[str]
    preferred_amenities: List[str]
    bio: Optional[str]
    age: Optional[int]
    occupation: Optional[str]
    languages: List[str]
    is_active: bool
    last_active_at: Optional[str]
    created_at: Optional[str]
    updated_at: Optional[str]


class TenantProfileResponse(BaseModel):
    success: bool
    profile: TenantProfileOut


class ListingOut(BaseModel):
    listing_id: str
    landlord_id: str
    title: str
    description: Optional[str]
    property_type: str
    address: Optional[str]
    city: str
    country: str
    neighborhood: Optional[str]
    latitude: Optional[float]
    longitude: Optional[float]
    rent_amount: float
    currency: str
    deposit_amount: Optional[float]
    utilities_included: bool
    bedrooms: int
    bathrooms: int
    square_meters: Optional[int]
    furnished: bool
    pet_friendly: bool
    smoking_allowed: bool
    quiet_building: Optional[bool]
    amenities: List[str]
    images: List[str]
    available_from: Optional[str]
    available_to: Optional[str]
    min_stay_months: int
    max_stay_months: Optional[int]
    status: str
    is_verified: bool
    listing_tier: str
    listing_expires_at: Optional[str]
    total_views: int
    created_at: Optional[str]
    updated_at: Optional[str]


class ListingResponse(BaseModel):
    success: bool
    listing: ListingOut


class ListingSearchResponse(BaseModel):
    success: bool
    total: int
    page: int
    limit: int
    listings: List[ListingOut]


class ListingStats(BaseModel):
    listing_id: str
    title: str
    status: str
    views: int
    match_count: int
    message_count: int


class AnalyticsResponse(BaseModel):
    success: bool
    total_listings: int
    total_views: int
    total_matches: int
    total_messages: int
    listings: List[ListingStats]


class MatchSummary(BaseModel):
    """Summary of a housing match."""
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "match_id": "550e8400-e29b-41d4-a716-446655440000",
                "tenant_profile_id": "6ba7b810-9dad-11d1-80b4-00c04fd430c8",
                "listing_id": "7c9e6679-7425-40de-944b-e07fc1f90ae7",
                "compatibility_score": 88.75,
                "match_factors": {
                    "budget_fit": 1.0,
                    "location": 0.75,
                    "amenity_coverage": 1.0,
                    "lifestyle": 0.5,
                    "move_in": 1.0,
                    "stay_overlap": 1.0
                },
                "status": "pending",
                "messages_count": 0,
                "created_at": "2026-02-01T12:00:00+00:00"
            }
        }
    )

    match_id: str
    tenant_profile_id: str
    listing_id: str
    compatibility_score: float = Field(ge=0, le=100)
    match_factors: Dict[str, float]
    status: str
    status_reason: Optional[str] = None
    tenant_interest: Optional[bool] = None
    landlord_interest: Optional[bool] = None
    messages_count: int = 0
    last_message_at: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class MatchResponse(BaseModel):
    success: bool
    match: MatchSummary


class MatchesPageResponse(BaseModel):
    """Response for a page of matches."""
    success: bool
    count: int
    matches: List[MatchSummary]
    next_cursor: Optional[str] = None


class ComputeMatchesResponse(BaseModel):
    success: bool
    message: str
    tenant_id: Optional[str] = None
    listing_id: Optional[str] = None


class MessageOut(BaseModel):
    message_id: str
    match_id: str
    sender_id: str
    recipient_id: str
    body: str
    message_type: str
    attachments: List[str]
    is_read: bool
    read_at: Optional[str]
    created_at: Optional[str]


class MessageResponse(BaseModel):
    success: bool
    message: MessageOut


class ThreadResponse(BaseModel):
    success: bool
    count: int
    unread: int
    messages: List[MessageOut]


class MarkReadResponse(BaseModel):
    success: bool
    match_id: str
    marked_read: int
