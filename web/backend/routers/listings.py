#!/usr/bin/env python3
"""
Listing endpoints - landlord listing management and structured search.
"""

import uuid
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Query

from core.app_context import AppContext
from core.errors import NotAParty
from ..dependencies import get_app_context, get_current_user
from ..models.requests import ListingStatusRequest
from ..models.responses import (
    AnalyticsResponse,
    ListingResponse,
    ListingSearchResponse,
    MatchesPageResponse,
)
from ..services.presenters import listing_out, match_summary

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/listings", tags=["listings"])
landlords_router = APIRouter(prefix="/api/landlords", tags=["listings"])


@router.post("", response_model=ListingResponse, status_code=201)
def create_listing(
    data: Dict[str, Any] = Body(...),
    user_id: str = Depends(get_current_user),
    ctx: AppContext = Depends(get_app_context)
):
    """
    Create a listing owned by the caller.

    New listings start as pending and are not matched until activated.
    """
    listing = ctx.profiles.create_listing(user_id, data)
    return ListingResponse(success=True, listing=listing_out(listing))


@router.get("/search", response_model=ListingSearchResponse)
def search_listings(
    city: Optional[str] = Query(default=None),
    country: Optional[str] = Query(default=None),
    property_type: Optional[str] = Query(default=None),
    min_rent: Optional[float] = Query(default=None),
    max_rent: Optional[float] = Query(default=None),
    min_bedrooms: Optional[int] = Query(default=None),
    max_bedrooms: Optional[int] = Query(default=None),
    furnished: Optional[bool] = Query(default=None),
    pet_friendly: Optional[bool] = Query(default=None),
    available_from: Optional[datetime] = Query(default=None),
    sort_by: str = Query(default="created", description="rent, created or popularity"),
    sort_order: str = Query(default="desc", description="asc or desc"),
    page: int = Query(default=1),
    limit: int = Query(default=20),
    ctx: AppContext = Depends(get_app_context)
):
    """
    Search active listings by structured filters.
    """
    filters = {
        'city': city,
        'country': country,
        'property_type': property_type,
        'min_rent': min_rent,
        'max_rent': max_rent,
        'min_bedrooms': min_bedrooms,
        'max_bedrooms': max_bedrooms,
        'furnished': furnished,
        'pet_friendly': pet_friendly,
        'available_from': available_from,
        'sort_by': sort_by,
        'sort_order': sort_order,
        'page': page,
        'limit': limit,
    }
    result = ctx.profiles.search_listings({k: v for k, v in filters.items() if v is not None})
    return ListingSearchResponse(
        success=True,
        total=result['total'],
        page=result['page'],
        limit=result['limit'],
        listings=[listing_out(listing) for listing in result['items']]
    )


@router.get("/{listing_id}", response_model=ListingResponse)
def get_listing(
    listing_id: uuid.UUID,
    ctx: AppContext = Depends(get_app_context)
):
    """Get a listing; each call counts as a view."""
    listing = ctx.profiles.get_listing(listing_id)
    return ListingResponse(success=True, listing=listing_out(listing))


@router.put("/{listing_id}", response_model=ListingResponse)
def update_listing(
    listing_id: uuid.UUID,
    data: Dict[str, Any] = Body(...),
    user_id: str = Depends(get_current_user),
    ctx: AppContext = Depends(get_app_context)
):
    listing = ctx.profiles.update_listing(listing_id, user_id, data)
    return ListingResponse(success=True, listing=listing_out(listing))


@router.post("/{listing_id}/status", response_model=ListingResponse)
def change_listing_status(
    listing_id: uuid.UUID,
    request: ListingStatusRequest,
    user_id: str = Depends(get_current_user),
    ctx: AppContext = Depends(get_app_context)
):
    """
    Move a listing through pending -> active -> rented/inactive.

    Deactivating or renting out a listing expires its live matches.
    """
    listing = ctx.profiles.change_listing_status(listing_id, user_id, request.status)
    return ListingResponse(success=True, listing=listing_out(listing))


@router.get("/{listing_id}/matches", response_model=MatchesPageResponse)
def get_listing_matches(
    listing_id: uuid.UUID,
    cursor: Optional[str] = Query(default=None, description="Opaque cursor from the previous page"),
    page_size: Optional[int] = Query(default=None, ge=1, le=100),
    include_terminal: bool = Query(default=False, description="Include declined and expired matches"),
    user_id: str = Depends(get_current_user),
    ctx: AppContext = Depends(get_app_context)
):
    """
    Get matches for a listing, best first.

    Ordered by status (contacted, viewed, pending), then score. Only the
    listing's landlord may read them.
    """
    page = ctx.ranking.matches_for_listing(listing_id, cursor, page_size, include_terminal, viewer_id=user_id)
    return MatchesPageResponse(
        success=True,
        count=len(page.items),
        matches=[match_summary(m) for m in page.items],
        next_cursor=page.next_cursor
    )


@landlords_router.get("/{landlord_id}/analytics", response_model=AnalyticsResponse)
def get_landlord_analytics(
    landlord_id: str,
    user_id: str = Depends(get_current_user),
    ctx: AppContext = Depends(get_app_context)
):
    """Views, matches and messages across the landlord's listings."""
    if user_id != landlord_id:
        raise NotAParty("Analytics are only available to the listing owner")
    stats = ctx.profiles.listing_analytics(landlord_id)
    return AnalyticsResponse(success=True, **stats)
