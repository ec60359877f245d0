#!/usr/bin/env python3
"""
Match endpoints - compute, browse and act on housing matches.
"""

import uuid
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from core.app_context import AppContext
from ..dependencies import get_app_context, get_current_user
from ..models.requests import ComputeMatchesRequest, InterestRequest, MessageRequest
from ..models.responses import (
    ComputeMatchesResponse,
    MarkReadResponse,
    MatchesPageResponse,
    MatchResponse,
    MessageResponse,
    ThreadResponse,
)
from ..services.presenters import match_summary, message_out

logger = logging.getLogger(__name__)

limiter = Limiter(key_func=get_remote_address)

router = APIRouter(prefix="/api", tags=["matches"])


def add_rate_limit_handlers(app):
    """Add rate limit exception handlers to the FastAPI app."""
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


async def _rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    return JSONResponse(
        status_code=429,
        content={"success": False, "error": str(exc), "type": "RateLimitExceeded"}
    )


@router.post("/matches/compute", response_model=ComputeMatchesResponse, status_code=202)
@limiter.limit("10/minute")
def compute_matches(
    request: Request,
    body: ComputeMatchesRequest,
    ctx: AppContext = Depends(get_app_context)
):
    """
    Trigger a background rescan for a tenant or a listing.

    Returns immediately; results show up in the match listings once the
    rescan has been persisted.
    """
    if body.tenant_id is not None:
        ctx.profiles.get_tenant_profile_by_id(body.tenant_id)
        ctx.dispatcher.compute_for_tenant(body.tenant_id)
        return ComputeMatchesResponse(
            success=True,
            message="Rescan queued",
            tenant_id=str(body.tenant_id)
        )

    ctx.profiles.get_listing(body.listing_id, count_view=False)
    ctx.dispatcher.compute_for_listing(body.listing_id)
    return ComputeMatchesResponse(
        success=True,
        message="Rescan queued",
        listing_id=str(body.listing_id)
    )


@router.get("/tenants/{tenant_profile_id}/matches", response_model=MatchesPageResponse)
def get_tenant_matches(
    tenant_profile_id: uuid.UUID,
    cursor: Optional[str] = Query(default=None, description="Opaque cursor from the previous page"),
    page_size: Optional[int] = Query(default=None, ge=1, le=100),
    include_terminal: bool = Query(default=False, description="Include declined and expired matches"),
    user_id: str = Depends(get_current_user),
    ctx: AppContext = Depends(get_app_context)
):
    """
    Get matches for a tenant profile, best first.

    Pages are cursor based, so matches inserted meanwhile never shift
    results already returned. Only the tenant may read them.
    """
    page = ctx.ranking.matches_for_tenant(tenant_profile_id, cursor, page_size, include_terminal, viewer_id=user_id)
    return MatchesPageResponse(
        success=True,
        count=len(page.items),
        matches=[match_summary(m) for m in page.items],
        next_cursor=page.next_cursor
    )


@router.get("/matches/{match_id}", response_model=MatchResponse)
def get_match(
    match_id: uuid.UUID,
    user_id: str = Depends(get_current_user),
    ctx: AppContext = Depends(get_app_context)
):
    match = ctx.lifecycle.get_match(match_id, user_id)
    return MatchResponse(success=True, match=match_summary(match))


@router.post("/matches/{match_id}/view", response_model=MatchResponse)
def view_match(
    match_id: uuid.UUID,
    user_id: str = Depends(get_current_user),
    ctx: AppContext = Depends(get_app_context)
):
    """Record that the caller opened the match (pending -> viewed)."""
    match = ctx.lifecycle.mark_viewed(match_id, user_id)
    return MatchResponse(success=True, match=match_summary(match))


@router.post("/matches/{match_id}/interest", response_model=MatchResponse)
def set_interest(
    match_id: uuid.UUID,
    request: InterestRequest,
    user_id: str = Depends(get_current_user),
    ctx: AppContext = Depends(get_app_context)
):
    """
    Express interest as the tenant or the landlord of the match.

    interested=false declines the match for both parties.
    """
    party = ctx.lifecycle.party_for(match_id, user_id)
    match = ctx.lifecycle.set_interest(match_id, party, request.interested, actor_id=user_id)
    return MatchResponse(success=True, match=match_summary(match))


@router.post("/matches/{match_id}/messages", response_model=MessageResponse, status_code=201)
def post_message(
    match_id: uuid.UUID,
    request: MessageRequest,
    user_id: str = Depends(get_current_user),
    ctx: AppContext = Depends(get_app_context)
):
    message = ctx.messaging.post_message(
        match_id,
        user_id,
        request.body,
        message_type=request.message_type,
        attachments=request.attachments
    )
    return MessageResponse(success=True, message=message_out(message))


@router.get("/matches/{match_id}/messages", response_model=ThreadResponse)
def get_messages(
    match_id: uuid.UUID,
    user_id: str = Depends(get_current_user),
    ctx: AppContext = Depends(get_app_context)
):
    """Get the thread in sending order."""
    messages = ctx.messaging.get_thread(match_id, user_id)
    unread = sum(1 for m in messages if m.recipient_id == user_id and not m.is_read)
    return ThreadResponse(
        success=True,
        count=len(messages),
        unread=unread,
        messages=[message_out(m) for m in messages]
    )


@router.post("/matches/{match_id}/read", response_model=MarkReadResponse)
def mark_read(
    match_id: uuid.UUID,
    user_id: str = Depends(get_current_user),
    ctx: AppContext = Depends(get_app_context)
):
    updated = ctx.messaging.mark_read(match_id, user_id)
    return MarkReadResponse(success=True, match_id=str(match_id), marked_read=updated)
