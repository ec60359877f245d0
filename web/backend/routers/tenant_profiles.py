#!/usr/bin/env python3
"""
Tenant profile endpoints - the caller's own housing preferences.
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends

from core.app_context import AppContext
from ..dependencies import get_app_context, get_current_user
from ..models.responses import TenantProfileResponse
from ..services.presenters import tenant_profile_out

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/tenant-profiles", tags=["tenant-profiles"])


@router.post("", response_model=TenantProfileResponse, status_code=201)
def create_tenant_profile(
    data: Dict[str, Any] = Body(...),
    user_id: str = Depends(get_current_user),
    ctx: AppContext = Depends(get_app_context)
):
    """
    Create the caller's tenant profile.

    Matching against active listings starts in the background once the
    profile is stored.
    """
    profile = ctx.profiles.create_tenant_profile(user_id, data)
    return TenantProfileResponse(success=True, profile=tenant_profile_out(profile))


@router.put("", response_model=TenantProfileResponse)
def update_tenant_profile(
    data: Dict[str, Any] = Body(...),
    user_id: str = Depends(get_current_user),
    ctx: AppContext = Depends(get_app_context)
):
    """Partially update the caller's tenant profile."""
    profile = ctx.profiles.update_tenant_profile(user_id, data)
    return TenantProfileResponse(success=True, profile=tenant_profile_out(profile))


@router.get("", response_model=TenantProfileResponse)
def get_tenant_profile(
    user_id: str = Depends(get_current_user),
    ctx: AppContext = Depends(get_app_context)
):
    profile = ctx.profiles.get_tenant_profile(user_id)
    return TenantProfileResponse(success=True, profile=tenant_profile_out(profile))


@router.delete("", response_model=TenantProfileResponse)
def deactivate_tenant_profile(
    user_id: str = Depends(get_current_user),
    ctx: AppContext = Depends(get_app_context)
):
    """
    Soft-deactivate the caller's profile.

    The row is kept for match history; live matches expire.
    """
    profile = ctx.profiles.deactivate_tenant(user_id)
    return TenantProfileResponse(success=True, profile=tenant_profile_out(profile))
