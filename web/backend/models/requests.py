#!/usr/bin/env python3
"""
Request models for API endpoints.

Profile and listing payloads are passed through as plain objects and
validated by core.validation so that field errors share one format.
"""

import uuid
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator


class ComputeMatchesRequest(BaseModel):
    """Trigger an asynchronous rescan for exactly one side."""
    tenant_id: Optional[uuid.UUID] = Field(None, description="Tenant profile to rescan")
    listing_id: Optional[uuid.UUID] = Field(None, description="Listing to rescan")

    @model_validator(mode='after')
    def exactly_one_side(self):
        if (self.tenant_id is None) == (self.listing_id is None):
            raise ValueError("Provide exactly one of tenant_id or listing_id")
        return self


class InterestRequest(BaseModel):
    """Explicit interest from the calling party; false declines the match."""
    interested: bool


class MessageRequest(BaseModel):
    body: str = Field(..., description="Message text (1-2000 characters)")
    message_type: str = Field(default="text", description="text, image or document")
    attachments: List[str] = Field(default_factory=list)


class ListingStatusRequest(BaseModel):
    status: str = Field(..., description="pending, active, inactive or rented")
