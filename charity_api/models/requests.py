# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Request models for API endpoints.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, field_validator
from .base import BaseRequest
from .enums import SponsorshipFrequency, SponsorshipStatus, Gender


class CreateSponsorshipRequest(BaseRequest):
    """
    Request model for creating a sponsorship.
    
    ``orphan_id`` and ``frequency`` are checked by the sponsorship domain
    rules rather than here, so a missing or unknown value is reported with
    the same validation error whether the request arrives over HTTP or not.
    """
    
    orphan_id: Optional[str] = Field(None, description="Orphan to sponsor")
    frequency: Optional[str] = Field(None, description="monthly, quarterly, yearly or one-time")
    amount: Optional[float] = Field(None, description="Amount per payment")
    notes: Optional[str] = Field(None, max_length=2000, description="Additional notes")


class UpdateSponsorshipRequest(BaseRequest):
    """Request model for updating a sponsorship."""
    
    sponsorship_id: Optional[str] = Field(None, description="Sponsorship to update")
    status: Optional[SponsorshipStatus] = Field(None, description="New lifecycle status")
    amount: Optional[float] = Field(None, ge=1, description="New amount per payment")
    frequency: Optional[SponsorshipFrequency] = Field(None, description="New payment frequency")
    end_date: Optional[datetime] = Field(None, description="End date, defaults to now when ending")
    notes: Optional[str] = Field(None, max_length=2000, description="Updated notes")
    
    def changed_fields(self) -> dict:
        """Mutable fields explicitly supplied by the caller."""
        return self.model_dump(exclude_unset=True, exclude={'sponsorship_id'})


class CreateOrphanRequest(BaseRequest):
    """Request model for registering an orphan."""
    
    name: str = Field(..., min_length=1, max_length=200, description="Orphan name")
    age: int = Field(..., ge=0, le=18, description="Age in years")
    gender: Gender = Field(..., description="Gender")
    orphanage_id: str = Field(..., description="Orphanage identifier")
    education_status: Optional[str] = Field(None, description="Education status")
    health_condition: Optional[str] = Field(None, description="Health condition")
    background: Optional[str] = Field(None, description="Background information")
    profile_image: Optional[str] = Field(None, description="Profile image URL")
    is_available_for_sponsorship: bool = Field(default=True, description="Open for sponsorship")
    
    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        """Validate orphan name."""
        if not v.strip():
            raise ValueError('Orphan name cannot be empty')
        return v.strip()


class PaginationParams(BaseRequest):
    """Pagination parameters."""
    
    page: int = Field(default=1, ge=1, description="Page number")
    limit: int = Field(default=10, ge=1, description="Items per page (capped at 10)")


class SponsorshipPath(BaseModel):
    """Path parameters for sponsorship resources."""
    
    sponsorship_id: str = Field(..., description="Sponsorship ID")


class OrphanPath(BaseModel):
    """Path parameters for orphan resources."""
    
    orphan_id: str = Field(..., description="Orphan ID")
