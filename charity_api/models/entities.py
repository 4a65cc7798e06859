# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Core entity models for the charity coordination platform.
"""

from datetime import datetime
from typing import Optional, Dict, Any
from pydantic import BaseModel, Field, field_validator, ConfigDict
from .base import BaseEntity
from .enums import (
    SponsorshipFrequency,
    SponsorshipStatus,
    UserRole,
    Gender
)


class Orphan(BaseEntity):
    """Orphan entity referenced by sponsorships."""
    
    name: str = Field(..., min_length=1, max_length=200, description="Orphan name")
    age: int = Field(..., ge=0, le=18, description="Age in years")
    gender: Gender = Field(..., description="Gender")
    orphanage_id: str = Field(..., description="Orphanage the orphan lives in")
    education_status: Optional[str] = Field(None, description="Education status")
    health_condition: Optional[str] = Field(None, description="Health condition")
    background: Optional[str] = Field(None, description="Background information")
    profile_image: Optional[str] = Field(None, description="Profile image URL")
    is_available_for_sponsorship: bool = Field(default=True, description="Whether a sponsor may claim this orphan")
    current_sponsorship_id: Optional[str] = Field(None, description="Sponsorship currently holding the claim")
    
    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        """Validate orphan name."""
        if not v.strip():
            raise ValueError('Orphan name cannot be empty')
        return v.strip()


class Sponsorship(BaseEntity):
    """Recurring or one-time financial commitment by a sponsor to an orphan."""
    
    sponsor_id: str = Field(..., description="User who owns the sponsorship")
    orphan_id: str = Field(..., description="Sponsored orphan")
    start_date: datetime = Field(default_factory=datetime.utcnow, description="Start of the sponsorship")
    next_payment_date: Optional[datetime] = Field(None, description="Next payment due, None for one-time")
    end_date: Optional[datetime] = Field(None, description="Set when the sponsorship ends")
    amount: float = Field(..., ge=1, description="Amount per payment")
    frequency: SponsorshipFrequency = Field(default=SponsorshipFrequency.MONTHLY, description="Payment frequency")
    status: SponsorshipStatus = Field(default=SponsorshipStatus.ACTIVE, description="Lifecycle status")
    notes: Optional[str] = Field(None, description="Free-form notes")


class SponsorshipWithOrphan(Sponsorship):
    """Sponsorship joined with its orphan, as loaded for update."""
    
    orphan: Optional[Orphan] = Field(None, description="Linked orphan")


class UserContext(BaseModel):
    """User context for request processing with authentication and authorization data."""
    
    user_id: str = Field(..., description="Authenticated user ID")
    role: UserRole = Field(..., description="User's platform role")
    email: Optional[str] = Field(None, description="User email")
    name: Optional[str] = Field(None, description="User display name")
    token_payload: Optional[Dict[str, Any]] = Field(None, description="Original JWT payload")
    ip_address: Optional[str] = Field(None, description="Client IP address")
    user_agent: Optional[str] = Field(None, description="Client user agent")
    
    model_config = ConfigDict(
        use_enum_values=True
    )
    
    def has_role(self, *roles: str) -> bool:
        """Check if the user has one of the given roles."""
        return self.role in roles
    
    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value
