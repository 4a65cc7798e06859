# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Models package - Pydantic schemas and data models for the charity coordination platform.
"""

# Base models
from .base import BaseEntity, BaseRequest, generate_object_id

# Enumerations
from .enums import (
    SponsorshipFrequency,
    SponsorshipStatus,
    UserRole,
    Gender,
    CLAIMING_STATUSES
)

# Core entities
from .entities import (
    Orphan,
    Sponsorship,
    SponsorshipWithOrphan,
    UserContext
)

# Request models
from .requests import (
    CreateSponsorshipRequest,
    UpdateSponsorshipRequest,
    CreateOrphanRequest,
    PaginationParams,
    SponsorshipPath,
    OrphanPath
)

# Response models
from .responses import HalLink

__all__ = [
    "BaseEntity",
    "BaseRequest",
    "generate_object_id",
    "SponsorshipFrequency",
    "SponsorshipStatus",
    "UserRole",
    "Gender",
    "CLAIMING_STATUSES",
    "Orphan",
    "Sponsorship",
    "SponsorshipWithOrphan",
    "UserContext",
    "CreateSponsorshipRequest",
    "UpdateSponsorshipRequest",
    "CreateOrphanRequest",
    "PaginationParams",
    "SponsorshipPath",
    "OrphanPath",
    "HalLink"
]
