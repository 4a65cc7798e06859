# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Enumeration types for the charity coordination platform.
"""

from enum import Enum


class SponsorshipFrequency(str, Enum):
    """How often a sponsor contributes."""
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"
    ONE_TIME = "one-time"


class SponsorshipStatus(str, Enum):
    """Sponsorship lifecycle status enumeration."""
    ACTIVE = "active"
    PAUSED = "paused"
    ENDED = "ended"


class UserRole(str, Enum):
    """Platform roles carried in the access token."""
    ADMIN = "admin"
    DONOR = "donor"
    VOLUNTEER = "volunteer"


class Gender(str, Enum):
    """Orphan gender enumeration."""
    MALE = "male"
    FEMALE = "female"


# Statuses that hold a claim on the sponsored orphan
CLAIMING_STATUSES = frozenset({SponsorshipStatus.ACTIVE.value, SponsorshipStatus.PAUSED.value})
