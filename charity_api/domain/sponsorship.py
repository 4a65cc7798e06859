# SPDX-License-Identifier: Apache-2.0

"""
Sponsorship domain logic for the create/update lifecycle.

This module contains pure functions for request validation, payment date
calculation and status transitions. Nothing here touches the database; the
sponsorship service applies the results inside a transaction.
"""

import calendar
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Dict, Any, Optional

from ..models.entities import Orphan, Sponsorship
from ..models.enums import SponsorshipFrequency, SponsorshipStatus, CLAIMING_STATUSES
from ..models.requests import CreateSponsorshipRequest, UpdateSponsorshipRequest


FREQUENCY_MONTHS = {
    SponsorshipFrequency.MONTHLY.value: 1,
    SponsorshipFrequency.QUARTERLY.value: 3,
    SponsorshipFrequency.YEARLY.value: 12,
    SponsorshipFrequency.ONE_TIME.value: None,
}

NON_NULLABLE_UPDATE_FIELDS = ("status", "amount", "frequency")


@dataclass
class ValidationResult:
    """Result of sponsorship request validation."""
    is_valid: bool
    errors: List[str]

    def as_error_list(self) -> List[Dict[str, Any]]:
        return [{"message": error} for error in self.errors]


@dataclass
class UpdatePlan:
    """Field changes produced by an update request."""
    sponsorship_fields: Dict[str, Any] = field(default_factory=dict)
    release_orphan: bool = False


def add_months(moment: datetime, months: int) -> datetime:
    """
    Add calendar months, clamping the day to the end of the target month.

    Args:
        moment: Starting datetime
        months: Number of months to add

    Returns:
        Shifted datetime with the same time of day
    """
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def compute_next_payment_date(start_date: datetime, frequency: str) -> Optional[datetime]:
    """
    Derive the next payment date from the start date and frequency.

    Args:
        start_date: Sponsorship start
        frequency: One of the SponsorshipFrequency values

    Returns:
        Next payment datetime, or None for one-time sponsorships

    Raises:
        ValueError: If the frequency is unknown
    """
    if frequency not in FREQUENCY_MONTHS:
        raise ValueError(f"Invalid frequency value: {frequency}")

    months = FREQUENCY_MONTHS[frequency]
    if months is None:
        return None
    return add_months(start_date, months)


def is_valid_frequency(frequency: Optional[str]) -> bool:
    return frequency in FREQUENCY_MONTHS


def holds_claim(status: str) -> bool:
    """Check whether a sponsorship in this status keeps its orphan unavailable."""
    return status in CLAIMING_STATUSES


def validate_create_request(request: CreateSponsorshipRequest) -> ValidationResult:
    """
    Validate a sponsorship creation request before any transaction is opened.

    Args:
        request: Incoming create request

    Returns:
        ValidationResult with validation status and errors
    """
    errors = []

    if not request.orphan_id:
        errors.append("Missing required field: orphanId")

    if not request.frequency:
        errors.append("Missing required field: frequency")
    elif not is_valid_frequency(request.frequency):
        errors.append(
            f"Invalid frequency value: {request.frequency}. "
            f"Expected one of: {', '.join(FREQUENCY_MONTHS)}"
        )

    if request.amount is None:
        errors.append("Missing required field: amount")
    elif request.amount < 1:
        errors.append("Amount must be at least 1.00")

    return ValidationResult(is_valid=len(errors) == 0, errors=errors)


def validate_update_request(request: UpdateSponsorshipRequest) -> ValidationResult:
    """Validate a sponsorship update request before any transaction is opened."""
    errors = []

    if not request.sponsorship_id:
        errors.append("Sponsorship ID is required")

    # Omitting these leaves them unchanged; an explicit null would erase them
    for name in NON_NULLABLE_UPDATE_FIELDS:
        if name in request.model_fields_set and getattr(request, name) is None:
            alias = UpdateSponsorshipRequest.model_fields[name].alias or name
            errors.append(f"Field cannot be null: {alias}")

    return ValidationResult(is_valid=len(errors) == 0, errors=errors)


def build_new_sponsorship(
    request: CreateSponsorshipRequest,
    sponsor_id: str,
    now: datetime
) -> Sponsorship:
    """
    Build the record for a freshly claimed sponsorship.

    Args:
        request: Validated create request
        sponsor_id: Authenticated sponsor
        now: Start date of the sponsorship

    Returns:
        Active Sponsorship with derived payment date
    """
    return Sponsorship(
        sponsor_id=sponsor_id,
        orphan_id=request.orphan_id,
        start_date=now,
        next_payment_date=compute_next_payment_date(now, request.frequency),
        amount=request.amount,
        frequency=request.frequency,
        status=SponsorshipStatus.ACTIVE,
        notes=request.notes,
        created_at=now,
        updated_at=now
    )


def check_status_transition(current: str, requested: Optional[str]) -> Optional[str]:
    """
    Check whether a status change is allowed.

    Returns:
        Error message if the transition is rejected, None otherwise
    """
    if requested is None or requested == current:
        return None

    if current == SponsorshipStatus.ENDED.value and holds_claim(requested):
        return "An ended sponsorship cannot be reactivated; create a new sponsorship instead"

    return None


def plan_update(
    sponsorship: Sponsorship,
    orphan: Optional[Orphan],
    changes: Dict[str, Any],
    now: datetime
) -> UpdatePlan:
    """
    Work out the sponsorship fields to write and whether the orphan is released.

    The orphan is released only by the transition to ``ended``, and only if
    its claim still points at this sponsorship. A frequency change
    recomputes the next payment date from the start date.

    Args:
        sponsorship: Current sponsorship state
        orphan: Linked orphan, if it still exists
        changes: Fields supplied by the caller
        now: Current time

    Returns:
        UpdatePlan describing the writes
    """
    fields = dict(changes)
    release_orphan = False

    if "frequency" in fields:
        fields["next_payment_date"] = compute_next_payment_date(
            sponsorship.start_date or now, fields["frequency"]
        )

    if fields.get("status") == SponsorshipStatus.ENDED.value:
        already_ended = sponsorship.status == SponsorshipStatus.ENDED.value
        if not fields.get("end_date") and not already_ended:
            fields["end_date"] = now
        release_orphan = (
            orphan is not None
            and orphan.current_sponsorship_id == sponsorship.id
        )

    fields["updated_at"] = now
    return UpdatePlan(sponsorship_fields=fields, release_orphan=release_orphan)
