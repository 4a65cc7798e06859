# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Sponsorship workflow service.

Creates, updates and deletes sponsorships while keeping the linked orphan's
availability in step with the sponsorship, always inside one transaction.
An orphan is claimed by at most one active or paused sponsorship at a time.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from ..domain import sponsorship as rules
from ..middleware.error_handler import (
    ValidationException,
    NotFoundException,
    ConflictException,
    AuthorizationException
)
from ..models.entities import Sponsorship, UserContext
from ..models.requests import CreateSponsorshipRequest, UpdateSponsorshipRequest
from .mongodb import PaginationResult
from .repositories import OrphanRepository, SponsorshipRepository
from .transaction import TransactionRunner

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

MAX_PAGE_SIZE = 10


@dataclass
class SponsorshipResult:
    """Committed sponsorship together with the sponsored orphan's name."""
    sponsorship: Sponsorship
    orphan_name: str


class SponsorshipWorkflow:
    """
    Orchestrates the sponsorship lifecycle.

    Each operation hands a callback to the transaction runner; the callback
    locks the rows it is about to change, so two requests racing for the
    same orphan or the same sponsorship are serialized by the store.
    """

    def __init__(
        self,
        transaction_runner: TransactionRunner,
        orphans: OrphanRepository,
        sponsorships: SponsorshipRepository,
        clock: Callable[[], datetime] = datetime.utcnow
    ):
        self.transaction_runner = transaction_runner
        self.orphans = orphans
        self.sponsorships = sponsorships
        self.clock = clock

    def create(self, request: CreateSponsorshipRequest, sponsor_id: str) -> SponsorshipResult:
        """
        Claim an orphan for a new active sponsorship.

        Args:
            request: Create request (orphan, frequency, amount, notes)
            sponsor_id: Authenticated sponsor

        Returns:
            SponsorshipResult with the created sponsorship

        Raises:
            ValidationException: Required input missing or frequency unknown
            NotFoundException: Orphan does not exist
            ConflictException: Orphan already claimed
        """
        validation = rules.validate_create_request(request)
        if not validation.is_valid:
            raise ValidationException("; ".join(validation.errors), validation.as_error_list())

        with tracer.start_as_current_span(
            "sponsorship.create",
            attributes={
                "sponsorship.orphan_id": request.orphan_id,
                "sponsorship.frequency": request.frequency,
                "user.id": sponsor_id
            }
        ) as span:

            def claim_orphan(transaction) -> SponsorshipResult:
                orphan = self.orphans.find_by_id_for_update(request.orphan_id, transaction)
                if orphan is None:
                    raise NotFoundException("Orphan not found")

                if not orphan.is_available_for_sponsorship:
                    raise ConflictException("This orphan is not available for sponsorship")

                draft = rules.build_new_sponsorship(request, sponsor_id, self.clock())
                sponsorship = self.sponsorships.create(draft, transaction)
                self.orphans.update(
                    orphan.id,
                    {
                        "is_available_for_sponsorship": False,
                        "current_sponsorship_id": sponsorship.id,
                        "updated_at": sponsorship.created_at
                    },
                    transaction
                )
                return SponsorshipResult(sponsorship=sponsorship, orphan_name=orphan.name)

            result = self.transaction_runner.run(claim_orphan)

            span.set_attribute("sponsorship.id", result.sponsorship.id)
            span.set_status(Status(StatusCode.OK))
            logger.info(
                "Sponsorship created",
                extra={
                    "sponsorship_id": result.sponsorship.id,
                    "orphan_id": request.orphan_id,
                    "user_id": sponsor_id
                }
            )
            return result

    def update(self, request: UpdateSponsorshipRequest, requester_id: str) -> Sponsorship:
        """
        Apply changes to a sponsorship owned by the requester.

        Ending a sponsorship releases its orphan for a new sponsor; no other
        change touches the orphan.

        Args:
            request: Update request with the sponsorship ID and changed fields
            requester_id: Authenticated user, who must own the sponsorship

        Returns:
            The updated sponsorship

        Raises:
            ValidationException: Sponsorship ID missing
            NotFoundException: No sponsorship with that ID owned by the requester
            ConflictException: Attempt to reactivate an ended sponsorship
        """
        validation = rules.validate_update_request(request)
        if not validation.is_valid:
            raise ValidationException("; ".join(validation.errors), validation.as_error_list())

        changes = request.changed_fields()

        with tracer.start_as_current_span(
            "sponsorship.update",
            attributes={
                "sponsorship.id": request.sponsorship_id,
                "sponsorship.new_status": changes.get("status") or "",
                "user.id": requester_id
            }
        ) as span:

            def apply_changes(transaction) -> Sponsorship:
                current = self.sponsorships.find_one_for_update(
                    request.sponsorship_id, requester_id, transaction
                )
                if current is None:
                    raise NotFoundException("Sponsorship not found or not authorized")

                transition_error = rules.check_status_transition(current.status, changes.get("status"))
                if transition_error:
                    raise ConflictException(transition_error)

                plan = rules.plan_update(current, current.orphan, changes, self.clock())

                if plan.release_orphan:
                    self.orphans.update(
                        current.orphan.id,
                        {
                            "is_available_for_sponsorship": True,
                            "current_sponsorship_id": None,
                            "updated_at": plan.sponsorship_fields["updated_at"]
                        },
                        transaction
                    )

                return self.sponsorships.update(current.id, plan.sponsorship_fields, transaction)

            updated = self.transaction_runner.run(apply_changes)

            span.set_status(Status(StatusCode.OK))
            logger.info(
                "Sponsorship updated",
                extra={
                    "sponsorship_id": updated.id,
                    "status": updated.status,
                    "user_id": requester_id
                }
            )
            return updated

    def get(self, sponsorship_id: str, user_context: UserContext) -> Sponsorship:
        """
        Read a sponsorship visible to the requester.

        Sponsors see their own sponsorships and admins see all; anything else
        is reported as not found.
        """
        sponsorship = self.sponsorships.find_by_id(sponsorship_id)
        if sponsorship is None:
            raise NotFoundException("Sponsorship not found")

        if sponsorship.sponsor_id != user_context.user_id and not user_context.is_admin:
            raise NotFoundException("Sponsorship not found")

        return sponsorship

    def list_active(self, page: int = 1, limit: int = MAX_PAGE_SIZE) -> PaginationResult:
        """Page through active sponsorships, newest first."""
        page = max(page, 1)
        limit = min(max(limit, 1), MAX_PAGE_SIZE)
        return self.sponsorships.find_active(page, limit)

    def delete(self, sponsorship_id: str, user_context: UserContext) -> None:
        """
        Delete a sponsorship owned by the requester (or any, for admins).

        If the orphan is still claimed by this sponsorship, it is released in
        the same transaction.

        Raises:
            NotFoundException: Sponsorship does not exist
            AuthorizationException: Requester neither owns it nor is an admin
        """
        with tracer.start_as_current_span(
            "sponsorship.delete",
            attributes={"sponsorship.id": sponsorship_id, "user.id": user_context.user_id}
        ):

            def remove(transaction) -> None:
                sponsorship = self.sponsorships.find_by_id_for_update(sponsorship_id, transaction)
                if sponsorship is None:
                    raise NotFoundException("Sponsorship not found")

                if sponsorship.sponsor_id != user_context.user_id and not user_context.is_admin:
                    raise AuthorizationException("Forbidden: not your sponsorship")

                orphan = self.orphans.find_by_id_for_update(sponsorship.orphan_id, transaction)
                if orphan is not None and orphan.current_sponsorship_id == sponsorship.id:
                    self.orphans.update(
                        orphan.id,
                        {
                            "is_available_for_sponsorship": True,
                            "current_sponsorship_id": None,
                            "updated_at": self.clock()
                        },
                        transaction
                    )

                self.sponsorships.delete(sponsorship.id, transaction)

            self.transaction_runner.run(remove)
            logger.info(
                "Sponsorship deleted",
                extra={"sponsorship_id": sponsorship_id, "user_id": user_context.user_id}
            )

