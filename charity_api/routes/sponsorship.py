# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Sponsorship endpoints.

Donors create and manage their own sponsorships; admins can list active
sponsorships and remove any of them.
"""

from flask import jsonify, current_app
from flask_openapi3 import APIBlueprint, Tag

from ..middleware.auth import require_auth, require_role
from ..middleware.error_handler import ValidationException
from ..middleware.validation import validate_json_body, validate_query_params
from ..models.entities import UserContext
from ..models.enums import UserRole
from ..models.requests import (
    CreateSponsorshipRequest,
    UpdateSponsorshipRequest,
    PaginationParams,
    SponsorshipPath
)

sponsorship_tag = Tag(name="Sponsorships", description="Sponsorship lifecycle operations")
sponsorship_bp = APIBlueprint(
    'sponsorships',
    __name__,
    url_prefix='/api',
    abp_tags=[sponsorship_tag]
)


@sponsorship_bp.post('/sponsorship')
@require_auth
@require_role(UserRole.DONOR.value)
@validate_json_body(CreateSponsorshipRequest)
def create_sponsorship(user_context: UserContext, payload: CreateSponsorshipRequest):
    """
    Sponsor an orphan.

    Claims the orphan and records an active sponsorship in one transaction.
    Returns 409 when another sponsor already holds the orphan.
    """
    result = current_app.sponsorship_workflow.create(payload, user_context.user_id)

    return jsonify({
        "message": f"Sponsorship created successfully for {result.orphan_name}",
        "sponsorship": current_app.hal_formatter.format_sponsorship(
            result.sponsorship.to_json(), user_context
        )
    }), 201


@sponsorship_bp.put('/sponsorship/<sponsorship_id>')
@require_auth
@validate_json_body(UpdateSponsorshipRequest)
def update_sponsorship(user_context: UserContext, payload: UpdateSponsorshipRequest, path: SponsorshipPath):
    """
    Update a sponsorship owned by the caller.

    Setting the status to ``ended`` releases the orphan for a new sponsor.
    """
    if payload.sponsorship_id is not None and payload.sponsorship_id != path.sponsorship_id:
        raise ValidationException(
            "Sponsorship ID in the URL does not match the request body",
            [{"field": "sponsorshipId", "message": "Must match the URL", "type": "value_error"}]
        )

    sponsorship = current_app.sponsorship_workflow.update(payload, user_context.user_id)

    return jsonify({
        "message": "Sponsorship updated successfully",
        "sponsorship": current_app.hal_formatter.format_sponsorship(sponsorship.to_json(), user_context)
    }), 200


@sponsorship_bp.get('/sponsorship/<sponsorship_id>')
@require_auth
def get_sponsorship(user_context: UserContext, path: SponsorshipPath):
    """Get a sponsorship owned by the caller (any sponsorship for admins)."""
    sponsorship = current_app.sponsorship_workflow.get(path.sponsorship_id, user_context)
    return jsonify(current_app.hal_formatter.format_sponsorship(sponsorship.to_json(), user_context)), 200


@sponsorship_bp.get('/sponsorship')
@require_auth
@require_role(UserRole.ADMIN.value)
@validate_query_params(PaginationParams)
def list_sponsorships(user_context: UserContext, params: PaginationParams):
    """List active sponsorships, newest first, at most 10 per page."""
    result = current_app.sponsorship_workflow.list_active(params.page, params.limit)

    return jsonify(current_app.hal_formatter.format_sponsorship_collection(
        [sponsorship.to_json() for sponsorship in result.items],
        result.total,
        result.page,
        result.page_size,
        user_context
    )), 200


@sponsorship_bp.delete('/sponsorship/<sponsorship_id>')
@require_auth
@require_role(UserRole.DONOR.value, UserRole.ADMIN.value)
def delete_sponsorship(user_context: UserContext, path: SponsorshipPath):
    """Delete a sponsorship, releasing its orphan if it still holds the claim."""
    current_app.sponsorship_workflow.delete(path.sponsorship_id, user_context)
    return jsonify({"message": "Sponsorship deleted successfully"}), 200
