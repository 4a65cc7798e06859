# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Orphan registry endpoints.
"""

from flask import jsonify, current_app
from flask_openapi3 import APIBlueprint, Tag

from ..middleware.auth import require_auth, require_role
from ..middleware.validation import validate_json_body, validate_query_params
from ..models.entities import UserContext
from ..models.enums import UserRole
from ..models.requests import CreateOrphanRequest, PaginationParams, OrphanPath

orphan_tag = Tag(name="Orphans", description="Orphan registry")
orphan_bp = APIBlueprint(
    'orphans',
    __name__,
    url_prefix='/api',
    abp_tags=[orphan_tag]
)


@orphan_bp.post('/orphan')
@require_auth
@require_role(UserRole.ADMIN.value)
@validate_json_body(CreateOrphanRequest)
def create_orphan(user_context: UserContext, payload: CreateOrphanRequest):
    """Register an orphan."""
    orphan = current_app.orphan_service.create(payload)
    return jsonify({
        "message": "Orphan created successfully",
        "orphan": current_app.hal_formatter.format_orphan(orphan.to_json(), user_context)
    }), 201


@orphan_bp.get('/orphan/available')
@require_auth
@validate_query_params(PaginationParams)
def list_available_orphans(user_context: UserContext, params: PaginationParams):
    """List orphans open for sponsorship."""
    result = current_app.orphan_service.list_available(params.page, params.limit)
    return jsonify(current_app.hal_formatter.format_orphan_collection(
        [orphan.to_json() for orphan in result.items],
        result.total,
        result.page,
        result.page_size,
        user_context
    )), 200


@orphan_bp.get('/orphan/<orphan_id>')
@require_auth
def get_orphan(user_context: UserContext, path: OrphanPath):
    orphan = current_app.orphan_service.get(path.orphan_id)
    return jsonify(current_app.hal_formatter.format_orphan(orphan.to_json(), user_context)), 200
