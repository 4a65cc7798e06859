# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
HAL (Hypertext Application Language) response formatting utilities.
Implements HATEOAS responses with conditional affordance links.
"""

from typing import Dict, List, Any, Optional
from urllib.parse import urljoin, urlencode
import math

from ..models.responses import HalLink
from ..models.entities import UserContext
from ..models.enums import SponsorshipStatus, UserRole

PROBLEM_BASE_URL = "https://api.charity-coordination.org/problems"


class HalLinkBuilder:
    """Builder for HAL links with proper URL construction."""

    def __init__(self, base_url: str):
        self.base_url = base_url.rstrip('/') + '/'

    def build_link(
        self,
        path: str,
        method: str = "GET",
        content_type: Optional[str] = None,
        title: Optional[str] = None,
        templated: bool = False
    ) -> HalLink:
        """Build a HAL link with proper URL construction."""
        href = urljoin(self.base_url, path.lstrip('/'))

        return HalLink(
            href=href,
            method=method,
            type=content_type,
            title=title,
            templated=templated or None
        )

    def build_self_link(self, resource_path: str) -> HalLink:
        """Build self link for a resource."""
        return self.build_link(resource_path, title="Self")

    def build_collection_link(self, collection_path: str) -> HalLink:
        """Build link to parent collection."""
        return self.build_link(collection_path, title="Collection")


class PaginationLinkBuilder:
    """Builder for pagination links in HAL collections."""

    def __init__(self, base_url: str):
        self.link_builder = HalLinkBuilder(base_url)

    def _page_link(self, base_path: str, page: int, limit: int, params: Dict[str, Any], title: str) -> HalLink:
        query = urlencode({**params, 'page': page, 'limit': limit})
        return self.link_builder.build_link(f"{base_path}?{query}", title=title)

    def build_pagination_links(
        self,
        base_path: str,
        current_page: int,
        total_pages: int,
        limit: int,
        query_params: Optional[Dict[str, Any]] = None
    ) -> Dict[str, HalLink]:
        """Build pagination links for a collection."""
        params = query_params or {}
        links = {'self': self._page_link(base_path, current_page, limit, params, "Current page")}

        if current_page > 1:
            links['first'] = self._page_link(base_path, 1, limit, params, "First page")
            links['prev'] = self._page_link(base_path, current_page - 1, limit, params, "Previous page")

        if current_page < total_pages:
            links['next'] = self._page_link(base_path, current_page + 1, limit, params, "Next page")
            links['last'] = self._page_link(base_path, total_pages, limit, params, "Last page")

        return links


class HalResponseBuilder:
    """Builds HAL resources, collections and RFC 7807 problem documents."""

    def __init__(self, base_url: str):
        self.link_builder = HalLinkBuilder(base_url)
        self.pagination_builder = PaginationLinkBuilder(base_url)

    def build_resource_response(self, resource: Dict[str, Any], links: Dict[str, HalLink]) -> Dict[str, Any]:
        """Attach ``_links`` to a serialized resource."""
        response = dict(resource)
        response['_links'] = {
            rel: link.model_dump(exclude_none=True) for rel, link in links.items()
        }
        return response

    def build_collection_response(
        self,
        items: List[Dict[str, Any]],
        total: int,
        page: int,
        limit: int,
        collection_path: str,
        embedded_name: str = 'items',
        query_params: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """Build a HAL collection response with pagination links."""
        total_pages = math.ceil(total / limit) if limit > 0 else 1

        pagination_links = self.pagination_builder.build_pagination_links(
            collection_path,
            page,
            total_pages,
            limit,
            query_params
        )

        return {
            'totalItems': total,
            'currentPage': page,
            'limit': limit,
            'totalPages': total_pages,
            '_links': {rel: link.model_dump(exclude_none=True) for rel, link in pagination_links.items()},
            '_embedded': {
                embedded_name: items
            }
        }

    def build_error_response(
        self,
        error_type: str,
        title: str,
        status: int,
        detail: str,
        instance: str,
        validation_errors: Optional[List[Dict[str, Any]]] = None
    ) -> Dict[str, Any]:
        """Build RFC 7807 compliant error response with HAL links."""
        error_response = {
            'type': f"{PROBLEM_BASE_URL}/{error_type}",
            'title': title,
            'status': status,
            'detail': detail,
            'instance': instance
        }

        if validation_errors:
            error_response['errors'] = validation_errors

        links = {
            'help': self.link_builder.build_link(
                f"/docs/errors#{error_type}",
                title="Error documentation"
            )
        }

        if error_type == "validation-error":
            links['schema'] = self.link_builder.build_link(
                "/openapi/openapi.json",
                title="API schema"
            )
        elif error_type == "resource-conflict":
            links['available-orphans'] = self.link_builder.build_link(
                "/api/orphan/available",
                title="Orphans available for sponsorship"
            )

        error_response['_links'] = {
            rel: link.model_dump(exclude_none=True) for rel, link in links.items()
        }
        return error_response


class HalFormatter:
    """High-level HAL formatter with convenience methods."""

    def __init__(self, base_url: str):
        self.builder = HalResponseBuilder(base_url)

    @property
    def link_builder(self) -> HalLinkBuilder:
        return self.builder.link_builder

    def format_sponsorship(self, sponsorship: Dict[str, Any], user_context: UserContext) -> Dict[str, Any]:
        """Format a sponsorship with conditional affordances for its owner."""
        path = f"/api/sponsorship/{sponsorship['id']}"
        links = {
            'self': self.link_builder.build_self_link(path),
            'orphan': self.link_builder.build_link(f"/api/orphan/{sponsorship['orphanId']}", title="Sponsored orphan")
        }

        is_owner = sponsorship.get('sponsorId') == user_context.user_id
        if is_owner and sponsorship.get('status') != SponsorshipStatus.ENDED.value:
            links['edit'] = self.link_builder.build_link(
                path, method="PUT", content_type="application/json", title="Update sponsorship"
            )

        if is_owner or user_context.role == UserRole.ADMIN.value:
            links['delete'] = self.link_builder.build_link(path, method="DELETE", title="Delete sponsorship")

        if user_context.role == UserRole.ADMIN.value:
            links['collection'] = self.link_builder.build_collection_link("/api/sponsorship")

        return self.builder.build_resource_response(sponsorship, links)

    def format_sponsorship_collection(
        self,
        sponsorships: List[Dict[str, Any]],
        total: int,
        page: int,
        limit: int,
        user_context: UserContext
    ) -> Dict[str, Any]:
        """Format a page of sponsorships with HAL links."""
        items = [self.format_sponsorship(item, user_context) for item in sponsorships]
        return self.builder.build_collection_response(
            items, total, page, limit, "/api/sponsorship", embedded_name="sponsorships"
        )

    def format_orphan(self, orphan: Dict[str, Any], user_context: UserContext) -> Dict[str, Any]:
        """Format an orphan, offering the sponsor action while it is available."""
        path = f"/api/orphan/{orphan['id']}"
        links = {'self': self.link_builder.build_self_link(path)}

        if orphan.get('isAvailableForSponsorship') and user_context.role == UserRole.DONOR.value:
            links['sponsor'] = self.link_builder.build_link(
                "/api/sponsorship", method="POST", content_type="application/json", title="Sponsor this orphan"
            )

        return self.builder.build_resource_response(orphan, links)

    def format_orphan_collection(
        self,
        orphans: List[Dict[str, Any]],
        total: int,
        page: int,
        limit: int,
        user_context: UserContext
    ) -> Dict[str, Any]:
        """Format a page of orphans with HAL links."""
        items = [self.format_orphan(item, user_context) for item in orphans]
        return self.builder.build_collection_response(
            items, total, page, limit, "/api/orphan/available", embedded_name="orphans"
        )

    def format_service_unavailable_error(self, detail: str, instance: str) -> Dict[str, Any]:
        """Format a service unavailable response for exhausted store retries."""
        return self.builder.build_error_response(
            "service-unavailable", "Service Unavailable", 503, detail, instance
        )

    def format_server_error(self, detail: str, instance: str) -> Dict[str, Any]:
        """Format a server error response."""
        return self.builder.build_error_response(
            "internal-server-error", "Internal Server Error", 500, detail, instance
        )


def create_hal_formatter(base_url: str) -> HalFormatter:
    """Create a HAL formatter instance."""
    return HalFormatter(base_url)
