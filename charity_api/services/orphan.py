# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Orphan registry service.
"""

import logging
from datetime import datetime
from typing import Callable

from opentelemetry import trace

from ..middleware.error_handler import NotFoundException
from ..models.entities import Orphan
from ..models.requests import CreateOrphanRequest
from .mongodb import PaginationResult
from .repositories import OrphanRepository

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

MAX_PAGE_SIZE = 10


class OrphanService:
    """Registers orphans and lists the ones open for sponsorship."""

    def __init__(self, orphans: OrphanRepository, clock: Callable[[], datetime] = datetime.utcnow):
        self.orphans = orphans
        self.clock = clock

    def create(self, request: CreateOrphanRequest) -> Orphan:
        with tracer.start_as_current_span("orphan.create") as span:
            now = self.clock()
            orphan = self.orphans.create(Orphan(
                **request.model_dump(),
                created_at=now,
                updated_at=now
            ))
            span.set_attribute("orphan.id", orphan.id)
            logger.info("Orphan registered", extra={"orphan_id": orphan.id})
            return orphan

    def get(self, orphan_id: str) -> Orphan:
        orphan = self.orphans.find_by_id(orphan_id)
        if orphan is None:
            raise NotFoundException("Orphan not found")
        return orphan

    def list_available(self, page: int = 1, limit: int = MAX_PAGE_SIZE) -> PaginationResult:
        page = max(page, 1)
        limit = min(max(limit, 1), MAX_PAGE_SIZE)
        return self.orphans.find_available(page, limit)
