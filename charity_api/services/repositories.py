# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Data access for orphans and sponsorships.

Repositories are stateless: they turn MongoDB documents into immutable
records and back. Reads that must hold a row lock for the rest of the
transaction are exposed as separate ``*_for_update`` methods.
"""

import logging
from enum import Enum
from typing import Any, Dict, Optional, Protocol

from bson import ObjectId
from pymongo import ReturnDocument, DESCENDING
from pydantic.alias_generators import to_camel
from opentelemetry import trace

from ..models.entities import Orphan, Sponsorship, SponsorshipWithOrphan
from ..models.enums import SponsorshipStatus
from .mongodb import MongoDBService, MongoTransaction, PaginationResult, to_object_id

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

ORPHANS = "orphans"
SPONSORSHIPS = "sponsorships"


class OrphanRepository(Protocol):
    """Orphan data-access interface used by the sponsorship workflow."""

    def create(self, orphan: Orphan) -> Orphan:
        ...

    def find_by_id(self, orphan_id: str) -> Optional[Orphan]:
        ...

    def find_by_id_for_update(self, orphan_id: str, transaction: Any) -> Optional[Orphan]:
        ...

    def update(self, orphan_id: str, fields: Dict[str, Any], transaction: Any) -> Optional[Orphan]:
        ...

    def find_available(self, page: int, limit: int) -> PaginationResult:
        ...


class SponsorshipRepository(Protocol):
    """Sponsorship data-access interface used by the sponsorship workflow."""

    def create(self, sponsorship: Sponsorship, transaction: Any) -> Sponsorship:
        ...

    def find_by_id(self, sponsorship_id: str) -> Optional[Sponsorship]:
        ...

    def find_by_id_for_update(self, sponsorship_id: str, transaction: Any) -> Optional[Sponsorship]:
        ...

    def find_one_for_update(
        self, sponsorship_id: str, sponsor_id: str, transaction: Any
    ) -> Optional[SponsorshipWithOrphan]:
        ...

    def update(self, sponsorship_id: str, fields: Dict[str, Any], transaction: Any) -> Optional[Sponsorship]:
        ...

    def delete(self, sponsorship_id: str, transaction: Any) -> bool:
        ...

    def find_active(self, page: int, limit: int) -> PaginationResult:
        ...


def to_document(record) -> Dict[str, Any]:
    """Serialize a record to a MongoDB document with camelCase keys."""
    document = record.model_dump(by_alias=True)
    document["_id"] = ObjectId(document.pop("id"))
    return document


def to_document_fields(fields: Dict[str, Any]) -> Dict[str, Any]:
    """Convert snake_case field updates to a camelCase ``$set`` body."""
    return {
        to_camel(name): value.value if isinstance(value, Enum) else value
        for name, value in fields.items()
    }


def from_document(document: Dict[str, Any]) -> Dict[str, Any]:
    """Replace the ObjectId ``_id`` with a string ``id``."""
    data = dict(document)
    data["id"] = str(data.pop("_id"))
    return data


def _lock_update() -> Dict[str, Any]:
    # Writing a fresh token takes the document write lock until commit or abort
    return {"$set": {"lockToken": ObjectId()}}


class MongoOrphanRepository:
    """Orphan repository backed by the ``orphans`` collection."""

    def __init__(self, mongodb_service: MongoDBService):
        self.mongodb_service = mongodb_service

    @property
    def collection(self):
        return self.mongodb_service.get_collection(ORPHANS)

    def create(self, orphan: Orphan) -> Orphan:
        with tracer.start_as_current_span("db.orphans.insert_one"):
            self.collection.insert_one(to_document(orphan))
            logger.info(f"Created orphan {orphan.id}")
            return orphan

    def find_by_id(self, orphan_id: str) -> Optional[Orphan]:
        object_id = to_object_id(orphan_id)
        if object_id is None:
            return None

        with tracer.start_as_current_span("db.orphans.find_one"):
            document = self.collection.find_one({"_id": object_id})
            return Orphan.model_validate(from_document(document)) if document else None

    def find_by_id_for_update(self, orphan_id: str, transaction: MongoTransaction) -> Optional[Orphan]:
        """Load an orphan and hold its lock for the rest of the transaction."""
        object_id = to_object_id(orphan_id)
        if object_id is None:
            return None

        with tracer.start_as_current_span("db.orphans.find_one_for_update") as span:
            document = self.collection.find_one_and_update(
                {"_id": object_id},
                _lock_update(),
                session=transaction.session,
                return_document=ReturnDocument.AFTER
            )
            span.set_attribute("db.found", document is not None)
            return Orphan.model_validate(from_document(document)) if document else None

    def update(self, orphan_id: str, fields: Dict[str, Any], transaction: MongoTransaction) -> Optional[Orphan]:
        with tracer.start_as_current_span("db.orphans.update_one"):
            document = self.collection.find_one_and_update(
                {"_id": ObjectId(orphan_id)},
                {"$set": to_document_fields(fields)},
                session=transaction.session,
                return_document=ReturnDocument.AFTER
            )
            if document is None:
                logger.warning(f"No orphan updated for {orphan_id}")
                return None
            return Orphan.model_validate(from_document(document))

    def find_available(self, page: int, limit: int) -> PaginationResult:
        with tracer.start_as_current_span("db.orphans.paginate"):
            result = self.mongodb_service.paginate(
                ORPHANS, {"isAvailableForSponsorship": True}, page, limit, "createdAt", DESCENDING
            )
            result.items = [Orphan.model_validate(from_document(doc)) for doc in result.items]
            return result


class MongoSponsorshipRepository:
    """Sponsorship repository backed by the ``sponsorships`` collection."""

    def __init__(self, mongodb_service: MongoDBService):
        self.mongodb_service = mongodb_service

    @property
    def collection(self):
        return self.mongodb_service.get_collection(SPONSORSHIPS)

    def create(self, sponsorship: Sponsorship, transaction: MongoTransaction) -> Sponsorship:
        with tracer.start_as_current_span("db.sponsorships.insert_one"):
            self.collection.insert_one(to_document(sponsorship), session=transaction.session)
            logger.info(f"Created sponsorship {sponsorship.id} for orphan {sponsorship.orphan_id}")
            return sponsorship

    def find_by_id(self, sponsorship_id: str) -> Optional[Sponsorship]:
        object_id = to_object_id(sponsorship_id)
        if object_id is None:
            return None

        with tracer.start_as_current_span("db.sponsorships.find_one"):
            document = self.collection.find_one({"_id": object_id})
            return Sponsorship.model_validate(from_document(document)) if document else None

    def find_by_id_for_update(self, sponsorship_id: str, transaction: MongoTransaction) -> Optional[Sponsorship]:
        object_id = to_object_id(sponsorship_id)
        if object_id is None:
            return None

        with tracer.start_as_current_span("db.sponsorships.find_one_for_update"):
            document = self.collection.find_one_and_update(
                {"_id": object_id},
                _lock_update(),
                session=transaction.session,
                return_document=ReturnDocument.AFTER
            )
            return Sponsorship.model_validate(from_document(document)) if document else None

    def find_one_for_update(
        self,
        sponsorship_id: str,
        sponsor_id: str,
        transaction: MongoTransaction
    ) -> Optional[SponsorshipWithOrphan]:
        """
        Lock a sponsorship owned by ``sponsor_id`` and join its orphan.

        Ownership is part of the query filter, so a sponsorship belonging to
        someone else is indistinguishable from one that does not exist.
        """
        object_id = to_object_id(sponsorship_id)
        if object_id is None:
            return None

        with tracer.start_as_current_span("db.sponsorships.find_one_for_update") as span:
            document = self.collection.find_one_and_update(
                {"_id": object_id, "sponsorId": sponsor_id},
                _lock_update(),
                session=transaction.session,
                return_document=ReturnDocument.AFTER
            )
            span.set_attribute("db.found", document is not None)
            if document is None:
                return None

            data = from_document(document)
            orphan_id = to_object_id(data.get("orphanId"))
            orphan_document = None
            if orphan_id is not None:
                orphan_document = self.mongodb_service.get_collection(ORPHANS).find_one(
                    {"_id": orphan_id},
                    session=transaction.session
                )
            data["orphan"] = from_document(orphan_document) if orphan_document else None
            return SponsorshipWithOrphan.model_validate(data)

    def update(self, sponsorship_id: str, fields: Dict[str, Any], transaction: MongoTransaction) -> Optional[Sponsorship]:
        with tracer.start_as_current_span("db.sponsorships.update_one"):
            document = self.collection.find_one_and_update(
                {"_id": ObjectId(sponsorship_id)},
                {"$set": to_document_fields(fields)},
                session=transaction.session,
                return_document=ReturnDocument.AFTER
            )
            if document is None:
                logger.warning(f"No sponsorship updated for {sponsorship_id}")
                return None
            return Sponsorship.model_validate(from_document(document))

    def delete(self, sponsorship_id: str, transaction: MongoTransaction) -> bool:
        with tracer.start_as_current_span("db.sponsorships.delete_one"):
            result = self.collection.delete_one(
                {"_id": ObjectId(sponsorship_id)},
                session=transaction.session
            )
            return result.deleted_count > 0

    def find_active(self, page: int, limit: int) -> PaginationResult:
        with tracer.start_as_current_span("db.sponsorships.paginate"):
            result = self.mongodb_service.paginate(
                SPONSORSHIPS, {"status": SponsorshipStatus.ACTIVE.value}, page, limit, "createdAt", DESCENDING
            )
            result.items = [Sponsorship.model_validate(from_document(doc)) for doc in result.items]
            return result
