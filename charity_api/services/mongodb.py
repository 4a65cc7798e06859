# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
MongoDB access: a lazily connected client and session transactions.

Multi-document transactions need a replica set, hence the ``replicaSet``
parameter in the default connection string.
"""

import os
import logging
from typing import List, Dict, Optional, Any
from pymongo import MongoClient, ASCENDING, DESCENDING
from pymongo.client_session import ClientSession
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import ConnectionFailure, ServerSelectionTimeoutError
from pymongo.read_concern import ReadConcern
from pymongo.write_concern import WriteConcern
from bson import ObjectId
from bson.errors import InvalidId

from .transaction import IsolationLevel

logger = logging.getLogger(__name__)

DEFAULT_URI = 'mongodb://localhost:27017/charity_dev?replicaSet=rs0'
DEFAULT_DATABASE = 'charity_dev'

# MongoDB transactions expose read concerns rather than SQL isolation levels;
# "majority" only returns majority-committed data, the READ COMMITTED analogue.
ISOLATION_READ_CONCERNS = {
    IsolationLevel.READ_UNCOMMITTED: "local",
    IsolationLevel.READ_COMMITTED: "majority",
    IsolationLevel.REPEATABLE_READ: "snapshot",
    IsolationLevel.SERIALIZABLE: "snapshot",
}

# Collection -> index key lists backing the availability and listing queries
INDEXES = {
    "orphans": [
        [("isAvailableForSponsorship", ASCENDING), ("createdAt", DESCENDING)],
        [("orphanageId", ASCENDING)],
    ],
    "sponsorships": [
        [("status", ASCENDING), ("createdAt", DESCENDING)],
        [("sponsorId", ASCENDING), ("status", ASCENDING)],
        [("orphanId", ASCENDING)],
    ],
}


class PaginationResult:
    """One page of a query plus the counts needed for HAL pagination links."""

    def __init__(self, items: List[Any], total: int, page: int, page_size: int):
        self.items = items
        self.total = total
        self.page = page
        self.page_size = page_size
        self.total_pages = (total + page_size - 1) // page_size
        self.has_next = page < self.total_pages
        self.has_prev = page > 1


def to_object_id(doc_id: str) -> Optional[ObjectId]:
    """Convert a string ID to ObjectId, or None when it is missing or malformed."""
    # ObjectId(None) would mint a fresh ID
    if not doc_id:
        return None
    try:
        return ObjectId(doc_id)
    except (InvalidId, TypeError):
        return None


class MongoDBService:
    """Owns the MongoClient; connects on first use."""

    def __init__(self, connection_string: str = None, database_name: str = None):
        self.connection_string = connection_string or os.getenv('MONGODB_URI', DEFAULT_URI)
        self.database_name = database_name or os.getenv('MONGODB_DATABASE', DEFAULT_DATABASE)
        self.pool_options = {
            'maxPoolSize': int(os.getenv('MONGODB_MAX_POOL_SIZE', '10')),
            'minPoolSize': int(os.getenv('MONGODB_MIN_POOL_SIZE', '1')),
            'maxIdleTimeMS': int(os.getenv('MONGODB_MAX_IDLE_TIME_MS', '30000')),
            'serverSelectionTimeoutMS': int(os.getenv('MONGODB_SERVER_SELECTION_TIMEOUT_MS', '5000')),
        }
        self._client: Optional[MongoClient] = None

    @property
    def client(self) -> MongoClient:
        if self._client is None:
            client = MongoClient(self.connection_string, retryWrites=True, retryReads=True, **self.pool_options)
            try:
                client.admin.command('ping')
            except (ConnectionFailure, ServerSelectionTimeoutError) as e:
                client.close()
                logger.error(f"Cannot reach MongoDB database {self.database_name}: {e}")
                raise
            logger.info(f"Connected to MongoDB database {self.database_name}")
            self._client = client
        return self._client

    @property
    def database(self) -> Database:
        return self.client[self.database_name]

    def get_collection(self, collection_name: str) -> Collection:
        return self.database[collection_name]

    def close_connection(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None
            logger.info("MongoDB connection closed")

    def health_check(self) -> Dict[str, Any]:
        """Ping the server; never raises, the outcome is in ``status``."""
        report = {'database': self.database_name}
        try:
            self.client.admin.command('ping')
            report.update(status='healthy', version=self.client.server_info().get('version'))
        except Exception as e:
            logger.error(f"MongoDB health check failed: {e}")
            report.update(status='unhealthy', error=str(e))
        return report

    def paginate(self, collection: str, filters: Dict, page: int = 1, page_size: int = 10,
                 sort_by: str = "createdAt", sort_order: int = DESCENDING) -> PaginationResult:
        """Fetch one page of raw documents matching ``filters``."""
        target = self.get_collection(collection)
        total = target.count_documents(filters)
        documents = list(
            target.find(filters).sort(sort_by, sort_order).skip((page - 1) * page_size).limit(page_size)
        )
        logger.debug(f"Fetched page {page} of {collection}: {len(documents)}/{total} documents")
        return PaginationResult(documents, total, page, page_size)

    def create_indexes(self) -> Dict[str, List[str]]:
        """Create the query indexes; returns the index names per collection."""
        created = {}
        for collection, index_keys in INDEXES.items():
            target = self.get_collection(collection)
            created[collection] = [target.create_index(keys) for keys in index_keys]
        logger.info("MongoDB indexes ensured", extra={"indexes": created})
        return created


class MongoTransaction:
    """Open multi-document transaction bound to a client session."""

    def __init__(self, session: ClientSession):
        self.session = session

    def commit(self) -> None:
        try:
            self.session.commit_transaction()
        finally:
            self.session.end_session()

    def rollback(self) -> None:
        try:
            if self.session.in_transaction:
                self.session.abort_transaction()
        finally:
            self.session.end_session()


class MongoTransactionalStore:
    """
    Opens MongoDB session transactions for the transaction runner.

    Multi-document transactions require a replica set or sharded cluster.
    """

    def __init__(self, mongodb_service: MongoDBService):
        self.mongodb_service = mongodb_service

    def begin(self, isolation_level: IsolationLevel) -> MongoTransaction:
        """Start a session and open a transaction on it."""
        read_concern = ISOLATION_READ_CONCERNS[IsolationLevel(isolation_level)]
        session = self.mongodb_service.client.start_session()
        try:
            session.start_transaction(
                read_concern=ReadConcern(read_concern),
                write_concern=WriteConcern("majority")
            )
        except Exception:
            session.end_session()
            raise

        logger.debug(f"Started MongoDB transaction with read concern '{read_concern}'")
        return MongoTransaction(session)


# Singleton instance for application use
_mongodb_service: Optional[MongoDBService] = None


def get_mongodb_service() -> MongoDBService:
    """Get singleton MongoDB service instance."""
    global _mongodb_service
    if _mongodb_service is None:
        _mongodb_service = MongoDBService()
    return _mongodb_service
