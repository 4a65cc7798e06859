# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
In-memory transactional store and repositories for tests.

Rows locked by a transaction stay locked until it commits or rolls back; a
second transaction asking for the same row blocks, like SELECT ... FOR
UPDATE. Writes are buffered per transaction and only become visible to
others on commit.
"""

import threading
from collections import defaultdict
from typing import Any, Dict, List, Optional, Tuple

from charity_api.models.entities import Orphan, Sponsorship, SponsorshipWithOrphan
from charity_api.models.enums import SponsorshipStatus
from charity_api.services.mongodb import PaginationResult

ORPHANS = "orphans"
SPONSORSHIPS = "sponsorships"

_DELETED = object()


class MemoryStore:
    """Committed tables plus per-row locks."""

    def __init__(self, lock_timeout: float = 5.0):
        self.tables: Dict[str, Dict[str, Any]] = {ORPHANS: {}, SPONSORSHIPS: {}}
        self.lock_timeout = lock_timeout
        self.isolation_levels: List[str] = []
        self.commits = 0
        self.rollbacks = 0
        self._guard = threading.Lock()
        self._row_locks: Dict[Tuple[str, str], threading.Lock] = defaultdict(threading.Lock)

    def begin(self, isolation_level) -> "MemoryTransaction":
        self.isolation_levels.append(getattr(isolation_level, "value", isolation_level))
        return MemoryTransaction(self)

    def row_lock(self, table: str, row_id: str) -> threading.Lock:
        with self._guard:
            return self._row_locks[(table, row_id)]

    def committed(self, table: str, row_id: str):
        with self._guard:
            return self.tables[table].get(row_id)

    def rows(self, table: str) -> List[Any]:
        with self._guard:
            return list(self.tables[table].values())

    def apply(self, writes: Dict[Tuple[str, str], Any]) -> None:
        with self._guard:
            for (table, row_id), record in writes.items():
                if record is _DELETED:
                    self.tables[table].pop(row_id, None)
                else:
                    self.tables[table][row_id] = record
            self.commits += 1


class MemoryTransaction:

    def __init__(self, store: MemoryStore):
        self.store = store
        self.writes: Dict[Tuple[str, str], Any] = {}
        self.held: List[threading.Lock] = []
        self._held_keys = set()
        self.closed = False

    def lock(self, table: str, row_id: str) -> None:
        key = (table, row_id)
        if key in self._held_keys:
            return
        row_lock = self.store.row_lock(table, row_id)
        if not row_lock.acquire(timeout=self.store.lock_timeout):
            raise RuntimeError("Lock wait timeout exceeded; try restarting transaction")
        self.held.append(row_lock)
        self._held_keys.add(key)

    def read(self, table: str, row_id: str):
        key = (table, row_id)
        if key in self.writes:
            record = self.writes[key]
            return None if record is _DELETED else record
        return self.store.committed(table, row_id)

    def write(self, table: str, row_id: str, record) -> None:
        self.lock(table, row_id)
        self.writes[(table, row_id)] = record

    def delete(self, table: str, row_id: str) -> None:
        self.write(table, row_id, _DELETED)

    def commit(self) -> None:
        self.store.apply(self.writes)
        self._close()

    def rollback(self) -> None:
        self.writes.clear()
        self.store.rollbacks += 1
        self._close()

    def _close(self) -> None:
        for row_lock in reversed(self.held):
            row_lock.release()
        self.held.clear()
        self._held_keys.clear()
        self.closed = True


def _page(items: List[Any], page: int, limit: int) -> PaginationResult:
    items = sorted(items, key=lambda item: item.created_at, reverse=True)
    start = (page - 1) * limit
    return PaginationResult(items[start:start + limit], len(items), page, limit)


class MemoryOrphanRepository:

    def __init__(self, store: MemoryStore):
        self.store = store

    def create(self, orphan: Orphan) -> Orphan:
        with self.store._guard:
            self.store.tables[ORPHANS][orphan.id] = orphan
        return orphan

    def find_by_id(self, orphan_id: str) -> Optional[Orphan]:
        return self.store.committed(ORPHANS, orphan_id)

    def find_by_id_for_update(self, orphan_id: str, transaction: MemoryTransaction) -> Optional[Orphan]:
        transaction.lock(ORPHANS, orphan_id)
        return transaction.read(ORPHANS, orphan_id)

    def update(self, orphan_id: str, fields: Dict[str, Any], transaction: MemoryTransaction) -> Optional[Orphan]:
        transaction.lock(ORPHANS, orphan_id)
        current = transaction.read(ORPHANS, orphan_id)
        if current is None:
            return None
        updated = Orphan.model_validate({**current.model_dump(), **fields})
        transaction.write(ORPHANS, orphan_id, updated)
        return updated

    def find_available(self, page: int, limit: int) -> PaginationResult:
        available = [o for o in self.store.rows(ORPHANS) if o.is_available_for_sponsorship]
        return _page(available, page, limit)


class MemorySponsorshipRepository:

    def __init__(self, store: MemoryStore):
        self.store = store

    def create(self, sponsorship: Sponsorship, transaction: MemoryTransaction) -> Sponsorship:
        transaction.write(SPONSORSHIPS, sponsorship.id, sponsorship)
        return sponsorship

    def find_by_id(self, sponsorship_id: str) -> Optional[Sponsorship]:
        return self.store.committed(SPONSORSHIPS, sponsorship_id)

    def find_by_id_for_update(self, sponsorship_id: str, transaction: MemoryTransaction) -> Optional[Sponsorship]:
        transaction.lock(SPONSORSHIPS, sponsorship_id)
        return transaction.read(SPONSORSHIPS, sponsorship_id)

    def find_one_for_update(
        self,
        sponsorship_id: str,
        sponsor_id: str,
        transaction: MemoryTransaction
    ) -> Optional[SponsorshipWithOrphan]:
        transaction.lock(SPONSORSHIPS, sponsorship_id)
        sponsorship = transaction.read(SPONSORSHIPS, sponsorship_id)
        if sponsorship is None or sponsorship.sponsor_id != sponsor_id:
            return None
        orphan = transaction.read(ORPHANS, sponsorship.orphan_id)
        return SponsorshipWithOrphan(**sponsorship.model_dump(), orphan=orphan)

    def update(self, sponsorship_id: str, fields: Dict[str, Any], transaction: MemoryTransaction) -> Optional[Sponsorship]:
        current = transaction.read(SPONSORSHIPS, sponsorship_id)
        if current is None:
            return None
        updated = Sponsorship.model_validate({**current.model_dump(), **fields})
        transaction.write(SPONSORSHIPS, sponsorship_id, updated)
        return updated

    def delete(self, sponsorship_id: str, transaction: MemoryTransaction) -> bool:
        existed = transaction.read(SPONSORSHIPS, sponsorship_id) is not None
        transaction.delete(SPONSORSHIPS, sponsorship_id)
        return existed

    def find_active(self, page: int, limit: int) -> PaginationResult:
        active = [s for s in self.store.rows(SPONSORSHIPS) if s.status == SponsorshipStatus.ACTIVE.value]
        return _page(active, page, limit)
