"""
UPDATE RECORD STORE
Append-Only • Shared by every role • Read/unread tracking

DESIGN PRINCIPLES:
1. One persisted JSON array per transaction log key
2. Append-only: records are never edited except for the read flag,
   never deleted except by a full reset
3. Insertion order is preserved (oldest first)
4. Ids and timestamps are assigned once, at append time
5. Appending a record whose id is already present is a no-op
   (at-least-once delivery, de-duplicated by id)
"""

import logging
from typing import Iterable, List, Optional

from conveyance import config
from conveyance.core.roles import Role
from conveyance.core.stages import Stage
from conveyance.core.updates import UpdateRecord, UpdateType
from conveyance.storage.collection import PersistedCollection
from conveyance.storage.kv_store import KeyValueStore

logger = logging.getLogger(__name__)


class UpdateRecordStore(PersistedCollection[UpdateRecord]):
    item_cls = UpdateRecord
    label = "update"

    def __init__(self, kv: KeyValueStore, key: str = config.UPDATES_KEY):
        super().__init__(kv, key)

    def _clone(self, item: UpdateRecord) -> UpdateRecord:
        return item.copy()

    # ══════════════════════════════════════════════════════════════
    # WRITER
    # ══════════════════════════════════════════════════════════════

    def append(self, record: UpdateRecord) -> UpdateRecord:
        """
        Append a record (assigning id and timestamp if absent).

        The record is visible through `all()` before persistence is attempted.

        Returns:
            UpdateRecord: a copy of the stored record

        Raises:
            PersistenceError: storage failed; the record stays in memory and
            a later append of the same record retries the write
        """
        stored = self.echo(record)

        def add_if_missing(items: List[UpdateRecord]) -> UpdateRecord:
            if not any(item.id == stored.id for item in items):
                items.append(stored.copy())
            return stored

        self._commit(add_if_missing)
        logger.debug("Appended %s %s (%s/%s)", stored.type.value, stored.id, stored.stage.value, stored.role.value)
        return stored.copy()

    def echo(self, record: UpdateRecord) -> UpdateRecord:
        """Show a record locally before it is persisted (no storage access)."""
        record.ensure_identity()
        stored = record.copy()
        with self._lock:
            if not any(item.id == stored.id for item in self._items):
                self._items.append(stored.copy())
                self._unpersisted.add(stored.id)
        return stored

    def mark_read(self, update_id: str) -> bool:
        """
        Set `read` on one record. Idempotent.

        Returns:
            bool: False (and a logged warning) if the id is unknown
        """
        def flag(items: List[UpdateRecord]) -> bool:
            for item in items:
                if item.id == update_id:
                    item.read = True
                    return True
            return False

        with self._lock:
            known_locally = any(item.id == update_id for item in self._items)

        found = self._commit(flag)
        if not found and known_locally:
            # Only in memory so far (persistence pending)
            with self._lock:
                flag(self._items)
            found = True
        if not found:
            logger.warning("mark_read: no update with id %s", update_id)
        return found

    def mark_many_read(self, update_ids: Iterable[str]) -> int:
        """Mark several records read in one write; returns how many were unread."""
        wanted = set(update_ids)

        def flag(items: List[UpdateRecord]) -> int:
            changed = 0
            for item in items:
                if item.id in wanted and not item.read:
                    item.read = True
                    changed += 1
            return changed

        return self._commit(flag)

    def reset(self) -> None:
        """Clear the whole log. After this returns, `all()` is empty."""
        self.clear()
        logger.info("Update log '%s' cleared", self.key)

    # ══════════════════════════════════════════════════════════════
    # READER
    # ══════════════════════════════════════════════════════════════

    def filter(
        self,
        stage: Optional[Stage] = None,
        role: Optional[Role] = None,
        update_type: Optional[UpdateType] = None,
    ) -> List[UpdateRecord]:
        """Records matching every given criterion, insertion order."""
        return [
            record for record in self.all()
            if (stage is None or record.stage == stage)
            and (role is None or record.role == role)
            and (update_type is None or record.type == update_type)
        ]

    def unread(self) -> List[UpdateRecord]:
        return [record for record in self.all() if not record.read]
