"""
PERSISTED COLLECTION

Purpose:
- Id-addressed list of records stored as one JSON array under one key
- Serialized read-modify-write commits (no lost updates between views)
- Replace-on-storage-event merge with de-duplication by id
- Storage events applied in commit order (stale sequences dropped)

Requirements:
• Record classes expose `id`, `to_dict()` and `from_dict()`
• Local state is a cache of the persisted array plus records whose
  persistence has not succeeded yet (optimistic local echo)
• Malformed entries are skipped, corrupt documents never crash a view
"""

import json
import logging
import threading
from typing import Any, Callable, Generic, List, Optional, Set, Type, TypeVar

from conveyance.core.errors import PersistenceError
from conveyance.realtime.channel import StorageEvent
from conveyance.storage.kv_store import KeyValueStore

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


class PersistedCollection(Generic[T]):
    """Base class; subclasses set `item_cls` and add domain operations."""

    item_cls: Type[T]
    label = "record"

    def __init__(self, kv: KeyValueStore, key: str):
        self.kv = kv
        self.key = key
        self._lock = threading.RLock()
        self._items: List[T] = []
        self._unpersisted: Set[str] = set()
        self._applied_sequence = 0
        self.reload()

    # ---- serialization -------------------------------------------------

    def _decode(self, raw: Optional[str]) -> List[T]:
        if not raw:
            return []
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise PersistenceError(f"Corrupt JSON under '{self.key}': {e}") from e
        if not isinstance(data, list):
            raise PersistenceError(
                f"Expected a JSON array under '{self.key}', got {type(data).__name__}"
            )

        items = []
        for entry in data:
            try:
                items.append(self.item_cls.from_dict(entry))
            except (KeyError, ValueError, TypeError, AttributeError) as e:
                logger.warning("Skipping malformed %s under '%s': %s", self.label, self.key, e)
        return items

    def _encode(self, items: List[T]) -> str:
        try:
            return json.dumps([item.to_dict() for item in items], ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise PersistenceError(f"Cannot serialize {self.label}s for '{self.key}': {e}") from e

    def _clone(self, item: T) -> T:
        return self.item_cls.from_dict(item.to_dict())

    # ---- reads ---------------------------------------------------------

    def all(self) -> List[T]:
        """All records in persisted (commit) order, as copies."""
        with self._lock:
            return [self._clone(item) for item in self._items]

    def get(self, item_id: str) -> Optional[T]:
        with self._lock:
            for item in self._items:
                if item.id == item_id:
                    return self._clone(item)
        return None

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    @property
    def unpersisted_ids(self) -> Set[str]:
        with self._lock:
            return set(self._unpersisted)

    # ---- writes --------------------------------------------------------

    def _commit(self, mutator: Callable[[List[T]], R]) -> R:
        """
        Apply `mutator` to the persisted list under the store's write lock.

        The mutator edits the list in place and returns the operation result.
        Domain errors raised by the mutator abort the write. A storage failure
        applies the mutator to the local cache instead and re-raises.
        """
        box: dict = {}

        def apply(raw: Optional[str]) -> Optional[str]:
            items = self._decode(raw)
            before = [item.to_dict() for item in items]
            box["result"] = mutator(items)
            if [item.to_dict() for item in items] == before:
                return raw
            return self._encode(items)

        try:
            self.kv.update(self.key, apply)
        except PersistenceError as e:
            logger.error("Persisting %s under '%s' failed, keeping in memory: %s", self.label, self.key, e)
            with self._lock:
                known = {item.id for item in self._items}
                mutator(self._items)
                self._unpersisted |= {item.id for item in self._items} - known
            raise

        # The value written may already be stale; adopt the latest commit
        self.reload()
        return box["result"]

    def _replace(self, incoming: List[T], sequence: Optional[int] = None, inclusive: bool = False) -> bool:
        """
        Adopt the persisted list, keeping local records not persisted yet.

        A `sequence` older than the last one applied is ignored; `inclusive`
        also accepts the last one again (snapshots read at that sequence).
        """
        with self._lock:
            if sequence is not None:
                stale = sequence < self._applied_sequence if inclusive else sequence <= self._applied_sequence
                if stale:
                    logger.debug("Dropped stale state %d for '%s' (at %d)", sequence, self.key, self._applied_sequence)
                    return False
                self._applied_sequence = sequence
            incoming_ids = {item.id for item in incoming}
            self._unpersisted -= incoming_ids
            pending = [
                item for item in self._items
                if item.id in self._unpersisted and item.id not in incoming_ids
            ]
            merged = list(incoming) + pending
            changed = _fingerprint(merged) != _fingerprint(self._items)
            self._items = merged
            return changed

    def apply_storage_event(self, event: StorageEvent) -> bool:
        """
        Re-parse the full persisted value carried by a storage event.

        Events are applied in commit order: one delivered after a newer
        event (or a newer reload) is dropped.

        Returns:
            bool: True if the local collection changed
        """
        if event.key != self.key:
            return False
        try:
            incoming = self._decode(event.new_value)
        except PersistenceError as e:
            logger.warning("Ignoring storage event for '%s': %s", self.key, e)
            return False
        return self._replace(incoming, event.sequence)

    def reload(self) -> bool:
        """Re-read the persisted value directly from the store."""
        try:
            raw, sequence = self.kv.snapshot(self.key)
            incoming = self._decode(raw)
        except PersistenceError as e:
            logger.warning("Could not load '%s', continuing with in-memory state: %s", self.key, e)
            return False
        return self._replace(incoming, sequence, inclusive=True)

    def clear(self) -> None:
        """Remove every record, in storage and locally. Local state is emptied even if storage fails."""
        # Not under self._lock: the removal event is delivered to other collections synchronously
        try:
            self.kv.remove(self.key)
        finally:
            with self._lock:
                self._items = []
                self._unpersisted.clear()


def _fingerprint(items: List[Any]) -> List[dict]:
    return [item.to_dict() for item in items]
