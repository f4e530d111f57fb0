# conveyance/realtime/sync.py

import logging
import threading
from typing import Dict, Hashable, Iterable, List, Optional

from conveyance import config
from conveyance.core.errors import PersistenceError
from conveyance.storage.kv_store import KeyValueStore

logger = logging.getLogger(__name__)

EXTERNAL_ORIGIN = "external"


class ExternalChangeWatcher:
    """
    Turn writes made by other processes into storage events.

    Writes made through this process's store publish their own events; this
    watcher covers the file store being changed underneath it (another
    server process, the seed script). Re-publishing a change this process
    already applied is harmless: hubs replace their state with the
    persisted value, so the merge is idempotent.
    """

    def __init__(self, kv: KeyValueStore, keys: Iterable[str] = config.CORE_KEYS):
        self.kv = kv
        self.keys = list(keys)
        self._lock = threading.Lock()
        self._seen: Dict[str, Optional[Hashable]] = {}
        for key in self.keys:
            self._seen[key] = self._current_version(key)

    def _current_version(self, key: str) -> Optional[Hashable]:
        try:
            return self.kv.version(key)
        except PersistenceError as e:
            logger.warning("Cannot read version of '%s': %s", key, e)
            return self._seen.get(key)

    def poll(self) -> List[str]:
        """
        Publish a StorageEvent for every key whose version moved since the
        last poll.

        Returns:
            List[str]: keys that changed
        """
        events = []
        with self._lock:
            for key in self.keys:
                version = self._current_version(key)
                if version == self._seen.get(key):
                    continue
                try:
                    event = self.kv.observe(key, origin=EXTERNAL_ORIGIN)
                except PersistenceError as e:
                    logger.warning("Cannot read changed key '%s': %s", key, e)
                    continue
                self._seen[key] = version
                events.append(event)

        # Published outside the lock; hubs take their own locks while merging
        for event in events:
            self.kv.channel.publish(event)

        changed = [event.key for event in events]
        if changed:
            logger.debug("External changes detected: %s", ", ".join(changed))
        return changed
