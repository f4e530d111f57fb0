# conveyance/storage/kv_store.py

import fcntl
import logging
import os
import re
import threading
import uuid
from contextlib import contextmanager
from typing import Callable, Dict, Hashable, Iterator, List, Optional, Tuple

from conveyance import config
from conveyance.core.errors import ConcurrentWriteConflict, PersistenceError
from conveyance.realtime.channel import BroadcastChannel, StorageEvent

logger = logging.getLogger(__name__)

_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_.\-]+$")

Mutator = Callable[[Optional[str]], Optional[str]]


# ==================================================
# BASE STORE
# ==================================================

class KeyValueStore:
    """
    String key-value store shared by every view of the transaction.

    - `update` is the only read-modify-write primitive and is serialized
    - Every committed change is published as a StorageEvent on `channel`
      after the store lock has been released
    - Events carry a sequence number taken under the lock, so listeners
      can drop an event that arrives after a newer one
    - Returning None from an update mutator removes the key
    """

    def __init__(self, channel: Optional[BroadcastChannel] = None):
        self.channel = channel or BroadcastChannel("storage")
        self.store_id = uuid.uuid4().hex[:8]
        self._lock = threading.RLock()
        self._sequence = 0

    # ---- backend hooks -------------------------------------------------

    def _read(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def _write(self, key: str, value: str) -> None:
        raise NotImplementedError

    def _delete(self, key: str) -> None:
        raise NotImplementedError

    def _version(self, key: str) -> Optional[Hashable]:
        raise NotImplementedError

    def keys(self) -> List[str]:
        raise NotImplementedError

    # ---- public API ----------------------------------------------------

    def get(self, key: str) -> Optional[str]:
        _check_key(key)
        with self._lock:
            return self._read(key)

    def version(self, key: str) -> Optional[Hashable]:
        """Opaque change token; differs after every committed write."""
        _check_key(key)
        with self._lock:
            return self._version(key)

    def snapshot(self, key: str) -> Tuple[Optional[str], int]:
        """Current value and the sequence of the latest commit it includes."""
        _check_key(key)
        with self._lock:
            return self._read(key), self._sequence

    def observe(self, key: str, origin: Optional[str] = None) -> StorageEvent:
        """
        Sequence the current value as a new event without writing.

        Used for changes this store did not make itself (other processes).
        """
        _check_key(key)
        with self._lock:
            value = self._read(key)
            self._sequence += 1
            return StorageEvent(key=key, new_value=value, origin=origin, sequence=self._sequence)

    def set(self, key: str, value: str) -> None:
        self.update(key, lambda _old: value)

    def remove(self, key: str) -> None:
        self.update(key, lambda _old: None)

    def update(self, key: str, fn: Mutator) -> Optional[str]:
        """
        Atomically replace the value of `key` with `fn(current)`.

        Returns:
            The value stored after the update (None if the key is absent)

        Raises:
            PersistenceError: backend read/write failure
            Any exception raised by `fn` (nothing is written in that case)
        """
        _check_key(key)
        event = None
        with self._lock:
            old, new = self._apply(key, fn)
            if new != old:
                self._sequence += 1
                event = StorageEvent(
                    key=key, new_value=new, old_value=old,
                    origin=self.store_id, sequence=self._sequence,
                )

        if event is not None:
            self.channel.publish(event)
        return new

    def _apply(self, key: str, fn: Mutator) -> Tuple[Optional[str], Optional[str]]:
        old = self._read(key)
        new = fn(old)
        self._commit(key, old, new)
        return old, new

    def _commit(self, key: str, old: Optional[str], new: Optional[str]) -> None:
        if new == old:
            return
        if new is None:
            self._delete(key)
        elif not isinstance(new, str):
            raise PersistenceError(
                f"Value for '{key}' must be a string, got {type(new).__name__}"
            )
        else:
            self._write(key, new)


def _check_key(key: str) -> None:
    if not _KEY_PATTERN.match(key or ""):
        raise ValueError(f"Invalid storage key: {key!r}")


# ==================================================
# IN-MEMORY STORE (tests, single-process demos)
# ==================================================

class MemoryKeyValueStore(KeyValueStore):

    def __init__(self, channel: Optional[BroadcastChannel] = None):
        super().__init__(channel)
        self._data: Dict[str, str] = {}
        self._versions: Dict[str, int] = {}

    def _read(self, key):
        return self._data.get(key)

    def _write(self, key, value):
        self._data[key] = value
        self._versions[key] = self._versions.get(key, 0) + 1

    def _delete(self, key):
        self._data.pop(key, None)
        self._versions[key] = self._versions.get(key, 0) + 1

    def _version(self, key):
        return self._versions.get(key)

    def keys(self):
        with self._lock:
            return sorted(self._data)


# ==================================================
# FILE STORE (one JSON document per key)
# ==================================================

class FileKeyValueStore(KeyValueStore):
    """
    Persist each key as `<directory>/<key>.json`.

    - Crash-safe writes (temp file + os.replace)
    - Read-check-write runs under an exclusive flock on `<key>.lock`, shared
      by every process using the same directory (POSIX only)
    - Optimistic version check for writers that bypass the lock (manual
      edits); gives up with ConcurrentWriteConflict after `write_retries`
      attempts
    """

    def __init__(
        self,
        directory: Optional[str] = None,
        channel: Optional[BroadcastChannel] = None,
        write_retries: int = config.WRITE_RETRIES,
    ):
        super().__init__(channel)
        self.directory = directory or config.DATA_DIR
        self.write_retries = max(1, write_retries)
        try:
            os.makedirs(self.directory, exist_ok=True)
        except OSError as e:
            raise PersistenceError(f"Cannot create data directory {self.directory}: {e}") from e

    def _path(self, key: str) -> str:
        return os.path.join(self.directory, f"{key}.json")

    def _read(self, key):
        path = self._path(key)
        try:
            with open(path, "r", encoding="utf-8") as f:
                return f.read()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise PersistenceError(f"Cannot read '{key}': {e}") from e

    def _write(self, key, value):
        path = self._path(key)
        tmp_path = f"{path}.{self.store_id}.tmp"
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                f.write(value)
            os.replace(tmp_path, path)
        except OSError as e:
            raise PersistenceError(f"Cannot write '{key}': {e}") from e

    def _delete(self, key):
        try:
            os.remove(self._path(key))
        except FileNotFoundError:
            pass
        except OSError as e:
            raise PersistenceError(f"Cannot remove '{key}': {e}") from e

    def _version(self, key):
        try:
            stat = os.stat(self._path(key))
        except FileNotFoundError:
            return None
        except OSError as e:
            raise PersistenceError(f"Cannot stat '{key}': {e}") from e
        return (stat.st_mtime_ns, stat.st_size)

    @contextmanager
    def _process_lock(self, key: str) -> Iterator[None]:
        lock_path = os.path.join(self.directory, f"{key}.lock")
        try:
            fd = os.open(lock_path, os.O_RDWR | os.O_CREAT, 0o644)
        except OSError as e:
            raise PersistenceError(f"Cannot open lock for '{key}': {e}") from e
        try:
            fcntl.flock(fd, fcntl.LOCK_EX)
            yield
        finally:
            # Closing the descriptor releases the flock
            os.close(fd)

    def _apply(self, key, fn):
        with self._process_lock(key):
            for attempt in range(1, self.write_retries + 1):
                before = self._version(key)
                old = self._read(key)
                new = fn(old)
                if self._version(key) != before:
                    logger.warning(
                        "Concurrent write on '%s' detected (attempt %d/%d), retrying",
                        key, attempt, self.write_retries,
                    )
                    continue
                self._commit(key, old, new)
                return old, new

        raise ConcurrentWriteConflict(
            f"Gave up writing '{key}' after {self.write_retries} attempts"
        )

    def keys(self):
        with self._lock:
            try:
                names = os.listdir(self.directory)
            except OSError as e:
                raise PersistenceError(f"Cannot list {self.directory}: {e}") from e
        return sorted(n[:-5] for n in names if n.endswith(".json"))
