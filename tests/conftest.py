from datetime import date

import pytest

from conveyance.core.errors import PersistenceError
from conveyance.core.roles import Role
from conveyance.core.stages import Stage
from conveyance.core.updates import StatusChanged, UpdateRecord, UpdateType
from conveyance.realtime.hub import RealTimeHub
from conveyance.storage.kv_store import FileKeyValueStore, MemoryKeyValueStore

# Monday; 2026-02-04 is a valid completion date relative to it
TODAY = date(2026, 1, 5)
VALID_DATE = "2026-02-04"


class FlakyKeyValueStore(MemoryKeyValueStore):
    """Memory store whose writes fail while `failing` is set, reads while `failing_reads` is."""

    def __init__(self, channel=None):
        super().__init__(channel)
        self.failing = False
        self.failing_reads = False

    def _read(self, key):
        if self.failing_reads:
            raise PersistenceError(f"cannot read '{key}'")
        return super()._read(key)

    def _write(self, key, value):
        if self.failing:
            raise PersistenceError(f"disk full while writing '{key}'")
        super()._write(key, value)

    def _delete(self, key):
        if self.failing:
            raise PersistenceError(f"disk full while removing '{key}'")
        super()._delete(key)


@pytest.fixture
def memory_store():
    return MemoryKeyValueStore()


@pytest.fixture
def file_store(tmp_path):
    return FileKeyValueStore(str(tmp_path / "realtime"))


@pytest.fixture
def flaky_store():
    return FlakyKeyValueStore()


@pytest.fixture
def make_hub(memory_store):
    """Build hubs that share one store, as sessions of one server process do."""
    hubs = []

    def factory(kv=None, **kwargs):
        kwargs.setdefault("send_timeout", 2.0)
        kwargs.setdefault("send_retries", 1)
        kwargs.setdefault("simulated_latency", 0.0)
        hub = RealTimeHub(kv or memory_store, transaction_id="TXN-TEST", **kwargs)
        hubs.append(hub)
        return hub

    yield factory

    for hub in hubs:
        hub.close()


def status_update(subject_id, status, timestamp="", update_id="", stage=Stage.SEARCH_SURVEY):
    return UpdateRecord(
        type=UpdateType.STATUS_CHANGED,
        stage=stage,
        role=Role.BUYER_CONVEYANCER,
        title=f"Search {status}",
        description=f"{subject_id} {status}",
        data=StatusChanged(subject_id=subject_id, status=status, subject_name=subject_id),
        id=update_id,
        timestamp=timestamp,
    )
