import json
import threading

import pytest

from conftest import status_update
from conveyance import config
from conveyance.core.errors import PersistenceError
from conveyance.core.roles import Role
from conveyance.core.stages import Stage
from conveyance.core.updates import StageCompleted, UpdateRecord, UpdateType
from conveyance.storage.update_store import UpdateRecordStore


def test_append_assigns_identity_and_keeps_order(memory_store):
    store = UpdateRecordStore(memory_store)

    first = store.append(status_update("local-authority-search", "ordered"))
    second = store.append(status_update("environmental-search", "ordered"))

    assert first.id.startswith("UPD-") and first.timestamp
    assert [u.id for u in store.all()] == [first.id, second.id]
    assert json.loads(memory_store.get(config.UPDATES_KEY))[1]["id"] == second.id


def test_append_never_removes_or_reorders(memory_store):
    store = UpdateRecordStore(memory_store)
    seen = []
    for i in range(5):
        store.append(status_update(f"search-{i}", "ordered"))
        ids = [u.id for u in store.all()]
        assert ids[:len(seen)] == seen
        seen = ids
    assert len(seen) == 5


def test_reappending_same_id_is_noop(memory_store):
    store = UpdateRecordStore(memory_store)
    record = store.append(status_update("s1", "ordered"))
    store.append(record)

    assert len(store) == 1
    assert len(json.loads(memory_store.get(config.UPDATES_KEY))) == 1


@pytest.mark.parametrize("store_fixture", ["memory_store", "file_store"])
def test_concurrent_appends_lose_nothing(request, store_fixture):
    kv = request.getfixturevalue(store_fixture)
    writers = [UpdateRecordStore(kv) for _ in range(6)]
    per_writer = 15

    def work(store):
        for i in range(per_writer):
            store.append(status_update(f"s-{i}", "ordered"))

    threads = [threading.Thread(target=work, args=(w,)) for w in writers]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    persisted = UpdateRecordStore(kv).all()
    assert len(persisted) == len(writers) * per_writer
    assert len({u.id for u in persisted}) == len(persisted)


def test_mark_read_is_idempotent(memory_store):
    store = UpdateRecordStore(memory_store)
    record = store.append(status_update("s1", "ordered"))
    other = store.append(status_update("s2", "ordered"))

    assert store.mark_read(record.id) is True
    after_first = [u.to_dict() for u in store.all()]
    assert store.mark_read(record.id) is True
    assert [u.to_dict() for u in store.all()] == after_first

    assert store.get(record.id).read is True
    assert store.get(other.id).read is False


def test_mark_read_unknown_id_is_logged_noop(memory_store, caplog):
    store = UpdateRecordStore(memory_store)
    store.append(status_update("s1", "ordered"))
    before = memory_store.get(config.UPDATES_KEY)

    assert store.mark_read("UPD-missing") is False
    assert memory_store.get(config.UPDATES_KEY) == before
    assert "UPD-missing" in caplog.text


def test_reset_clears_memory_and_storage(memory_store):
    store = UpdateRecordStore(memory_store)
    store.append(status_update("s1", "ordered"))
    store.reset()

    assert store.all() == []
    assert memory_store.get(config.UPDATES_KEY) is None


def test_failed_persist_keeps_record_in_memory(flaky_store):
    store = UpdateRecordStore(flaky_store)
    flaky_store.failing = True

    record = status_update("s1", "ordered")
    with pytest.raises(PersistenceError):
        store.append(record)

    assert [u.id for u in store.all()] == [record.id]
    assert store.unpersisted_ids == {record.id}

    flaky_store.failing = False
    store.append(record)
    assert store.unpersisted_ids == set()
    assert json.loads(flaky_store.get(config.UPDATES_KEY))[0]["id"] == record.id


def test_corrupt_and_malformed_entries(memory_store):
    memory_store.set(config.UPDATES_KEY, "{not json")
    assert UpdateRecordStore(memory_store).all() == []

    good = status_update("s1", "ordered", timestamp="2026-01-01T10:00:00+00:00", update_id="UPD-1")
    memory_store.set(config.UPDATES_KEY, json.dumps([{"id": "broken"}, good.to_dict()]))
    assert [u.id for u in UpdateRecordStore(memory_store).all()] == ["UPD-1"]


def test_payload_must_match_type():
    with pytest.raises(ValueError):
        UpdateRecord(
            type=UpdateType.DOCUMENT_UPLOADED,
            stage=Stage.DRAFT_CONTRACT,
            role=Role.SELLER_CONVEYANCER,
            title="Document Sent",
            description="",
            data=StageCompleted(completed_by="seller-conveyancer"),
        )


def test_filter_by_stage_role_and_type(memory_store):
    store = UpdateRecordStore(memory_store)
    store.append(status_update("s1", "ordered"))
    store.append(status_update("doc", "downloaded", stage=Stage.DRAFT_CONTRACT))

    assert len(store.filter(stage=Stage.SEARCH_SURVEY)) == 1
    assert len(store.filter(role=Role.BUYER_CONVEYANCER, update_type=UpdateType.STATUS_CHANGED)) == 2
    assert store.filter(role=Role.BUYER) == []
