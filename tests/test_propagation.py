import asyncio
import gc
import json
import weakref

from conftest import status_update
from conveyance import config
from conveyance.core.roles import Role
from conveyance.core.stages import Stage
from conveyance.realtime.channel import StorageEvent
from conveyance.realtime.hub import RealTimeHub
from conveyance.realtime.sync import ExternalChangeWatcher
from conveyance.storage.kv_store import FileKeyValueStore
from conveyance.storage.update_store import UpdateRecordStore


def _send(hub, subject="local-authority-search", status="ordered"):
    record = status_update(subject, status)
    return asyncio.run(
        hub.send_update(record.type, record.stage, record.role, record.title, record.description, record.data)
    )


def test_update_from_one_view_reaches_the_other(make_hub):
    buyer_side = make_hub()
    seller_side = make_hub()
    received = []
    seller_side.subscribe(received.append)

    sent = _send(buyer_side)

    assert [u.id for u in seller_side.updates] == [sent.id]
    assert received and received[-1][-1].id == sent.id


def test_echo_and_replayed_events_never_duplicate(make_hub, memory_store):
    a = make_hub()
    b = make_hub()
    sent = _send(a)

    raw = memory_store.get(config.UPDATES_KEY)
    replay = StorageEvent(config.UPDATES_KEY, raw, origin="replay")
    memory_store.channel.publish(replay)
    memory_store.channel.publish(replay)

    for hub in (a, b):
        assert [u.id for u in hub.updates] == [sent.id]


def test_merge_keeps_local_unpersisted_records(memory_store):
    store = UpdateRecordStore(memory_store)
    local = store.echo(status_update("s-local", "ordered"))

    other = UpdateRecordStore(memory_store)
    remote = other.append(status_update("s-remote", "ordered"))
    store.apply_storage_event(StorageEvent(config.UPDATES_KEY, memory_store.get(config.UPDATES_KEY)))

    assert [u.id for u in store.all()] == [remote.id, local.id]


def test_corrupt_event_is_ignored(make_hub, memory_store):
    hub = make_hub()
    sent = _send(hub)

    memory_store.channel.publish(StorageEvent(config.UPDATES_KEY, "{garbage"))

    assert [u.id for u in hub.updates] == [sent.id]


def test_removed_key_propagates_as_empty(make_hub):
    a = make_hub()
    b = make_hub()
    _send(a)

    a.update_store.reset()

    assert b.updates == []


def test_listeners_only_notified_on_real_change(make_hub, memory_store):
    hub = make_hub()
    _send(hub)
    calls = []
    hub.subscribe(calls.append)

    memory_store.channel.publish(StorageEvent(config.UPDATES_KEY, memory_store.get(config.UPDATES_KEY)))

    assert calls == []


def test_late_event_does_not_roll_back_a_newer_commit(make_hub, memory_store):
    writer_a = UpdateRecordStore(memory_store)
    writer_b = UpdateRecordStore(memory_store)
    interleaved = []

    # Another thread commits between A's commit and A's event reaching everyone
    def commit_b_during_a_publish(message):
        if not interleaved:
            interleaved.append(True)
            writer_b.append(status_update("s-b", "ordered"))

    memory_store.channel.subscribe(commit_b_during_a_publish)
    observer = make_hub()

    writer_a.append(status_update("s-a", "ordered"))

    assert [u.data.subject_id for u in UpdateRecordStore(memory_store).all()] == ["s-a", "s-b"]
    assert [u.data.subject_id for u in observer.updates] == ["s-a", "s-b"]
    assert [u.data.subject_id for u in writer_a.all()] == ["s-a", "s-b"]


def test_stale_sequence_is_dropped(memory_store):
    store = UpdateRecordStore(memory_store)
    newer = status_update("s-new", "ordered", update_id="UPD-2")
    older = status_update("s-old", "ordered", update_id="UPD-1")

    assert store.apply_storage_event(
        StorageEvent(config.UPDATES_KEY, json.dumps([newer.to_dict()]), sequence=7)
    )
    assert not store.apply_storage_event(
        StorageEvent(config.UPDATES_KEY, json.dumps([older.to_dict()]), sequence=6)
    )
    assert [u.id for u in store.all()] == ["UPD-2"]


def test_dropped_hub_is_no_longer_delivered_to(make_hub, memory_store):
    abandoned = RealTimeHub(memory_store, transaction_id="TXN-TEST")
    abandoned.on_platform_reset(lambda signal: None)
    collected = weakref.ref(abandoned)
    assert memory_store.channel.subscriber_count == 1

    # Session ends without close()
    del abandoned
    gc.collect()

    assert collected() is None
    assert memory_store.channel.subscriber_count == 0
    live = make_hub()
    sent = _send(live)
    assert [u.id for u in live.updates] == [sent.id]
    assert memory_store.channel.subscriber_count == 1


def test_external_watcher_picks_up_other_process_writes(tmp_path):
    directory = str(tmp_path)
    ours = FileKeyValueStore(directory)
    hub = RealTimeHub(ours, transaction_id="TXN-TEST")
    watcher = ExternalChangeWatcher(ours)
    try:
        # A second process writes through its own store instance
        theirs = RealTimeHub(FileKeyValueStore(directory), transaction_id="TXN-TEST")
        theirs.add_document("Draft Contract", Stage.DRAFT_CONTRACT, Role.SELLER_CONVEYANCER, Role.BUYER_CONVEYANCER)
        theirs.close()

        assert hub.get_documents_for_role(Role.BUYER_CONVEYANCER) == []

        changed = watcher.poll()

        assert set(changed) == {config.DOCUMENTS_KEY, config.UPDATES_KEY}
        assert [d.name for d in hub.get_documents_for_role(Role.BUYER_CONVEYANCER)] == ["Draft Contract"]
        assert len(hub.updates) == 1
        assert watcher.poll() == []
    finally:
        hub.close()


def test_persisted_form_is_plain_json(make_hub, memory_store):
    hub = make_hub()
    sent = _send(hub)

    stored = json.loads(memory_store.get(config.UPDATES_KEY))
    assert stored == [sent.to_dict()]
    assert set(stored[0]) == {"id", "type", "stage", "role", "title", "description", "data", "timestamp", "read"}
