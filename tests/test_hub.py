import asyncio
import time

import pytest

from conftest import TODAY, VALID_DATE
from conveyance import config
from conveyance.core.errors import InvalidTransition, NotFoundError, PersistenceError
from conveyance.core.roles import Role
from conveyance.core.searches import SearchStatus
from conveyance.core.stages import Stage, StageStatus
from conveyance.core.updates import StageCompleted, StatusChanged, UpdateType
from conveyance.storage.kv_store import MemoryKeyValueStore
from conveyance.ui.notifications_dropdown import badge_label


class SlowKeyValueStore(MemoryKeyValueStore):
    def _write(self, key, value):
        time.sleep(0.5)
        super()._write(key, value)


def _order_search(hub, search_id="local-authority-search", status=SearchStatus.ORDERED):
    return asyncio.run(hub.update_search_status(search_id, status, Role.BUYER_CONVEYANCER))


# ══════════════════════════════════════════════════════════════
# SENDING
# ══════════════════════════════════════════════════════════════

def test_send_update_notifies_subscribers(make_hub, memory_store):
    hub = make_hub(simulated_latency=0.3)
    received = []
    unsubscribe = hub.subscribe(received.append)

    async def send_and_peek():
        task = asyncio.create_task(hub.send_update(
            UpdateType.STATUS_CHANGED, Stage.SEARCH_SURVEY, Role.BUYER_CONVEYANCER,
            "Search Ordered", "Local Authority Search ordered",
            StatusChanged(subject_id="local-authority-search", status="ordered"),
        ))
        await asyncio.sleep(0.1)
        seen_while_sending = [[u.id for u in updates] for updates in received]
        stored_while_sending = memory_store.get(config.UPDATES_KEY)
        return await task, seen_while_sending, stored_while_sending

    record, seen_while_sending, stored_while_sending = asyncio.run(send_and_peek())

    assert record.id and record.timestamp and record.read is False
    # Subscribers heard about it before the store did
    assert seen_while_sending == [[record.id]]
    assert stored_while_sending is None
    assert [u.id for u in received[-1]] == [record.id]
    assert record.id in memory_store.get(config.UPDATES_KEY)

    unsubscribe()
    _order_search(hub, "environmental-search")
    assert len(received[-1]) == 1


def test_send_update_rejects_mismatched_payload(make_hub):
    hub = make_hub()

    with pytest.raises(ValueError):
        asyncio.run(hub.send_update(
            UpdateType.DOCUMENT_UPLOADED, Stage.DRAFT_CONTRACT, Role.SELLER_CONVEYANCER,
            "Document Sent", "", StageCompleted(completed_by="seller-conveyancer"),
        ))
    assert hub.updates == []


def test_storage_failure_degrades_to_warning(make_hub, flaky_store):
    hub = make_hub(flaky_store)
    flaky_store.failing = True

    record = _order_search(hub)

    assert [u.id for u in hub.updates] == [record.id]
    assert hub.update_store.unpersisted_ids == {record.id}
    warnings = hub.drain_warnings()
    assert len(warnings) == 1 and "could not be saved" in warnings[0]
    assert hub.drain_warnings() == []

    # Survives a refresh while storage is still down or back up
    flaky_store.failing = False
    hub.refresh()
    assert [u.id for u in hub.updates] == [record.id]


def test_slow_storage_times_out_without_blocking(make_hub):
    kv = SlowKeyValueStore()
    hub = make_hub(kv, send_timeout=0.05, send_retries=0)

    record = _order_search(hub)

    assert [u.id for u in hub.updates] == [record.id]
    assert "timeout" in hub.drain_warnings()[0]


def test_domain_persistence_failure_propagates(make_hub, flaky_store):
    hub = make_hub(flaky_store)
    flaky_store.failing = True

    with pytest.raises(PersistenceError):
        hub.add_document("Draft Contract.pdf", Stage.DRAFT_CONTRACT, Role.SELLER_CONVEYANCER, Role.BUYER_CONVEYANCER)

    assert hub.drain_warnings() == []


# ══════════════════════════════════════════════════════════════
# TRANSACTION ACTIONS
# ══════════════════════════════════════════════════════════════

def test_search_status_follows_latest_update(make_hub):
    hub = make_hub()
    other = make_hub()

    _order_search(hub)
    _order_search(hub, "environmental-search")
    _order_search(hub, status=SearchStatus.COMPLETED)

    assert other.search_statuses() == {
        "local-authority-search": "completed",
        "environmental-search": "ordered",
    }
    assert other.transaction_state.status_of(Stage.SEARCH_SURVEY) == StageStatus.IN_PROGRESS
    assert other.updates[0].description == "Local Authority Search has been ordered by buyer conveyancer"


def test_search_status_rejects_unknown_and_pending(make_hub):
    hub = make_hub()

    with pytest.raises(NotFoundError):
        _order_search(hub, "psychic-search")
    with pytest.raises(InvalidTransition):
        _order_search(hub, status=SearchStatus.PENDING)
    assert hub.updates == []


def test_complete_stage_advances_progress(make_hub):
    hub = make_hub()

    asyncio.run(hub.complete_stage(Stage.PROOF_OF_FUNDS, Role.BUYER))

    state = make_hub().transaction_state
    assert state.status_of(Stage.PROOF_OF_FUNDS) == StageStatus.COMPLETED
    assert state.current_stage == Stage.CONVEYANCERS


def test_exchange_carries_agreed_completion_date(make_hub):
    hub = make_hub()
    proposal = hub.propose_completion_date(Role.BUYER_CONVEYANCER, VALID_DATE, "14:00", "", today=TODAY)
    hub.accept_proposal(proposal.id, Role.SELLER_CONVEYANCER)

    record = asyncio.run(hub.exchange_contracts(Role.BUYER_CONVEYANCER, "2026-01-20"))

    assert record.type == UpdateType.CONTRACT_EXCHANGED
    assert record.data.completion_date == VALID_DATE
    assert hub.transaction_state.status_of(Stage.CONTRACT_EXCHANGE) == StageStatus.COMPLETED


# ══════════════════════════════════════════════════════════════
# READ / UNREAD
# ══════════════════════════════════════════════════════════════

def test_unread_counts_are_per_role(make_hub):
    buyer_side = make_hub()
    seller_side = make_hub()
    for search_id in ("local-authority-search", "environmental-search", "water-drainage-search"):
        _order_search(buyer_side, search_id)

    assert buyer_side.unread_count(Role.BUYER_CONVEYANCER) == 0
    assert seller_side.unread_count(Role.SELLER_CONVEYANCER) == 3

    first = seller_side.notifications_for(Role.SELLER_CONVEYANCER)[0]
    assert seller_side.mark_as_read(first.id) is True
    assert buyer_side.unread_count(Role.SELLER_CONVEYANCER) == 2

    assert seller_side.mark_all_as_read(Role.SELLER_CONVEYANCER) == 2
    assert seller_side.unread_count(Role.SELLER_CONVEYANCER) == 0
    assert seller_side.mark_all_as_read(Role.SELLER_CONVEYANCER) == 0


def test_mark_unknown_update(make_hub):
    assert make_hub().mark_as_read("UPD-missing") is False


def test_mark_as_read_while_storage_unreadable(make_hub, flaky_store):
    hub = make_hub(flaky_store)
    record = _order_search(hub)
    flaky_store.failing_reads = True

    assert hub.mark_as_read("UPD-missing") is False
    assert hub.drain_warnings() == []

    assert hub.mark_as_read(record.id) is True
    assert hub.updates[0].read is True
    assert "Read state not saved" in hub.drain_warnings()[0]


@pytest.mark.parametrize("count,label", [(0, ""), (7, "7"), (99, "99"), (100, "99+")])
def test_badge_label(count, label):
    assert badge_label(count) == label


# ══════════════════════════════════════════════════════════════
# RESET
# ══════════════════════════════════════════════════════════════

def _populate(hub):
    _order_search(hub)
    proposal = hub.propose_completion_date(Role.BUYER_CONVEYANCER, VALID_DATE, "14:00", "", today=TODAY)
    hub.add_document("Draft Contract.pdf", Stage.DRAFT_CONTRACT, Role.SELLER_CONVEYANCER, Role.BUYER_CONVEYANCER)
    hub.add_amendment_request(
        Stage.DRAFT_CONTRACT, Role.BUYER_CONVEYANCER, Role.SELLER_CONVEYANCER, "Other", "Fix typo",
    )
    return proposal


def test_reset_without_notice_empties_everything(make_hub, memory_store):
    hub = make_hub()
    other = make_hub()
    _populate(hub)

    hub.reset_to_default(announce=False)

    for h in (hub, other):
        assert h.updates == []
        assert h.proposals == []
        assert h.get_documents_for_role(Role.BUYER_CONVEYANCER) == []
        assert h.get_amendment_requests_for_role(Role.BUYER_CONVEYANCER) == []
    assert memory_store.keys() == []


def test_reset_with_notice_leaves_single_update(make_hub):
    hub = make_hub()
    _populate(hub)

    hub.reset_to_default()

    (notice,) = hub.updates
    assert notice.type == UpdateType.PLATFORM_RESET
    assert notice.role == Role.SYSTEM
    assert hub.transaction_state.current_stage == Stage.PROOF_OF_FUNDS


def test_collaborators_signalled_after_core_is_clear(make_hub):
    hub = make_hub()
    other = make_hub()
    _populate(hub)
    seen = []
    other.on_platform_reset(lambda signal: seen.append((signal, [u.type for u in other.updates], other.proposals)))

    signal = hub.reset_to_default()

    assert seen == [(signal, [UpdateType.PLATFORM_RESET], [])]
    assert signal.origin == hub.hub_id


def test_reset_storage_failure_still_clears_local_state(make_hub, flaky_store):
    hub = make_hub(flaky_store)
    _populate(hub)
    flaky_store.failing = True

    hub.reset_to_default(announce=False)

    assert hub.updates == []
    assert hub.proposals == []
    assert any("Reset could not clear" in w for w in hub.drain_warnings())


def test_closed_hub_stops_receiving(make_hub):
    hub = make_hub()
    other = make_hub()
    other.close()

    _order_search(hub)

    assert other.updates == []
