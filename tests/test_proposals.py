from datetime import date

import pytest

from conftest import TODAY, VALID_DATE
from conveyance.core.errors import (
    ForbiddenTransition,
    InvalidTransition,
    NotFoundError,
    ProposalValidationError,
)
from conveyance.core.proposals import (
    ProposalBook,
    ProposalStatus,
    validate_completion_date,
    validate_proposal_transition,
)
from conveyance.core.roles import Role
from conveyance.core.updates import UpdateType


# ==================================================
# SCHEDULING RULES
# ==================================================

def test_valid_weekday_with_notice_has_no_issues():
    assert validate_completion_date(date.fromisoformat(VALID_DATE), today=TODAY) == []


def test_past_and_short_notice_flagged():
    issues = validate_completion_date(date(2026, 1, 2), today=TODAY)

    assert "Date cannot be in the past" in issues
    assert "Minimum 14 days notice typically required" in issues


def test_weekend_flagged():
    assert validate_completion_date(date(2026, 1, 24), today=TODAY) == [
        "Completion typically occurs on weekdays"
    ]


def test_bank_holiday_flagged():
    # Easter Monday
    assert validate_completion_date(date(2026, 4, 6), today=TODAY) == ["Date falls on a bank holiday"]


def test_transition_table():
    validate_proposal_transition(ProposalStatus.PENDING, ProposalStatus.ACCEPTED)
    validate_proposal_transition(ProposalStatus.PENDING, ProposalStatus.SUPERSEDED)
    with pytest.raises(InvalidTransition):
        validate_proposal_transition(ProposalStatus.REJECTED, ProposalStatus.ACCEPTED)
    with pytest.raises(InvalidTransition):
        validate_proposal_transition(ProposalStatus.ACCEPTED, ProposalStatus.SUPERSEDED)


# ==================================================
# PROPOSAL BOOK
# ==================================================

def _book(kv, transaction_id="TXN-TEST"):
    return ProposalBook(kv, transaction_id)


def test_propose_creates_pending(memory_store):
    book = _book(memory_store)

    proposal = book.propose(Role.BUYER_CONVEYANCER, VALID_DATE, "14:00", "Mortgage funds ready", today=TODAY)

    assert proposal.status == ProposalStatus.PENDING
    assert proposal.id.startswith("PROP-")
    assert book.pending()[0].id == proposal.id


def test_only_conveyancers_propose(memory_store):
    with pytest.raises(ForbiddenTransition):
        _book(memory_store).propose(Role.BUYER, VALID_DATE, "14:00", "", today=TODAY)


def test_rule_breaking_date_rejected_unless_overridden(memory_store):
    book = _book(memory_store)

    with pytest.raises(ProposalValidationError) as excinfo:
        book.propose(Role.BUYER_CONVEYANCER, "2026-01-24", "14:00", "", today=TODAY)
    assert excinfo.value.issues == ["Completion typically occurs on weekdays"]
    assert book.for_transaction() == []

    forced = book.propose(Role.BUYER_CONVEYANCER, "2026-01-24", "14:00", "", enforce_rules=False, today=TODAY)
    assert forced.date == "2026-01-24"


@pytest.mark.parametrize("date_str,time_str", [("28/05/2026", "14:00"), (VALID_DATE, "2pm")])
def test_malformed_slot_rejected(memory_store, date_str, time_str):
    with pytest.raises(ProposalValidationError):
        _book(memory_store).propose(Role.BUYER_CONVEYANCER, date_str, time_str, "", enforce_rules=False)


def test_accept_supersedes_pending_proposals(memory_store):
    book = _book(memory_store)
    first = book.propose(Role.BUYER_CONVEYANCER, VALID_DATE, "10:00", "", today=TODAY)
    second = book.propose(Role.SELLER_CONVEYANCER, "2026-02-05", "12:00", "", today=TODAY)
    third = book.propose(Role.BUYER_CONVEYANCER, "2026-02-06", "12:00", "", today=TODAY)
    book.reject(third.id, Role.SELLER_CONVEYANCER)

    book.accept(first.id, Role.SELLER_CONVEYANCER)

    statuses = {p.id: p.status for p in book.for_transaction()}
    assert statuses == {
        first.id: ProposalStatus.ACCEPTED,
        second.id: ProposalStatus.SUPERSEDED,
        third.id: ProposalStatus.REJECTED,
    }
    assert book.accepted().id == first.id


def test_accepted_date_is_final(memory_store):
    book = _book(memory_store)
    first = book.propose(Role.BUYER_CONVEYANCER, VALID_DATE, "10:00", "", today=TODAY)
    book.accept(first.id, Role.SELLER_CONVEYANCER)

    with pytest.raises(InvalidTransition):
        book.propose(Role.SELLER_CONVEYANCER, "2026-02-06", "12:00", "", today=TODAY)
    with pytest.raises(InvalidTransition):
        book.accept(first.id, Role.SELLER_CONVEYANCER)

    assert [p.id for p in book.for_transaction()] == [first.id]
    assert book.accepted().status == ProposalStatus.ACCEPTED


def test_late_accept_of_a_superseded_proposal_fails(memory_store):
    buyer_side = _book(memory_store)
    seller_side = _book(memory_store)
    first = buyer_side.propose(Role.BUYER_CONVEYANCER, VALID_DATE, "10:00", "", today=TODAY)
    second = seller_side.propose(Role.SELLER_CONVEYANCER, "2026-02-05", "12:00", "", today=TODAY)

    seller_side.accept(first.id, Role.SELLER_CONVEYANCER)

    # The buyer side has not reloaded yet; the persisted state still wins
    with pytest.raises(InvalidTransition):
        buyer_side.accept(second.id, Role.BUYER_CONVEYANCER)
    buyer_side.reload()
    assert buyer_side.accepted().id == first.id


def test_proposer_cannot_decide_own_proposal(memory_store):
    book = _book(memory_store)
    proposal = book.propose(Role.BUYER_CONVEYANCER, VALID_DATE, "14:00", "", today=TODAY)

    with pytest.raises(ForbiddenTransition):
        book.accept(proposal.id, Role.BUYER_CONVEYANCER)
    with pytest.raises(ForbiddenTransition):
        book.reject(proposal.id, Role.ESTATE_AGENT)
    assert book.get(proposal.id).status == ProposalStatus.PENDING


def test_decided_proposal_cannot_be_decided_again(memory_store):
    book = _book(memory_store)
    proposal = book.propose(Role.BUYER_CONVEYANCER, VALID_DATE, "14:00", "", today=TODAY)
    rejected = book.reject(proposal.id, Role.SELLER_CONVEYANCER, "Too early")

    assert rejected.status == ProposalStatus.REJECTED
    assert rejected.responses[-1].notes == "Too early"
    with pytest.raises(InvalidTransition):
        book.accept(proposal.id, Role.SELLER_CONVEYANCER)


def test_unknown_or_foreign_proposal_not_found(memory_store):
    ours = _book(memory_store)
    theirs = _book(memory_store, "TXN-OTHER")
    foreign = theirs.propose(Role.BUYER_CONVEYANCER, VALID_DATE, "14:00", "", today=TODAY)

    ours.reload()
    assert ours.for_transaction() == []
    with pytest.raises(NotFoundError):
        ours.accept(foreign.id, Role.SELLER_CONVEYANCER)
    with pytest.raises(NotFoundError):
        ours.reject("PROP-missing", Role.SELLER_CONVEYANCER)


# ==================================================
# THROUGH THE HUB
# ==================================================

def test_hub_proposal_round_trip_emits_updates(make_hub):
    buyer_side = make_hub()
    seller_side = make_hub()

    proposal = buyer_side.propose_completion_date(
        Role.BUYER_CONVEYANCER, VALID_DATE, "14:00", "Chain aligned", today=TODAY,
    )
    assert seller_side.proposals[0].id == proposal.id

    seller_side.accept_proposal(proposal.id, Role.SELLER_CONVEYANCER)

    assert buyer_side.accepted_proposal().id == proposal.id
    assert [u.type for u in buyer_side.updates] == [
        UpdateType.COMPLETION_DATE_PROPOSED,
        UpdateType.COMPLETION_DATE_CONFIRMED,
    ]
    assert buyer_side.updates[1].data.date == VALID_DATE


def test_hub_rejected_decision_emits_nothing(make_hub):
    hub = make_hub()
    proposal = hub.propose_completion_date(Role.BUYER_CONVEYANCER, VALID_DATE, "14:00", "", today=TODAY)

    with pytest.raises(ForbiddenTransition):
        hub.accept_proposal(proposal.id, Role.BUYER_CONVEYANCER)

    assert len(hub.updates) == 1
