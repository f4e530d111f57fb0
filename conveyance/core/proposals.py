"""
COMPLETION DATE PROPOSALS

Purpose:
- Conveyancers negotiate the completion date through proposals
- The counterpart conveyancer accepts or rejects
- At most one accepted proposal per transaction at any time

Lifecycle:
    pending  -> accepted | rejected | superseded
    accepted, rejected, superseded: terminal

Rules:
• Only conveyancers propose
• Only the conveyancer who did NOT propose may decide
• Accepting supersedes every other pending proposal of the same transaction
• Once a date is accepted, no proposal can be made or accepted
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from conveyance import config
from conveyance.core.errors import (
    ForbiddenTransition,
    InvalidTransition,
    NotFoundError,
    ProposalValidationError,
)
from conveyance.core.id_generator import PROPOSAL_PREFIX, generate_id, utc_now_iso
from conveyance.core.roles import CONVEYANCERS, Role
from conveyance.storage.collection import PersistedCollection
from conveyance.storage.kv_store import KeyValueStore

logger = logging.getLogger(__name__)


class ProposalStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    SUPERSEDED = "superseded"


PROPOSAL_TRANSITIONS = {
    ProposalStatus.PENDING: {
        ProposalStatus.ACCEPTED,
        ProposalStatus.REJECTED,
        ProposalStatus.SUPERSEDED,
    },
    ProposalStatus.ACCEPTED: set(),
    ProposalStatus.REJECTED: set(),
    ProposalStatus.SUPERSEDED: set(),
}


def validate_proposal_transition(current: ProposalStatus, next_status: ProposalStatus) -> None:
    """Raise InvalidTransition if `current -> next_status` is not allowed."""
    if next_status not in PROPOSAL_TRANSITIONS[current]:
        raise InvalidTransition(
            f"Invalid proposal transition: {current.value} → {next_status.value}"
        )


# ==================================================
# RECORDS
# ==================================================

@dataclass
class ProposalResponse:
    party: Role
    status: ProposalStatus
    timestamp: str
    notes: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "party": self.party.value,
            "status": self.status.value,
            "timestamp": self.timestamp,
            "notes": self.notes,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProposalResponse":
        return cls(
            party=Role(data["party"]),
            status=ProposalStatus(data["status"]),
            timestamp=data["timestamp"],
            notes=data.get("notes"),
        )


@dataclass
class CompletionProposal:
    id: str
    transaction_id: str
    date: str
    time: str
    proposed_by: Role
    reason: str
    status: ProposalStatus = ProposalStatus.PENDING
    timestamp: str = ""
    responses: List[ProposalResponse] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "transaction_id": self.transaction_id,
            "date": self.date,
            "time": self.time,
            "proposed_by": self.proposed_by.value,
            "reason": self.reason,
            "status": self.status.value,
            "timestamp": self.timestamp,
            "responses": [r.to_dict() for r in self.responses],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CompletionProposal":
        return cls(
            id=data["id"],
            transaction_id=data["transaction_id"],
            date=data["date"],
            time=data["time"],
            proposed_by=Role(data["proposed_by"]),
            reason=data.get("reason", ""),
            status=ProposalStatus(data.get("status", ProposalStatus.PENDING.value)),
            timestamp=data.get("timestamp", ""),
            responses=[ProposalResponse.from_dict(r) for r in data.get("responses", [])],
        )


# ==================================================
# SCHEDULING RULES
# ==================================================

def validate_completion_date(
    proposed: date,
    today: Optional[date] = None,
    bank_holidays: Iterable[date] = config.BANK_HOLIDAYS,
    min_notice_days: int = config.MIN_NOTICE_DAYS,
) -> List[str]:
    """
    Check a completion date against the usual conveyancing constraints.

    Returns:
        List[str]: human-readable issues, empty if the date is acceptable
    """
    today = today or date.today()
    issues = []

    if proposed <= today:
        issues.append("Date cannot be in the past")

    if proposed.weekday() >= 5:
        issues.append("Completion typically occurs on weekdays")

    if (proposed - today).days < min_notice_days:
        issues.append(f"Minimum {min_notice_days} days notice typically required")

    if proposed in set(bank_holidays):
        issues.append("Date falls on a bank holiday")

    return issues


def _parse_slot(date_str: str, time_str: str) -> date:
    try:
        proposed = date.fromisoformat(date_str)
    except (TypeError, ValueError):
        raise ProposalValidationError([f"Invalid date '{date_str}' (expected YYYY-MM-DD)"])
    try:
        datetime.strptime(time_str, "%H:%M")
    except (TypeError, ValueError):
        raise ProposalValidationError([f"Invalid time '{time_str}' (expected HH:MM)"])
    return proposed


def authorize_decision(proposal: CompletionProposal, role: Role) -> None:
    """Only the counterpart conveyancer may accept or reject a proposal."""
    if role not in CONVEYANCERS:
        raise ForbiddenTransition(f"Role '{role.value}' cannot decide completion date proposals")
    if role == proposal.proposed_by:
        raise ForbiddenTransition(
            f"Role '{role.value}' proposed {proposal.id} and cannot decide it"
        )


# ==================================================
# PROPOSAL BOOK (persisted under completion_proposals)
# ==================================================

class ProposalBook(PersistedCollection[CompletionProposal]):
    item_cls = CompletionProposal
    label = "proposal"

    def __init__(self, kv: KeyValueStore, transaction_id: str, key: str = config.PROPOSALS_KEY):
        self.transaction_id = transaction_id
        super().__init__(kv, key)

    def for_transaction(self) -> List[CompletionProposal]:
        """This transaction's proposals, newest first."""
        proposals = [p for p in self.all() if p.transaction_id == self.transaction_id]
        return list(reversed(proposals))

    def accepted(self) -> Optional[CompletionProposal]:
        for proposal in self.for_transaction():
            if proposal.status == ProposalStatus.ACCEPTED:
                return proposal
        return None

    def pending(self) -> List[CompletionProposal]:
        return [p for p in self.for_transaction() if p.status == ProposalStatus.PENDING]

    def propose(
        self,
        role: Role,
        date_str: str,
        time_str: str,
        reason: str,
        enforce_rules: bool = True,
        today: Optional[date] = None,
    ) -> CompletionProposal:
        """
        Create a pending proposal.

        Raises:
            ForbiddenTransition: role is not a conveyancer
            ProposalValidationError: malformed slot, or scheduling rules broken
                while `enforce_rules` is set
            InvalidTransition: a completion date is already agreed
        """
        if role not in CONVEYANCERS:
            raise ForbiddenTransition(f"Role '{role.value}' cannot propose completion dates")

        proposed = _parse_slot(date_str, time_str)
        if enforce_rules:
            issues = validate_completion_date(proposed, today=today)
            if issues:
                raise ProposalValidationError(issues)

        proposal = CompletionProposal(
            id=generate_id(PROPOSAL_PREFIX),
            transaction_id=self.transaction_id,
            date=proposed.isoformat(),
            time=time_str,
            proposed_by=role,
            reason=reason,
            status=ProposalStatus.PENDING,
            timestamp=utc_now_iso(),
        )

        def add(items: List[CompletionProposal]) -> CompletionProposal:
            self._ensure_not_agreed(items)
            items.append(self._clone(proposal))
            return proposal

        self._commit(add)
        logger.info("Proposal %s: %s %s by %s", proposal.id, proposal.date, proposal.time, role.value)
        return self._clone(proposal)

    def accept(self, proposal_id: str, role: Role) -> CompletionProposal:
        """
        Accept a pending proposal and supersede the other pending ones.

        Raises:
            NotFoundError, ForbiddenTransition, InvalidTransition
        """
        now = utc_now_iso()

        def decide(items: List[CompletionProposal]) -> CompletionProposal:
            target = self._find(items, proposal_id)
            authorize_decision(target, role)
            validate_proposal_transition(target.status, ProposalStatus.ACCEPTED)
            self._ensure_not_agreed(items)

            for other in items:
                if other is target or other.transaction_id != target.transaction_id:
                    continue
                if other.status == ProposalStatus.PENDING:
                    other.status = ProposalStatus.SUPERSEDED
                    other.responses.append(
                        ProposalResponse(role, ProposalStatus.SUPERSEDED, now, f"Superseded by {target.id}")
                    )

            target.status = ProposalStatus.ACCEPTED
            target.responses.append(ProposalResponse(role, ProposalStatus.ACCEPTED, now))
            return self._clone(target)

        accepted = self._commit(decide)
        logger.info("Proposal %s accepted by %s", proposal_id, role.value)
        return accepted

    def reject(self, proposal_id: str, role: Role, notes: Optional[str] = None) -> CompletionProposal:
        """
        Reject a pending proposal. Does not block new proposals.

        Raises:
            NotFoundError, ForbiddenTransition, InvalidTransition
        """
        def decide(items: List[CompletionProposal]) -> CompletionProposal:
            target = self._find(items, proposal_id)
            authorize_decision(target, role)
            validate_proposal_transition(target.status, ProposalStatus.REJECTED)
            target.status = ProposalStatus.REJECTED
            target.responses.append(
                ProposalResponse(role, ProposalStatus.REJECTED, utc_now_iso(), notes)
            )
            return self._clone(target)

        rejected = self._commit(decide)
        logger.info("Proposal %s rejected by %s", proposal_id, role.value)
        return rejected

    def reset(self) -> None:
        self.clear()

    def _ensure_not_agreed(self, items: List[CompletionProposal]) -> None:
        for item in items:
            if item.transaction_id == self.transaction_id and item.status == ProposalStatus.ACCEPTED:
                raise InvalidTransition(
                    f"Completion date already agreed ({item.date} {item.time}, {item.id})"
                )

    def _find(self, items: List[CompletionProposal], proposal_id: str) -> CompletionProposal:
        for item in items:
            if item.id == proposal_id and item.transaction_id == self.transaction_id:
                return item
        raise NotFoundError(f"No completion date proposal with id {proposal_id}")
