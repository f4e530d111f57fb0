"""
CONTRACT AMENDMENT REQUESTS

One conveyancer asks the other to change the draft contract; the
recipient acknowledges and replies, the requester resolves.

    pending -> acknowledged -> replied -> resolved
    pending -> replied
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from conveyance import config
from conveyance.core.errors import ForbiddenTransition, InvalidTransition, NotFoundError
from conveyance.core.id_generator import AMENDMENT_PREFIX, generate_id, utc_now_iso
from conveyance.core.roles import Role
from conveyance.core.stages import Stage
from conveyance.storage.collection import PersistedCollection
from conveyance.storage.kv_store import KeyValueStore

logger = logging.getLogger(__name__)

AMENDMENT_TYPES = [
    "Completion Date",
    "Purchase Price",
    "Fixtures and Fittings",
    "Special Conditions",
    "Title Guarantee",
    "Deposit Amount",
    "Other",
]


class AmendmentStatus(str, Enum):
    PENDING = "pending"
    ACKNOWLEDGED = "acknowledged"
    REPLIED = "replied"
    RESOLVED = "resolved"


class AmendmentPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ReplyDecision(str, Enum):
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    COUNTER_PROPOSAL = "counter-proposal"


AMENDMENT_TRANSITIONS = {
    AmendmentStatus.PENDING: {AmendmentStatus.ACKNOWLEDGED, AmendmentStatus.REPLIED},
    AmendmentStatus.ACKNOWLEDGED: {AmendmentStatus.REPLIED},
    AmendmentStatus.REPLIED: {AmendmentStatus.RESOLVED},
    AmendmentStatus.RESOLVED: set(),
}


def validate_amendment_transition(current: AmendmentStatus, next_status: AmendmentStatus) -> None:
    if next_status not in AMENDMENT_TRANSITIONS[current]:
        raise InvalidTransition(
            f"Invalid amendment transition: {current.value} → {next_status.value}"
        )


@dataclass
class AmendmentReply:
    message: str
    decision: ReplyDecision
    replied_at: str
    replied_by: Role
    counter_proposal: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "decision": self.decision.value,
            "counter_proposal": self.counter_proposal,
            "replied_at": self.replied_at,
            "replied_by": self.replied_by.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AmendmentReply":
        return cls(
            message=data.get("message", ""),
            decision=ReplyDecision(data["decision"]),
            replied_at=data.get("replied_at", ""),
            replied_by=Role(data["replied_by"]),
            counter_proposal=data.get("counter_proposal"),
        )


@dataclass
class AmendmentRequest:
    id: str
    stage: Stage
    requested_by: Role
    requested_to: Role
    type: str
    priority: AmendmentPriority
    description: str
    proposed_change: str = ""
    deadline: Optional[str] = None
    affected_clauses: List[str] = field(default_factory=list)
    status: AmendmentStatus = AmendmentStatus.PENDING
    created_at: str = ""
    reply: Optional[AmendmentReply] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "stage": self.stage.value,
            "requested_by": self.requested_by.value,
            "requested_to": self.requested_to.value,
            "type": self.type,
            "priority": self.priority.value,
            "description": self.description,
            "proposed_change": self.proposed_change,
            "deadline": self.deadline,
            "affected_clauses": list(self.affected_clauses),
            "status": self.status.value,
            "created_at": self.created_at,
            "reply": self.reply.to_dict() if self.reply else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AmendmentRequest":
        reply = data.get("reply")
        return cls(
            id=data["id"],
            stage=Stage(data["stage"]),
            requested_by=Role(data["requested_by"]),
            requested_to=Role(data["requested_to"]),
            type=data["type"],
            priority=AmendmentPriority(data.get("priority", AmendmentPriority.MEDIUM.value)),
            description=data.get("description", ""),
            proposed_change=data.get("proposed_change", ""),
            deadline=data.get("deadline"),
            affected_clauses=list(data.get("affected_clauses") or []),
            status=AmendmentStatus(data.get("status", AmendmentStatus.PENDING.value)),
            created_at=data.get("created_at", ""),
            reply=AmendmentReply.from_dict(reply) if reply else None,
        )


class AmendmentBook(PersistedCollection[AmendmentRequest]):
    item_cls = AmendmentRequest
    label = "amendment request"

    def __init__(self, kv: KeyValueStore, key: str = config.AMENDMENTS_KEY):
        super().__init__(kv, key)

    def add(
        self,
        stage: Stage,
        requested_by: Role,
        requested_to: Role,
        amendment_type: str,
        description: str,
        priority: AmendmentPriority = AmendmentPriority.MEDIUM,
        proposed_change: str = "",
        deadline: Optional[str] = None,
        affected_clauses: Optional[List[str]] = None,
    ) -> AmendmentRequest:
        if not amendment_type or not description:
            raise ValueError("Amendment type and description are required")
        if Role(requested_by) == Role(requested_to):
            raise ForbiddenTransition("An amendment request must go to another party")

        request = AmendmentRequest(
            id=generate_id(AMENDMENT_PREFIX),
            stage=Stage(stage),
            requested_by=Role(requested_by),
            requested_to=Role(requested_to),
            type=amendment_type,
            priority=AmendmentPriority(priority),
            description=description,
            proposed_change=proposed_change,
            deadline=deadline,
            affected_clauses=list(affected_clauses or []),
            created_at=utc_now_iso(),
        )

        def add_request(items: List[AmendmentRequest]) -> None:
            items.append(self._clone(request))

        self._commit(add_request)
        logger.info("Amendment %s (%s) %s -> %s", request.id, amendment_type,
                    request.requested_by.value, request.requested_to.value)
        return self._clone(request)

    def for_role(self, role: Role, stage: Optional[Stage] = None) -> List[AmendmentRequest]:
        """Requests sent by or to `role`, newest first."""
        requests = [
            req for req in self.all()
            if role in (req.requested_by, req.requested_to)
            and (stage is None or req.stage == stage)
        ]
        return list(reversed(requests))

    def acknowledge(self, request_id: str, role: Role) -> AmendmentRequest:
        def ack(items: List[AmendmentRequest]) -> AmendmentRequest:
            req = self._find(items, request_id)
            if role != req.requested_to:
                raise ForbiddenTransition(
                    f"Only {req.requested_to.value} can acknowledge {request_id}"
                )
            validate_amendment_transition(req.status, AmendmentStatus.ACKNOWLEDGED)
            req.status = AmendmentStatus.ACKNOWLEDGED
            return self._clone(req)

        return self._commit(ack)

    def reply(
        self,
        request_id: str,
        role: Role,
        message: str,
        decision: ReplyDecision,
        counter_proposal: Optional[str] = None,
    ) -> AmendmentRequest:
        decision = ReplyDecision(decision)
        if decision == ReplyDecision.COUNTER_PROPOSAL and not counter_proposal:
            raise ValueError("A counter-proposal reply needs the counter proposal text")

        def answer(items: List[AmendmentRequest]) -> AmendmentRequest:
            req = self._find(items, request_id)
            if role != req.requested_to:
                raise ForbiddenTransition(
                    f"Only {req.requested_to.value} can reply to {request_id}"
                )
            validate_amendment_transition(req.status, AmendmentStatus.REPLIED)
            req.status = AmendmentStatus.REPLIED
            req.reply = AmendmentReply(
                message=message,
                decision=decision,
                replied_at=utc_now_iso(),
                replied_by=role,
                counter_proposal=counter_proposal,
            )
            return self._clone(req)

        replied = self._commit(answer)
        logger.info("Amendment %s replied by %s: %s", request_id, role.value, decision.value)
        return replied

    def resolve(self, request_id: str, role: Role) -> AmendmentRequest:
        def close(items: List[AmendmentRequest]) -> AmendmentRequest:
            req = self._find(items, request_id)
            if role != req.requested_by:
                raise ForbiddenTransition(
                    f"Only {req.requested_by.value} can resolve {request_id}"
                )
            validate_amendment_transition(req.status, AmendmentStatus.RESOLVED)
            req.status = AmendmentStatus.RESOLVED
            return self._clone(req)

        return self._commit(close)

    def reset(self) -> None:
        self.clear()

    @staticmethod
    def _find(items: List[AmendmentRequest], request_id: str) -> AmendmentRequest:
        for item in items:
            if item.id == request_id:
                return item
        raise NotFoundError(f"No amendment request with id {request_id}")
