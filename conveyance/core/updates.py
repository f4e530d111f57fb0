"""
UPDATE RECORDS

Purpose:
- The one structured entity of the real-time core
- Closed set of update types
- One typed payload per update type (tagged union keyed by `type`)
- Read/unread tracking

Storage form (one JSON object per record):
    {"id", "type", "stage", "role", "title", "description",
     "data", "timestamp", "read"}
"""

from dataclasses import asdict, dataclass, field, fields
from enum import Enum
from typing import Any, Dict, Optional, Type

from conveyance.core.id_generator import UPDATE_PREFIX, generate_id, utc_now_iso
from conveyance.core.roles import Role
from conveyance.core.stages import Stage


class UpdateType(str, Enum):
    STAGE_COMPLETED = "stage_completed"
    STATUS_CHANGED = "status_changed"
    DOCUMENT_UPLOADED = "document_uploaded"
    COMPLETION_DATE_PROPOSED = "completion_date_proposed"
    COMPLETION_DATE_CONFIRMED = "completion_date_confirmed"
    COMPLETION_DATE_REJECTED = "completion_date_rejected"
    CONTRACT_EXCHANGED = "contract_exchanged"
    AMENDMENT_REQUESTED = "amendment_requested"
    AMENDMENT_REPLIED = "amendment_replied"
    PLATFORM_RESET = "platform_reset"


# ══════════════════════════════════════════════════════════════
# PAYLOADS
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Payload:
    """Base for typed update payloads."""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Payload":
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in (data or {}).items() if k in known})


@dataclass(frozen=True)
class StageCompleted(Payload):
    completed_by: str
    summary: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class StatusChanged(Payload):
    """A tracked item on a stage moved to a new status (search ordered, document downloaded...)."""
    subject_id: str
    status: str
    subject_name: Optional[str] = None
    action: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class DocumentUploaded(Payload):
    document_id: str
    document_name: str
    delivered_to: str
    priority: str = "standard"
    cover_message: Optional[str] = None


@dataclass(frozen=True)
class CompletionDateProposed(Payload):
    proposal_id: str
    date: str
    time: str
    proposed_by: str
    reason: str


@dataclass(frozen=True)
class CompletionDateConfirmed(Payload):
    proposal_id: str
    date: str
    time: str
    confirmed_by: str


@dataclass(frozen=True)
class CompletionDateRejected(Payload):
    proposal_id: str
    rejected_by: str
    notes: Optional[str] = None


@dataclass(frozen=True)
class ContractExchanged(Payload):
    exchanged_by: str
    exchange_date: str
    completion_date: Optional[str] = None


@dataclass(frozen=True)
class AmendmentRequested(Payload):
    amendment_id: str
    amendment_type: str
    priority: str


@dataclass(frozen=True)
class AmendmentReplied(Payload):
    amendment_id: str
    decision: str
    original_request_by: str


@dataclass(frozen=True)
class PlatformReset(Payload):
    reset_id: str


PAYLOAD_TYPES: Dict[UpdateType, Type[Payload]] = {
    UpdateType.STAGE_COMPLETED: StageCompleted,
    UpdateType.STATUS_CHANGED: StatusChanged,
    UpdateType.DOCUMENT_UPLOADED: DocumentUploaded,
    UpdateType.COMPLETION_DATE_PROPOSED: CompletionDateProposed,
    UpdateType.COMPLETION_DATE_CONFIRMED: CompletionDateConfirmed,
    UpdateType.COMPLETION_DATE_REJECTED: CompletionDateRejected,
    UpdateType.CONTRACT_EXCHANGED: ContractExchanged,
    UpdateType.AMENDMENT_REQUESTED: AmendmentRequested,
    UpdateType.AMENDMENT_REPLIED: AmendmentReplied,
    UpdateType.PLATFORM_RESET: PlatformReset,
}


# ══════════════════════════════════════════════════════════════
# RECORD
# ══════════════════════════════════════════════════════════════

@dataclass
class UpdateRecord:
    """
    An action taken by one role on one stage.

    `id` and `timestamp` may be left empty; the store assigns them on append.
    `read` only ever moves from False to True.
    """
    type: UpdateType
    stage: Stage
    role: Role
    title: str
    description: str
    data: Payload
    id: str = ""
    timestamp: str = ""
    read: bool = False

    def __post_init__(self):
        self.type = UpdateType(self.type)
        self.stage = Stage(self.stage)
        self.role = Role(self.role)
        expected = PAYLOAD_TYPES[self.type]
        if not isinstance(self.data, expected):
            raise ValueError(
                f"Update type '{self.type.value}' requires a {expected.__name__} payload, "
                f"got {type(self.data).__name__}"
            )

    def ensure_identity(self) -> "UpdateRecord":
        """Assign id and timestamp if absent."""
        if not self.id:
            self.id = generate_id(UPDATE_PREFIX)
        if not self.timestamp:
            self.timestamp = utc_now_iso()
        return self

    def copy(self) -> "UpdateRecord":
        return UpdateRecord(
            type=self.type,
            stage=self.stage,
            role=self.role,
            title=self.title,
            description=self.description,
            data=self.data,
            id=self.id,
            timestamp=self.timestamp,
            read=self.read,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "stage": self.stage.value,
            "role": self.role.value,
            "title": self.title,
            "description": self.description,
            "data": self.data.to_dict(),
            "timestamp": self.timestamp,
            "read": self.read,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UpdateRecord":
        update_type = UpdateType(data["type"])
        payload_cls = PAYLOAD_TYPES[update_type]
        return cls(
            id=data["id"],
            type=update_type,
            stage=Stage(data["stage"]),
            role=Role(data["role"]),
            title=data.get("title", ""),
            description=data.get("description", ""),
            data=payload_cls.from_dict(data.get("data") or {}),
            timestamp=data.get("timestamp", ""),
            read=bool(data.get("read", False)),
        )
