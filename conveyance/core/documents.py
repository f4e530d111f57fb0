# conveyance/core/documents.py

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from conveyance import config
from conveyance.core.errors import InvalidTransition, NotFoundError
from conveyance.core.id_generator import DOCUMENT_PREFIX, generate_id, utc_now_iso
from conveyance.core.roles import Role
from conveyance.core.stages import Stage
from conveyance.storage.collection import PersistedCollection
from conveyance.storage.kv_store import KeyValueStore

logger = logging.getLogger(__name__)


class DocumentStatus(str, Enum):
    DELIVERED = "delivered"
    DOWNLOADED = "downloaded"
    REVIEWED = "reviewed"


class DocumentPriority(str, Enum):
    STANDARD = "standard"
    URGENT = "urgent"
    CRITICAL = "critical"


# Status only moves forward
DOCUMENT_TRANSITIONS = {
    DocumentStatus.DELIVERED: {DocumentStatus.DOWNLOADED},
    DocumentStatus.DOWNLOADED: {DocumentStatus.REVIEWED},
    DocumentStatus.REVIEWED: set(),
}


def validate_document_transition(current: DocumentStatus, next_status: DocumentStatus) -> None:
    """
    Validate whether a document status transition is allowed.

    Raises InvalidTransition if invalid.
    """
    if next_status not in DOCUMENT_TRANSITIONS[current]:
        raise InvalidTransition(
            f"Invalid document transition: {current.value} → {next_status.value}"
        )


@dataclass
class DocumentRecord:
    id: str
    name: str
    stage: Stage
    uploaded_by: Role
    delivered_to: Role
    uploaded_at: str
    size: str
    status: DocumentStatus = DocumentStatus.DELIVERED
    download_count: int = 0
    cover_message: Optional[str] = None
    deadline: Optional[str] = None
    priority: DocumentPriority = DocumentPriority.STANDARD

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "stage": self.stage.value,
            "uploaded_by": self.uploaded_by.value,
            "delivered_to": self.delivered_to.value,
            "uploaded_at": self.uploaded_at,
            "size": self.size,
            "status": self.status.value,
            "download_count": self.download_count,
            "cover_message": self.cover_message,
            "deadline": self.deadline,
            "priority": self.priority.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DocumentRecord":
        return cls(
            id=data["id"],
            name=data["name"],
            stage=Stage(data["stage"]),
            uploaded_by=Role(data["uploaded_by"]),
            delivered_to=Role(data["delivered_to"]),
            uploaded_at=data.get("uploaded_at", ""),
            size=data.get("size", ""),
            status=DocumentStatus(data.get("status", DocumentStatus.DELIVERED.value)),
            download_count=int(data.get("download_count", 0)),
            cover_message=data.get("cover_message"),
            deadline=data.get("deadline"),
            priority=DocumentPriority(data.get("priority", DocumentPriority.STANDARD.value)),
        )


def placeholder_pdf(document: DocumentRecord) -> bytes:
    """Minimal PDF body handed out on download."""
    return (
        "%PDF-1.4\n"
        f"% {document.name}\n"
        f"% Stage: {document.stage.title}\n"
        f"% From: {document.uploaded_by.label} To: {document.delivered_to.label}\n"
        f"% Uploaded: {document.uploaded_at}\n"
        "%%EOF\n"
    ).encode("utf-8")


class DocumentRegistry(PersistedCollection[DocumentRecord]):
    """Documents delivered between roles, persisted under `realtime_documents`."""

    item_cls = DocumentRecord
    label = "document"

    def __init__(self, kv: KeyValueStore, key: str = config.DOCUMENTS_KEY):
        super().__init__(kv, key)

    def add(
        self,
        name: str,
        stage: Stage,
        uploaded_by: Role,
        delivered_to: Role,
        size: str = "",
        cover_message: Optional[str] = None,
        deadline: Optional[str] = None,
        priority: DocumentPriority = DocumentPriority.STANDARD,
    ) -> DocumentRecord:
        document = DocumentRecord(
            id=generate_id(DOCUMENT_PREFIX),
            name=name,
            stage=Stage(stage),
            uploaded_by=Role(uploaded_by),
            delivered_to=Role(delivered_to),
            uploaded_at=utc_now_iso(),
            size=size,
            cover_message=cover_message,
            deadline=deadline,
            priority=DocumentPriority(priority),
        )

        def add_document(items: List[DocumentRecord]) -> None:
            items.append(self._clone(document))

        self._commit(add_document)
        logger.info(
            "Document %s '%s' delivered %s -> %s",
            document.id, name, document.uploaded_by.value, document.delivered_to.value,
        )
        return self._clone(document)

    def for_role(self, role: Role, stage: Optional[Stage] = None) -> List[DocumentRecord]:
        return [
            doc for doc in self.all()
            if doc.delivered_to == role and (stage is None or doc.stage == stage)
        ]

    def record_download(self, document_id: str) -> Optional[DocumentRecord]:
        """
        Count a download and move `delivered` to `downloaded`.
        Later downloads keep the current status.

        Returns:
            DocumentRecord | None: the updated document, None if the id is unknown
        """
        def download(items: List[DocumentRecord]) -> Optional[DocumentRecord]:
            for doc in items:
                if doc.id == document_id:
                    if doc.status == DocumentStatus.DELIVERED:
                        doc.status = DocumentStatus.DOWNLOADED
                    doc.download_count += 1
                    return self._clone(doc)
            return None

        document = self._commit(download)
        if document is None:
            logger.warning("download: no document with id %s", document_id)
        return document

    def mark_reviewed(self, document_id: str) -> DocumentRecord:
        """
        Move `downloaded` to `reviewed`.

        Raises:
            NotFoundError: unknown id
            InvalidTransition: document has not been downloaded yet
        """
        def review(items: List[DocumentRecord]) -> DocumentRecord:
            for doc in items:
                if doc.id != document_id:
                    continue
                if doc.status == DocumentStatus.REVIEWED:
                    return self._clone(doc)
                validate_document_transition(doc.status, DocumentStatus.REVIEWED)
                doc.status = DocumentStatus.REVIEWED
                return self._clone(doc)
            raise NotFoundError(f"No document with id {document_id}")

        return self._commit(review)

    def reset(self) -> None:
        self.clear()
