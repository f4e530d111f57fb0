"""
RECORD ID GENERATOR

Purpose:
- Generate unique ids for updates, documents, proposals and amendment requests
- Time-sortable for chronological inspection
- Human-readable prefix per record kind

Format:
PREFIX-YYYYMMDD-HHMMSS-xxxxxxxx

Where:
- PREFIX: record kind (UPD, DOC, PROP, AMD, RST)
- YYYYMMDD / HHMMSS: UTC creation time
- xxxxxxxx: 8 hex characters from uuid4 for collision avoidance
"""

import threading
import uuid
from datetime import datetime, timezone
from typing import Set

UPDATE_PREFIX = "UPD"
DOCUMENT_PREFIX = "DOC"
PROPOSAL_PREFIX = "PROP"
AMENDMENT_PREFIX = "AMD"
RESET_PREFIX = "RST"

# In-memory collision tracker (survives during app lifecycle)
_GENERATED_IDS: Set[str] = set()
_LOCK = threading.Lock()


def generate_id(prefix: str) -> str:
    """
    Generate a process-unique record id.

    Examples:
        >>> generate_id("UPD").startswith("UPD-")
        True
        >>> generate_id("DOC") != generate_id("DOC")
        True
    """
    with _LOCK:
        while True:
            now = datetime.now(timezone.utc)
            candidate = (
                f"{prefix}-{now.strftime('%Y%m%d')}-{now.strftime('%H%M%S')}-"
                f"{uuid.uuid4().hex[:8]}"
            )
            if candidate not in _GENERATED_IDS:
                _GENERATED_IDS.add(candidate)
                return candidate


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string with microseconds."""
    return datetime.now(timezone.utc).isoformat()


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO timestamp; a trailing Z and naive values are read as UTC."""
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
