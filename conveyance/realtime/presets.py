"""
UPDATE PRESETS

Purpose:
- Centralized titles and descriptions for the updates the hub emits
- Consistent icon / badge per update type for feeds and dropdowns
- Severity classification for toasts

Requirements:
• Immutable templates
• Every UpdateType has a presentation entry
• Human-readable messages
"""

from enum import Enum
from typing import Dict, NamedTuple

from conveyance.core.updates import UpdateType


class UpdateSeverity(str, Enum):
    INFO = "INFO"
    SUCCESS = "SUCCESS"
    WARNING = "WARNING"
    ERROR = "ERROR"


class UpdateTemplate:
    """Title and description pattern for one kind of emitted update."""

    def __init__(self, update_type: UpdateType, title: str, description_template: str):
        self.update_type = update_type
        self.title = title
        self.description_template = description_template

    def format(self, **kwargs) -> str:
        return self.description_template.format(**kwargs)


class Presentation(NamedTuple):
    icon: str
    badge: str
    color: str
    severity: UpdateSeverity


# ────────────────────────────────────────────────────────────
# COMPLETION DATE
# ────────────────────────────────────────────────────────────

DATE_PROPOSED = UpdateTemplate(
    UpdateType.COMPLETION_DATE_PROPOSED,
    "Completion Date Proposed",
    "{proposer} proposed {date} at {time}",
)

DATE_CONFIRMED = UpdateTemplate(
    UpdateType.COMPLETION_DATE_CONFIRMED,
    "Completion Date Confirmed",
    "Completion date confirmed for {date} at {time}",
)

DATE_REJECTED = UpdateTemplate(
    UpdateType.COMPLETION_DATE_REJECTED,
    "Completion Date Rejected",
    "{rejector} rejected the proposed date {date}",
)

# ────────────────────────────────────────────────────────────
# DOCUMENTS
# ────────────────────────────────────────────────────────────

DOCUMENT_SENT = UpdateTemplate(
    UpdateType.DOCUMENT_UPLOADED,
    "Document Sent",
    "{document} sent to {recipient}",
)

DOCUMENT_DOWNLOADED = UpdateTemplate(
    UpdateType.STATUS_CHANGED,
    "Document Downloaded",
    "{document} downloaded by {role}",
)

# ────────────────────────────────────────────────────────────
# SEARCHES
# ────────────────────────────────────────────────────────────

SEARCH_ORDERED = UpdateTemplate(
    UpdateType.STATUS_CHANGED,
    "Search Ordered",
    "{search} has been ordered by {role}",
)

SEARCH_COMPLETED = UpdateTemplate(
    UpdateType.STATUS_CHANGED,
    "Search Completed",
    "{search} has been completed by {role}",
)

# ────────────────────────────────────────────────────────────
# AMENDMENTS
# ────────────────────────────────────────────────────────────

AMENDMENT_SENT = UpdateTemplate(
    UpdateType.AMENDMENT_REQUESTED,
    "Amendment Request Sent",
    "{amendment_type} amendment requested with {priority} priority",
)

AMENDMENT_REPLY_SENT = UpdateTemplate(
    UpdateType.AMENDMENT_REPLIED,
    "Amendment Reply Sent",
    "Reply sent for {amendment_type} amendment request",
)

# ────────────────────────────────────────────────────────────
# PLATFORM
# ────────────────────────────────────────────────────────────

PLATFORM_RESET_NOTICE = UpdateTemplate(
    UpdateType.PLATFORM_RESET,
    "Platform Reset",
    "Platform has been reset to default state",
)


PRESENTATION: Dict[UpdateType, Presentation] = {
    UpdateType.DOCUMENT_UPLOADED: Presentation("📄", "Document", "blue", UpdateSeverity.INFO),
    UpdateType.STATUS_CHANGED: Presentation("✅", "Status", "green", UpdateSeverity.SUCCESS),
    UpdateType.STAGE_COMPLETED: Presentation("✅", "Completed", "green", UpdateSeverity.SUCCESS),
    UpdateType.COMPLETION_DATE_CONFIRMED: Presentation("📅", "Confirmed", "green", UpdateSeverity.SUCCESS),
    UpdateType.COMPLETION_DATE_REJECTED: Presentation("⚠️", "Rejected", "red", UpdateSeverity.ERROR),
    UpdateType.COMPLETION_DATE_PROPOSED: Presentation("🕒", "Proposed", "orange", UpdateSeverity.WARNING),
    UpdateType.CONTRACT_EXCHANGED: Presentation("📑", "Exchange", "violet", UpdateSeverity.SUCCESS),
    UpdateType.AMENDMENT_REQUESTED: Presentation("💬", "Amendment", "orange", UpdateSeverity.WARNING),
    UpdateType.AMENDMENT_REPLIED: Presentation("💬", "Reply", "blue", UpdateSeverity.INFO),
    UpdateType.PLATFORM_RESET: Presentation("🔄", "Reset", "gray", UpdateSeverity.INFO),
}


def presentation_for(update_type: UpdateType) -> Presentation:
    return PRESENTATION.get(update_type, Presentation("🕒", "Update", "gray", UpdateSeverity.INFO))
