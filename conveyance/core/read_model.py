# conveyance/core/read_model.py

import logging
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Tuple

import pandas as pd

from conveyance.core.id_generator import parse_timestamp
from conveyance.core.roles import Role
from conveyance.core.stages import Stage
from conveyance.core.updates import StatusChanged, UpdateRecord, UpdateType

logger = logging.getLogger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

ACTIVITY_COLUMNS = [
    "id", "timestamp", "type", "stage", "stage_title", "role", "role_label",
    "title", "description", "read",
]


def _sort_key(update: UpdateRecord) -> datetime:
    try:
        return parse_timestamp(update.timestamp)
    except (TypeError, ValueError):
        logger.warning("Unparseable timestamp on update %s: %r", update.id, update.timestamp)
        return _EPOCH


def filter_updates(
    updates: Iterable[UpdateRecord],
    stage: Optional[Stage] = None,
    role: Optional[Role] = None,
    update_type: Optional[UpdateType] = None,
) -> List[UpdateRecord]:
    return [
        u for u in updates
        if (stage is None or u.stage == stage)
        and (role is None or u.role == role)
        and (update_type is None or u.type == update_type)
    ]


def sort_by_timestamp(updates: Iterable[UpdateRecord], newest_first: bool = True) -> List[UpdateRecord]:
    """
    Order updates by timestamp.

    Equal timestamps are ordered by log position, so the later log entry
    counts as the newer one.
    """
    indexed = sorted(
        enumerate(updates),
        key=lambda pair: (_sort_key(pair[1]), pair[0]),
        reverse=newest_first,
    )
    return [u for _, u in indexed]


def unread_updates(updates: Iterable[UpdateRecord]) -> List[UpdateRecord]:
    return [u for u in updates if not u.read]


def latest_status_by_subject(
    updates: Iterable[UpdateRecord],
    stage: Optional[Stage] = None,
) -> Dict[str, str]:
    """
    Current status of every tracked item, from `status_changed` updates.

    The most recent update by timestamp wins; equal timestamps fall back to
    log order (later entry wins).
    """
    latest: Dict[str, Tuple[datetime, int, str]] = {}

    for index, update in enumerate(updates):
        if update.type != UpdateType.STATUS_CHANGED:
            continue
        if stage is not None and update.stage != stage:
            continue
        payload = update.data
        if not isinstance(payload, StatusChanged) or not payload.subject_id:
            continue

        key = (_sort_key(update), index)
        current = latest.get(payload.subject_id)
        if current is None or key > current[:2]:
            latest[payload.subject_id] = (key[0], key[1], payload.status)

    return {subject: entry[2] for subject, entry in latest.items()}


def activity_frame(updates: Iterable[UpdateRecord]) -> pd.DataFrame:
    """Newest-first table of updates for the activity feed."""
    rows = [
        {
            "id": u.id,
            "timestamp": _sort_key(u),
            "type": u.type.value,
            "stage": u.stage.value,
            "stage_title": u.stage.title,
            "role": u.role.value,
            "role_label": u.role.label,
            "title": u.title,
            "description": u.description,
            "read": u.read,
        }
        for u in sort_by_timestamp(updates)
    ]
    frame = pd.DataFrame(rows, columns=ACTIVITY_COLUMNS)
    frame["timestamp"] = pd.to_datetime(frame["timestamp"], utc=True)
    return frame
