"""
Activity feed: newest-first table of every update on the transaction.
"""

from typing import Optional

import streamlit as st

from conveyance.core.read_model import activity_frame, filter_updates
from conveyance.core.stages import Stage
from conveyance.core.updates import UpdateType
from conveyance.realtime.hub import RealTimeHub
from conveyance.realtime.presets import presentation_for


def _badge(update_type: str) -> str:
    look = presentation_for(UpdateType(update_type))
    return f"{look.icon} {look.badge}"


def render_activity_feed(hub: RealTimeHub, stage: Optional[Stage] = None, limit: int = 25) -> None:
    st.markdown("### 🕒 Recent Activity")

    updates = filter_updates(hub.updates, stage=stage)
    frame = activity_frame(updates)
    if frame.empty:
        st.info("No recent activity")
        return

    frame = frame.head(limit).copy()
    frame["badge"] = frame["type"].map(_badge)
    frame["time"] = frame["timestamp"].dt.strftime("%d %b %H:%M")

    st.dataframe(
        frame[["time", "badge", "title", "description", "role_label", "stage_title"]],
        hide_index=True,
        use_container_width=True,
        column_config={
            "time": "When",
            "badge": "Type",
            "title": "Update",
            "description": "Details",
            "role_label": "By",
            "stage_title": "Stage",
        },
    )
