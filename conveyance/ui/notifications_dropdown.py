"""
Notifications Dropdown UI Component
Displays updates from the other parties with an unread count badge
"""

from datetime import datetime, timezone
from typing import List

import streamlit as st

from conveyance.core.id_generator import parse_timestamp
from conveyance.core.read_model import sort_by_timestamp, unread_updates
from conveyance.core.roles import Role
from conveyance.core.updates import UpdateRecord
from conveyance.realtime.hub import RealTimeHub
from conveyance.realtime.presets import presentation_for

MAX_ITEMS = 10


def badge_label(count: int) -> str:
    """Unread counter text; large counts collapse to 99+."""
    if count <= 0:
        return ""
    return "99+" if count > 99 else str(count)


def time_ago(timestamp: str, now: datetime = None) -> str:
    try:
        then = parse_timestamp(timestamp)
    except (TypeError, ValueError):
        return "Unknown"
    now = now or datetime.now(timezone.utc)
    seconds = int((now - then).total_seconds())
    if seconds < 60:
        return "Just now"
    if seconds < 3600:
        return f"{seconds // 60}m ago"
    if seconds < 86400:
        return f"{seconds // 3600}h ago"
    return f"{seconds // 86400}d ago"


def render_notifications_dropdown(hub: RealTimeHub, role: Role) -> None:
    """
    Render the notifications dropdown for the signed-in role.

    Args:
        hub: this session's real-time hub
        role: current role; its own updates are not listed
    """
    notifications = sort_by_timestamp(hub.notifications_for(role))
    unread = unread_updates(notifications)
    badge = badge_label(len(unread))

    title = f"🔔 Notifications ({badge})" if badge else "🔔 Notifications"
    with st.expander(title, expanded=False):
        if not notifications:
            st.info("No notifications yet")
            return

        today = datetime.now(timezone.utc).date()
        today_items: List[UpdateRecord] = []
        older_items: List[UpdateRecord] = []
        for update in notifications:
            try:
                is_today = parse_timestamp(update.timestamp).date() == today
            except (TypeError, ValueError):
                is_today = False
            (today_items if is_today else older_items).append(update)

        if today_items:
            st.markdown("**📅 Today**")
            for update in today_items[:MAX_ITEMS]:
                _render_notification_item(hub, update)

        if older_items:
            st.markdown("**📂 Earlier**")
            for update in older_items[:MAX_ITEMS]:
                _render_notification_item(hub, update)

        if unread:
            if st.button("✅ Mark All as Read", key=f"mark_all_read_{role.value}"):
                hub.mark_all_as_read(role)
                st.rerun()


def _render_notification_item(hub: RealTimeHub, update: UpdateRecord) -> None:
    look = presentation_for(update.type)
    marker = "🔵 " if not update.read else ""

    col_text, col_action = st.columns([5, 1])
    with col_text:
        st.markdown(f"{marker}{look.icon} **{update.title}** · :{look.color}[{look.badge}]")
        st.caption(
            f"{update.description} • {update.role.label} • {update.stage.title} • "
            f"{time_ago(update.timestamp)}"
        )
    with col_action:
        if not update.read and st.button("Read", key=f"read_{update.id}"):
            hub.mark_as_read(update.id)
            st.rerun()
