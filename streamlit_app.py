"""
Conveyancing Transaction Tracker
One page per role; every session shares the same live transaction
"""
import streamlit as st
from datetime import datetime

from conveyance import config

# ═══════════════════════════════════════════════════════════════
# PAGE CONFIG (MUST BE FIRST)
# ═══════════════════════════════════════════════════════════════
st.set_page_config(
    page_title="Conveyancing Transaction Tracker",
    layout="wide",
    initial_sidebar_state="expanded"
)

config.configure_logging()

from conveyance.core.roles import PARTICIPANTS, Role
from conveyance.ui.session import (
    apply_pending_resets,
    get_hub,
    get_inbox,
    poll_external_changes,
    show_hub_warnings,
)

# ═══════════════════════════════════════════════════════════════
# SESSION STATE (MINIMAL)
# ═══════════════════════════════════════════════════════════════
if "initialized" not in st.session_state:
    st.session_state.initialized = True
    st.session_state.active_role = Role.BUYER

hub = get_hub()

# ═══════════════════════════════════════════════════════════════
# SIDEBAR: ROLE + RESET
# ═══════════════════════════════════════════════════════════════
with st.sidebar:
    st.markdown("### 👤 Signed in as")
    role = st.radio(
        "Role",
        PARTICIPANTS,
        index=PARTICIPANTS.index(st.session_state.active_role),
        format_func=lambda r: r.label,
        label_visibility="collapsed",
    )
    st.session_state.active_role = role

    st.divider()
    st.caption(f"Transaction {hub.transaction_id}")
    if st.button("🔄 Reset platform", help="Clear every update, proposal, document and request"):
        hub.reset_to_default()
        st.rerun()

# ═══════════════════════════════════════════════════════════════
# HEADER
# ═══════════════════════════════════════════════════════════════
st.title("🏡 Conveyancing Transaction Tracker")
st.caption("Shared transaction • Real-time updates between all parties")


# ═══════════════════════════════════════════════════════════════
# LIVE PANEL (refreshes on its own)
# ═══════════════════════════════════════════════════════════════
@st.fragment(run_every=config.POLL_INTERVAL)
def live_panel(role: Role):
    from conveyance.ui.notifications_dropdown import render_notifications_dropdown
    from conveyance.ui.transaction_progress import render_transaction_progress

    poll_external_changes()
    if apply_pending_resets():
        st.rerun()
    if get_inbox().take_changes():
        unread = hub.unread_count(role)
        if unread:
            st.toast(f"🔔 {unread} unread update(s)")

    show_hub_warnings(hub)
    render_notifications_dropdown(hub, role)
    render_transaction_progress(hub.transaction_state)


live_panel(role)

st.divider()

# ═══════════════════════════════════════════════════════════════
# ROLE PAGE (LAZY)
# ═══════════════════════════════════════════════════════════════
if role == Role.BUYER:
    from ui.buyer import render_buyer
    render_buyer(hub)
elif role == Role.ESTATE_AGENT:
    from ui.estate_agent import render_estate_agent
    render_estate_agent(hub)
elif role == Role.BUYER_CONVEYANCER:
    from ui.buyer_conveyancer import render_buyer_conveyancer
    render_buyer_conveyancer(hub)
else:
    from ui.seller_conveyancer import render_seller_conveyancer
    render_seller_conveyancer(hub)

st.divider()

from conveyance.ui.activity_feed import render_activity_feed
render_activity_feed(hub)

# ═══════════════════════════════════════════════════════════════
# FOOTER
# ═══════════════════════════════════════════════════════════════
st.divider()
st.caption(f"⚡ Live refresh every {config.POLL_INTERVAL:g}s • Last updated: {datetime.now().strftime('%H:%M:%S')}")
