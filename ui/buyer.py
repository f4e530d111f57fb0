"""
Buyer Tab
Read-only view of the transaction plus documents sent to the buyer
"""
import streamlit as st

from conveyance.core.roles import Role
from conveyance.realtime.hub import RealTimeHub


def render_buyer(hub: RealTimeHub):
    """Render buyer interface"""
    from conveyance.ui.completion_date_panel import render_completion_date_panel
    from conveyance.ui.documents_panel import render_received_documents

    st.markdown("## 🏠 Your Purchase")

    accepted = hub.accepted_proposal()
    state = hub.transaction_state
    col1, col2 = st.columns(2)
    with col1:
        st.metric("Current stage", state.current_stage.title)
    with col2:
        st.metric("Completion date", accepted.date if accepted else "Not agreed")

    st.divider()
    render_received_documents(hub, Role.BUYER)

    st.divider()
    render_completion_date_panel(hub, Role.BUYER)
