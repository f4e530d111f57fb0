"""
Estate Agent Tab
Follows the sale: searches, completion date and documents for the agent
"""
import streamlit as st

from conveyance.core.roles import Role
from conveyance.core.searches import SEARCH_CATALOGUE
from conveyance.realtime.hub import RealTimeHub


def render_estate_agent(hub: RealTimeHub):
    """Render estate agent interface"""
    from conveyance.ui.completion_date_panel import render_completion_date_panel
    from conveyance.ui.documents_panel import render_received_documents

    st.markdown("## 🏷️ Sale Progress")

    statuses = hub.search_statuses()
    completed = sum(1 for s in statuses.values() if s == "completed")
    col1, col2, col3 = st.columns(3)
    with col1:
        st.metric("Searches ordered", len(statuses))
    with col2:
        st.metric("Searches completed", f"{completed}/{len(SEARCH_CATALOGUE)}")
    with col3:
        accepted = hub.accepted_proposal()
        st.metric("Completion date", accepted.date if accepted else "Not agreed")

    st.divider()
    render_received_documents(hub, Role.ESTATE_AGENT)

    st.divider()
    render_completion_date_panel(hub, Role.ESTATE_AGENT)
