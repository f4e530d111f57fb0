"""
Seller Conveyancer Tab
Live search dashboard, proposal decisions, documents and amendment replies
"""
import pandas as pd
import streamlit as st

from conveyance.core.roles import Role
from conveyance.core.searches import SEARCH_CATALOGUE, SearchStatus
from conveyance.realtime.hub import RealTimeHub

ROLE = Role.SELLER_CONVEYANCER

SEARCH_BADGES = {
    SearchStatus.PENDING.value: "⏳ Not ordered",
    SearchStatus.ORDERED.value: "🕒 Ordered",
    SearchStatus.COMPLETED.value: "✅ Completed",
}


def render_seller_conveyancer(hub: RealTimeHub):
    """Render seller conveyancer interface"""
    from conveyance.ui.amendments_panel import render_amendments_panel
    from conveyance.ui.completion_date_panel import render_completion_date_panel
    from conveyance.ui.documents_panel import render_received_documents, render_send_document_form

    st.markdown("## ⚖️ Seller Conveyancer")

    tab_searches, tab_date, tab_docs, tab_contract = st.tabs(
        ["🔎 Buyer's Searches", "📅 Completion Date", "📂 Documents", "📝 Draft Contract"]
    )

    with tab_searches:
        render_search_dashboard(hub)

    with tab_date:
        render_completion_date_panel(hub, ROLE)

    with tab_docs:
        render_send_document_form(hub, ROLE)
        st.divider()
        render_received_documents(hub, ROLE)

    with tab_contract:
        render_amendments_panel(hub, ROLE)


def search_dashboard_frame(statuses) -> pd.DataFrame:
    return pd.DataFrame([
        {
            "Search": search.name,
            "Provider": search.provider,
            "Status": SEARCH_BADGES.get(statuses.get(search.id, SearchStatus.PENDING.value), "❔ Unknown"),
        }
        for search in SEARCH_CATALOGUE
    ])


def render_search_dashboard(hub: RealTimeHub):
    st.markdown("### 🔎 Search Status (live)")

    statuses = hub.search_statuses()
    completed = sum(1 for s in statuses.values() if s == SearchStatus.COMPLETED.value)
    st.progress(completed / len(SEARCH_CATALOGUE), text=f"{completed} of {len(SEARCH_CATALOGUE)} searches completed")

    st.dataframe(search_dashboard_frame(statuses), hide_index=True, use_container_width=True)
