"""
Buyer Conveyancer Tab
Orders searches, completes stages, negotiates the completion date
"""
import asyncio
from datetime import date

import streamlit as st

from conveyance.core.errors import ConveyanceError
from conveyance.core.roles import Role
from conveyance.core.searches import SEARCH_CATALOGUE, SearchStatus
from conveyance.core.stages import WORKFLOW, Stage, StageStatus
from conveyance.realtime.hub import RealTimeHub

ROLE = Role.BUYER_CONVEYANCER


def render_buyer_conveyancer(hub: RealTimeHub):
    """Render buyer conveyancer interface"""
    from conveyance.ui.amendments_panel import render_amendments_panel
    from conveyance.ui.completion_date_panel import render_completion_date_panel
    from conveyance.ui.documents_panel import render_received_documents, render_send_document_form

    st.markdown("## ⚖️ Buyer Conveyancer")

    tab_searches, tab_stages, tab_date, tab_docs, tab_contract = st.tabs(
        ["🔎 Searches", "📋 Stages", "📅 Completion Date", "📂 Documents", "📝 Draft Contract"]
    )

    with tab_searches:
        render_searches(hub)

    with tab_stages:
        render_stage_actions(hub)

    with tab_date:
        render_completion_date_panel(hub, ROLE)

    with tab_docs:
        render_received_documents(hub, ROLE)
        st.divider()
        render_send_document_form(hub, ROLE)

    with tab_contract:
        render_amendments_panel(hub, ROLE)


def render_searches(hub: RealTimeHub):
    st.markdown("### 🔎 Property Searches")
    statuses = hub.search_statuses()

    for search in SEARCH_CATALOGUE:
        status = statuses.get(search.id, SearchStatus.PENDING.value)
        col1, col2, col3 = st.columns([4, 2, 2])
        with col1:
            st.write(f"**{search.name}**")
            st.caption(f"{search.provider} • £{search.cost} • ~{search.estimated_days} days • {search.category}")
        with col2:
            st.write(status.title())
        with col3:
            if status == SearchStatus.PENDING.value:
                if st.button("Order", key=f"order_{search.id}"):
                    _set_search_status(hub, search.id, SearchStatus.ORDERED)
            elif status == SearchStatus.ORDERED.value:
                if st.button("Mark complete", key=f"complete_{search.id}"):
                    _set_search_status(hub, search.id, SearchStatus.COMPLETED)


def _set_search_status(hub: RealTimeHub, search_id: str, status: SearchStatus):
    try:
        asyncio.run(hub.update_search_status(search_id, status, ROLE))
    except ConveyanceError as e:
        st.error(str(e))
        return
    st.rerun()


def render_stage_actions(hub: RealTimeHub):
    st.markdown("### 📋 Stage Completion")
    state = hub.transaction_state

    for stage in WORKFLOW:
        status = state.status_of(stage)
        col1, col2 = st.columns([4, 2])
        with col1:
            st.write(f"**{stage.title}** • {status.value}")
            st.caption(stage.description)
        with col2:
            if status != StageStatus.COMPLETED and stage == state.current_stage:
                if st.button("Mark complete", key=f"stage_{stage.value}", type="primary"):
                    asyncio.run(hub.complete_stage(stage, ROLE))
                    st.rerun()

    exchanged = state.status_of(Stage.CONTRACT_EXCHANGE) == StageStatus.COMPLETED
    if hub.accepted_proposal() is not None and not exchanged:
        if st.button("🤝 Exchange contracts today", key="exchange_contracts"):
            asyncio.run(hub.exchange_contracts(ROLE, date.today().isoformat()))
            st.rerun()
