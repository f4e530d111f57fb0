"""
Completion date negotiation between the two conveyancers.
"""

from datetime import date, time, timedelta

import streamlit as st

from conveyance import config
from conveyance.core.errors import ConveyanceError, ProposalValidationError
from conveyance.core.proposals import CompletionProposal, ProposalStatus, validate_completion_date
from conveyance.core.roles import CONVEYANCERS, Role
from conveyance.realtime.hub import RealTimeHub

STATUS_BADGES = {
    ProposalStatus.PENDING: "🕒 Pending",
    ProposalStatus.ACCEPTED: "✅ Accepted",
    ProposalStatus.REJECTED: "❌ Rejected",
    ProposalStatus.SUPERSEDED: "↪️ Superseded",
}


def render_completion_date_panel(hub: RealTimeHub, role: Role) -> None:
    st.markdown("### 📅 Completion Date")

    accepted = hub.accepted_proposal()
    if accepted:
        st.success(f"Agreed completion: **{accepted.date} at {accepted.time}**")
    else:
        st.info("No completion date agreed yet")

    proposals = hub.proposals
    for proposal in proposals:
        _render_proposal(hub, role, proposal)

    if role in CONVEYANCERS and accepted is None:
        _render_proposal_form(hub, role)


def _render_proposal(hub: RealTimeHub, role: Role, proposal: CompletionProposal) -> None:
    with st.container(border=True):
        st.markdown(
            f"**{proposal.date} at {proposal.time}** • {STATUS_BADGES[proposal.status]} "
            f"• proposed by {proposal.proposed_by.label}"
        )
        if proposal.reason:
            st.caption(proposal.reason)
        for response in proposal.responses:
            note = f": {response.notes}" if response.notes else ""
            st.caption(f"{response.party.label} → {response.status.value}{note}")

        can_decide = (
            proposal.status == ProposalStatus.PENDING
            and role in CONVEYANCERS
            and role != proposal.proposed_by
        )
        if not can_decide:
            return

        notes = st.text_input("Notes (optional)", key=f"draft_notes_{proposal.id}")
        col1, col2 = st.columns(2)
        with col1:
            if st.button("✅ Accept", key=f"accept_{proposal.id}", type="primary"):
                _decide(lambda: hub.accept_proposal(proposal.id, role), "Completion date confirmed")
        with col2:
            if st.button("❌ Reject", key=f"reject_{proposal.id}"):
                _decide(lambda: hub.reject_proposal(proposal.id, role, notes or None), "Proposal rejected")


def _decide(action, success_message: str) -> None:
    try:
        action()
    except ConveyanceError as e:
        st.error(str(e))
        return
    st.success(success_message)
    st.rerun()


def _render_proposal_form(hub: RealTimeHub, role: Role) -> None:
    earliest = date.today() + timedelta(days=config.MIN_NOTICE_DAYS)

    with st.form(f"form_propose_{role.value}", clear_on_submit=False):
        st.markdown("**Propose a completion date**")
        col1, col2 = st.columns(2)
        with col1:
            proposed_date = st.date_input("Date", value=earliest, key="form_proposal_date")
        with col2:
            proposed_time = st.time_input("Time", value=time(14, 0), key="form_proposal_time")
        reason = st.text_area("Reason", key="form_proposal_reason", height=80)

        issues = validate_completion_date(proposed_date)
        for issue in issues:
            st.warning(issue)
        override = st.checkbox("Propose anyway", key="form_proposal_override") if issues else False

        submitted = st.form_submit_button("Send Proposal", type="primary")

    if not submitted:
        return
    try:
        proposal = hub.propose_completion_date(
            role,
            proposed_date.isoformat(),
            proposed_time.strftime("%H:%M"),
            reason,
            enforce_rules=not override,
        )
    except ProposalValidationError as e:
        for issue in e.issues:
            st.error(issue)
        return
    except ConveyanceError as e:
        st.error(str(e))
        return
    st.success(f"Proposal sent for {proposal.date} at {proposal.time}")
