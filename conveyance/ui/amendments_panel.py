"""
Draft contract amendment requests: raise, acknowledge, reply, resolve.
"""

import streamlit as st

from conveyance.core.amendments import (
    AMENDMENT_TYPES,
    AmendmentPriority,
    AmendmentRequest,
    AmendmentStatus,
    ReplyDecision,
)
from conveyance.core.errors import ConveyanceError
from conveyance.core.roles import Role, counterpart
from conveyance.core.stages import Stage
from conveyance.realtime.hub import RealTimeHub

STATUS_BADGES = {
    AmendmentStatus.PENDING: "🕒 Pending",
    AmendmentStatus.ACKNOWLEDGED: "👀 Acknowledged",
    AmendmentStatus.REPLIED: "💬 Replied",
    AmendmentStatus.RESOLVED: "✅ Resolved",
}


def render_amendments_panel(hub: RealTimeHub, role: Role, stage: Stage = Stage.DRAFT_CONTRACT) -> None:
    st.markdown("### 💬 Amendment Requests")

    requests = hub.get_amendment_requests_for_role(role, stage)
    if not requests:
        st.info("No amendment requests on this stage")
    for request in requests:
        _render_request(hub, role, request)

    other_side = counterpart(role)
    if other_side is not None:
        _render_request_form(hub, role, other_side, stage)


def _run(action, message: str) -> None:
    try:
        action()
    except (ConveyanceError, ValueError) as e:
        st.error(str(e))
        return
    st.success(message)
    st.rerun()


def _render_request(hub: RealTimeHub, role: Role, request: AmendmentRequest) -> None:
    title = f"{STATUS_BADGES[request.status]} • {request.type} ({request.priority.value})"
    with st.expander(title):
        st.write(f"**From:** {request.requested_by.label} → **To:** {request.requested_to.label}")
        st.write(request.description)
        if request.proposed_change:
            st.caption(f"Proposed change: {request.proposed_change}")
        if request.affected_clauses:
            st.caption(f"Clauses: {', '.join(request.affected_clauses)}")
        if request.reply:
            st.markdown(f"**Reply ({request.reply.decision.value}):** {request.reply.message}")
            if request.reply.counter_proposal:
                st.caption(f"Counter proposal: {request.reply.counter_proposal}")

        if role == request.requested_to and request.status == AmendmentStatus.PENDING:
            if st.button("👀 Acknowledge", key=f"ack_{request.id}"):
                _run(lambda: hub.acknowledge_amendment_request(request.id, role), "Acknowledged")

        if role == request.requested_to and request.status in (
            AmendmentStatus.PENDING, AmendmentStatus.ACKNOWLEDGED
        ):
            message = st.text_area("Reply", key=f"draft_reply_{request.id}", height=80)
            decision = st.radio(
                "Decision", list(ReplyDecision), key=f"draft_decision_{request.id}",
                format_func=lambda d: d.value.replace("-", " ").title(), horizontal=True,
            )
            counter = ""
            if decision == ReplyDecision.COUNTER_PROPOSAL:
                counter = st.text_input("Counter proposal", key=f"draft_counter_{request.id}")
            if st.button("Send Reply", key=f"reply_{request.id}", type="primary"):
                _run(
                    lambda: hub.reply_to_amendment_request(
                        request.id, role, message, decision, counter or None
                    ),
                    "Reply sent",
                )

        if role == request.requested_by and request.status == AmendmentStatus.REPLIED:
            if st.button("✅ Resolve", key=f"resolve_{request.id}"):
                _run(lambda: hub.resolve_amendment_request(request.id, role), "Request resolved")


def _render_request_form(hub: RealTimeHub, role: Role, recipient: Role, stage: Stage) -> None:
    with st.form(f"form_amendment_{role.value}", clear_on_submit=True):
        st.markdown(f"**Request an amendment from the {recipient.label}**")
        amendment_type = st.selectbox("Amendment type", AMENDMENT_TYPES)
        priority = st.radio(
            "Priority", list(AmendmentPriority), index=1,
            format_func=lambda p: p.value.title(), horizontal=True,
        )
        description = st.text_area("Description", height=80)
        proposed_change = st.text_input("Proposed change")
        clauses = st.text_input("Affected clauses (comma separated)")
        submitted = st.form_submit_button("Send Request", type="primary")

    if submitted:
        if not description:
            st.warning("Describe the amendment")
            return
        try:
            hub.add_amendment_request(
                stage,
                role,
                recipient,
                amendment_type,
                description,
                priority=priority,
                proposed_change=proposed_change,
                affected_clauses=[c.strip() for c in clauses.split(",") if c.strip()],
            )
            st.success("Amendment request sent")
        except (ConveyanceError, ValueError) as e:
            st.error(str(e))
