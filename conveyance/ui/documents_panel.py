"""
Documents delivered to the signed-in role, with download and review actions.
"""

import asyncio
from typing import Optional

import streamlit as st

from conveyance.core.documents import DocumentPriority, DocumentRecord, DocumentStatus
from conveyance.core.errors import ConveyanceError
from conveyance.core.roles import PARTICIPANTS, Role
from conveyance.core.stages import WORKFLOW, Stage
from conveyance.realtime.hub import RealTimeHub

STATUS_ICONS = {
    DocumentStatus.DELIVERED: "📬",
    DocumentStatus.DOWNLOADED: "⬇️",
    DocumentStatus.REVIEWED: "✅",
}

PRIORITY_ICONS = {
    DocumentPriority.STANDARD: "",
    DocumentPriority.URGENT: "🟠",
    DocumentPriority.CRITICAL: "🔴",
}


def document_header(doc: DocumentRecord) -> str:
    parts = [STATUS_ICONS[doc.status], PRIORITY_ICONS[doc.priority], doc.name]
    return " ".join(part for part in parts if part)


def render_received_documents(hub: RealTimeHub, role: Role, stage: Optional[Stage] = None) -> None:
    st.markdown("### 📂 Documents for you")

    documents = hub.get_documents_for_role(role, stage)
    if not documents:
        st.info("No documents have been delivered to you yet")
        return

    for doc in documents:
        with st.expander(document_header(doc)):
            st.write(f"**From:** {doc.uploaded_by.label}")
            st.write(f"**Stage:** {doc.stage.title}")
            st.write(f"**Status:** {doc.status.value.title()} • downloads: {doc.download_count}")
            if doc.deadline:
                st.write(f"**Deadline:** {doc.deadline}")
            if doc.cover_message:
                st.caption(doc.cover_message)

            col1, col2 = st.columns(2)
            with col1:
                if st.button("⬇️ Download", key=f"download_{doc.id}"):
                    try:
                        body = asyncio.run(hub.download_document(doc.id, role))
                    except ConveyanceError as e:
                        st.error(f"Download not recorded: {e}")
                        body = None
                    if body is None:
                        st.warning("Document is no longer available")
                    else:
                        st.session_state[f"selected_download_{doc.id}"] = body

                body = st.session_state.get(f"selected_download_{doc.id}")
                if body:
                    st.download_button(
                        "💾 Save PDF",
                        data=body,
                        file_name=f"{doc.name}.pdf",
                        mime="application/pdf",
                        key=f"save_{doc.id}",
                    )
            with col2:
                if doc.status == DocumentStatus.DOWNLOADED:
                    if st.button("✅ Mark reviewed", key=f"review_{doc.id}"):
                        try:
                            hub.mark_document_as_reviewed(doc.id)
                            st.rerun()
                        except ConveyanceError as e:
                            st.error(str(e))


def render_send_document_form(hub: RealTimeHub, role: Role, default_stage: Stage = Stage.DRAFT_CONTRACT) -> None:
    st.markdown("### 📤 Send a document")

    recipients = [r for r in PARTICIPANTS if r != role]
    with st.form(f"form_send_document_{role.value}", clear_on_submit=True):
        name = st.text_input("Document name", placeholder="Draft Contract v1")
        col1, col2, col3 = st.columns(3)
        with col1:
            recipient = st.selectbox("Send to", recipients, format_func=lambda r: r.label)
        with col2:
            stage = st.selectbox(
                "Stage", WORKFLOW, index=WORKFLOW.index(default_stage), format_func=lambda s: s.title
            )
        with col3:
            priority = st.selectbox("Priority", list(DocumentPriority), format_func=lambda p: p.value.title())
        cover_message = st.text_area("Cover message", height=80)
        deadline = st.date_input("Review deadline", value=None)

        submitted = st.form_submit_button("Send Document", type="primary")

    if submitted:
        if not name:
            st.warning("Enter a document name")
            return
        try:
            doc = hub.add_document(
                name,
                stage,
                role,
                recipient,
                size="1.2 MB",
                cover_message=cover_message or None,
                deadline=deadline.isoformat() if deadline else None,
                priority=priority,
            )
            st.success(f"✅ {doc.name} delivered to {recipient.label}")
        except ConveyanceError as e:
            st.error(f"Document not sent: {e}")
