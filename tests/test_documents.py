import asyncio

import pytest

from conveyance.core.documents import DocumentRegistry, DocumentStatus
from conveyance.core.errors import InvalidTransition, NotFoundError
from conveyance.core.roles import Role
from conveyance.core.stages import Stage
from conveyance.core.updates import UpdateType


def _send_contract(registry):
    return registry.add(
        "Draft Contract.pdf",
        Stage.DRAFT_CONTRACT,
        Role.SELLER_CONVEYANCER,
        Role.BUYER_CONVEYANCER,
        size="1.2 MB",
        cover_message="Please review clause 4",
    )


def test_new_document_is_delivered(memory_store):
    registry = DocumentRegistry(memory_store)
    doc = _send_contract(registry)

    assert doc.status == DocumentStatus.DELIVERED
    assert doc.download_count == 0
    assert [d.id for d in registry.for_role(Role.BUYER_CONVEYANCER)] == [doc.id]
    assert registry.for_role(Role.SELLER_CONVEYANCER) == []
    assert registry.for_role(Role.BUYER_CONVEYANCER, Stage.ENQUIRIES) == []


def test_download_then_review(memory_store):
    registry = DocumentRegistry(memory_store)
    doc = _send_contract(registry)

    first = registry.record_download(doc.id)
    assert (first.status, first.download_count) == (DocumentStatus.DOWNLOADED, 1)

    reviewed = registry.mark_reviewed(doc.id)
    assert reviewed.status == DocumentStatus.REVIEWED

    # Later downloads count but never move the status back
    again = registry.record_download(doc.id)
    assert (again.status, again.download_count) == (DocumentStatus.REVIEWED, 2)


def test_review_before_download_is_invalid(memory_store):
    registry = DocumentRegistry(memory_store)
    doc = _send_contract(registry)

    with pytest.raises(InvalidTransition):
        registry.mark_reviewed(doc.id)
    assert registry.get(doc.id).status == DocumentStatus.DELIVERED


def test_review_twice_is_noop(memory_store):
    registry = DocumentRegistry(memory_store)
    doc = _send_contract(registry)
    registry.record_download(doc.id)
    registry.mark_reviewed(doc.id)

    assert registry.mark_reviewed(doc.id).status == DocumentStatus.REVIEWED


def test_unknown_document(memory_store):
    registry = DocumentRegistry(memory_store)

    assert registry.record_download("DOC-missing") is None
    with pytest.raises(NotFoundError):
        registry.mark_reviewed("DOC-missing")


def test_hub_document_flow_visible_to_both_sides(make_hub):
    seller_side = make_hub()
    buyer_side = make_hub()

    doc = seller_side.add_document(
        "Draft Contract.pdf", Stage.DRAFT_CONTRACT, Role.SELLER_CONVEYANCER, Role.BUYER_CONVEYANCER,
    )
    body = asyncio.run(buyer_side.download_document(doc.id, Role.BUYER_CONVEYANCER))

    assert body.startswith(b"%PDF")
    assert b"Draft Contract.pdf" in body
    assert seller_side.document_registry.get(doc.id).status == DocumentStatus.DOWNLOADED

    uploaded, downloaded = seller_side.updates
    assert uploaded.type == UpdateType.DOCUMENT_UPLOADED
    assert uploaded.data.document_id == doc.id
    assert downloaded.type == UpdateType.STATUS_CHANGED
    assert downloaded.role == Role.BUYER_CONVEYANCER
    assert (downloaded.data.subject_id, downloaded.data.status) == (doc.id, "downloaded")
    assert downloaded.data.details == {"download_count": 1}


def test_hub_download_of_missing_document(make_hub):
    hub = make_hub()

    assert asyncio.run(hub.download_document("DOC-missing", Role.BUYER_CONVEYANCER)) is None
    assert hub.updates == []
