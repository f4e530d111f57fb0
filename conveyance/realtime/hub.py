"""
REAL-TIME HUB

Purpose:
- The shared "context" every role view talks to
- One instance per view/session, injected (never a module singleton)
- Every hub built on the same key-value store sees the others' writes

Flow:
    view action
      -> domain state machine (proposals / documents / amendments)
      -> UpdateRecord appended to the shared log
      -> StorageEvent on the store channel
      -> every hub re-parses the persisted value and notifies its listeners

Guarantees:
• send_update never raises persistence problems to the view; they are
  logged and surfaced through drain_warnings()
• Domain rule violations (NotFoundError, ForbiddenTransition,
  InvalidTransition) are raised to the caller
• reset_to_default clears the core before collaborators are signalled
"""

import asyncio
import logging
import threading
import uuid
from datetime import date
from typing import Any, Callable, Dict, List, Optional

from conveyance import config
from conveyance.core.amendments import (
    AmendmentBook,
    AmendmentPriority,
    AmendmentRequest,
    ReplyDecision,
)
from conveyance.core.documents import (
    DocumentPriority,
    DocumentRecord,
    DocumentRegistry,
    placeholder_pdf,
)
from conveyance.core.errors import InvalidTransition, NotFoundError, PersistenceError
from conveyance.core.id_generator import RESET_PREFIX, generate_id, utc_now_iso
from conveyance.core.progress import TransactionState, build_transaction_state
from conveyance.core.proposals import CompletionProposal, ProposalBook
from conveyance.core.read_model import filter_updates, latest_status_by_subject
from conveyance.core.roles import Role
from conveyance.core.searches import SearchStatus, find_search
from conveyance.core.stages import Stage
from conveyance.core.updates import (
    AmendmentReplied,
    AmendmentRequested,
    CompletionDateConfirmed,
    CompletionDateProposed,
    CompletionDateRejected,
    ContractExchanged,
    DocumentUploaded,
    Payload,
    PlatformReset,
    StageCompleted,
    StatusChanged,
    UpdateRecord,
    UpdateType,
)
from conveyance.realtime import presets
from conveyance.realtime.channel import BroadcastChannel, ResetSignal, StorageEvent
from conveyance.storage.kv_store import KeyValueStore
from conveyance.storage.update_store import UpdateRecordStore

logger = logging.getLogger(__name__)

UpdatesListener = Callable[[List[UpdateRecord]], None]


class RealTimeHub:

    def __init__(
        self,
        kv: KeyValueStore,
        transaction_id: str = config.TRANSACTION_ID,
        send_timeout: float = config.SEND_TIMEOUT,
        send_retries: int = config.SEND_RETRIES,
        simulated_latency: float = config.SIMULATED_LATENCY,
    ):
        self.kv = kv
        self.transaction_id = transaction_id
        self.hub_id = uuid.uuid4().hex[:8]
        self.send_timeout = send_timeout
        self.send_retries = max(0, send_retries)
        self.simulated_latency = simulated_latency

        self.update_store = UpdateRecordStore(kv)
        self.proposal_book = ProposalBook(kv, transaction_id)
        self.document_registry = DocumentRegistry(kv)
        self.amendment_book = AmendmentBook(kv)
        self._collections = {
            c.key: c
            for c in (self.update_store, self.proposal_book, self.document_registry, self.amendment_book)
        }

        self._listeners = BroadcastChannel(f"hub-{self.hub_id}")
        self._reset_listeners = BroadcastChannel(f"hub-{self.hub_id}-reset")
        self._warnings: List[str] = []
        self._warnings_lock = threading.Lock()
        # Weak: a session that is dropped without close() stops receiving once collected
        self._unsubscribe_storage: Optional[Callable[[], None]] = kv.channel.subscribe(
            self._on_store_message, weak=True,
        )

        logger.debug("Hub %s attached to store %s (%s)", self.hub_id, kv.store_id, transaction_id)

    # ══════════════════════════════════════════════════════════════
    # UPDATE LOG
    # ══════════════════════════════════════════════════════════════

    @property
    def updates(self) -> List[UpdateRecord]:
        return self.update_store.all()

    def subscribe(self, listener: UpdatesListener) -> Callable[[], None]:
        """Call `listener(updates)` after every local append or propagated change."""
        return self._listeners.subscribe(listener)

    async def send_update(
        self,
        update_type: UpdateType,
        stage: Stage,
        role: Role,
        title: str,
        description: str,
        data: Payload,
    ) -> UpdateRecord:
        """
        Append an update to the shared log and notify subscribers.

        The record is visible locally, and subscribers are notified, before
        any storage access. Persistence is attempted with a timeout and
        retried; if every attempt fails the record stays local and a warning
        is queued.

        Raises:
            ValueError: the payload does not match `update_type`
        """
        record = UpdateRecord(
            type=update_type,
            stage=stage,
            role=role,
            title=title,
            description=description,
            data=data,
        )
        stored = self.update_store.echo(record)
        self._notify()

        if self.simulated_latency > 0:
            await asyncio.sleep(self.simulated_latency)

        await self._persist(stored)
        return stored

    async def _persist(self, record: UpdateRecord) -> bool:
        attempts = self.send_retries + 1
        last_error: Optional[BaseException] = None

        for attempt in range(1, attempts + 1):
            try:
                await asyncio.wait_for(
                    asyncio.to_thread(self.update_store.append, record.copy()),
                    timeout=self.send_timeout,
                )
                return True
            except (PersistenceError, asyncio.TimeoutError) as e:
                last_error = e
                logger.warning(
                    "Persisting update %s failed (attempt %d/%d): %s",
                    record.id, attempt, attempts, str(e) or type(e).__name__,
                )

        logger.error("Giving up persisting update %s; kept in memory only", record.id)
        self._warn(f"'{record.title}' is shown here but could not be saved: {str(last_error) or 'timeout'}")
        return False

    def _emit(self, update_type: UpdateType, stage: Stage, role: Role,
              title: str, description: str, data: Payload) -> UpdateRecord:
        """Synchronous append used by the domain operations."""
        record = UpdateRecord(
            type=update_type, stage=stage, role=role,
            title=title, description=description, data=data,
        )
        try:
            stored = self.update_store.append(record)
        except PersistenceError as e:
            self._warn(f"'{title}' is shown here but could not be saved: {e}")
            stored = self.update_store.get(record.id) or record
        self._notify()
        return stored

    async def complete_stage(self, stage: Stage, role: Role, summary: Optional[str] = None) -> UpdateRecord:
        return await self.send_update(
            UpdateType.STAGE_COMPLETED,
            stage,
            role,
            f"{stage.title} Completed",
            summary or f"{stage.title} marked complete by {role.label}",
            StageCompleted(completed_by=role.value, summary=summary),
        )

    async def exchange_contracts(self, role: Role, exchange_date: str) -> UpdateRecord:
        """Record contract exchange; carries the agreed completion date if there is one."""
        accepted = self.accepted_proposal()
        return await self.send_update(
            UpdateType.CONTRACT_EXCHANGED,
            Stage.CONTRACT_EXCHANGE,
            role,
            "Contracts Exchanged",
            f"Contracts exchanged on {exchange_date} by {role.label}",
            ContractExchanged(
                exchanged_by=role.value,
                exchange_date=exchange_date,
                completion_date=accepted.date if accepted else None,
            ),
        )

    async def update_search_status(self, search_id: str, status: SearchStatus, role: Role) -> UpdateRecord:
        """Record a property search being ordered or completed."""
        search = find_search(search_id)
        if search is None:
            raise NotFoundError(f"Unknown search {search_id}")
        status = SearchStatus(status)
        if status == SearchStatus.PENDING:
            raise InvalidTransition("A search cannot be moved back to pending")

        template = presets.SEARCH_ORDERED if status == SearchStatus.ORDERED else presets.SEARCH_COMPLETED
        return await self.send_update(
            UpdateType.STATUS_CHANGED,
            Stage.SEARCH_SURVEY,
            role,
            template.title,
            template.format(search=search.name, role=role.label.lower()),
            StatusChanged(
                subject_id=search.id,
                status=status.value,
                subject_name=search.name,
                action="order" if status == SearchStatus.ORDERED else "complete",
            ),
        )

    def search_statuses(self) -> Dict[str, str]:
        """Latest status of every search, from the shared log."""
        return latest_status_by_subject(self.updates, stage=Stage.SEARCH_SURVEY)

    # ══════════════════════════════════════════════════════════════
    # READ / UNREAD
    # ══════════════════════════════════════════════════════════════

    def notifications_for(self, role: Optional[Role] = None) -> List[UpdateRecord]:
        """Updates a role is notified about: everything not authored by that role."""
        if role is None:
            return self.updates
        return [u for u in self.updates if u.role != role]

    def mark_as_read(self, update_id: str) -> bool:
        try:
            found = self.update_store.mark_read(update_id)
        except PersistenceError as e:
            found = self.update_store.get(update_id) is not None
            if found:
                self._warn(f"Read state not saved: {e}")
        if found:
            self._notify()
        return found

    def mark_all_as_read(self, role: Optional[Role] = None) -> int:
        ids = [u.id for u in self.notifications_for(role) if not u.read]
        if not ids:
            return 0
        try:
            changed = self.update_store.mark_many_read(ids)
        except PersistenceError as e:
            self._warn(f"Read state not saved: {e}")
            changed = len(ids)
        self._notify()
        return changed

    def unread_count(self, role: Optional[Role] = None) -> int:
        return sum(1 for u in self.notifications_for(role) if not u.read)

    def updates_for(
        self,
        stage: Optional[Stage] = None,
        role: Optional[Role] = None,
        update_type: Optional[UpdateType] = None,
    ) -> List[UpdateRecord]:
        return filter_updates(self.updates, stage=stage, role=role, update_type=update_type)

    @property
    def transaction_state(self) -> TransactionState:
        return build_transaction_state(self.updates)

    # ══════════════════════════════════════════════════════════════
    # DOCUMENTS
    # ══════════════════════════════════════════════════════════════

    def add_document(
        self,
        name: str,
        stage: Stage,
        uploaded_by: Role,
        delivered_to: Role,
        size: str = "",
        cover_message: Optional[str] = None,
        deadline: Optional[str] = None,
        priority: DocumentPriority = DocumentPriority.STANDARD,
    ) -> DocumentRecord:
        document = self.document_registry.add(
            name, stage, uploaded_by, delivered_to,
            size=size, cover_message=cover_message, deadline=deadline, priority=priority,
        )
        self._emit(
            UpdateType.DOCUMENT_UPLOADED,
            document.stage,
            document.uploaded_by,
            presets.DOCUMENT_SENT.title,
            presets.DOCUMENT_SENT.format(document=document.name, recipient=document.delivered_to.label),
            DocumentUploaded(
                document_id=document.id,
                document_name=document.name,
                delivered_to=document.delivered_to.value,
                priority=document.priority.value,
                cover_message=cover_message,
            ),
        )
        return document

    def get_documents_for_role(self, role: Role, stage: Optional[Stage] = None) -> List[DocumentRecord]:
        return self.document_registry.for_role(role, stage)

    async def download_document(self, document_id: str, requesting_role: Role) -> Optional[bytes]:
        """
        Hand out a document body and record the download.

        Returns:
            bytes | None: placeholder PDF content, None if the id is unknown

        Raises:
            PersistenceError: the download could not be recorded
        """
        if self.simulated_latency > 0:
            await asyncio.sleep(self.simulated_latency)

        document = await asyncio.to_thread(self.document_registry.record_download, document_id)
        if document is None:
            return None

        await self.send_update(
            UpdateType.STATUS_CHANGED,
            document.stage,
            requesting_role,
            presets.DOCUMENT_DOWNLOADED.title,
            presets.DOCUMENT_DOWNLOADED.format(document=document.name, role=requesting_role.label),
            StatusChanged(
                subject_id=document.id,
                status=document.status.value,
                subject_name=document.name,
                action="download",
                details={"download_count": document.download_count},
            ),
        )
        return placeholder_pdf(document)

    def mark_document_as_reviewed(self, document_id: str) -> DocumentRecord:
        document = self.document_registry.mark_reviewed(document_id)
        self._notify()
        return document

    # ══════════════════════════════════════════════════════════════
    # COMPLETION DATE PROPOSALS
    # ══════════════════════════════════════════════════════════════

    @property
    def proposals(self) -> List[CompletionProposal]:
        return self.proposal_book.for_transaction()

    def accepted_proposal(self) -> Optional[CompletionProposal]:
        return self.proposal_book.accepted()

    def propose_completion_date(
        self,
        role: Role,
        date_str: str,
        time_str: str,
        reason: str,
        enforce_rules: bool = True,
        today: Optional[date] = None,
    ) -> CompletionProposal:
        proposal = self.proposal_book.propose(
            role, date_str, time_str, reason, enforce_rules=enforce_rules, today=today,
        )
        self._emit(
            UpdateType.COMPLETION_DATE_PROPOSED,
            Stage.COMPLETION_DATE,
            role,
            presets.DATE_PROPOSED.title,
            presets.DATE_PROPOSED.format(proposer=role.label, date=proposal.date, time=proposal.time),
            CompletionDateProposed(
                proposal_id=proposal.id,
                date=proposal.date,
                time=proposal.time,
                proposed_by=role.value,
                reason=reason,
            ),
        )
        return proposal

    def accept_proposal(self, proposal_id: str, role: Role) -> CompletionProposal:
        proposal = self.proposal_book.accept(proposal_id, role)
        self._emit(
            UpdateType.COMPLETION_DATE_CONFIRMED,
            Stage.COMPLETION_DATE,
            role,
            presets.DATE_CONFIRMED.title,
            presets.DATE_CONFIRMED.format(date=proposal.date, time=proposal.time),
            CompletionDateConfirmed(
                proposal_id=proposal.id,
                date=proposal.date,
                time=proposal.time,
                confirmed_by=role.value,
            ),
        )
        return proposal

    def reject_proposal(self, proposal_id: str, role: Role, notes: Optional[str] = None) -> CompletionProposal:
        proposal = self.proposal_book.reject(proposal_id, role, notes)
        self._emit(
            UpdateType.COMPLETION_DATE_REJECTED,
            Stage.COMPLETION_DATE,
            role,
            presets.DATE_REJECTED.title,
            presets.DATE_REJECTED.format(rejector=role.label, date=proposal.date),
            CompletionDateRejected(proposal_id=proposal.id, rejected_by=role.value, notes=notes),
        )
        return proposal

    # ══════════════════════════════════════════════════════════════
    # AMENDMENT REQUESTS
    # ══════════════════════════════════════════════════════════════

    def add_amendment_request(
        self,
        stage: Stage,
        requested_by: Role,
        requested_to: Role,
        amendment_type: str,
        description: str,
        priority: AmendmentPriority = AmendmentPriority.MEDIUM,
        proposed_change: str = "",
        deadline: Optional[str] = None,
        affected_clauses: Optional[List[str]] = None,
    ) -> AmendmentRequest:
        request = self.amendment_book.add(
            stage, requested_by, requested_to, amendment_type, description,
            priority=priority, proposed_change=proposed_change,
            deadline=deadline, affected_clauses=affected_clauses,
        )
        self._emit(
            UpdateType.AMENDMENT_REQUESTED,
            request.stage,
            request.requested_by,
            presets.AMENDMENT_SENT.title,
            presets.AMENDMENT_SENT.format(amendment_type=request.type, priority=request.priority.value),
            AmendmentRequested(
                amendment_id=request.id,
                amendment_type=request.type,
                priority=request.priority.value,
            ),
        )
        return request

    def acknowledge_amendment_request(self, request_id: str, role: Role) -> AmendmentRequest:
        request = self.amendment_book.acknowledge(request_id, role)
        self._notify()
        return request

    def reply_to_amendment_request(
        self,
        request_id: str,
        role: Role,
        message: str,
        decision: ReplyDecision,
        counter_proposal: Optional[str] = None,
    ) -> AmendmentRequest:
        request = self.amendment_book.reply(request_id, role, message, decision, counter_proposal)
        self._emit(
            UpdateType.AMENDMENT_REPLIED,
            request.stage,
            role,
            presets.AMENDMENT_REPLY_SENT.title,
            presets.AMENDMENT_REPLY_SENT.format(amendment_type=request.type),
            AmendmentReplied(
                amendment_id=request.id,
                decision=request.reply.decision.value,
                original_request_by=request.requested_by.value,
            ),
        )
        return request

    def resolve_amendment_request(self, request_id: str, role: Role) -> AmendmentRequest:
        request = self.amendment_book.resolve(request_id, role)
        self._notify()
        return request

    def get_amendment_requests_for_role(self, role: Role, stage: Optional[Stage] = None) -> List[AmendmentRequest]:
        return self.amendment_book.for_role(role, stage)

    # ══════════════════════════════════════════════════════════════
    # RESET
    # ══════════════════════════════════════════════════════════════

    def reset_to_default(self, announce: bool = True) -> ResetSignal:
        """
        Clear the log, proposals, documents and amendment requests, then
        optionally append a single platform_reset notice, then signal
        collaborators (`on_platform_reset`).
        """
        reset_id = generate_id(RESET_PREFIX)
        failures = []

        for collection in self._collections.values():
            try:
                collection.clear()
            except PersistenceError as e:
                logger.error("Reset of '%s' failed: %s", collection.key, e)
                failures.append(collection.key)

        if failures:
            self._warn(f"Reset could not clear stored data for: {', '.join(failures)}")

        if announce:
            self._emit(
                UpdateType.PLATFORM_RESET,
                Stage.SYSTEM,
                Role.SYSTEM,
                presets.PLATFORM_RESET_NOTICE.title,
                presets.PLATFORM_RESET_NOTICE.format(),
                PlatformReset(reset_id=reset_id),
            )

        signal = ResetSignal(reset_id=reset_id, timestamp=utc_now_iso(), origin=self.hub_id)
        self.kv.channel.publish(signal)
        self._notify()
        logger.info("Platform reset %s by hub %s", reset_id, self.hub_id)
        return signal

    def on_platform_reset(self, callback: Callable[[ResetSignal], Any]) -> Callable[[], None]:
        """Run `callback` whenever any hub on this store resets the platform."""
        return self._reset_listeners.subscribe(callback)

    # ══════════════════════════════════════════════════════════════
    # PROPAGATION
    # ══════════════════════════════════════════════════════════════

    def _on_store_message(self, message: Any) -> None:
        if isinstance(message, ResetSignal):
            self._reset_listeners.publish(message)
            return
        if not isinstance(message, StorageEvent):
            return
        collection = self._collections.get(message.key)
        if collection is None:
            return
        if collection.apply_storage_event(message):
            self._notify()

    def refresh(self) -> bool:
        """Re-read every collection from the store."""
        changed = False
        for collection in self._collections.values():
            changed = collection.reload() or changed
        if changed:
            self._notify()
        return changed

    def _notify(self) -> None:
        if self._listeners.subscriber_count:
            self._listeners.publish(self.updates)

    # ══════════════════════════════════════════════════════════════
    # WARNINGS / LIFECYCLE
    # ══════════════════════════════════════════════════════════════

    def _warn(self, message: str) -> None:
        with self._warnings_lock:
            self._warnings.append(message)

    def drain_warnings(self) -> List[str]:
        """Return and forget the non-blocking warnings collected so far."""
        with self._warnings_lock:
            warnings, self._warnings = self._warnings, []
        return warnings

    def close(self) -> None:
        if self._unsubscribe_storage is not None:
            self._unsubscribe_storage()
            self._unsubscribe_storage = None
        logger.debug("Hub %s closed", self.hub_id)
