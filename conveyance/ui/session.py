"""
Session wiring for the Streamlit views.

- One key-value store (and its broadcast channel) per server process
- One external-change watcher per server process
- One RealTimeHub per browser session, kept in st.session_state; the store
  holds it weakly, so an ended session stops receiving once collected

Hub listeners run on whichever thread committed the change, so they never
touch st.session_state; they record into a SessionInbox that the next
rerun reads.
"""

import logging
import threading

import streamlit as st

from conveyance import config
from conveyance.realtime.channel import ResetSignal
from conveyance.realtime.hub import RealTimeHub
from conveyance.realtime.sync import ExternalChangeWatcher
from conveyance.storage.kv_store import FileKeyValueStore

logger = logging.getLogger(__name__)


class SessionInbox:
    """Thread-safe mailbox between hub listeners and the rendering thread."""

    def __init__(self):
        self._lock = threading.Lock()
        self._changes = 0
        self._resets = []

    def on_updates(self, updates) -> None:
        with self._lock:
            self._changes += 1

    def on_reset(self, signal: ResetSignal) -> None:
        with self._lock:
            self._resets.append(signal)

    def take_changes(self) -> int:
        with self._lock:
            changes, self._changes = self._changes, 0
        return changes

    def take_resets(self):
        with self._lock:
            resets, self._resets = self._resets, []
        return resets


@st.cache_resource(show_spinner=False)
def get_shared_store(data_dir: str = config.DATA_DIR) -> FileKeyValueStore:
    """Load the store ONCE per server process; every session shares it."""
    logger.info("Opening shared store in %s", data_dir)
    return FileKeyValueStore(data_dir)


@st.cache_resource(show_spinner=False)
def get_external_watcher(data_dir: str = config.DATA_DIR) -> ExternalChangeWatcher:
    return ExternalChangeWatcher(get_shared_store(data_dir))


def init_session(data_dir: str = config.DATA_DIR) -> RealTimeHub:
    """Create this session's hub on first call, return it afterwards."""
    if "_hub" not in st.session_state:
        hub = RealTimeHub(get_shared_store(data_dir), transaction_id=config.TRANSACTION_ID)
        inbox = SessionInbox()
        hub.subscribe(inbox.on_updates)
        hub.on_platform_reset(inbox.on_reset)
        st.session_state._hub = hub
        st.session_state._inbox = inbox
        logger.debug("Session hub %s created", hub.hub_id)
    return st.session_state._hub


def get_hub() -> RealTimeHub:
    return init_session()


def get_inbox() -> SessionInbox:
    init_session()
    return st.session_state._inbox


def poll_external_changes() -> int:
    """Pick up writes from other processes; returns how many keys changed."""
    return len(get_external_watcher().poll())


def show_hub_warnings(hub: RealTimeHub) -> None:
    """Render queued persistence warnings without blocking the page."""
    for message in hub.drain_warnings():
        st.warning(f"⚠️ {message}")


# Session keys owned by the role views; cleared when any session resets the platform
FORM_STATE_PREFIXES = ("form_", "draft_", "selected_")


def apply_pending_resets() -> bool:
    """Clear per-session view state after a platform reset (ours or another session's)."""
    resets = get_inbox().take_resets()
    if not resets:
        return False
    for key in list(st.session_state.keys()):
        if str(key).startswith(FORM_STATE_PREFIXES):
            del st.session_state[key]
    st.toast("🔄 Platform was reset to its default state")
    return True
