"""
BROADCAST CHANNEL

Purpose:
- Explicit in-process publish/subscribe
- Carries storage-change events between views sharing one store
- Carries the platform-reset signal to collaborators
- Never lets one failing subscriber break delivery to the others

Delivery:
- Synchronous, in subscription order
- Subscribers are snapshotted before delivery; no lock is held while
  subscribers run
- Weak subscriptions disappear with their owner (abandoned sessions)
"""

import inspect
import logging
import threading
import weakref
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StorageEvent:
    """
    A committed write (or removal when `new_value` is None) to one key.

    `sequence` is assigned by the store under its write lock and grows with
    every commit; None marks an event from outside any store (replays).
    """
    key: str
    new_value: Optional[str]
    old_value: Optional[str] = None
    origin: Optional[str] = None
    sequence: Optional[int] = None


@dataclass(frozen=True)
class ResetSignal:
    """Broadcast after the core has been reset; collaborators clear their own state."""
    reset_id: str
    timestamp: str
    origin: Optional[str] = None


class BroadcastChannel:
    """Thread-safe fan-out of messages to subscribed callables."""

    def __init__(self, name: str = "default"):
        self.name = name
        self._subscribers: Dict[int, Callable[[], Optional[Callable[[Any], None]]]] = {}
        self._next_token = 0
        self._lock = threading.Lock()

    def subscribe(self, listener: Callable[[Any], None], weak: bool = False) -> Callable[[], None]:
        """
        Register a listener.

        Args:
            weak: hold a bound-method listener through a weak reference; the
                subscription ends by itself once its object is garbage collected

        Returns:
            A callable that removes the listener (safe to call twice).
        """
        if weak and inspect.ismethod(listener):
            ref = weakref.WeakMethod(listener)
        else:
            ref = _StrongRef(listener)

        with self._lock:
            token = self._next_token
            self._next_token += 1
            self._subscribers[token] = ref

        def unsubscribe() -> None:
            with self._lock:
                self._subscribers.pop(token, None)

        return unsubscribe

    def publish(self, message: Any) -> int:
        """
        Deliver a message to every current subscriber.

        Returns:
            int: number of subscribers that handled the message without error
        """
        listeners = []
        with self._lock:
            for token, ref in list(self._subscribers.items()):
                listener = ref()
                if listener is None:
                    del self._subscribers[token]
                else:
                    listeners.append(listener)

        delivered = 0
        for listener in listeners:
            try:
                listener(message)
                delivered += 1
            except Exception:
                logger.exception("Subscriber failed on channel '%s'", self.name)
        return delivered

    @property
    def subscriber_count(self) -> int:
        """Live subscribers; collected weak listeners are not counted."""
        with self._lock:
            return sum(1 for ref in self._subscribers.values() if ref() is not None)


class _StrongRef:
    """Same call shape as a weakref, for listeners held normally."""

    __slots__ = ("listener",)

    def __init__(self, listener: Callable[[Any], None]):
        self.listener = listener

    def __call__(self) -> Callable[[Any], None]:
        return self.listener
