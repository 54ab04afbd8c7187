# Overview: In-process publish/subscribe hub for voucher change events.

"""
Change feed hub.

WHY: Inserts, decisions and remote notifications are announced as discrete
events so long-lived listeners (the SSE stream, background consumers, tests)
can follow the transaction log without polling.

SEMANTICS:
- Delivery is in publish order per subscriber.
- A subscription is live until cancel(); cancel deregisters it from the hub
  and wakes any reader blocked on it.
- Publishing never blocks. A subscriber with a bounded queue that is full
  drops the event (and it is logged); unbounded subscribers never drop.
"""

from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass, field
from typing import Any, Iterator

from .validation import ValidationError


_LOGGER = logging.getLogger(__name__)

KIND_INSERT = "insert"
KIND_UPDATE = "update"
KIND_DELETE = "delete"
EVENT_KINDS = (KIND_INSERT, KIND_UPDATE, KIND_DELETE)

_CLOSED = object()


@dataclass(frozen=True)
class ChangeEvent:
    """A single mutation of the transaction log."""

    kind: str
    record: dict[str, Any] = field(default_factory=dict)

    @property
    def record_id(self) -> str | None:
        value = self.record.get("id")
        return str(value) if value is not None else None

    @classmethod
    def from_payload(cls, payload: Any) -> "ChangeEvent":
        if not isinstance(payload, dict):
            raise ValidationError("change event must be an object")
        kind = payload.get("kind")
        if kind not in EVENT_KINDS:
            raise ValidationError(f"kind must be one of {', '.join(EVENT_KINDS)}")
        record = payload.get("record")
        if not isinstance(record, dict):
            raise ValidationError("record must be an object")
        if record.get("id") in (None, ""):
            raise ValidationError("record.id is required")
        return cls(kind=kind, record=dict(record))

    def to_dict(self) -> dict:
        return {"kind": self.kind, "record": dict(self.record)}


class Subscription:
    """Cancellable view onto the hub. Iterate it, or poll with get()."""

    def __init__(self, hub: "ChangeFeed", maxsize: int = 0):
        self._hub = hub
        self._queue: queue.Queue = queue.Queue(maxsize=maxsize)
        self._cancelled = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def _offer(self, event: ChangeEvent) -> None:
        try:
            self._queue.put_nowait(event)
        except queue.Full:
            _LOGGER.warning("Dropping %s event for %s: subscriber queue full", event.kind, event.record_id)

    def get(self, timeout: float | None = None) -> ChangeEvent | None:
        """
        Next event, or None when the timeout elapses or the subscription is
        cancelled.
        """
        if self.cancelled and self._queue.empty():
            return None
        try:
            item = self._queue.get(timeout=timeout)
        except queue.Empty:
            return None
        if item is _CLOSED:
            return None
        return item

    def cancel(self) -> None:
        if self._cancelled.is_set():
            return
        self._cancelled.set()
        self._hub._remove(self)
        try:
            self._queue.put_nowait(_CLOSED)
        except queue.Full:
            # reader will notice the cancelled flag once it drains
            pass

    def __iter__(self) -> Iterator[ChangeEvent]:
        while not self.cancelled:
            item = self._queue.get()
            if item is _CLOSED:
                break
            yield item

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.cancel()


class ChangeFeed:
    """Fan-out of ChangeEvents to every live Subscription."""

    def __init__(self, app=None):
        self._lock = threading.Lock()
        self._subscriptions: set[Subscription] = set()
        if app is not None:
            self.init_app(app)

    def init_app(self, app) -> None:
        app.extensions["change_feed"] = self

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def subscribe(self, maxsize: int = 0) -> Subscription:
        subscription = Subscription(self, maxsize=maxsize)
        with self._lock:
            self._subscriptions.add(subscription)
        return subscription

    def publish(self, event: ChangeEvent) -> int:
        """Deliver to all subscribers. Returns the number of recipients."""
        with self._lock:
            targets = list(self._subscriptions)
        for subscription in targets:
            subscription._offer(event)
        return len(targets)

    def _remove(self, subscription: Subscription) -> None:
        with self._lock:
            self._subscriptions.discard(subscription)
