# Overview: Applies store change notifications to the local voucher log and keeps balances fresh.

"""
Change feed adapter.

Notifications arrive asynchronously, possibly twice, possibly out of causal
order. They are applied in arrival order with these rules:

- insert of a new id adds the voucher; insert of a known id is handled as an
  update of that id
- update only ever touches status; the other columns are fixed at creation
- same status again: no-op
- terminal -> pending: ignored (a decided voucher never regresses)
- approved <-> rejected: ignored (the first decision wins)
- update of an unknown id: inserted when the record is complete, else ignored
- delete of an unknown id: no-op

Every applied change is followed by a recompute of the affected
representatives from the full log.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, Iterable, Iterator

from ..extensions import change_feed, db
from ..feed import KIND_DELETE, KIND_INSERT, KIND_UPDATE, ChangeEvent
from ..models import Representative, Voucher
from ..models.vouchers import STATUS_PENDING, TERMINAL_STATUSES, VOUCHER_STATUSES, VOUCHER_TYPES
from ..time_utils import parse_iso_datetime, utcnow
from ..validation import UpstreamUnavailable, ValidationError, optional_text, parse_amount, require_text
from .concurrency import commit_session, run_with_retry
from .reconcile_service import refresh_representatives


_LOGGER = logging.getLogger(__name__)

# Remote store keys (camelCase) -> local column names
_FIELD_ALIASES = {
    "representativeId": "representative_id",
    "representativeName": "representative_name",
    "customerName": "customer_name",
}

_REQUIRED_FOR_INSERT = ("id", "type", "amount", "representative_id", "customer_name")


@dataclass
class ApplyResult:
    kind: str
    voucher_id: str
    applied: bool
    reason: str = "applied"
    representative_ids: set[str] = field(default_factory=set)

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "voucher_id": self.voucher_id,
            "applied": self.applied,
            "reason": self.reason,
        }


def normalize_record(record: dict) -> dict:
    return {_FIELD_ALIASES.get(key, key): value for key, value in record.items()}


def resolve_status(current: str, incoming: str) -> tuple[str | None, str]:
    """
    Decide the status after a notification.

    Returns (new_status, reason); new_status is None when nothing changes.
    """
    if incoming not in VOUCHER_STATUSES:
        raise ValidationError(f"status must be one of {', '.join(VOUCHER_STATUSES)}")
    if incoming == current:
        return None, "unchanged"
    if current == STATUS_PENDING:
        return incoming, "applied"
    if incoming == STATUS_PENDING:
        return None, "status_regression_ignored"
    return None, "conflicting_decision_ignored"


def _voucher_from_record(record: dict) -> Voucher:
    missing = [key for key in _REQUIRED_FOR_INSERT if record.get(key) in (None, "")]
    if missing:
        raise ValidationError(f"record missing required fields: {', '.join(missing)}")

    voucher_type = record["type"]
    if voucher_type not in VOUCHER_TYPES:
        raise ValidationError(f"type must be one of {', '.join(VOUCHER_TYPES)}")
    status = record.get("status") or STATUS_PENDING
    if status not in VOUCHER_STATUSES:
        raise ValidationError(f"status must be one of {', '.join(VOUCHER_STATUSES)}")

    rep_id = str(record["representative_id"])
    rep_name = record.get("representative_name")
    if not rep_name:
        rep = db.session.query(Representative).filter_by(id=rep_id).first()
        rep_name = rep.name if rep else rep_id

    try:
        date = parse_iso_datetime(record.get("date")) or utcnow()
    except ValueError:
        raise ValidationError("date must be an ISO-8601 datetime")

    return Voucher(
        id=str(record["id"]),
        type=voucher_type,
        amount=parse_amount(record["amount"]),
        date=date,
        representative_id=rep_id,
        representative_name=rep_name,
        customer_name=require_text(record["customer_name"], "customer_name"),
        description=optional_text(record.get("description"), "description"),
        status=status,
    )


def _is_complete(record: dict) -> bool:
    return all(record.get(key) not in (None, "") for key in _REQUIRED_FOR_INSERT)


def apply_change(event: ChangeEvent) -> ApplyResult:
    """
    Apply one notification to the session. Flushes, does not commit.

    Raises ValidationError for malformed records; nothing is written then.
    """
    record = normalize_record(event.record)
    voucher_id = str(record.get("id"))
    existing = db.session.get(Voucher, voucher_id)

    if event.kind == KIND_DELETE:
        if existing is None:
            return ApplyResult(event.kind, voucher_id, applied=False, reason="unknown_id")
        rep_id = existing.representative_id
        db.session.delete(existing)
        db.session.flush()
        refresh_representatives([rep_id])
        return ApplyResult(event.kind, voucher_id, applied=True, representative_ids={rep_id})

    if existing is None:
        if event.kind == KIND_UPDATE and not _is_complete(record):
            _LOGGER.warning("Ignoring partial update for unknown voucher %s", voucher_id)
            return ApplyResult(event.kind, voucher_id, applied=False, reason="unknown_id")
        voucher = _voucher_from_record(record)
        db.session.add(voucher)
        db.session.flush()
        if db.session.get(Representative, voucher.representative_id) is None:
            _LOGGER.warning(
                "Voucher %s references unknown representative %s", voucher_id, voucher.representative_id
            )
        refresh_representatives([voucher.representative_id])
        return ApplyResult(
            event.kind, voucher_id, applied=True, representative_ids={voucher.representative_id}
        )

    # KIND_INSERT for a known id is a redelivery; treat as update.
    incoming = record.get("status")
    if incoming is None:
        return ApplyResult(event.kind, voucher_id, applied=False, reason="unchanged")

    new_status, reason = resolve_status(existing.status, incoming)
    if new_status is None:
        if reason != "unchanged":
            _LOGGER.warning(
                "Voucher %s: %s (current=%s, incoming=%s)", voucher_id, reason, existing.status, incoming
            )
        return ApplyResult(event.kind, voucher_id, applied=False, reason=reason)

    existing.status = new_status
    if new_status in TERMINAL_STATUSES:
        existing.decided_at = utcnow()
        existing.decided_by = record.get("decided_by")
    db.session.flush()
    refresh_representatives([existing.representative_id])
    return ApplyResult(
        event.kind, voucher_id, applied=True, representative_ids={existing.representative_id}
    )


def apply_changes(events: Iterable[ChangeEvent]) -> list[ApplyResult]:
    return [apply_change(event) for event in events]


def publish_voucher(kind: str, voucher: Voucher) -> None:
    """Announce a committed local change to feed subscribers."""
    change_feed.publish(ChangeEvent(kind=kind, record=voucher.to_dict()))


class FeedConsumer:
    """
    Background reader of a remote change stream.

    source is a callable that opens the stream and returns an iterator of
    ChangeEvents. It is called again after the stream ends or fails with
    UpstreamUnavailable (reconnect), with exponential backoff between failed
    attempts. Each event is applied and committed on its own, then published
    to local subscribers. An event that fails to apply is rolled back, logged
    and skipped; the stream carries on with the next one. stop() ends the
    loop and joins the thread; a fatal error is kept in error.
    """

    def __init__(
        self,
        app,
        source: Callable[[], Iterator[ChangeEvent]],
        *,
        attempts: int = 5,
        backoff_base: float = 0.5,
    ):
        self.app = app
        self.source = source
        self.attempts = attempts
        self.backoff_base = backoff_base
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self.applied_count = 0
        self.skipped_count = 0
        self.error: Exception | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> "FeedConsumer":
        if self.running:
            return self
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="financehub-feed-consumer", daemon=True)
        self._thread.start()
        return self

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def _sleep(self, delay: float) -> None:
        self._stop.wait(delay)

    def _consume_once(self) -> None:
        stream = self.source()
        try:
            for event in stream:
                if self._stop.is_set():
                    break
                self._handle(event)
        finally:
            close = getattr(stream, "close", None)
            if close is not None:
                close()

    def _handle(self, event: ChangeEvent) -> None:
        try:
            result = apply_change(event)
        except ValidationError as exc:
            db.session.rollback()
            _LOGGER.warning("Skipping malformed %s event for %s: %s", event.kind, event.record_id, exc)
            return
        except UpstreamUnavailable:
            db.session.rollback()
            raise
        except Exception:
            db.session.rollback()
            self.skipped_count += 1
            _LOGGER.exception("Skipping %s event for %s after unexpected error", event.kind, event.record_id)
            return
        commit_session()
        if result.applied:
            self.applied_count += 1
            change_feed.publish(event)

    def _run(self) -> None:
        with self.app.app_context():
            try:
                while not self._stop.is_set():
                    run_with_retry(
                        self._consume_once,
                        attempts=self.attempts,
                        backoff_base=self.backoff_base,
                        sleep=self._sleep,
                    )
                    # stream ended cleanly; reconnect after a pause
                    self._sleep(self.backoff_base)
            except UpstreamUnavailable as exc:
                self.error = exc
                _LOGGER.error("Change feed consumer giving up: %s", exc)
            except Exception as exc:
                self.error = exc
                _LOGGER.exception("Change feed consumer stopped on unexpected error")
            finally:
                db.session.remove()
