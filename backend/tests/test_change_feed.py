"""
Change feed tests: the hub, the apply rules, and the background consumer.
"""

import time
from decimal import Decimal

import pytest

from financehub.extensions import db
from financehub.feed import ChangeEvent, ChangeFeed
from financehub.models import Representative, Voucher
from financehub.services import change_feed as change_feed_service
from financehub.services.change_feed import FeedConsumer, apply_change, resolve_status
from financehub.services.reconcile_service import reconcile
from financehub.validation import UpstreamUnavailable, ValidationError


def _record(voucher_id="r1", rep="rep1", voucher_type="RECEIPT", amount="100", status="pending", **extra):
    record = {
        "id": voucher_id,
        "type": voucher_type,
        "amount": amount,
        "representative_id": rep,
        "customer_name": "Customer",
        "status": status,
    }
    record.update(extra)
    return record


def _insert(**kwargs):
    return ChangeEvent("insert", _record(**kwargs))


def _update(voucher_id, status):
    return ChangeEvent("update", {"id": voucher_id, "status": status})


def _rep(rep_id):
    db.session.expire_all()
    return db.session.get(Representative, rep_id)


# ---------------------------------------------------------------------------
# Hub
# ---------------------------------------------------------------------------

def test_subscriber_receives_published_events_in_order():
    hub = ChangeFeed()
    sub = hub.subscribe()

    hub.publish(_update("a", "approved"))
    hub.publish(_update("b", "rejected"))

    assert sub.get(timeout=1).record_id == "a"
    assert sub.get(timeout=1).record_id == "b"
    assert sub.get(timeout=0.01) is None


def test_cancel_deregisters_subscription():
    hub = ChangeFeed()
    sub = hub.subscribe()
    assert hub.subscriber_count == 1

    sub.cancel()
    sub.cancel()

    assert hub.subscriber_count == 0
    assert sub.cancelled
    assert hub.publish(_update("a", "approved")) == 0
    assert list(sub) == []


def test_context_manager_cancels_on_exit():
    hub = ChangeFeed()
    with hub.subscribe() as sub:
        assert hub.subscriber_count == 1
    assert sub.cancelled
    assert hub.subscriber_count == 0


def test_iteration_stops_after_cancel():
    hub = ChangeFeed()
    sub = hub.subscribe()
    hub.publish(_update("a", "approved"))

    seen = []
    for event in sub:
        seen.append(event.record_id)
        sub.cancel()

    assert seen == ["a"]


def test_bounded_subscriber_drops_when_full():
    hub = ChangeFeed()
    sub = hub.subscribe(maxsize=1)

    hub.publish(_update("a", "approved"))
    hub.publish(_update("b", "approved"))

    assert sub.get(timeout=1).record_id == "a"
    assert sub.get(timeout=0.01) is None


@pytest.mark.parametrize("payload", [
    None,
    {"kind": "upsert", "record": {"id": "x"}},
    {"kind": "insert"},
    {"kind": "insert", "record": {"status": "pending"}},
])
def test_change_event_payload_validation(payload):
    with pytest.raises(ValidationError):
        ChangeEvent.from_payload(payload)


# ---------------------------------------------------------------------------
# Status rules
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("current,incoming,expected", [
    ("pending", "approved", ("approved", "applied")),
    ("pending", "rejected", ("rejected", "applied")),
    ("pending", "pending", (None, "unchanged")),
    ("approved", "approved", (None, "unchanged")),
    ("approved", "pending", (None, "status_regression_ignored")),
    ("rejected", "pending", (None, "status_regression_ignored")),
    ("approved", "rejected", (None, "conflicting_decision_ignored")),
    ("rejected", "approved", (None, "conflicting_decision_ignored")),
])
def test_resolve_status(current, incoming, expected):
    assert resolve_status(current, incoming) == expected


def test_resolve_status_rejects_unknown_status():
    with pytest.raises(ValidationError):
        resolve_status("pending", "archived")


# ---------------------------------------------------------------------------
# Applying events
# ---------------------------------------------------------------------------

def test_insert_then_approve_updates_balance(reps):
    apply_change(_insert(voucher_id="r1", amount="5000"))
    db.session.commit()
    assert _rep("rep1").current_balance == 0

    result = apply_change(_update("r1", "approved"))
    db.session.commit()

    assert result.applied
    assert _rep("rep1").current_balance == Decimal("5000")


def test_redelivered_update_is_idempotent(reps):
    apply_change(_insert(voucher_id="r1", amount="300"))
    apply_change(_update("r1", "approved"))
    db.session.commit()

    again = apply_change(_update("r1", "approved"))
    db.session.commit()

    assert not again.applied
    assert again.reason == "unchanged"
    assert _rep("rep1").total_receipts == Decimal("300")


def test_redelivered_insert_does_not_duplicate(reps):
    apply_change(_insert(voucher_id="r1", status="approved"))
    result = apply_change(_insert(voucher_id="r1", status="approved"))
    db.session.commit()

    assert not result.applied
    assert db.session.query(Voucher).count() == 1
    assert _rep("rep1").total_receipts == Decimal("100")


def test_late_pending_update_does_not_regress(reps):
    apply_change(_insert(voucher_id="r1"))
    apply_change(_update("r1", "approved"))
    result = apply_change(_update("r1", "pending"))
    db.session.commit()

    assert result.reason == "status_regression_ignored"
    assert db.session.get(Voucher, "r1").status == "approved"
    assert _rep("rep1").total_receipts == Decimal("100")


def test_conflicting_decision_keeps_first(reps):
    apply_change(_insert(voucher_id="r1"))
    apply_change(_update("r1", "rejected"))
    result = apply_change(_update("r1", "approved"))
    db.session.commit()

    assert result.reason == "conflicting_decision_ignored"
    assert db.session.get(Voucher, "r1").status == "rejected"
    assert _rep("rep1").total_receipts == 0


def test_update_only_touches_status(reps):
    apply_change(_insert(voucher_id="r1", amount="100"))
    apply_change(ChangeEvent("update", {"id": "r1", "status": "approved", "amount": "999", "type": "PAYMENT"}))
    db.session.commit()

    voucher = db.session.get(Voucher, "r1")
    assert voucher.amount == Decimal("100")
    assert voucher.type == "RECEIPT"


def test_out_of_order_complete_update_before_insert(reps):
    apply_change(ChangeEvent("update", _record(voucher_id="r1", status="approved")))
    late_insert = apply_change(_insert(voucher_id="r1", status="pending"))
    db.session.commit()

    assert late_insert.reason == "status_regression_ignored"
    assert db.session.get(Voucher, "r1").status == "approved"
    assert _rep("rep1").total_receipts == Decimal("100")


def test_partial_update_for_unknown_id_is_ignored(reps):
    result = apply_change(_update("nope", "approved"))

    assert not result.applied
    assert result.reason == "unknown_id"
    assert db.session.query(Voucher).count() == 0


def test_delete_recomputes_and_unknown_delete_is_noop(reps):
    apply_change(_insert(voucher_id="r1", status="approved", amount="40"))
    db.session.commit()
    assert _rep("rep1").total_receipts == Decimal("40")

    deleted = apply_change(ChangeEvent("delete", {"id": "r1"}))
    missing = apply_change(ChangeEvent("delete", {"id": "r1"}))
    db.session.commit()

    assert deleted.applied
    assert not missing.applied
    assert _rep("rep1").total_receipts == 0


def test_camel_case_records_are_accepted(reps):
    apply_change(ChangeEvent("insert", {
        "id": "t9",
        "type": "PAYMENT",
        "amount": 2500,
        "date": "2026-05-01T10:00:00.000Z",
        "representativeId": "rep2",
        "representativeName": "Sara Khaled",
        "customerName": "Fuel station",
        "description": "Trip",
        "status": "approved",
    }))
    db.session.commit()

    voucher = db.session.get(Voucher, "t9")
    assert voucher.customer_name == "Fuel station"
    assert voucher.date.year == 2026
    assert _rep("rep2").current_balance == Decimal("-2500")


def test_insert_for_unknown_representative_is_stored_not_counted(reps):
    result = apply_change(_insert(voucher_id="g1", rep="ghost", status="approved"))
    db.session.commit()

    assert result.applied
    assert db.session.get(Voucher, "g1").representative_name == "ghost"
    assert all(rep.total_receipts == 0 for rep in db.session.query(Representative).all())


@pytest.mark.parametrize("extra", [
    {"amount": "-1"},
    {"amount": "1e30"},
    {"date": 1714557600000},
    {"date": "yesterday"},
])
def test_malformed_insert_raises_and_writes_nothing(reps, extra):
    with pytest.raises(ValidationError):
        apply_change(_insert(voucher_id="bad", **extra))

    assert db.session.query(Voucher).count() == 0


def test_per_event_refresh_matches_single_full_recompute(reps):
    events = [
        _insert(voucher_id="a", rep="rep1", amount="5000"),
        _insert(voucher_id="b", rep="rep1", voucher_type="PAYMENT", amount="200"),
        _insert(voucher_id="c", rep="rep2", voucher_type="PAYMENT", amount="2500", status="approved"),
        _update("a", "approved"),
        _update("a", "approved"),
        _update("b", "rejected"),
        _insert(voucher_id="d", rep="rep3", amount="75.25"),
        _update("d", "approved"),
        _update("b", "approved"),
        _update("d", "pending"),
        ChangeEvent("delete", {"id": "c"}),
        _insert(voucher_id="c", rep="rep2", voucher_type="PAYMENT", amount="10", status="approved"),
    ]
    for event in events:
        apply_change(event)
        db.session.commit()

    db.session.expire_all()
    expected = reconcile(db.session.query(Voucher).all(), ["rep1", "rep2", "rep3"])
    for rep in db.session.query(Representative).all():
        assert rep.total_receipts == expected[rep.id].total_receipts
        assert rep.total_payments == expected[rep.id].total_payments
        assert rep.current_balance == expected[rep.id].current_balance

    assert _rep("rep1").current_balance == Decimal("5000")
    assert _rep("rep2").current_balance == Decimal("-10")
    assert _rep("rep3").current_balance == Decimal("75.25")


# ---------------------------------------------------------------------------
# Background consumer
# ---------------------------------------------------------------------------

def _wait_for(predicate, timeout=5.0):
    deadline = time.time() + timeout
    while time.time() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


def test_consumer_applies_stream_and_stops(app, reps):
    batches = [[_insert(voucher_id="s1", amount="10", status="approved"), _insert(voucher_id="s2", amount="5")]]

    def source():
        return iter(batches.pop(0) if batches else [])

    consumer = FeedConsumer(app, source, backoff_base=0.01).start()
    try:
        assert _wait_for(lambda: consumer.applied_count == 2)
    finally:
        consumer.stop()

    assert not consumer.running
    assert consumer.error is None
    assert _rep("rep1").total_receipts == Decimal("10")


def test_consumer_reconnects_after_upstream_failure(app, reps):
    calls = {"n": 0}

    def source():
        calls["n"] += 1
        if calls["n"] == 1:
            raise UpstreamUnavailable("connection reset")
        if calls["n"] == 2:
            return iter([_insert(voucher_id="s1", status="approved", amount="7")])
        return iter([])

    consumer = FeedConsumer(app, source, backoff_base=0.01).start()
    try:
        assert _wait_for(lambda: consumer.applied_count == 1)
    finally:
        consumer.stop()

    assert calls["n"] >= 2
    assert _rep("rep1").total_receipts == Decimal("7")


def test_consumer_gives_up_after_repeated_failures(app, reps):
    def source():
        raise UpstreamUnavailable("down")

    consumer = FeedConsumer(app, source, attempts=2, backoff_base=0.01).start()
    assert _wait_for(lambda: not consumer.running)
    consumer.stop()

    assert isinstance(consumer.error, UpstreamUnavailable)


def test_consumer_skips_malformed_events(app, reps):
    batches = [[_insert(voucher_id="bad", amount="0"), _insert(voucher_id="ok", amount="3", status="approved")]]

    def source():
        return iter(batches.pop(0) if batches else [])

    consumer = FeedConsumer(app, source, backoff_base=0.01).start()
    try:
        assert _wait_for(lambda: consumer.applied_count == 1)
    finally:
        consumer.stop()

    db.session.expire_all()
    assert db.session.get(Voucher, "bad") is None
    assert db.session.get(Voucher, "ok") is not None


def test_consumer_keeps_going_after_poison_records(app, reps):
    batches = [[
        _insert(voucher_id="huge", amount="1e30"),
        _insert(voucher_id="epoch", date=1714557600000),
        _insert(voucher_id="ok", amount="6", status="approved"),
    ]]

    def source():
        return iter(batches.pop(0) if batches else [])

    consumer = FeedConsumer(app, source, backoff_base=0.01).start()
    try:
        assert _wait_for(lambda: consumer.applied_count == 1)
        assert consumer.running
    finally:
        consumer.stop()

    assert consumer.error is None
    db.session.expire_all()
    assert db.session.get(Voucher, "huge") is None
    assert db.session.get(Voucher, "epoch") is None
    assert _rep("rep1").total_receipts == Decimal("6")


def test_consumer_skips_event_that_fails_unexpectedly(app, reps, monkeypatch):
    real_apply = change_feed_service.apply_change

    def apply_or_fail(event):
        if event.record_id == "boom":
            raise RuntimeError("unexpected")
        return real_apply(event)

    monkeypatch.setattr(change_feed_service, "apply_change", apply_or_fail)
    batches = [[_insert(voucher_id="boom"), _insert(voucher_id="ok", amount="4", status="approved")]]

    def source():
        return iter(batches.pop(0) if batches else [])

    consumer = FeedConsumer(app, source, backoff_base=0.01).start()
    try:
        assert _wait_for(lambda: consumer.applied_count == 1)
    finally:
        consumer.stop()

    assert consumer.skipped_count == 1
    assert consumer.error is None
    assert _rep("rep1").total_receipts == Decimal("4")
