# backend/financehub/routes/feed.py
"""
Change feed routes.

POST /api/feed/events receives notifications pushed by the remote store.
GET /api/feed/stream follows the feed as server-sent events; the
subscription is cancelled when the client goes away.
"""
import json

from flask import Blueprint, Response, request, jsonify, current_app, stream_with_context

from ..extensions import change_feed, db
from ..decorators import require_auth, require_role
from ..feed import ChangeEvent
from ..models.auth import ROLE_FINANCIAL_MANAGER
from ..services.change_feed import apply_change
from ..services.concurrency import commit_session
from ..validation import UpstreamUnavailable, ValidationError

feed_bp = Blueprint("feed", __name__, url_prefix="/api/feed")


@feed_bp.post("/events")
@require_auth
@require_role(ROLE_FINANCIAL_MANAGER)
def receive_events_route():
    """
    Apply one notification or a list of them, in order.

    Request body: {"kind": "insert"|"update"|"delete", "record": {...}} or a list.

    Events are applied and committed one by one; a malformed event stops the
    batch with 400 and reports how many were already applied.
    """
    payload = request.get_json(silent=True)
    items = payload if isinstance(payload, list) else [payload]

    results = []
    try:
        for item in items:
            event = ChangeEvent.from_payload(item)
            result = apply_change(event)
            commit_session()
            if result.applied:
                change_feed.publish(event)
            results.append(result.to_dict())
    except ValidationError as e:
        db.session.rollback()
        return jsonify({"error": str(e), "processed": len(results), "results": results}), 400
    except UpstreamUnavailable as e:
        return jsonify({"error": str(e), "processed": len(results), "results": results}), 503
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to apply change events")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"processed": len(results), "results": results}), 200


def _sse(event: ChangeEvent) -> str:
    return f"event: {event.kind}\ndata: {json.dumps(event.record, ensure_ascii=False)}\n\n"


@feed_bp.get("/stream")
@require_auth
@require_role(ROLE_FINANCIAL_MANAGER)
def stream_route():
    heartbeat = current_app.config.get("FEED_HEARTBEAT_SECONDS", 15)
    subscription = change_feed.subscribe(maxsize=1000)

    def generate():
        try:
            yield ": connected\n\n"
            while not subscription.cancelled:
                event = subscription.get(timeout=heartbeat)
                if event is None:
                    yield ": keep-alive\n\n"
                    continue
                yield _sse(event)
        finally:
            subscription.cancel()

    response = Response(stream_with_context(generate()), mimetype="text/event-stream")
    response.call_on_close(subscription.cancel)
    response.headers["Cache-Control"] = "no-cache"
    return response
