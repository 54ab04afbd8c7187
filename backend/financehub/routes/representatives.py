# Overview: Flask API routes for representatives and their reconciled balances.

from flask import Blueprint, request, jsonify, g, current_app

from ..extensions import db
from ..decorators import require_auth, require_role
from ..models.auth import ROLE_FINANCIAL_MANAGER
from ..services import representative_service
from ..services.concurrency import commit_session
from ..validation import NotFoundError, UpstreamUnavailable, ValidationError

representatives_bp = Blueprint("representatives", __name__, url_prefix="/api/representatives")


@representatives_bp.get("")
@require_auth
@require_role(ROLE_FINANCIAL_MANAGER)
def list_representatives_route():
    reps = representative_service.list_representatives()
    return jsonify({"items": [rep.to_dict() for rep in reps]}), 200


@representatives_bp.post("")
@require_auth
@require_role(ROLE_FINANCIAL_MANAGER)
def create_representative_route():
    """
    Register a representative.

    Request body:
    {
        "id": str,
        "name": str
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        rep = representative_service.create_representative(data.get("id"), data.get("name"))
        commit_session()
        return jsonify({"representative": rep.to_dict()}), 201
    except ValidationError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 400
    except UpstreamUnavailable as e:
        return jsonify({"error": str(e)}), 503
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create representative")
        return jsonify({"error": "Internal server error"}), 500


@representatives_bp.get("/<representative_id>")
@require_auth
def get_representative_route(representative_id: str):
    context = g.session_context
    if not context.is_manager and context.representative_id != representative_id:
        return jsonify({"error": "Representative access denied"}), 403
    try:
        rep = representative_service.get_representative(representative_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"representative": rep.to_dict()}), 200
