# Overview: Flask API routes for role-selection login and logout.

from flask import Blueprint, request, jsonify, g, current_app

from ..extensions import db
from ..decorators import require_auth, bearer_token
from ..models.auth import ROLE_FINANCIAL_MANAGER, ROLE_SALES_REP
from ..services import session_service, representative_service
from ..services.concurrency import commit_session
from ..validation import NotFoundError, UpstreamUnavailable, ValidationError

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.get("/options")
def login_options():
    """Choices for the login screen: the manager and every representative."""
    reps = representative_service.list_representatives()
    return jsonify({
        "options": [
            {"role": ROLE_FINANCIAL_MANAGER, "id": session_service.MANAGER_SUBJECT_ID,
             "name": current_app.config.get("MANAGER_NAME")},
        ] + [
            {"role": ROLE_SALES_REP, "id": rep.id, "name": rep.name, "representative_id": rep.id}
            for rep in reps
        ]
    }), 200


@auth_bp.post("/login")
def login():
    """
    Select a role.

    Request body:
    {
        "role": "FINANCIAL_MANAGER" | "SALES_REP",
        "representative_id": str (SALES_REP only)
    }

    Returns:
        200: {"token": str, "user": {...}}
        400: Invalid role or missing representative
        404: Unknown representative
    """
    data = request.get_json(silent=True) or {}
    try:
        session, token = session_service.create_session(
            role=data.get("role"),
            representative_id=data.get("representative_id"),
        )
        commit_session()
        return jsonify({"token": token, "user": session.to_dict()}), 200
    except ValidationError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 404
    except UpstreamUnavailable as e:
        return jsonify({"error": str(e)}), 503
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to login")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
@require_auth
def logout():
    try:
        session_service.revoke_session(bearer_token())
        commit_session()
        return jsonify({"message": "Logged out"}), 200
    except UpstreamUnavailable as e:
        return jsonify({"error": str(e)}), 503
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to logout")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.get("/me")
@require_auth
def me():
    return jsonify({"user": g.session_context.to_dict()}), 200
