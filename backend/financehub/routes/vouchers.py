# backend/financehub/routes/vouchers.py
"""
Voucher API routes.

- Representatives create vouchers against their own float.
- The financial manager approves or rejects pending vouchers.
- Listing is role-scoped: representatives only ever see their own vouchers.
"""
from flask import Blueprint, request, jsonify, g, current_app

from ..extensions import db
from ..decorators import require_auth, require_role
from ..feed import KIND_INSERT, KIND_UPDATE
from ..models import Representative
from ..models.auth import ROLE_FINANCIAL_MANAGER, ROLE_SALES_REP
from ..models.vouchers import STATUS_APPROVED, STATUS_REJECTED
from ..services import voucher_service
from ..services.change_feed import publish_voucher
from ..services.concurrency import commit_session
from ..validation import InvalidStateTransition, NotFoundError, UpstreamUnavailable, ValidationError


vouchers_bp = Blueprint("vouchers", __name__, url_prefix="/api/vouchers")


@vouchers_bp.get("")
@require_auth
def list_vouchers_route():
    """
    List vouchers newest first.

    Query params: status, representative_id (manager only), limit (1-500)
    """
    context = g.session_context
    representative_id = request.args.get("representative_id")
    if not context.is_manager:
        if representative_id is not None and representative_id != context.representative_id:
            return jsonify({"error": "Representative access denied"}), 403
        representative_id = context.representative_id

    limit = request.args.get("limit", type=int)
    if limit is not None:
        limit = max(1, min(limit, 500))

    try:
        vouchers = voucher_service.list_vouchers(
            representative_id=representative_id,
            status=request.args.get("status"),
            limit=limit,
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    return jsonify({"items": [v.to_dict() for v in vouchers], "count": len(vouchers)}), 200


@vouchers_bp.post("")
@require_auth
@require_role(ROLE_SALES_REP)
def create_voucher_route():
    """
    Create a pending voucher for the logged-in representative.

    Request body:
    {
        "type": "RECEIPT" | "PAYMENT",
        "amount": number,
        "customer_name": str,
        "description": str (optional)
    }

    Returns:
        201: Voucher created (status: pending)
        400: Invalid input
        403: Not a representative session
        503: Store unavailable
    """
    data = request.get_json(silent=True) or {}

    try:
        voucher = voucher_service.create_voucher(
            voucher_type=data.get("type"),
            amount=data.get("amount"),
            customer_name=data.get("customer_name"),
            description=data.get("description"),
            representative_id=g.session_context.representative_id,
        )
        commit_session()
        publish_voucher(KIND_INSERT, voucher)
        return jsonify({"voucher": voucher.to_dict()}), 201

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
        current_app.logger.exception("Failed to create voucher")
        return jsonify({"error": "Internal server error"}), 500


@vouchers_bp.get("/<voucher_id>")
@require_auth
def get_voucher_route(voucher_id: str):
    try:
        voucher = voucher_service.get_voucher(voucher_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404

    context = g.session_context
    if not context.is_manager and voucher.representative_id != context.representative_id:
        return jsonify({"error": "Representative access denied"}), 403

    return jsonify({"voucher": voucher.to_dict()}), 200


def _decide(voucher_id: str, outcome: str):
    try:
        voucher = voucher_service.decide_voucher(
            voucher_id=voucher_id,
            outcome=outcome,
            decided_by=g.session_context.subject_id,
        )
        commit_session()
        publish_voucher(KIND_UPDATE, voucher)

        rep = db.session.get(Representative, voucher.representative_id)
        return jsonify({
            "voucher": voucher.to_dict(),
            "representative": rep.to_dict() if rep else None,
        }), 200

    except ValidationError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 404
    except InvalidStateTransition as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 409
    except UpstreamUnavailable as e:
        return jsonify({"error": str(e)}), 503
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to %s voucher", outcome)
        return jsonify({"error": "Internal server error"}), 500


@vouchers_bp.post("/<voucher_id>/approve")
@require_auth
@require_role(ROLE_FINANCIAL_MANAGER)
def approve_voucher_route(voucher_id: str):
    """
    Approve a pending voucher (manager action).

    Returns:
        200: Voucher approved, representative totals recomputed
        404: Voucher not found
        409: Voucher already decided
    """
    return _decide(voucher_id, STATUS_APPROVED)


@vouchers_bp.post("/<voucher_id>/reject")
@require_auth
@require_role(ROLE_FINANCIAL_MANAGER)
def reject_voucher_route(voucher_id: str):
    """
    Reject a pending voucher (manager action). Balances are unaffected.

    Returns:
        200: Voucher rejected
        404: Voucher not found
        409: Voucher already decided
    """
    return _decide(voucher_id, STATUS_REJECTED)
