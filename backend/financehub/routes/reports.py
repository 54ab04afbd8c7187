# Overview: Flask API routes for the manager dashboard, the AI summary and the representative view.

from flask import Blueprint, jsonify, g, current_app

from ..decorators import require_auth, require_role
from ..models.auth import ROLE_FINANCIAL_MANAGER, ROLE_SALES_REP
from ..services import reporting_service, representative_service, summary_service, voucher_service
from ..validation import NotFoundError

reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/dashboard")
@require_auth
@require_role(ROLE_FINANCIAL_MANAGER)
def dashboard_route():
    try:
        return jsonify(reporting_service.dashboard()), 200
    except Exception:
        current_app.logger.exception("Failed to build dashboard")
        return jsonify({"error": "Internal server error"}), 500


@reports_bp.post("/summary")
@require_auth
@require_role(ROLE_FINANCIAL_MANAGER)
def summary_route():
    """
    AI narrative of cash health.

    Always 200: failures come back as status "key_not_found" or
    "unavailable" with a message for the advisory panel.
    """
    vouchers = [v.to_dict() for v in voucher_service.list_vouchers()]
    reps = [rep.to_dict() for rep in representative_service.list_representatives()]
    client = summary_service.SummaryClient.from_config(current_app.config)
    result = summary_service.generate_summary(
        vouchers,
        reps,
        client,
        language=current_app.config.get("SUMMARY_LANGUAGE", "Arabic"),
    )
    return jsonify(result.to_dict()), 200


@reports_bp.get("/me")
@require_auth
@require_role(ROLE_SALES_REP)
def my_overview_route():
    try:
        return jsonify(reporting_service.representative_overview(g.session_context.representative_id)), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
