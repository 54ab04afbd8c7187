# Overview: Read-only aggregates for the manager dashboard and the representative view.

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import func

from ..extensions import db
from ..models import Representative, Voucher
from ..models.vouchers import STATUS_APPROVED, STATUS_PENDING, VOUCHER_TYPE_PAYMENT, VOUCHER_TYPE_RECEIPT
from .representative_service import get_representative
from .voucher_service import list_vouchers


RECENT_VOUCHER_LIMIT = 10


def _money(value) -> str:
    if value is None:
        value = Decimal("0")
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return str(value.quantize(Decimal("0.01")))


def _approved_total(voucher_type: str):
    return (
        db.session.query(func.coalesce(func.sum(Voucher.amount), 0))
        .filter(Voucher.status == STATUS_APPROVED, Voucher.type == voucher_type)
        .scalar()
    )


def dashboard() -> dict:
    """
    Manager overview.

    Totals are computed straight from the voucher log (all representatives,
    known or not); per-representative figures come from the reconciled
    projection.
    """
    total_receipts = Decimal(str(_approved_total(VOUCHER_TYPE_RECEIPT)))
    total_payments = Decimal(str(_approved_total(VOUCHER_TYPE_PAYMENT)))
    pending = list_vouchers(status=STATUS_PENDING)
    representatives = db.session.query(Representative).order_by(Representative.id.asc()).all()

    return {
        "total_receipts": _money(total_receipts),
        "total_payments": _money(total_payments),
        "cash_on_hand": _money(total_receipts - total_payments),
        "pending_count": len(pending),
        "representatives": [
            {
                "id": rep.id,
                "name": rep.name,
                "current_balance": _money(rep.current_balance),
                "is_negative": Decimal(str(rep.current_balance or 0)) < 0,
            }
            for rep in representatives
        ],
        "pending": [v.to_dict() for v in pending],
        "recent": [v.to_dict() for v in list_vouchers(limit=RECENT_VOUCHER_LIMIT)],
    }


def representative_overview(representative_id: str) -> dict:
    """Balance card and voucher history for one representative."""
    rep = get_representative(representative_id)
    vouchers = list_vouchers(representative_id=rep.id)
    return {
        "representative": rep.to_dict(),
        "pending_count": sum(1 for v in vouchers if v.status == STATUS_PENDING),
        "vouchers": [v.to_dict() for v in vouchers],
    }
