# Overview: Service-layer operations for vouchers; creation and the approval workflow.

"""
Voucher service.

LIFECYCLE:
1. pending: create_voucher (representative action)
2. approved / rejected: decide_voucher (manager action), exactly once

DECISION POLICY:
- Deciding a voucher that already left pending raises InvalidStateTransition,
  including a repeat of the same outcome. Nothing is written.
- Approval is the only transition that moves balances. The affected
  representative is recomputed after every decision.

Services flush; routes commit (see concurrency.commit_session).
"""

from __future__ import annotations

import uuid

from ..extensions import db
from ..models import Representative, Voucher
from ..models.vouchers import (
    STATUS_APPROVED,
    STATUS_PENDING,
    STATUS_REJECTED,
    TERMINAL_STATUSES,
    VOUCHER_STATUSES,
    VOUCHER_TYPES,
)
from ..time_utils import utcnow
from ..validation import (
    InvalidStateTransition,
    NotFoundError,
    ValidationError,
    optional_text,
    parse_amount,
    require_text,
)
from .reconcile_service import refresh_representatives


def new_voucher_id() -> str:
    return uuid.uuid4().hex


def create_voucher(
    voucher_type: str,
    amount,
    customer_name: str,
    description: str | None,
    representative_id: str,
) -> Voucher:
    """
    Record a new pending voucher for the acting representative.

    Args:
        voucher_type: RECEIPT or PAYMENT
        amount: positive number (two decimal places max)
        customer_name: counterparty, required
        description: free text, optional
        representative_id: the acting representative from the session

    Returns:
        Voucher: the pending voucher (flushed, not committed)

    Raises:
        ValidationError: bad input; nothing is added
        NotFoundError: the acting representative does not exist
    """
    if voucher_type not in VOUCHER_TYPES:
        raise ValidationError(f"type must be one of {', '.join(VOUCHER_TYPES)}")
    parsed_amount = parse_amount(amount)
    customer = require_text(customer_name, "customer_name", max_length=200)
    notes = optional_text(description, "description")

    rep = db.session.query(Representative).filter_by(id=representative_id).first()
    if not rep:
        raise NotFoundError(f"Representative {representative_id} not found")

    voucher = Voucher(
        id=new_voucher_id(),
        type=voucher_type,
        amount=parsed_amount,
        date=utcnow(),
        representative_id=rep.id,
        representative_name=rep.name,
        customer_name=customer,
        description=notes,
        status=STATUS_PENDING,
    )
    db.session.add(voucher)
    db.session.flush()
    return voucher


def get_voucher(voucher_id: str) -> Voucher:
    voucher = db.session.query(Voucher).filter_by(id=voucher_id).first()
    if not voucher:
        raise NotFoundError(f"Voucher {voucher_id} not found")
    return voucher


def list_vouchers(
    *,
    representative_id: str | None = None,
    status: str | None = None,
    limit: int | None = None,
) -> list[Voucher]:
    """Vouchers newest first, optionally filtered by owner and status."""
    if status is not None and status not in VOUCHER_STATUSES:
        raise ValidationError(f"status must be one of {', '.join(VOUCHER_STATUSES)}")

    query = db.session.query(Voucher)
    if representative_id is not None:
        query = query.filter(Voucher.representative_id == representative_id)
    if status is not None:
        query = query.filter(Voucher.status == status)
    query = query.order_by(Voucher.date.desc(), Voucher.id.desc())
    if limit is not None:
        query = query.limit(limit)
    return query.all()


def decide_voucher(voucher_id: str, outcome: str, decided_by: str | None = None) -> Voucher:
    """
    Move a pending voucher to approved or rejected.

    Raises:
        ValidationError: outcome is not approved/rejected
        NotFoundError: no voucher with this id; the log is unchanged
        InvalidStateTransition: the voucher was already decided
    """
    if outcome not in TERMINAL_STATUSES:
        raise ValidationError(f"outcome must be one of {', '.join(TERMINAL_STATUSES)}")

    voucher = get_voucher(voucher_id)
    if voucher.status != STATUS_PENDING:
        raise InvalidStateTransition(
            f"Voucher {voucher_id} is already {voucher.status}; only pending vouchers can be decided"
        )

    voucher.status = outcome
    voucher.decided_at = utcnow()
    voucher.decided_by = decided_by
    db.session.flush()

    refresh_representatives([voucher.representative_id])
    return voucher


def approve_voucher(voucher_id: str, decided_by: str | None = None) -> Voucher:
    return decide_voucher(voucher_id, STATUS_APPROVED, decided_by)


def reject_voucher(voucher_id: str, decided_by: str | None = None) -> Voucher:
    return decide_voucher(voucher_id, STATUS_REJECTED, decided_by)
