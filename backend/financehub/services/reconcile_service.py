# Overview: Derives representative balances from the voucher log.

"""
Balance reconciliation.

INVARIANTS:
- Only approved vouchers count.
- current_balance == total_receipts - total_payments, never clamped.
- Known representatives with no approved vouchers get zero totals.
- Vouchers naming a representative outside the known set count toward
  nothing; their ids are reported in unknown_representative_ids.
- reconcile() is pure: same log in, same result out. refresh_representatives()
  always recomputes from the full persisted log, so applying it after every
  mutation converges to a single recompute on the final log.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable

from ..extensions import db
from ..models import Representative, Voucher
from ..models.vouchers import STATUS_APPROVED, VOUCHER_TYPE_PAYMENT, VOUCHER_TYPE_RECEIPT
from ..time_utils import utcnow


_LOGGER = logging.getLogger(__name__)

ZERO = Decimal("0.00")


@dataclass(frozen=True)
class RepresentativeTotals:
    total_receipts: Decimal = ZERO
    total_payments: Decimal = ZERO

    @property
    def current_balance(self) -> Decimal:
        return self.total_receipts - self.total_payments

    def to_dict(self) -> dict:
        return {
            "total_receipts": str(self.total_receipts),
            "total_payments": str(self.total_payments),
            "current_balance": str(self.current_balance),
        }


@dataclass(frozen=True)
class ReconcileResult:
    totals: dict[str, RepresentativeTotals] = field(default_factory=dict)
    unknown_representative_ids: frozenset[str] = frozenset()

    def __getitem__(self, representative_id: str) -> RepresentativeTotals:
        return self.totals[representative_id]


def _as_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def reconcile(vouchers: Iterable, representative_ids: Iterable[str]) -> ReconcileResult:
    """
    Compute totals for every known representative from a voucher sequence.

    vouchers may be Voucher rows or any objects exposing representative_id,
    type, amount and status.
    """
    known = set(representative_ids)
    receipts = {rep_id: ZERO for rep_id in known}
    payments = {rep_id: ZERO for rep_id in known}
    unknown: set[str] = set()

    for voucher in vouchers:
        rep_id = voucher.representative_id
        if rep_id not in known:
            unknown.add(rep_id)
            continue
        if voucher.status != STATUS_APPROVED:
            continue
        amount = _as_decimal(voucher.amount)
        if voucher.type == VOUCHER_TYPE_RECEIPT:
            receipts[rep_id] += amount
        elif voucher.type == VOUCHER_TYPE_PAYMENT:
            payments[rep_id] += amount

    totals = {
        rep_id: RepresentativeTotals(total_receipts=receipts[rep_id], total_payments=payments[rep_id])
        for rep_id in known
    }
    return ReconcileResult(totals=totals, unknown_representative_ids=frozenset(unknown))


def refresh_representatives(representative_ids: Iterable[str] | None = None) -> ReconcileResult:
    """
    Recompute and store the cached totals on Representative rows.

    With representative_ids, only those representatives are recomputed (ids
    that are not known representatives are ignored). Does not commit.
    """
    query = db.session.query(Representative)
    if representative_ids is not None:
        scope = {rep_id for rep_id in representative_ids if rep_id is not None}
        if not scope:
            return ReconcileResult()
        query = query.filter(Representative.id.in_(scope))
    representatives = query.all()
    known_ids = [rep.id for rep in representatives]

    voucher_query = db.session.query(Voucher)
    if representative_ids is not None:
        voucher_query = voucher_query.filter(Voucher.representative_id.in_(known_ids))
    result = reconcile(voucher_query.all(), known_ids)

    now = utcnow()
    for rep in representatives:
        totals = result[rep.id]
        rep.total_receipts = totals.total_receipts
        rep.total_payments = totals.total_payments
        rep.current_balance = totals.current_balance
        rep.recomputed_at = now

    if result.unknown_representative_ids:
        _LOGGER.warning(
            "Vouchers reference unknown representatives: %s",
            ", ".join(sorted(result.unknown_representative_ids)),
        )

    db.session.flush()
    return result
