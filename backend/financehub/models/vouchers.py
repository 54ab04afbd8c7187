from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from ..time_utils import to_utc_z


VOUCHER_TYPE_RECEIPT = "RECEIPT"
VOUCHER_TYPE_PAYMENT = "PAYMENT"
VOUCHER_TYPES = (VOUCHER_TYPE_RECEIPT, VOUCHER_TYPE_PAYMENT)

STATUS_PENDING = "pending"
STATUS_APPROVED = "approved"
STATUS_REJECTED = "rejected"
VOUCHER_STATUSES = (STATUS_PENDING, STATUS_APPROVED, STATUS_REJECTED)
TERMINAL_STATUSES = (STATUS_APPROVED, STATUS_REJECTED)


class Voucher(db.Model):
    """
    Cash receipt or payment recorded by a sales representative.

    WHY: The voucher table is the transaction log and the only source of
    truth for representative balances. Representative totals are derived
    from it and never stored independently.

    LIFECYCLE:
    1. pending: created by the representative
    2. approved: manager accepted it, counts toward balances
    3. rejected: manager refused it, never counts

    INVARIANTS:
    - Every column except status (and its decision stamp) is fixed at creation
    - status leaves pending at most once
    - representative_id is a denormalized reference, not a foreign key; the
      log may name representatives the projection does not know
    """
    __tablename__ = "vouchers"
    __table_args__ = (
        db.CheckConstraint("amount > 0", name="ck_vouchers_amount_positive"),
        db.Index("ix_vouchers_rep_status", "representative_id", "status"),
        db.Index("ix_vouchers_date", "date"),
    )

    id = db.Column(db.String(64), primary_key=True)
    type = db.Column(db.String(16), nullable=False)  # RECEIPT, PAYMENT
    amount = db.Column(db.Numeric(14, 2, asdecimal=True), nullable=False)
    date = db.Column(db.DateTime(timezone=True), nullable=False)

    representative_id = db.Column(db.String(64), nullable=False, index=True)
    representative_name = db.Column(db.String(120), nullable=False)

    customer_name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=False, default="")

    status = db.Column(db.String(16), nullable=False, default=STATUS_PENDING, index=True)
    decided_at = db.Column(db.DateTime(timezone=True), nullable=True)
    decided_by = db.Column(db.String(64), nullable=True)

    @property
    def is_pending(self) -> bool:
        return self.status == STATUS_PENDING

    def __repr__(self) -> str:
        return f"<Voucher id={self.id} type={self.type} amount={self.amount} status={self.status}>"

    def to_dict(self) -> dict:
        amount = self.amount if isinstance(self.amount, Decimal) else Decimal(str(self.amount))
        return {
            "id": self.id,
            "type": self.type,
            "amount": str(amount.quantize(Decimal("0.01"))),
            "date": to_utc_z(self.date),
            "representative_id": self.representative_id,
            "representative_name": self.representative_name,
            "customer_name": self.customer_name,
            "description": self.description,
            "status": self.status,
            "decided_at": to_utc_z(self.decided_at) if self.decided_at else None,
            "decided_by": self.decided_by,
        }
