from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from ..time_utils import to_utc_z


def _money(value) -> str:
    if value is None:
        value = Decimal("0")
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return str(value.quantize(Decimal("0.01")))


class Representative(db.Model):
    """
    Sales representative holding a cash float.

    The three money columns are a cached projection of the voucher log.
    Only reconcile_service.refresh_representatives writes them.
    """
    __tablename__ = "representatives"

    id = db.Column(db.String(64), primary_key=True)
    name = db.Column(db.String(120), nullable=False)

    total_receipts = db.Column(db.Numeric(16, 2, asdecimal=True), nullable=False, default=Decimal("0"))
    total_payments = db.Column(db.Numeric(16, 2, asdecimal=True), nullable=False, default=Decimal("0"))
    current_balance = db.Column(db.Numeric(16, 2, asdecimal=True), nullable=False, default=Decimal("0"))

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    recomputed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<Representative id={self.id} name={self.name!r} balance={self.current_balance}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "total_receipts": _money(self.total_receipts),
            "total_payments": _money(self.total_payments),
            "current_balance": _money(self.current_balance),
            "recomputed_at": to_utc_z(self.recomputed_at) if self.recomputed_at else None,
        }
