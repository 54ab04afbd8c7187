# Overview: Service-layer operations for representatives; the projection side of the voucher log.

from __future__ import annotations

from ..extensions import db
from ..models import Representative
from ..validation import NotFoundError, ValidationError, require_text
from .reconcile_service import refresh_representatives


def list_representatives() -> list[Representative]:
    return db.session.query(Representative).order_by(Representative.id.asc()).all()


def get_representative(representative_id: str) -> Representative:
    rep = db.session.query(Representative).filter_by(id=representative_id).first()
    if not rep:
        raise NotFoundError(f"Representative {representative_id} not found")
    return rep


def create_representative(representative_id, name) -> Representative:
    """
    Register a representative.

    Vouchers already in the log under this id (e.g. delivered by the change
    feed before the representative was known) are picked up immediately.
    """
    rep_id = require_text(representative_id, "id", max_length=64)
    rep_name = require_text(name, "name", max_length=120)

    if db.session.query(Representative).filter_by(id=rep_id).first():
        raise ValidationError(f"Representative {rep_id} already exists")

    rep = Representative(id=rep_id, name=rep_name)
    db.session.add(rep)
    db.session.flush()

    refresh_representatives([rep_id])
    return rep
