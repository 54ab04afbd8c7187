from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


ROLE_FINANCIAL_MANAGER = "FINANCIAL_MANAGER"
ROLE_SALES_REP = "SALES_REP"
ROLES = (ROLE_FINANCIAL_MANAGER, ROLE_SALES_REP)


class SessionToken(db.Model):
    """
    Role-selection session.

    WHY: Login is a choice between the manager view and one representative's
    view. The token carries that choice so each request knows its role
    without a user table.

    NOTES:
    - Tokens stored hashed (SHA-256), plaintext only ever sent to the client
    - Absolute expiry, revocable on logout
    - SALES_REP sessions are bound to exactly one representative
    """
    __tablename__ = "session_tokens"
    __table_args__ = (
        db.Index("ix_session_tokens_role_active", "role", "is_revoked"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    token_hash = db.Column(db.String(255), nullable=False, unique=True, index=True)

    role = db.Column(db.String(32), nullable=False)
    subject_id = db.Column(db.String(64), nullable=False)  # "admin" or representative id
    display_name = db.Column(db.String(120), nullable=False)
    representative_id = db.Column(db.String(64), db.ForeignKey("representatives.id"), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    is_revoked = db.Column(db.Boolean, nullable=False, default=False, index=True)
    revoked_at = db.Column(db.DateTime(timezone=True), nullable=True)

    representative = db.relationship("Representative")

    def to_dict(self) -> dict:
        return {
            "role": self.role,
            "id": self.subject_id,
            "name": self.display_name,
            "representative_id": self.representative_id,
            "created_at": to_utc_z(self.created_at),
            "expires_at": to_utc_z(self.expires_at),
        }
