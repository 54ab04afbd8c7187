# Overview: Service-layer operations for role-selection sessions.

"""
Session management.

Login is a role selection: the financial manager, or one existing sales
representative. There are no passwords; the token only records which view
the caller picked.

- Cryptographically secure random tokens (32 bytes)
- Tokens hashed with SHA-256 before storage
- Absolute timeout from SESSION_TTL_HOURS
- Revocable on logout
"""

import hashlib
import secrets
from dataclasses import dataclass
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import Representative, SessionToken
from ..models.auth import ROLE_FINANCIAL_MANAGER, ROLE_SALES_REP, ROLES
from ..time_utils import utcnow
from ..validation import NotFoundError, ValidationError


MANAGER_SUBJECT_ID = "admin"


@dataclass
class SessionContext:
    """Identity of the caller for the current request."""
    session: SessionToken
    role: str
    subject_id: str
    name: str
    representative_id: str | None

    @property
    def is_manager(self) -> bool:
        return self.role == ROLE_FINANCIAL_MANAGER

    def to_dict(self) -> dict:
        return {
            "id": self.subject_id,
            "name": self.name,
            "role": self.role,
            "representative_id": self.representative_id,
        }


def generate_token() -> str:
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def create_session(role: str, representative_id: str | None = None) -> tuple[SessionToken, str]:
    """
    Start a session for the chosen role.

    Returns (session_record, plaintext_token).

    Raises:
        ValidationError: unknown role, or SALES_REP without representative_id
        NotFoundError: representative_id does not exist
    """
    if role not in ROLES:
        raise ValidationError(f"role must be one of {', '.join(ROLES)}")

    if role == ROLE_SALES_REP:
        if not representative_id:
            raise ValidationError("representative_id is required for SALES_REP")
        rep = db.session.query(Representative).filter_by(id=representative_id).first()
        if not rep:
            raise NotFoundError(f"Representative {representative_id} not found")
        subject_id, name, rep_id = rep.id, rep.name, rep.id
    else:
        subject_id = MANAGER_SUBJECT_ID
        name = current_app.config.get("MANAGER_NAME", "Financial Manager")
        rep_id = None

    plaintext_token = generate_token()
    now = utcnow()
    ttl = timedelta(hours=current_app.config.get("SESSION_TTL_HOURS", 12))

    session = SessionToken(
        token_hash=hash_token(plaintext_token),
        role=role,
        subject_id=subject_id,
        display_name=name,
        representative_id=rep_id,
        created_at=now,
        expires_at=now + ttl,
    )
    db.session.add(session)
    db.session.flush()
    return session, plaintext_token


def validate_session(token: str) -> SessionContext | None:
    """Resolve a plaintext token; None when unknown, revoked or expired."""
    if not token:
        return None
    session = db.session.query(SessionToken).filter_by(token_hash=hash_token(token)).first()
    if not session or session.is_revoked:
        return None
    if session.expires_at < utcnow():
        return None
    return SessionContext(
        session=session,
        role=session.role,
        subject_id=session.subject_id,
        name=session.display_name,
        representative_id=session.representative_id,
    )


def revoke_session(token: str) -> bool:
    session = db.session.query(SessionToken).filter_by(token_hash=hash_token(token)).first()
    if not session or session.is_revoked:
        return False
    session.is_revoked = True
    session.revoked_at = utcnow()
    db.session.flush()
    return True
