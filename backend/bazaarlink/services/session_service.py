# Overview: Bearer session tokens for vendors and suppliers; issue, resolve and revoke.

"""
Session tokens

The client holds a random 64-hex-character token; the server keeps only its
SHA-256. A session is live while it is unrevoked, unexpired
(SESSION_TTL_HOURS after issue) and its account is still active.
"""

import hashlib
import secrets
from dataclasses import dataclass
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import SessionToken, User
from ..time_utils import utcnow


@dataclass
class SessionContext:
    """Authenticated identity handed to routes via flask.g."""
    user: User
    session: SessionToken

    @property
    def role(self) -> str:
        return self.user.role


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def _find_unrevoked(token: str) -> SessionToken | None:
    if not token:
        return None
    return db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()


def _revoke(session: SessionToken, reason: str) -> None:
    session.is_revoked = True
    session.revoked_at = utcnow()
    session.revoked_reason = reason
    db.session.commit()


def create_session(user_id: int) -> tuple[SessionToken, str]:
    """Returns (session_record, plaintext_token)."""
    if db.session.get(User, user_id) is None:
        raise ValueError("User not found")

    token = secrets.token_hex(32)
    issued_at = utcnow()
    session = SessionToken(
        user_id=user_id,
        token_hash=hash_token(token),
        created_at=issued_at,
        expires_at=issued_at + timedelta(hours=current_app.config.get("SESSION_TTL_HOURS", 24)),
        is_revoked=False,
    )
    db.session.add(session)
    db.session.commit()
    return session, token


def validate_session(token: str) -> SessionContext | None:
    """
    Resolve a token to its SessionContext, or None.

    A live token whose account has been deactivated is revoked on the spot.
    """
    session = _find_unrevoked(token)
    if session is None or session.expires_at < utcnow():
        return None

    if not session.user.is_active:
        _revoke(session, "User account deactivated")
        return None

    return SessionContext(user=session.user, session=session)


def revoke_session(token: str, reason: str = "User logout") -> bool:
    session = _find_unrevoked(token)
    if session is None:
        return False
    _revoke(session, reason)
    return True
