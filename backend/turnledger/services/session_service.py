# Overview: Service-layer operations for session; encapsulates business logic and database work.

"""
Session Token Management Service

WHY: API calls after PIN login must be attributable to one user, the way the
hosted backend scoped every query to the signed-in user.

SECURITY FEATURES:
- Cryptographically secure random tokens (32 bytes)
- Tokens hashed with SHA-256 before storage (fast, one-way)
- 24-hour absolute timeout (SESSION_ABSOLUTE_TIMEOUT)
- 30-minute idle timeout (SESSION_IDLE_TIMEOUT), same as the client session
- Revocable on logout
"""

import secrets
import hashlib
from dataclasses import dataclass
from datetime import timedelta
from ..extensions import db
from ..models import SessionToken, User
from turnledger.time_utils import utcnow


SESSION_ABSOLUTE_TIMEOUT = timedelta(hours=24)  # Maximum session length
SESSION_IDLE_TIMEOUT = timedelta(minutes=30)     # Activity timeout


@dataclass
class SessionContext:
    """Identity established by a valid bearer token."""
    user: User
    session: SessionToken


def generate_token() -> str:
    """64-character hex string (32 bytes of entropy), sent to the client only."""
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """
    Hash token for database storage using SHA-256.

    Tokens are already high-entropy, so a fast hash is sufficient.
    """
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def create_session(
    user_id: int,
    user_agent: str | None = None,
    ip_address: str | None = None
) -> tuple[SessionToken, str]:
    """
    Create new session token for user.

    Returns (session_record, plaintext_token).
    Client receives plaintext_token, database stores only the hash.

    Raises ValueError if the user does not exist.
    """
    user = db.session.get(User, user_id)
    if not user:
        raise ValueError("User not found")

    plaintext_token = generate_token()
    now = utcnow()

    session = SessionToken(
        user_id=user_id,
        token_hash=hash_token(plaintext_token),
        created_at=now,
        last_used_at=now,
        expires_at=now + SESSION_ABSOLUTE_TIMEOUT,
        user_agent=user_agent,
        ip_address=ip_address,
        is_revoked=False
    )

    db.session.add(session)
    db.session.commit()

    return session, plaintext_token


def _live_token(token: str) -> SessionToken | None:
    return (
        db.session.query(SessionToken)
        .filter(SessionToken.token_hash == hash_token(token), SessionToken.is_revoked.is_(False))
        .one_or_none()
    )


def _mark_revoked(record: SessionToken, reason: str, at) -> None:
    record.is_revoked = True
    record.revoked_at = at
    record.revoked_reason = reason


def validate_session(token: str) -> SessionContext | None:
    """
    Resolve a bearer token to its user.

    None for unknown, revoked or past-absolute-expiry tokens. A token idle for
    longer than SESSION_IDLE_TIMEOUT is revoked on the spot. A good token has
    its idle window slid forward.
    """
    record = _live_token(token)
    if record is None:
        return None

    now = utcnow()
    if now >= record.expires_at:
        return None

    if now - record.last_used_at > SESSION_IDLE_TIMEOUT:
        _mark_revoked(record, "Idle timeout", now)
        db.session.commit()
        return None

    if record.user is None:
        return None

    record.last_used_at = now
    db.session.commit()
    return SessionContext(user=record.user, session=record)


def revoke_session(token: str, reason: str = "User logout") -> bool:
    """Revoke a live token. False when there was nothing to revoke."""
    record = _live_token(token)
    if record is None:
        return False

    _mark_revoked(record, reason, utcnow())
    db.session.commit()
    return True


def cleanup_expired_sessions(retention_days: int = 30) -> int:
    """
    Delete expired and revoked sessions older than the retention window.

    Returns count of sessions deleted.
    """
    now = utcnow()
    cutoff = now - timedelta(days=retention_days)

    deleted = db.session.query(SessionToken).filter(
        db.or_(
            SessionToken.expires_at < now,
            SessionToken.is_revoked.is_(True)
        ),
        SessionToken.created_at < cutoff
    ).delete(synchronize_session=False)

    db.session.commit()
    return deleted
