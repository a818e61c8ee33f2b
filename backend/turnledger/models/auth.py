from __future__ import annotations

from ..extensions import db
from turnledger.time_utils import to_utc_z

USER_ROLES = ("admin", "manager", "technician")


class User(db.Model):
    """
    Staff member who signs in with a numeric PIN.

    The PIN is kept as a keyed digest (see auth_service.hash_pin) so the
    login lookup stays a plain equality query. Snapshots handed to clients
    never include it.
    """
    __tablename__ = "users"
    __table_args__ = (
        db.Index("ix_users_pin_digest", "pin_digest"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)

    # HMAC-SHA256 of the PIN; uniqueness is checked by the admin CLI, not here
    pin_digest = db.Column(db.String(64), nullable=False)

    # admin | manager | technician
    role = db.Column(db.String(32), nullable=False, default="technician")

    timezone = db.Column(db.String(64), nullable=False, default="America/Los_Angeles")

    # Scheduled shift window, "HH:MM" local to the user's timezone
    session_start_time = db.Column(db.String(5), nullable=False, default="09:00")
    session_end_time = db.Column(db.String(5), nullable=False, default="21:00")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now()
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "role": self.role,
            "timezone": self.timezone,
            "session_start_time": self.session_start_time,
            "session_end_time": self.session_end_time,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class SessionToken(db.Model):
    """
    Bearer token issued by PIN login.

    SECURITY NOTES:
    - Tokens stored hashed in database (SHA-256)
    - 24-hour absolute timeout
    - 30-minute idle timeout, matching the client-side session
    - Revocable on logout
    """
    __tablename__ = "session_tokens"
    __table_args__ = (
        db.Index("ix_session_tokens_user_active", "user_id", "is_revoked"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    # Token hash (never store plaintext tokens!)
    token_hash = db.Column(db.String(255), nullable=False, unique=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_used_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    is_revoked = db.Column(db.Boolean, nullable=False, default=False, index=True)
    revoked_at = db.Column(db.DateTime(timezone=True), nullable=True)
    revoked_reason = db.Column(db.String(255), nullable=True)

    user_agent = db.Column(db.String(512), nullable=True)
    ip_address = db.Column(db.String(45), nullable=True)  # IPv6 max length

    user = db.relationship("User", backref=db.backref("sessions", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "created_at": to_utc_z(self.created_at),
            "last_used_at": to_utc_z(self.last_used_at),
            "expires_at": to_utc_z(self.expires_at),
            "is_revoked": self.is_revoked,
        }
