from __future__ import annotations

from ..extensions import db
from identity.time_utils import to_utc_z, utcnow


class ActivityLogEntry(db.Model):
    """
    Per-account audit trail of account-affecting actions.

    Bounded: activity_service keeps only the most recent entries per account.
    Never stores raw tokens or passwords.
    """
    __tablename__ = "account_activity"
    __table_args__ = (
        db.Index("ix_account_activity_account", "account_id", "id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    account_id = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=False)

    action = db.Column(db.String(64), nullable=False)
    description = db.Column(db.Text, nullable=True)
    ip_address = db.Column(db.String(45), nullable=True)
    user_agent = db.Column(db.String(512), nullable=True)
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "action": self.action,
            "description": self.description,
            "ip_address": self.ip_address,
            "user_agent": self.user_agent,
            "occurred_at": to_utc_z(self.occurred_at),
        }
