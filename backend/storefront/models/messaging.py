from __future__ import annotations

from ..extensions import db
from storefront.time_utils import to_utc_z


MESSAGE_CATEGORIES = ("Promotion", "Update", "Welcome", "Notification", "Feedback")

TARGET_ALL = "All"
TARGET_USERS_ONLY = "UsersOnly"


class AppMessage(db.Model):
    """Owner broadcast. Recipients are fixed at send time via AppMessageRead rows."""
    __tablename__ = "app_messages"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    html_body = db.Column(db.Text, nullable=False)
    category = db.Column(db.String(32), nullable=False, default="Notification")
    target_tier = db.Column(db.String(16), nullable=False, default=TARGET_ALL)

    sender_user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False)

    sender = db.relationship("User", foreign_keys=[sender_user_id])
    receipts = db.relationship(
        "AppMessageRead",
        back_populates="message",
        lazy=True,
        cascade="all, delete-orphan",
    )

    def to_dict(self, include_body: bool = True) -> dict:
        data = {
            "id": self.id,
            "title": self.title,
            "category": self.category,
            "target_tier": self.target_tier,
            "sender_user_id": self.sender_user_id,
            "created_at": to_utc_z(self.created_at),
            "recipient_count": len(self.receipts),
        }
        if include_body:
            data["html_body"] = self.html_body
        return data


class AppMessageRead(db.Model):
    """Per-recipient delivery receipt and read state."""
    __tablename__ = "app_message_reads"
    __table_args__ = (
        db.UniqueConstraint("message_id", "user_id", name="uq_app_message_reads_message_user"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    message_id = db.Column(
        db.Integer, db.ForeignKey("app_messages.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    is_read = db.Column(db.Boolean, nullable=False, default=False)
    read_at = db.Column(db.DateTime(timezone=True), nullable=True)

    message = db.relationship("AppMessage", back_populates="receipts")
    user = db.relationship(
        "User",
        backref=db.backref("message_receipts", lazy=True, cascade="all, delete-orphan"),
    )

    def to_dict(self) -> dict:
        msg = self.message
        return {
            "id": self.id,
            "message_id": self.message_id,
            "user_id": self.user_id,
            "title": msg.title,
            "html_body": msg.html_body,
            "category": msg.category,
            "sent_at": to_utc_z(msg.created_at),
            "is_read": self.is_read,
            "read_at": to_utc_z(self.read_at) if self.read_at else None,
        }
