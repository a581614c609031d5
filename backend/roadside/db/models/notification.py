"""
Outbound notification database model (read by the notification dispatcher)
"""
import uuid
from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import Column, String, Text, DateTime, Enum, ForeignKey

from roadside.db.base import Base


class NotificationType(str, PyEnum):
    SMS = "sms"
    EMAIL = "email"


class NotificationStatus(str, PyEnum):
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class Notification(Base):
    """SMS or email queued to tell the driver about arranged services."""

    __tablename__ = "notifications"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    claim_id = Column(String(36), ForeignKey("claims.id"), nullable=True, index=True)
    type = Column(
        Enum(NotificationType, values_callable=lambda obj: [e.value for e in obj], native_enum=False, length=16),
        nullable=False,
    )
    recipient = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    status = Column(
        Enum(NotificationStatus, values_callable=lambda obj: [e.value for e in obj], native_enum=False, length=16),
        default=NotificationStatus.PENDING,
        nullable=False,
    )
    error_message = Column(Text, nullable=True)
    sent_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<Notification {self.type.value} ({self.status.value})>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "claim_id": self.claim_id,
            "type": self.type.value,
            "recipient": self.recipient,
            "message": self.message,
            "status": self.status.value,
            "error_message": self.error_message,
            "sent_at": self.sent_at.isoformat() if self.sent_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
