"""
models/review_request.py
------------------------
Outbound review-request email log.

A row is written before every request email is handed to the provider
(status pending) and then marked sent or failed. tracking_id is globally
unique and records which tenant issued it: a one-tap link is only honoured
on the slug of the tenant that sent it.
"""

from enum import Enum as PyEnum
from typing import Optional

from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base, TimestampMixin, generate_uuid


class ReviewRequestStatus(str, PyEnum):
    pending = "pending"
    sent = "sent"
    failed = "failed"


class ReviewRequest(Base, TimestampMixin):
    __tablename__ = "review_requests"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    tenant_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    tracking_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    recipient_email: Mapped[str] = mapped_column(String(320), nullable=False)
    customer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    sent_by_user_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    provider_message_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    def __repr__(self) -> str:
        return f"<ReviewRequest tracking_id={self.tracking_id} status={self.status}>"
