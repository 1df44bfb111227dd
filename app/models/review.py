"""
models/review.py
----------------
Customer review record.

Lifecycle:
  1. Created when the customer submits a rating (public form or one-tap
     email link), before any free-text feedback exists.
  2. Updated once more when a low-rating customer adds feedback.

tracking_id links a row to the review-request email it came from. The
(tenant_id, tracking_id) unique constraint collapses repeated opens of the
same one-tap link into a single row; NULL tracking ids never collide.

The JSON column is called "metadata" in the database; the attribute is
`meta` because Declarative reserves `metadata`.
"""

from enum import Enum as PyEnum
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base, JSONDict, TimestampMixin, generate_uuid


class ReviewSource(str, PyEnum):
    public_form = "public_form"
    email_one_tap = "email_one_tap"


class Review(Base, TimestampMixin):
    __tablename__ = "reviews"
    __table_args__ = (
        CheckConstraint("rating >= 1 AND rating <= 5", name="ck_reviews_rating_range"),
        UniqueConstraint("tenant_id", "tracking_id", name="uq_reviews_tenant_tracking"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    tenant_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("tenants.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    reviewer_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    reviewer_email: Mapped[Optional[str]] = mapped_column(String(320), nullable=True)
    reviewer_phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    country_code: Mapped[Optional[str]] = mapped_column(String(8), nullable=True)

    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    feedback_text: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    redirected_externally: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )

    tracking_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    source: Mapped[str] = mapped_column(
        String(32), nullable=False, default=ReviewSource.public_form.value
    )
    meta: Mapped[dict] = mapped_column("metadata", JSONDict, nullable=False, default=dict)

    tenant: Mapped["Tenant"] = relationship("Tenant", back_populates="reviews")  # noqa: F821

    def __repr__(self) -> str:
        return f"<Review id={self.id} tenant_id={self.tenant_id} rating={self.rating}>"
