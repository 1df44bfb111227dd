"""
models/tenant.py
----------------
Tenant (business) ORM model.

Each tenant publishes one public review form addressed by its slug. All
data belonging to a tenant is scoped by tenant_id at the query level:
always include tenant_id in WHERE clauses.

The slug is printed in emails, QR codes and signed links, so it is set
once at creation and never changed. Tenants are suspended, not deleted,
while reviews reference them.
"""

from enum import Enum as PyEnum
from typing import Optional

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base, JSONDict, TimestampMixin, generate_uuid


class TenantStatus(str, PyEnum):
    active = "active"
    suspended = "suspended"
    pending = "pending"


class Tenant(Base, TimestampMixin):
    __tablename__ = "tenants"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=TenantStatus.active.value
    )
    # primary_color / secondary_color / logo_url
    branding: Mapped[dict] = mapped_column(JSONDict, nullable=False, default=dict)
    google_review_url: Mapped[Optional[str]] = mapped_column(String(2048), nullable=True)

    # Relationships
    users: Mapped[list["User"]] = relationship(  # noqa: F821
        "User", back_populates="tenant"
    )
    reviews: Mapped[list["Review"]] = relationship(  # noqa: F821
        "Review", back_populates="tenant"
    )

    @property
    def is_active(self) -> bool:
        return self.status == TenantStatus.active.value

    def __repr__(self) -> str:
        return f"<Tenant id={self.id} slug={self.slug} status={self.status}>"
