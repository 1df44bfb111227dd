"""
services/tenant_service.py
--------------------------
Tenant resolution for the public review form, plus the console operations
that create and configure tenants.

Service layer is responsible for:
  - Constructing queries
  - Enforcing business rules (slug uniqueness and immutability)
  - Returning domain objects (ORM models) to the route layer
  - Never returning HTTP responses (that's the route's job)
"""

import re
import unicodedata
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    ConflictError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from app.core.logging import get_logger
from app.models.tenant import Tenant
from app.schemas.tenant import SLUG_PATTERN, TenantCreate, TenantUpdate

logger = get_logger(__name__)

# Same message for unknown and non-active slugs: callers cannot tell a
# suspended business from one that never existed.
TENANT_NOT_FOUND = "Business not found or review form not available"

_SLUG_MAX_BASE = 90


def normalize_slug(raw: str) -> Optional[str]:
    """
    Canonical form of a slug taken from a URL path segment.

    Surrounding whitespace and trailing slashes are dropped and the value
    is lowercased, so "Acme-Cafe/" and "acme-cafe" resolve alike. Anything
    still outside the slug alphabet returns None.
    """
    slug = raw.strip().rstrip("/").lower()
    if not SLUG_PATTERN.match(slug):
        return None
    return slug


def slugify(name: str) -> str:
    ascii_name = unicodedata.normalize("NFKD", name).encode("ascii", "ignore").decode()
    slug = re.sub(r"[^a-z0-9]+", "-", ascii_name.lower()).strip("-")
    return slug[:_SLUG_MAX_BASE].strip("-") or "business"


class TenantService:

    @staticmethod
    async def resolve_by_slug(db: AsyncSession, raw_slug: str) -> Tenant:
        """
        Resolve a public slug to its tenant. Read-only.

        Raises:
            NotFoundError: unknown slug, malformed slug, or tenant not active.
        """
        slug = normalize_slug(raw_slug)
        if slug is None:
            raise NotFoundError(TENANT_NOT_FOUND)

        try:
            result = await db.execute(select(Tenant).where(Tenant.slug == slug))
        except SQLAlchemyError as exc:
            logger.error("Tenant lookup failed", slug=slug, operation="resolve_by_slug", error=str(exc))
            raise PersistenceError() from exc

        tenant = result.scalar_one_or_none()
        if tenant is None or not tenant.is_active:
            logger.info(
                "Slug did not resolve to an active tenant",
                slug=slug,
                known=tenant is not None,
            )
            raise NotFoundError(TENANT_NOT_FOUND)
        return tenant

    @staticmethod
    async def get_tenant_by_id(db: AsyncSession, tenant_id: str) -> Tenant | None:
        result = await db.execute(select(Tenant).where(Tenant.id == tenant_id))
        return result.scalar_one_or_none()

    @staticmethod
    async def _available_slug(db: AsyncSession, base: str) -> str:
        result = await db.execute(
            select(Tenant.slug).where(
                (Tenant.slug == base) | Tenant.slug.like(f"{base}-%")
            )
        )
        taken = set(result.scalars().all())
        if base not in taken:
            return base
        suffix = 2
        while f"{base}-{suffix}" in taken:
            suffix += 1
        return f"{base}-{suffix}"

    @staticmethod
    async def create_tenant(db: AsyncSession, data: TenantCreate) -> Tenant:
        """
        Create a tenant. An explicit slug must be free; a derived slug gets
        a numeric suffix until it is.

        Raises:
            ConflictError: the requested slug is already taken.
        """
        if data.slug is not None:
            slug = data.slug
        else:
            slug = await TenantService._available_slug(db, slugify(data.name))

        tenant = Tenant(
            name=data.name,
            slug=slug,
            status=data.status.value,
            branding=data.branding.model_dump(exclude_none=True),
            google_review_url=data.google_review_url,
        )
        db.add(tenant)
        try:
            await db.flush()  # Trigger DB constraints before commit
            await db.refresh(tenant)
        except IntegrityError:
            await db.rollback()
            raise ConflictError(f"Slug '{slug}' is already taken")

        logger.info("Tenant created", tenant_id=tenant.id, slug=tenant.slug)
        return tenant

    @staticmethod
    async def update_tenant(db: AsyncSession, tenant_id: str, data: TenantUpdate) -> Tenant:
        """
        Apply a partial update.

        Raises:
            NotFoundError: unknown tenant id.
            ValidationError: an attempt to change the published slug.
        """
        tenant = await TenantService.get_tenant_by_id(db, tenant_id)
        if tenant is None:
            raise NotFoundError("Tenant not found")

        changes = data.model_dump(exclude_unset=True)
        requested_slug = changes.pop("slug", None)
        if requested_slug is not None and requested_slug != tenant.slug:
            raise ValidationError("The review link slug cannot be changed once published")

        if "name" in changes and changes["name"] is not None:
            tenant.name = changes["name"].strip()
        if changes.get("status") is not None:
            tenant.status = data.status.value
        if "google_review_url" in changes:
            tenant.google_review_url = data.google_review_url
        if data.branding is not None:
            tenant.branding = data.branding.model_dump(exclude_none=True)

        await db.flush()
        await db.refresh(tenant)
        logger.info("Tenant updated", tenant_id=tenant.id, fields=sorted(changes))
        return tenant
