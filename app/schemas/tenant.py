"""
schemas/tenant.py
-----------------
Pydantic request/response models for Tenant.

Naming convention:
  TenantCreate      → inbound request body (platform console)
  TenantUpdate      → partial update body (platform console)
  TenantRead        → console response body
  TenantPublicView  → what an unauthenticated visitor of /r/{slug} sees
"""

import re
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from app.models.tenant import TenantStatus

SLUG_PATTERN = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
_HEX_COLOR = re.compile(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")


def _check_review_url(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    v = v.strip()
    if not v:
        return None
    if not v.startswith("https://"):
        raise ValueError("google_review_url must be an https:// URL")
    return v


class TenantBranding(BaseModel):
    primary_color: Optional[str] = Field(default=None, examples=["#2563eb"])
    secondary_color: Optional[str] = Field(default=None, examples=["#1e293b"])
    logo_url: Optional[str] = Field(default=None, max_length=2048)

    @field_validator("primary_color", "secondary_color")
    @classmethod
    def check_color(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not _HEX_COLOR.match(v):
            raise ValueError("colors must be hex values such as #2563eb")
        return v


class TenantCreate(BaseModel):
    name: str = Field(
        ...,
        min_length=2,
        max_length=255,
        examples=["Acme Cafe"],
        description="Business display name",
    )
    slug: Optional[str] = Field(
        default=None,
        min_length=2,
        max_length=100,
        examples=["acme-cafe"],
        description="Public URL slug; derived from the name when omitted",
    )
    google_review_url: Optional[str] = Field(default=None, max_length=2048)
    branding: TenantBranding = Field(default_factory=TenantBranding)
    status: TenantStatus = TenantStatus.active

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        return v.strip()

    @field_validator("slug")
    @classmethod
    def check_slug(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not SLUG_PATTERN.match(v):
            raise ValueError("slug may only contain lowercase letters, digits and single hyphens")
        return v

    @field_validator("google_review_url")
    @classmethod
    def check_review_url(cls, v: Optional[str]) -> Optional[str]:
        return _check_review_url(v)


class TenantUpdate(BaseModel):
    """Partial update. The slug is intentionally not updatable."""

    name: Optional[str] = Field(default=None, min_length=2, max_length=255)
    status: Optional[TenantStatus] = None
    google_review_url: Optional[str] = Field(default=None, max_length=2048)
    branding: Optional[TenantBranding] = None
    slug: Optional[str] = Field(
        default=None,
        description="Rejected if it differs from the current slug",
    )

    @field_validator("google_review_url")
    @classmethod
    def check_review_url(cls, v: Optional[str]) -> Optional[str]:
        return _check_review_url(v)


class TenantRead(BaseModel):
    id: str
    name: str
    slug: str
    status: str
    branding: TenantBranding
    google_review_url: Optional[str]
    created_at: datetime

    model_config = {"from_attributes": True}


class TenantPublicView(BaseModel):
    id: str
    name: str
    slug: str
    status: str
    branding: TenantBranding
    google_review_url: Optional[str]

    model_config = {"from_attributes": True}
