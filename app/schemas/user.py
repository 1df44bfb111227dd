"""
schemas/user.py
---------------
Pydantic models for console users, login and responses.

Security note:
  - hashed_password is NEVER included in any response schema.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from app.core.roles import HomeRoute, UserRole


class UserCreate(BaseModel):
    """
    Console user creation. Super admins must name the tenant for tenant
    roles; tenant admins always create users in their own tenant.
    """
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=72)
    role: UserRole = UserRole.user
    tenant_id: Optional[str] = None


class UserRead(BaseModel):
    id: str
    email: str
    role: str
    tenant_id: Optional[str]
    created_at: datetime

    model_config = {"from_attributes": True}


class MeResponse(UserRead):
    home_route: HomeRoute


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds
    home_route: HomeRoute
    user: UserRead
