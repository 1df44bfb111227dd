"""
api/routes/admin.py
-------------------
Console endpoints.

POST  /admin/tenants                  — Super admin: onboard a business
PATCH /admin/tenants/{tenant_id}      — Super admin: status, branding, review URL
GET   /admin/tenants/{tenant_id}/users — Super admin or that tenant's admin
POST  /admin/users                    — Super admin or tenant admin: add a user
"""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.roles import UserRole
from app.db.session import get_db
from app.dependencies import get_current_super_admin, get_current_user_manager
from app.models.user import User
from app.schemas.tenant import TenantCreate, TenantRead, TenantUpdate
from app.schemas.user import UserCreate, UserRead
from app.services.tenant_service import TenantService
from app.services.user_service import UserService

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.post(
    "/tenants",
    response_model=TenantRead,
    status_code=status.HTTP_201_CREATED,
    summary="Onboard a new business",
)
async def create_tenant(
    body: TenantCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    admin: Annotated[User, Depends(get_current_super_admin)],
) -> TenantRead:
    tenant = await TenantService.create_tenant(db, body)
    return TenantRead.model_validate(tenant)


@router.patch(
    "/tenants/{tenant_id}",
    response_model=TenantRead,
    summary="Update a business (the slug is fixed)",
)
async def update_tenant(
    tenant_id: str,
    body: TenantUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    admin: Annotated[User, Depends(get_current_super_admin)],
) -> TenantRead:
    tenant = await TenantService.update_tenant(db, tenant_id, body)
    return TenantRead.model_validate(tenant)


@router.get(
    "/tenants/{tenant_id}/users",
    response_model=list[UserRead],
    summary="List all users in a tenant",
)
async def list_tenant_users(
    tenant_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    admin: Annotated[User, Depends(get_current_user_manager)],
) -> list[UserRead]:
    """Tenant admins can only list their own tenant."""
    if admin.role != UserRole.super_admin.value and admin.tenant_id != tenant_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only view users within your own tenant",
        )
    users = await UserService.list_users_in_tenant(db, tenant_id)
    return [UserRead.model_validate(u) for u in users]


@router.post(
    "/users",
    response_model=UserRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create a console user",
)
async def admin_create_user(
    body: UserCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    admin: Annotated[User, Depends(get_current_user_manager)],
) -> UserRead:
    user = await UserService.create_user(db, body, creator=admin)
    return UserRead.model_validate(user)
