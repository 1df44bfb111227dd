"""
services/user_service.py
------------------------
Console users: creation, authentication and tenant-scoped listing.
"""

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.core.logging import get_logger
from app.core.roles import UserRole
from app.core.security import hash_password, verify_password
from app.models.tenant import Tenant
from app.models.user import User
from app.schemas.user import UserCreate

logger = get_logger(__name__)


class UserService:

    @staticmethod
    async def create_user(db: AsyncSession, data: UserCreate, creator: User) -> User:
        """
        Create a console user.

        Super admins may create any role; tenant roles need an existing
        tenant_id. Tenant admins can only add tenant_admin/user accounts to
        their own tenant, whatever tenant_id the body names.
        """
        role = data.role
        if creator.role == UserRole.super_admin.value:
            tenant_id = data.tenant_id
            if role is UserRole.super_admin:
                tenant_id = None
            elif not tenant_id:
                raise ValidationError("tenant_id is required for tenant users")
            elif await db.get(Tenant, tenant_id) is None:
                raise NotFoundError("Tenant not found")
        else:
            if role is UserRole.super_admin:
                raise ValidationError("Only platform operators can create super admins")
            tenant_id = creator.tenant_id

        user = User(
            email=data.email.lower(),
            hashed_password=hash_password(data.password),
            role=role.value,
            tenant_id=tenant_id,
        )
        db.add(user)
        try:
            await db.flush()
            await db.refresh(user)
        except IntegrityError:
            await db.rollback()
            raise ConflictError(f"Email '{data.email}' is already registered")

        logger.info(
            "User created",
            new_user_id=user.id,
            role=user.role,
            tenant_id=tenant_id,
            created_by=creator.id,
        )
        return user

    @staticmethod
    async def authenticate(
        db: AsyncSession, email: str, password: str
    ) -> User | None:
        """
        Verify credentials and return the User if valid, else None.
        Email lookup is case-insensitive.
        """
        result = await db.execute(
            select(User).where(User.email == email.lower())
        )
        user = result.scalar_one_or_none()
        if user is None or not verify_password(password, user.hashed_password):
            return None
        return user

    @staticmethod
    async def list_users_in_tenant(
        db: AsyncSession, tenant_id: str
    ) -> list[User]:
        result = await db.execute(
            select(User).where(User.tenant_id == tenant_id).order_by(User.created_at)
        )
        return list(result.scalars().all())
