"""
dependencies.py
---------------
FastAPI dependency injection functions for authentication, authorisation
and public-endpoint throttling.

Flow:
  1. OAuth2PasswordBearer extracts the Bearer token from the Authorization header.
  2. decode_access_token validates and parses the JWT (no DB round-trip).
  3. get_current_user fetches the full User record from the DB, verifying the
     token's sub (user_id) and tenant_id against persisted data.
  4. Role dependencies layer checks on top of get_current_user.

The tenant_id of the authenticated user scopes every dashboard query.
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.logging import get_logger
from app.core.roles import UserRole
from app.core.security import decode_access_token
from app.db.session import get_db
from app.models.user import User
from app.services.rate_limit_service import RateLimiter, get_rate_limiter

logger = get_logger(__name__)

# tokenUrl must match the login endpoint path
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/login")

_CREDENTIALS_EXCEPTION = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="Could not validate credentials",
    headers={"WWW-Authenticate": "Bearer"},
)


async def get_current_user(
    token: Annotated[str, Depends(oauth2_scheme)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> User:
    """
    Decode the JWT, then load and return the full User from the database.
    Raises 401 if the token is invalid or the user no longer exists.
    """
    try:
        payload = decode_access_token(token)
        user_id: str = payload.get("sub")
        tenant_id: str | None = payload.get("tenant_id")
        if not user_id:
            raise _CREDENTIALS_EXCEPTION
    except JWTError as exc:
        logger.warning("JWT decode failed", error=str(exc))
        raise _CREDENTIALS_EXCEPTION

    # Always re-verify against DB so revoked / moved users are rejected
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if user is None or user.tenant_id != tenant_id:
        logger.warning("User from valid JWT not found in DB", user_id=user_id)
        raise _CREDENTIALS_EXCEPTION

    return user


async def get_current_super_admin(
    current_user: Annotated[User, Depends(get_current_user)],
) -> User:
    if current_user.role != UserRole.super_admin.value:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Platform administrator privileges required",
        )
    return current_user


async def get_current_user_manager(
    current_user: Annotated[User, Depends(get_current_user)],
) -> User:
    """Super admins and tenant admins may create console users."""
    if current_user.role not in (UserRole.super_admin.value, UserRole.tenant_admin.value):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin privileges required",
        )
    return current_user


async def get_current_tenant_member(
    current_user: Annotated[User, Depends(get_current_user)],
) -> User:
    """Any user bound to a tenant (tenant_admin or user)."""
    if current_user.tenant_id is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="This action is only available inside a business account",
        )
    return current_user


def client_ip(request: Request) -> str:
    """
    Address used as the throttle key.

    X-Forwarded-For is only read behind TRUSTED_PROXY_COUNT proxies. Each
    proxy appends the peer it saw, so the client is the entry that many
    places from the right; anything further left is caller-supplied.
    """
    hops = settings.TRUSTED_PROXY_COUNT
    forwarded = request.headers.get("x-forwarded-for")
    if hops > 0 and forwarded:
        entries = [e.strip() for e in forwarded.split(",") if e.strip()]
        if entries:
            return entries[-hops] if len(entries) >= hops else entries[0]
    return request.client.host if request.client else "unknown"


async def limit_public_submissions(
    request: Request,
    limiter: Annotated[RateLimiter, Depends(get_rate_limiter)],
) -> None:
    """Per-IP throttle on the public review endpoints."""
    await limiter.hit(
        f"public_submit:{client_ip(request)}",
        settings.PUBLIC_SUBMIT_RATE_LIMIT,
        60,
    )
