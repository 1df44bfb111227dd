"""
api/routes/reviews.py
---------------------
Tenant dashboard endpoints.

GET  /reviews           — Paginated reviews of the caller's tenant
POST /review-requests   — Email a customer a set of one-tap rating links
"""

from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError
from app.core.signing import LinkSigner, get_link_signer
from app.db.session import get_db
from app.dependencies import get_current_tenant_member
from app.models.user import User
from app.schemas.review import ReviewListResponse, ReviewRead
from app.schemas.review_request import ReviewRequestCreate, ReviewRequestRead
from app.services.email_service import EmailSender, get_email_sender
from app.services.notification_service import NotificationService
from app.services.rate_limit_service import RateLimiter, get_rate_limiter
from app.services.review_service import ReviewService
from app.services.tenant_service import TenantService

router = APIRouter(tags=["Reviews"])


@router.get(
    "/reviews",
    response_model=ReviewListResponse,
    summary="List reviews for the current tenant (paginated)",
)
async def list_reviews(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_tenant_member)],
    skip: int = Query(default=0, ge=0, description="Pagination offset"),
    limit: int = Query(default=20, ge=1, le=100, description="Results per page"),
    rating: Optional[int] = Query(default=None, ge=1, le=5, description="Only this star value"),
) -> ReviewListResponse:
    total, reviews = await ReviewService.list_reviews(
        db=db,
        tenant_id=current_user.tenant_id,
        skip=skip,
        limit=limit,
        rating=rating,
    )
    return ReviewListResponse(
        total=total,
        items=[ReviewRead.model_validate(r) for r in reviews],
    )


@router.post(
    "/review-requests",
    response_model=ReviewRequestRead,
    status_code=status.HTTP_201_CREATED,
    summary="Send a review request email with one-tap rating links",
)
async def send_review_request(
    body: ReviewRequestCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_tenant_member)],
    signer: Annotated[LinkSigner, Depends(get_link_signer)],
    sender: Annotated[EmailSender, Depends(get_email_sender)],
    limiter: Annotated[RateLimiter, Depends(get_rate_limiter)],
) -> ReviewRequestRead:
    """
    The returned status is "failed" when the email provider refused the
    message; the request is still logged so it can be retried by hand.
    """
    tenant = await TenantService.get_tenant_by_id(db, current_user.tenant_id)
    if tenant is None:
        raise NotFoundError("Tenant not found")

    record = await NotificationService.send_review_request(
        db,
        tenant,
        body,
        signer=signer,
        sender=sender,
        limiter=limiter,
        sent_by=current_user,
    )
    return ReviewRequestRead.model_validate(record)
