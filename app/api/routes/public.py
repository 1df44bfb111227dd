"""
api/routes/public.py
--------------------
Unauthenticated endpoints behind the public review form.

GET  /public/tenants/{slug}                          — Branding + review destination
POST /public/reviews                                 — Submit a rating from the form
GET  /public/r/{slug}/one-tap                        — Consume a signed email link
POST /public/r/{slug}/reviews/{review_id}/feedback   — Attach low-rating feedback

Responses never include store error text or identifiers of other tenants.
"""

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import SignatureError
from app.core.logging import get_logger
from app.core.signing import LinkSigner, get_link_signer
from app.db.session import get_db
from app.dependencies import limit_public_submissions
from app.models.review import ReviewSource
from app.schemas.review import (
    FeedbackCreate,
    FeedbackResponse,
    OneTapPrefill,
    OneTapResponse,
    PublicReviewSubmit,
    ReviewRead,
    SubmissionResponse,
)
from app.schemas.tenant import TenantPublicView
from app.services.branching import decide_branch
from app.services.notification_service import NotificationService
from app.services.review_service import CustomerFields, ReviewService
from app.services.tenant_service import TenantService

logger = get_logger(__name__)

router = APIRouter(prefix="/public", tags=["Public review flow"])


def _request_metadata(request: Request) -> dict[str, Any]:
    metadata: dict[str, Any] = {}
    user_agent = request.headers.get("user-agent")
    referrer = request.headers.get("referer")
    if user_agent:
        metadata["user_agent"] = user_agent[:512]
    if referrer:
        metadata["referrer"] = referrer[:2048]
    return metadata


@router.get(
    "/tenants/{slug}",
    response_model=TenantPublicView,
    summary="Resolve a review form slug",
)
async def get_public_tenant(
    slug: str,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> TenantPublicView:
    tenant = await TenantService.resolve_by_slug(db, slug)
    return TenantPublicView.model_validate(tenant)


@router.post(
    "/reviews",
    response_model=SubmissionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit a rating from the public review form",
    dependencies=[Depends(limit_public_submissions)],
)
async def submit_review(
    body: PublicReviewSubmit,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> SubmissionResponse:
    """
    On success the browser should navigate to redirect_url: the Google
    review page for 4 and 5 stars, the internal feedback form otherwise.
    """
    tenant = await TenantService.resolve_by_slug(db, body.slug)

    # Client-supplied metadata wins over what we derive from headers;
    # reserved keys are stripped by ReviewService.
    metadata = {**_request_metadata(request), **(body.metadata or {})}

    outcome = await ReviewService.submit(
        db,
        tenant,
        CustomerFields(
            name=body.reviewer_name,
            email=body.reviewer_email,
            phone=body.reviewer_phone,
        ),
        body.rating,
        metadata,
        source=ReviewSource.public_form,
        feedback_text=body.feedback_text,
    )
    decision = decide_branch(tenant, outcome.review, settings.FRONTEND_URL)
    return SubmissionResponse(
        review_id=outcome.review.id,
        branch=decision.branch,
        redirect_url=decision.redirect_url,
    )


@router.get(
    "/r/{slug}/one-tap",
    response_model=OneTapResponse,
    summary="Consume a signed one-tap rating link",
    dependencies=[Depends(limit_public_submissions)],
)
async def consume_one_tap_link(
    slug: str,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    signer: Annotated[LinkSigner, Depends(get_link_signer)],
) -> OneTapResponse:
    """
    Query parameters: name, phone, countryCode, rating, trackingId, ts, sig.

    A link that fails verification is never applied: the response asks the
    client to show the interactive rating form instead. Opening the same
    valid link repeatedly returns the one review it created.
    """
    tenant = await TenantService.resolve_by_slug(db, slug)
    params = dict(request.query_params)

    try:
        payload = signer.parse_and_verify(params)
        if not await NotificationService.issued_by_tenant(db, tenant.id, payload.tracking_id):
            raise SignatureError("foreign_tracking_id")
    except SignatureError as exc:
        logger.warning("One-tap link not trusted", tenant_id=tenant.id, reason=exc.reason)
        name = (params.get("name") or "").strip()[:255]
        return OneTapResponse(
            status="confirm_required",
            success=False,
            error=exc.public_message,
            prefill=OneTapPrefill(reviewer_name=name or None),
        )

    outcome = await ReviewService.submit(
        db,
        tenant,
        CustomerFields(
            name=payload.name,
            phone=payload.phone,
            country_code=payload.country_code,
        ),
        payload.rating,
        _request_metadata(request),
        tracking_id=payload.tracking_id,
        source=ReviewSource.email_one_tap,
    )
    decision = decide_branch(tenant, outcome.review, settings.FRONTEND_URL)
    return OneTapResponse(
        status="submitted",
        success=True,
        review_id=outcome.review.id,
        branch=decision.branch,
        redirect_url=decision.redirect_url,
    )


@router.post(
    "/r/{slug}/reviews/{review_id}/feedback",
    response_model=FeedbackResponse,
    summary="Attach written feedback to a low rating",
    dependencies=[Depends(limit_public_submissions)],
)
async def submit_feedback(
    slug: str,
    review_id: str,
    body: FeedbackCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> FeedbackResponse:
    tenant = await TenantService.resolve_by_slug(db, slug)
    review = await ReviewService.attach_feedback(db, tenant, review_id, body.feedback_text)
    return FeedbackResponse(review=ReviewRead.model_validate(review))
