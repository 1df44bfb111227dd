"""
services/review_service.py
--------------------------
Review submission, feedback capture and the tenant dashboard listing.

Critical security invariant:
  Every query MUST include tenant_id in the WHERE clause, even when the
  review id alone would identify the row.

Submission is idempotent per (tenant, tracking_id): the same one-tap link
opened twice (mail scanners pre-fetch links, customers double-click) yields
one row. The duplicate call gets the existing row back with created=False.
"""

from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError, PersistenceError, ValidationError
from app.core.logging import get_logger
from app.db.base import utc_now_iso
from app.models.review import Review, ReviewSource
from app.models.tenant import Tenant
from app.services.branching import routes_externally, will_redirect_externally
from app.services.tenant_service import TENANT_NOT_FOUND

logger = get_logger(__name__)

MIN_RATING = 1
MAX_RATING = 5
MAX_FEEDBACK_LENGTH = 5000

# Written by the server only; callers cannot set them through metadata.
RESERVED_METADATA_KEYS = frozenset(
    {"source", "submitted_at", "tenant_slug", "feedback_submitted", "feedback_submitted_at"}
)


@dataclass
class CustomerFields:
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    country_code: Optional[str] = None


@dataclass
class SubmissionOutcome:
    review: Review
    created: bool


def validate_rating(rating: Any) -> int:
    # bool is an int subclass; True must not count as one star
    if isinstance(rating, bool) or not isinstance(rating, int):
        raise ValidationError("Rating must be a whole number between 1 and 5")
    if not MIN_RATING <= rating <= MAX_RATING:
        raise ValidationError("Rating must be a whole number between 1 and 5")
    return rating


def caller_metadata(metadata: Optional[dict[str, Any]]) -> dict[str, Any]:
    return {k: v for k, v in (metadata or {}).items() if k not in RESERVED_METADATA_KEYS}


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


class ReviewService:

    @staticmethod
    async def find_by_tracking_id(
        db: AsyncSession, tenant_id: str, tracking_id: str
    ) -> Review | None:
        result = await db.execute(
            select(Review).where(
                Review.tenant_id == tenant_id,
                Review.tracking_id == tracking_id,
            )
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def submit(
        db: AsyncSession,
        tenant: Tenant,
        customer: CustomerFields,
        rating: Any,
        metadata: Optional[dict[str, Any]] = None,
        *,
        tracking_id: Optional[str] = None,
        source: ReviewSource = ReviewSource.public_form,
        feedback_text: Optional[str] = None,
    ) -> SubmissionOutcome:
        """
        Persist one review for an active tenant.

        Raises:
            NotFoundError: tenant is not active.
            ValidationError: rating outside 1..5, blank name, oversized feedback.
            PersistenceError: the store failed; the caller may retry.
        """
        tenant_id = tenant.id
        if not tenant.is_active:
            raise NotFoundError(TENANT_NOT_FOUND)

        rating = validate_rating(rating)

        name = customer.name
        if name is not None:
            name = name.strip()
            if not name:
                raise ValidationError("Name cannot be blank")

        feedback = _clean(feedback_text)
        if feedback is not None and len(feedback) > MAX_FEEDBACK_LENGTH:
            raise ValidationError("Feedback is too long")

        try:
            if tracking_id:
                existing = await ReviewService.find_by_tracking_id(db, tenant_id, tracking_id)
                if existing is not None:
                    logger.info(
                        "Duplicate submission collapsed",
                        tenant_id=tenant_id,
                        review_id=existing.id,
                        tracking_id=tracking_id,
                    )
                    return SubmissionOutcome(review=existing, created=False)

            review = Review(
                tenant_id=tenant_id,
                reviewer_name=name,
                reviewer_email=_clean(customer.email),
                reviewer_phone=_clean(customer.phone),
                country_code=_clean(customer.country_code),
                rating=rating,
                feedback_text=feedback,
                redirected_externally=will_redirect_externally(rating, tenant.google_review_url),
                tracking_id=tracking_id or None,
                source=source.value,
                meta={
                    **caller_metadata(metadata),
                    "source": source.value,
                    "submitted_at": utc_now_iso(),
                    "tenant_slug": tenant.slug,
                },
            )

            try:
                async with db.begin_nested():
                    db.add(review)
                    await db.flush()
            except IntegrityError:
                # Lost a race against an identical link opened concurrently.
                if tracking_id:
                    existing = await ReviewService.find_by_tracking_id(db, tenant_id, tracking_id)
                    if existing is not None:
                        return SubmissionOutcome(review=existing, created=False)
                raise

            await db.refresh(review)
        except SQLAlchemyError as exc:
            logger.error(
                "Review submission failed",
                tenant_id=tenant_id,
                operation="submit",
                error=str(exc),
            )
            raise PersistenceError() from exc

        logger.info(
            "Review stored",
            review_id=review.id,
            tenant_id=tenant_id,
            rating=rating,
            source=review.source,
        )
        return SubmissionOutcome(review=review, created=True)

    @staticmethod
    async def attach_feedback(
        db: AsyncSession,
        tenant: Tenant,
        review_id: str,
        feedback_text: str,
    ) -> Review:
        """
        Attach free-text feedback to a review of this tenant. Last write wins.

        Raises:
            ValidationError: empty or oversized feedback, or a rating that
                was routed to the external review site.
            NotFoundError: no such review for this tenant.
            PersistenceError: the store failed.
        """
        text = (feedback_text or "").strip()
        if not text:
            raise ValidationError("Please share your feedback")
        if len(text) > MAX_FEEDBACK_LENGTH:
            raise ValidationError("Feedback is too long")

        tenant_id = tenant.id
        try:
            result = await db.execute(
                select(Review).where(
                    Review.id == review_id,
                    Review.tenant_id == tenant_id,
                )
            )
            review = result.scalar_one_or_none()
            if review is None:
                logger.info("Feedback for unknown review", tenant_id=tenant_id)
                raise NotFoundError("Review not found")
            if routes_externally(review.rating):
                raise ValidationError("Feedback is only collected for ratings below 4")

            review.feedback_text = text
            # Reassign so the JSON column is flagged dirty.
            review.meta = {
                **(review.meta or {}),
                "feedback_submitted": True,
                "feedback_submitted_at": utc_now_iso(),
            }
            await db.flush()
            await db.refresh(review)
        except SQLAlchemyError as exc:
            logger.error(
                "Feedback update failed",
                tenant_id=tenant_id,
                review_id=review_id,
                operation="attach_feedback",
                error=str(exc),
            )
            raise PersistenceError() from exc

        logger.info("Feedback captured", review_id=review.id, tenant_id=tenant_id)
        return review

    @staticmethod
    async def list_reviews(
        db: AsyncSession,
        tenant_id: str,
        skip: int = 0,
        limit: int = 20,
        rating: Optional[int] = None,
    ) -> tuple[int, list[Review]]:
        """
        Paginated review list, strictly scoped to one tenant, newest first.

        Returns:
            (total_count, page_of_reviews)
        """
        filters = [Review.tenant_id == tenant_id]
        if rating is not None:
            filters.append(Review.rating == rating)

        count_result = await db.execute(
            select(func.count()).select_from(Review).where(*filters)
        )
        total = count_result.scalar_one()

        result = await db.execute(
            select(Review)
            .where(*filters)
            .order_by(Review.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        return total, list(result.scalars().all())
