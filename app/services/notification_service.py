"""
services/notification_service.py
--------------------------------
Review-request emails with signed one-tap rating links.

Each email carries five links, one per star value, all sharing a single
tracking id. Whichever the customer taps, the one-tap endpoint records at
most one review for that tracking id. A plain link to the interactive form
is included for clients that strip query strings.

Every attempt is logged in review_requests, including failed deliveries.
"""

import html
import secrets
from typing import Optional
from urllib.parse import quote, urlencode

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import NotFoundError, PersistenceError
from app.core.logging import get_logger
from app.core.signing import LinkSigner
from app.models.review_request import ReviewRequest, ReviewRequestStatus
from app.models.tenant import Tenant
from app.models.user import User
from app.schemas.review_request import ReviewRequestCreate
from app.services.email_service import EmailMessage, EmailSender
from app.services.rate_limit_service import RateLimiter
from app.services.tenant_service import TENANT_NOT_FOUND

logger = get_logger(__name__)

STAR_VALUES = (5, 4, 3, 2, 1)


def generate_tracking_id() -> str:
    return secrets.token_urlsafe(16)


def review_form_url(slug: str) -> str:
    return f"{settings.FRONTEND_URL}/r/{quote(slug)}"


def one_tap_url(slug: str, params: dict[str, str]) -> str:
    return f"{review_form_url(slug)}/one-tap?{urlencode(params)}"


def build_one_tap_links(
    signer: LinkSigner,
    tenant: Tenant,
    data: ReviewRequestCreate,
    tracking_id: str,
    now: Optional[float] = None,
) -> dict[int, str]:
    """
    Map each star value to its one-tap URL.

    Raises:
        SigningDisabledError: signing is required but no secret is configured.
    """
    links = {}
    for rating in STAR_VALUES:
        params = signer.mint(
            name=data.customer_name,
            phone=data.customer_phone,
            country_code=data.country_code,
            rating=rating,
            tracking_id=tracking_id,
            now=now,
        )
        links[rating] = one_tap_url(tenant.slug, params)
    return links


def render_review_request(
    tenant: Tenant, customer_name: str, links: dict[int, str]
) -> tuple[str, str, str]:
    """Return (subject, html, text) for a review-request email."""
    business = html.escape(tenant.name)
    customer = html.escape(customer_name)
    color = html.escape((tenant.branding or {}).get("primary_color") or "#2563eb")
    form_url = review_form_url(tenant.slug)

    subject = f"How was your visit to {tenant.name}?"

    buttons = "\n".join(
        f'<a href="{html.escape(links[rating])}" '
        f'style="display:inline-block;margin:4px;padding:10px 14px;'
        f'background:{color};color:#fff;border-radius:6px;text-decoration:none">'
        f"{'&#9733;' * rating}</a>"
        for rating in STAR_VALUES
    )
    html_body = (
        f"<p>Hi {customer},</p>"
        f"<p>Thank you for choosing {business}. How would you rate your experience?</p>"
        f"<div>{buttons}</div>"
        f'<p style="color:#666;font-size:13px">Or <a href="{html.escape(form_url)}">open the review form</a>. '
        f"These links expire in {settings.REVIEW_LINK_MAX_AGE_DAYS} days.</p>"
    )

    lines = [
        f"Hi {customer_name},",
        "",
        f"Thank you for choosing {tenant.name}. How would you rate your experience?",
        "",
    ]
    lines += [f"{rating} star{'s' if rating > 1 else ''}: {links[rating]}" for rating in STAR_VALUES]
    lines += ["", f"Review form: {form_url}"]
    return subject, html_body, "\n".join(lines)


class NotificationService:

    @staticmethod
    async def send_review_request(
        db: AsyncSession,
        tenant: Tenant,
        data: ReviewRequestCreate,
        *,
        signer: LinkSigner,
        sender: EmailSender,
        limiter: RateLimiter,
        sent_by: Optional[User] = None,
        now: Optional[float] = None,
    ) -> ReviewRequest:
        """
        Mint signed links, send the email and log the attempt.

        Raises:
            NotFoundError: tenant is not active.
            RateLimitError: the tenant exceeded its request quota.
            SigningDisabledError: signing required but not configured.
            PersistenceError: the request could not be recorded.
        """
        if not tenant.is_active:
            raise NotFoundError(TENANT_NOT_FOUND)

        await limiter.hit(
            f"review_request:{tenant.id}",
            settings.REVIEW_REQUEST_RATE_LIMIT,
            settings.REVIEW_REQUEST_RATE_WINDOW_SECONDS,
        )

        tenant_id = tenant.id
        tracking_id = generate_tracking_id()
        links = build_one_tap_links(signer, tenant, data, tracking_id, now=now)
        subject, html_body, text_body = render_review_request(tenant, data.customer_name, links)

        # Committed before sending: a customer may tap a link as soon as the
        # provider accepts the message.
        record = ReviewRequest(
            tenant_id=tenant_id,
            tracking_id=tracking_id,
            recipient_email=data.recipient_email,
            customer_name=data.customer_name,
            sent_by_user_id=sent_by.id if sent_by else None,
            status=ReviewRequestStatus.pending.value,
        )
        try:
            db.add(record)
            await db.commit()
        except SQLAlchemyError as exc:
            logger.error(
                "Review request not recorded, email not sent",
                tenant_id=tenant_id,
                operation="send_review_request",
                error=str(exc),
            )
            raise PersistenceError() from exc

        result = await sender.send(
            EmailMessage(to=data.recipient_email, subject=subject, html=html_body, text=text_body)
        )

        try:
            record.status = (
                ReviewRequestStatus.sent if result.success else ReviewRequestStatus.failed
            ).value
            record.provider_message_id = result.message_id
            await db.flush()
            await db.refresh(record)
        except SQLAlchemyError as exc:
            logger.error(
                "Review request status update failed",
                tenant_id=tenant_id,
                tracking_id=tracking_id,
                operation="send_review_request",
                delivered=result.success,
                error=str(exc),
            )
            raise PersistenceError() from exc

        logger.info(
            "Review request dispatched",
            tenant_id=tenant_id,
            tracking_id=tracking_id,
            status=record.status,
            signed=signer.signing_enabled,
        )
        return record

    @staticmethod
    async def issued_by_tenant(db: AsyncSession, tenant_id: str, tracking_id: str) -> bool:
        """True when this tenant sent the review request behind tracking_id."""
        result = await db.execute(
            select(ReviewRequest.id).where(
                ReviewRequest.tenant_id == tenant_id,
                ReviewRequest.tracking_id == tracking_id,
            )
        )
        return result.scalar_one_or_none() is not None
