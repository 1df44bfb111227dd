"""
services/branching.py
---------------------
Rating branch decision.

Once a review exists with a rating, the customer goes one of two ways:

  rating >= 4 → external_redirect : navigate to the tenant's Google review page
  rating <  4 → internal_feedback : navigate to the feedback form, carrying
                                    review_id, name and rating

The threshold is a fixed business rule shared by every tenant. A tenant
without a Google review URL sends happy customers to its thank-you page
instead. No I/O happens here.
"""

from dataclasses import dataclass
from enum import Enum as PyEnum
from typing import Optional, Protocol
from urllib.parse import quote, urlencode

EXTERNAL_REDIRECT_MIN_RATING = 4


class Branch(str, PyEnum):
    external_redirect = "external_redirect"
    internal_feedback = "internal_feedback"


class _TenantLike(Protocol):
    slug: str
    google_review_url: Optional[str]


class _ReviewLike(Protocol):
    id: str
    reviewer_name: Optional[str]
    rating: int


@dataclass(frozen=True)
class BranchDecision:
    branch: Branch
    redirect_url: str
    review_id: str
    reviewer_name: Optional[str]
    rating: int


def routes_externally(rating: int) -> bool:
    return rating >= EXTERNAL_REDIRECT_MIN_RATING


def will_redirect_externally(rating: int, google_review_url: Optional[str]) -> bool:
    """True when the customer is actually handed to the external review site."""
    return routes_externally(rating) and bool(google_review_url)


def feedback_url(frontend_url: str, slug: str, review_id: str, name: Optional[str], rating: int) -> str:
    query = urlencode(
        {"review_id": review_id, "name": name or "Anonymous", "rating": rating}
    )
    return f"{frontend_url}/r/{quote(slug)}/feedback?{query}"


def thank_you_url(frontend_url: str, slug: str) -> str:
    return f"{frontend_url}/r/{quote(slug)}/thank-you"


def decide_branch(tenant: _TenantLike, review: _ReviewLike, frontend_url: str) -> BranchDecision:
    if routes_externally(review.rating):
        target = tenant.google_review_url or thank_you_url(frontend_url, tenant.slug)
        return BranchDecision(
            branch=Branch.external_redirect,
            redirect_url=target,
            review_id=review.id,
            reviewer_name=review.reviewer_name,
            rating=review.rating,
        )

    return BranchDecision(
        branch=Branch.internal_feedback,
        redirect_url=feedback_url(
            frontend_url, tenant.slug, review.id, review.reviewer_name, review.rating
        ),
        review_id=review.id,
        reviewer_name=review.reviewer_name,
        rating=review.rating,
    )
