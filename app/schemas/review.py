"""
schemas/review.py
-----------------
Pydantic models for the public review flow and the tenant dashboard.

Rating range and name rules are enforced by ReviewService, not here, so
that every entry point (public form, one-tap link) fails the same way.
"""

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import AliasChoices, BaseModel, Field, StrictInt

from app.services.branching import Branch


class PublicReviewSubmit(BaseModel):
    slug: str = Field(..., min_length=1, max_length=100, examples=["acme-cafe"])
    reviewer_name: Optional[str] = Field(default=None, max_length=255, examples=["Jane"])
    reviewer_email: Optional[str] = Field(default=None, max_length=320)
    reviewer_phone: Optional[str] = Field(default=None, max_length=50)
    # Strict: JSON true, "5" and 4.0 are refused rather than coerced.
    rating: StrictInt = Field(..., examples=[5], description="Star rating, 1 to 5")
    feedback_text: Optional[str] = Field(default=None, max_length=5000)
    metadata: Optional[dict[str, Any]] = Field(
        default=None,
        description="Free-form context such as campaign, user_agent, referrer",
    )


class SubmissionResponse(BaseModel):
    success: bool = True
    review_id: str
    branch: Branch
    redirect_url: str


class OneTapPrefill(BaseModel):
    reviewer_name: Optional[str] = None


class OneTapResponse(BaseModel):
    """
    status="submitted"         → the rating was recorded; follow redirect_url.
    status="confirm_required"  → the link could not be trusted; show the
                                 interactive rating form (prefilled if possible).
    """

    status: Literal["submitted", "confirm_required"]
    success: bool
    review_id: Optional[str] = None
    branch: Optional[Branch] = None
    redirect_url: Optional[str] = None
    error: Optional[str] = None
    prefill: Optional[OneTapPrefill] = None


class FeedbackCreate(BaseModel):
    feedback_text: str = Field(
        ...,
        max_length=5000,
        examples=["service was slow"],
    )


class ReviewRead(BaseModel):
    id: str
    tenant_id: str
    reviewer_name: Optional[str]
    reviewer_email: Optional[str]
    reviewer_phone: Optional[str]
    rating: int
    feedback_text: Optional[str]
    redirected_externally: bool
    tracking_id: Optional[str]
    source: str
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("meta", "metadata"),
    )
    created_at: datetime

    model_config = {"from_attributes": True}


class FeedbackResponse(BaseModel):
    success: bool = True
    review: ReviewRead


class ReviewListResponse(BaseModel):
    total: int
    items: list[ReviewRead]
