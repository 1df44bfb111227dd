"""
schemas/review_request.py
-------------------------
Pydantic models for sending review-request emails.
"""

from datetime import datetime

from pydantic import BaseModel, EmailStr, Field, field_validator


class ReviewRequestCreate(BaseModel):
    recipient_email: EmailStr
    customer_name: str = Field(..., min_length=1, max_length=100, examples=["Jane"])
    customer_phone: str = Field(default="", max_length=50)
    country_code: str = Field(default="+1", max_length=8)

    @field_validator("customer_name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("customer_name must not be blank")
        return v


class ReviewRequestRead(BaseModel):
    id: str
    tracking_id: str
    recipient_email: str
    customer_name: str
    status: str
    created_at: datetime

    model_config = {"from_attributes": True}
