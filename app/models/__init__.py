"""
models/__init__.py
------------------
Re-export all models so schema creation (create_tables.py, tests) can
import Base and discover every table via a single import:

    from app.models import Base
"""

from app.db.base import Base
from app.models.rate_limit import RateLimitCounter
from app.models.review import Review, ReviewSource
from app.models.review_request import ReviewRequest, ReviewRequestStatus
from app.models.tenant import Tenant, TenantStatus
from app.models.user import User

__all__ = [
    "Base",
    "RateLimitCounter",
    "Review",
    "ReviewRequest",
    "ReviewRequestStatus",
    "ReviewSource",
    "Tenant",
    "TenantStatus",
    "User",
]
