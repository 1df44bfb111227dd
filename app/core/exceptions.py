"""
core/exceptions.py
------------------
Domain error taxonomy for the review pipeline.

Each error carries a terse, public-safe message and the HTTP status the
route layer should answer with. Internal detail (store error text, ids of
other tenants) goes to the logs, never into public_message.
"""

from fastapi import status


class ReviewFlowError(Exception):
    """Base class for all expected, user-facing failures."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    default_message: str = "Request could not be processed"

    def __init__(self, public_message: str | None = None) -> None:
        self.public_message = public_message or self.default_message
        super().__init__(self.public_message)


class ValidationError(ReviewFlowError):
    """Malformed input: bad rating range, missing required field."""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_message = "Some fields are invalid"


class NotFoundError(ReviewFlowError):
    """Unknown or inactive tenant, or an unknown review id."""

    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class ConflictError(ReviewFlowError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Already exists"


class SignatureError(ReviewFlowError):
    """
    Unparseable, unsigned, expired or non-verifying one-tap link.

    Treated as untrusted input: the one-tap flow degrades to an interactive
    prompt instead of surfacing this as a hard failure.
    """

    default_message = "This link is no longer valid"

    def __init__(self, reason: str, public_message: str | None = None) -> None:
        self.reason = reason
        super().__init__(public_message)


class SigningDisabledError(ReviewFlowError):
    """Signed links were requested but no signing secret is configured."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = "Review links are not available right now"


class RateLimitError(ReviewFlowError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    default_message = "Too many requests, please try again shortly"


class PersistenceError(ReviewFlowError):
    """Underlying store failure. Retryable by the caller."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = "Something went wrong, please try again"
