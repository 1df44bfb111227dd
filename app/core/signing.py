"""
core/signing.py
---------------
HMAC signing for the "one-tap" rating links embedded in review-request
emails.

Canonical form (v1):
    name=<n>&phone=<p>&countryCode=<c>&rating=<r>&trackingId=<t>&ts=<ts>

Fields are always joined in that order and every value is percent-encoded,
so a value containing "&" or "=" cannot shift a field boundary. Changing
the order or the encoding invalidates every link already in customers'
inboxes: introduce a new CANONICAL_VERSION instead. Minted links carry
the version as the "v" parameter.

Signatures are HMAC-SHA256 over the canonical string, URL-safe base64
encoded for transport in a query string. Comparison is timing-safe.

Signing modes:
  - required: no secret → minting fails closed (SigningDisabledError).
  - advisory: no secret → links are minted without "sig" and with
              "advisory=1"; consumers must confirm interactively.
"""

import base64
import hashlib
import hmac
import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Mapping, Optional
from urllib.parse import quote

from app.core.config import settings
from app.core.exceptions import SignatureError, SigningDisabledError

CANONICAL_VERSION = "v1"

_FIELD_ORDER = ("name", "phone", "countryCode", "rating", "trackingId", "ts")

# Tolerated clock drift between the minting and the verifying host.
MAX_FUTURE_SKEW_SECONDS = 300


@dataclass(frozen=True)
class SignedLinkPayload:
    name: str
    phone: str
    country_code: str
    rating: int
    tracking_id: str
    timestamp: int

    def as_params(self) -> dict[str, str]:
        return {
            "name": self.name,
            "phone": self.phone,
            "countryCode": self.country_code,
            "rating": str(self.rating),
            "trackingId": self.tracking_id,
            "ts": str(self.timestamp),
        }


def canonicalize(payload: SignedLinkPayload) -> str:
    params = payload.as_params()
    return "&".join(f"{field}={quote(params[field], safe='')}" for field in _FIELD_ORDER)


def sign_payload(payload: SignedLinkPayload, secret: str) -> str:
    """Return the URL-safe base64 HMAC-SHA256 signature of the payload."""
    if not secret:
        raise ValueError("signing secret must not be empty")
    digest = hmac.new(
        secret.encode("utf-8"),
        canonicalize(payload).encode("utf-8"),
        hashlib.sha256,
    ).digest()
    return base64.urlsafe_b64encode(digest).decode("ascii")


def verify_signature(payload: SignedLinkPayload, signature: str, secret: str) -> bool:
    """Timing-safe check of signature against the payload's canonical form."""
    if not secret or not signature:
        return False
    expected = sign_payload(payload, secret)
    return hmac.compare_digest(expected.encode("ascii"), signature.encode("utf-8"))


def parse_payload(params: Mapping[str, str]) -> SignedLinkPayload:
    """
    Build a payload from link query parameters.

    Raises:
        SignatureError: a required field is missing or not an integer.
    """
    name = params.get("name")
    tracking_id = params.get("trackingId")
    if not name or not name.strip() or not tracking_id:
        raise SignatureError("malformed")
    try:
        rating = int(params.get("rating", ""))
        timestamp = int(params.get("ts", ""))
    except ValueError:
        raise SignatureError("malformed")

    return SignedLinkPayload(
        name=name,
        phone=params.get("phone", ""),
        country_code=params.get("countryCode", ""),
        rating=rating,
        tracking_id=tracking_id,
        timestamp=timestamp,
    )


class LinkSigner:
    """Mints and verifies one-tap link parameters with the server secret."""

    def __init__(
        self,
        secret: str,
        mode: str = "required",
        max_age: timedelta = timedelta(days=30),
    ) -> None:
        self._secret = secret
        self.mode = mode
        self.max_age_seconds = int(max_age.total_seconds())

    @property
    def signing_enabled(self) -> bool:
        return bool(self._secret)

    def mint(
        self,
        *,
        name: str,
        phone: str,
        country_code: str,
        rating: int,
        tracking_id: str,
        now: Optional[float] = None,
    ) -> dict[str, str]:
        """
        Return the query parameters for a one-tap link.

        Raises:
            SigningDisabledError: no secret and mode is "required".
        """
        payload = SignedLinkPayload(
            name=name,
            phone=phone,
            country_code=country_code,
            rating=rating,
            tracking_id=tracking_id,
            timestamp=int(time.time() if now is None else now),
        )
        params = payload.as_params()
        params["v"] = CANONICAL_VERSION
        if self.signing_enabled:
            params["sig"] = sign_payload(payload, self._secret)
        elif self.mode == "advisory":
            params["advisory"] = "1"
        else:
            raise SigningDisabledError()
        return params

    def parse_and_verify(
        self, params: Mapping[str, str], now: Optional[float] = None
    ) -> SignedLinkPayload:
        """
        Verify link parameters and return the trusted payload.

        Raises:
            SignatureError: with reason unsupported_version | malformed |
                unsigned | signing_not_configured | mismatch | expired |
                from_future.
        """
        # Links minted before versioning carry no "v" and are v1.
        if params.get("v", CANONICAL_VERSION) != CANONICAL_VERSION:
            raise SignatureError("unsupported_version")
        payload = parse_payload(params)

        signature = params.get("sig")
        if not signature:
            raise SignatureError("unsigned")
        if not self.signing_enabled:
            raise SignatureError("signing_not_configured")
        if not verify_signature(payload, signature, self._secret):
            raise SignatureError("mismatch")

        age = int(time.time() if now is None else now) - payload.timestamp
        if age > self.max_age_seconds:
            raise SignatureError("expired")
        if age < -MAX_FUTURE_SKEW_SECONDS:
            raise SignatureError("from_future")
        return payload


def get_link_signer() -> LinkSigner:
    """FastAPI dependency: signer built from application settings."""
    return LinkSigner(
        secret=settings.REVIEW_LINK_SECRET,
        mode=settings.REVIEW_LINK_SIGNING_MODE,
        max_age=timedelta(days=settings.REVIEW_LINK_MAX_AGE_DAYS),
    )
