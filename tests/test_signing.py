import base64
import dataclasses
import time
from datetime import timedelta

import pytest

from app.core.exceptions import SignatureError, SigningDisabledError
from app.core.signing import (
    LinkSigner,
    SignedLinkPayload,
    canonicalize,
    parse_payload,
    sign_payload,
    verify_signature,
)

SECRET = "s3cret"
NOW = 1_760_000_000


def _payload(**overrides) -> SignedLinkPayload:
    fields = dict(
        name="Jane Doe",
        phone="5550100",
        country_code="+1",
        rating=5,
        tracking_id="trk_abc123",
        timestamp=NOW,
    )
    fields.update(overrides)
    return SignedLinkPayload(**fields)


def test_canonical_form_has_fixed_field_order():
    assert canonicalize(_payload()) == (
        "name=Jane%20Doe&phone=5550100&countryCode=%2B1&rating=5"
        "&trackingId=trk_abc123&ts=1760000000"
    )


def test_separators_inside_values_cannot_shift_fields():
    a = _payload(name="Jane&phone=1", phone="")
    b = _payload(name="Jane", phone="1")
    assert canonicalize(a) != canonicalize(b)
    assert sign_payload(a, SECRET) != sign_payload(b, SECRET)


def test_signature_is_url_safe_base64_of_sha256():
    signature = sign_payload(_payload(), SECRET)
    assert "+" not in signature and "/" not in signature
    assert len(base64.urlsafe_b64decode(signature)) == 32


def test_round_trip_verifies():
    payload = _payload()
    assert verify_signature(payload, sign_payload(payload, SECRET), SECRET)


def test_other_secret_does_not_verify():
    payload = _payload()
    assert not verify_signature(payload, sign_payload(payload, SECRET), "other-secret")


@pytest.mark.parametrize(
    "field, value",
    [
        ("name", "Janet Doe"),
        ("phone", "5550101"),
        ("country_code", "+44"),
        ("rating", 1),
        ("tracking_id", "trk_abc124"),
        ("timestamp", NOW + 1),
    ],
)
def test_mutating_any_field_invalidates_signature(field, value):
    payload = _payload()
    signature = sign_payload(payload, SECRET)
    tampered = dataclasses.replace(payload, **{field: value})
    assert not verify_signature(tampered, signature, SECRET)


def test_verify_rejects_empty_inputs():
    payload = _payload()
    assert not verify_signature(payload, "", SECRET)
    assert not verify_signature(payload, sign_payload(payload, SECRET), "")
    assert not verify_signature(payload, "not base64 at all ✓", SECRET)


def test_sign_refuses_empty_secret():
    with pytest.raises(ValueError):
        sign_payload(_payload(), "")


def test_parse_payload_requires_integers():
    with pytest.raises(SignatureError) as exc:
        parse_payload({"name": "Jane", "rating": "five", "trackingId": "t", "ts": "1"})
    assert exc.value.reason == "malformed"

    with pytest.raises(SignatureError):
        parse_payload({"name": " ", "rating": "5", "trackingId": "t", "ts": "1"})


class TestLinkSigner:

    def _mint(self, signer: LinkSigner, **overrides) -> dict[str, str]:
        fields = dict(
            name="Jane",
            phone="5550100",
            country_code="+1",
            rating=4,
            tracking_id="trk_1",
            now=NOW,
        )
        fields.update(overrides)
        return signer.mint(**fields)

    def test_minted_link_verifies(self):
        signer = LinkSigner(SECRET)
        params = self._mint(signer)

        assert set(params) == {"name", "phone", "countryCode", "rating", "trackingId", "ts", "v", "sig"}
        assert params["v"] == "v1"
        payload = signer.parse_and_verify(params, now=NOW + 60)
        assert payload.rating == 4
        assert payload.tracking_id == "trk_1"

    def test_tampered_rating_is_rejected(self):
        signer = LinkSigner(SECRET)
        params = self._mint(signer, rating=2)
        params["rating"] = "5"

        with pytest.raises(SignatureError) as exc:
            signer.parse_and_verify(params, now=NOW)
        assert exc.value.reason == "mismatch"

    def test_required_mode_without_secret_fails_closed(self):
        signer = LinkSigner("", mode="required")
        with pytest.raises(SigningDisabledError):
            self._mint(signer)

    def test_advisory_mode_marks_links_unsigned(self):
        signer = LinkSigner("", mode="advisory")
        params = self._mint(signer)

        assert "sig" not in params
        assert params["advisory"] == "1"
        with pytest.raises(SignatureError) as exc:
            signer.parse_and_verify(params, now=NOW)
        assert exc.value.reason == "unsigned"

    def test_signed_link_cannot_be_trusted_without_server_secret(self):
        params = self._mint(LinkSigner(SECRET))
        with pytest.raises(SignatureError) as exc:
            LinkSigner("", mode="advisory").parse_and_verify(params, now=NOW)
        assert exc.value.reason == "signing_not_configured"

    def test_expired_link_is_rejected(self):
        signer = LinkSigner(SECRET, max_age=timedelta(days=30))
        params = self._mint(signer)

        signer.parse_and_verify(params, now=NOW + 30 * 86400)
        with pytest.raises(SignatureError) as exc:
            signer.parse_and_verify(params, now=NOW + 30 * 86400 + 1)
        assert exc.value.reason == "expired"

    def test_link_from_the_future_is_rejected(self):
        signer = LinkSigner(SECRET)
        params = self._mint(signer, now=NOW + 3600)
        with pytest.raises(SignatureError) as exc:
            signer.parse_and_verify(params, now=NOW)
        assert exc.value.reason == "from_future"

    def test_defaults_to_current_time(self):
        signer = LinkSigner(SECRET)
        params = signer.mint(
            name="Jane", phone="", country_code="", rating=3, tracking_id="trk_now"
        )
        assert abs(int(params["ts"]) - time.time()) < 5
        assert signer.parse_and_verify(params).rating == 3

    def test_unknown_canonical_version_is_rejected(self):
        signer = LinkSigner(SECRET)
        params = self._mint(signer)
        params["v"] = "v2"

        with pytest.raises(SignatureError) as exc:
            signer.parse_and_verify(params, now=NOW)
        assert exc.value.reason == "unsupported_version"

    def test_link_without_version_is_read_as_v1(self):
        signer = LinkSigner(SECRET)
        params = self._mint(signer)
        del params["v"]
        assert signer.parse_and_verify(params, now=NOW).tracking_id == "trk_1"
