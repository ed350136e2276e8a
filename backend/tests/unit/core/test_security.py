import pytest

from streamsite.core.exceptions import WebhookSignatureError
from streamsite.core.security import WebhookVerifier, compute_signature, parse_signature_header

SECRET = "whsec_test"
BODY = b'{"type":"video.live_stream.active","data":{"id":"ms-1"}}'
NOW = 1_760_000_000


def sign(body: bytes = BODY, timestamp: int = NOW, secret: str = SECRET) -> str:
    return f"t={timestamp},v1={compute_signature(secret, timestamp, body)}"


@pytest.fixture
def verifier():
    return WebhookVerifier(secret=SECRET, tolerance_seconds=300)


def test_valid_signature_is_accepted(verifier):
    verifier.verify(BODY, sign(), now=NOW + 10)


def test_tampered_body_is_rejected(verifier):
    with pytest.raises(WebhookSignatureError, match="mismatch"):
        verifier.verify(BODY.replace(b"active", b"idle"), sign(), now=NOW)


def test_wrong_secret_is_rejected(verifier):
    with pytest.raises(WebhookSignatureError):
        verifier.verify(BODY, sign(secret="someone-else"), now=NOW)


def test_stale_timestamp_is_rejected(verifier):
    with pytest.raises(WebhookSignatureError, match="tolerance"):
        verifier.verify(BODY, sign(), now=NOW + 301)


def test_missing_header_is_rejected(verifier):
    with pytest.raises(WebhookSignatureError, match="Missing"):
        verifier.verify(BODY, None, now=NOW)


def test_any_matching_v1_entry_is_accepted(verifier):
    header = f"t={NOW},v1=deadbeef,v1={compute_signature(SECRET, NOW, BODY)}"

    verifier.verify(BODY, header, now=NOW)


@pytest.mark.parametrize("header", ["", "v1=abc", "t=123", "t=soon,v1=abc", "garbage"])
def test_malformed_headers_are_rejected(header):
    with pytest.raises(WebhookSignatureError):
        parse_signature_header(header)


def test_parse_signature_header_splits_parts():
    timestamp, signatures = parse_signature_header("t=42, v1=aa, v0=ignored, v1=bb")

    assert timestamp == 42
    assert signatures == ["aa", "bb"]


def test_without_secret_everything_is_accepted():
    verifier = WebhookVerifier(secret="", tolerance_seconds=300)

    assert verifier.enabled is False
    verifier.verify(BODY, None)
    verifier.verify(BODY, "t=1,v1=bogus")


def test_zero_tolerance_disables_replay_window():
    verifier = WebhookVerifier(secret=SECRET, tolerance_seconds=0)

    verifier.verify(BODY, sign(), now=NOW + 86400)


@pytest.mark.parametrize("candidate", ["\xe9\xe9", "é" * 64, "sig\udcff"])
def test_non_ascii_signature_is_a_mismatch(verifier, candidate):
    with pytest.raises(WebhookSignatureError, match="mismatch"):
        verifier.verify(BODY, f"t={NOW},v1={candidate}", now=NOW)


def test_non_ascii_entry_does_not_hide_a_valid_one(verifier):
    valid = sign().split("v1=")[1]

    verifier.verify(BODY, f"t={NOW},v1=\xe9\xe9,v1={valid}", now=NOW)
