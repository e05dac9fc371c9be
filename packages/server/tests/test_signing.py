"""Tests for Slack request signature verification."""
from app.slack.signing import sign_slack_request, verify_slack_signature

SECRET = "8f742231b10e8888abcd99yyyzzz85a5"
BODY = b"token=xyz&command=%2Fagent&text=hello"
NOW = 1_700_000_000


def test_valid_signature():
    sig = sign_slack_request(BODY, NOW, SECRET)
    assert sig.startswith("v0=")
    assert verify_slack_signature(BODY, str(NOW), sig, SECRET, now=NOW) is True


def test_tampered_body_rejected():
    sig = sign_slack_request(BODY, NOW, SECRET)
    assert verify_slack_signature(BODY + b"x", str(NOW), sig, SECRET, now=NOW) is False


def test_wrong_secret_rejected():
    sig = sign_slack_request(BODY, NOW, "other-secret")
    assert verify_slack_signature(BODY, str(NOW), sig, SECRET, now=NOW) is False


def test_stale_timestamp_rejected():
    sig = sign_slack_request(BODY, NOW, SECRET)
    assert verify_slack_signature(BODY, str(NOW), sig, SECRET, now=NOW + 301) is False
    assert (
        verify_slack_signature(BODY, str(NOW), sig, SECRET, tolerance_seconds=600, now=NOW + 301)
        is True
    )


def test_malformed_headers_rejected():
    sig = sign_slack_request(BODY, NOW, SECRET)
    assert verify_slack_signature(BODY, "not-a-number", sig, SECRET, now=NOW) is False
    assert verify_slack_signature(BODY, str(NOW), sig[3:], SECRET, now=NOW) is False
    assert verify_slack_signature(BODY, str(NOW), sig, "", now=NOW) is False
