"""
Tests for GitHub webhook signature and sender verification.
"""

import hashlib
import hmac
import json

import pytest

from shared.security.webhook_signing import (
    WebhookVerifier,
    normalize_action,
    select_signature_header,
)
from shared.utils.exceptions import MalformedPayloadError, WebhookRejectedError


SECRET = "It's a Secret to Everybody"


def _body(make_payload, **kwargs) -> bytes:
    return json.dumps(make_payload(**kwargs)).encode()


class TestSignature:
    """Tests for HMAC signature checking."""

    def test_known_github_vector(self):
        """Matches the example published in GitHub's webhook docs."""
        verifier = WebhookVerifier(SECRET)
        assert verifier.sign(b"Hello, World!") == (
            "sha256=757107ea0eb2509fc211221cce984b8a37570b6d7586c22c46f4379c8b043e17"
        )

    def test_valid_sha256_signature(self):
        verifier = WebhookVerifier(SECRET)
        body = b'{"action": "closed"}'
        assert verifier.verify_signature(body, verifier.sign(body)) is True

    def test_legacy_sha1_signature(self):
        verifier = WebhookVerifier(SECRET)
        body = b'{"action": "closed"}'
        expected = "sha1=" + hmac.new(SECRET.encode(), body, hashlib.sha1).hexdigest()
        assert verifier.sign(body, "sha1") == expected
        assert verifier.verify_signature(body, expected) is True

    def test_uppercase_hex_accepted(self):
        verifier = WebhookVerifier(SECRET)
        body = b"{}"
        algorithm, _, digest = verifier.sign(body).partition("=")
        assert verifier.verify_signature(body, f"{algorithm}={digest.upper()}") is True

    def test_tampered_body_rejected(self):
        verifier = WebhookVerifier(SECRET)
        signature = verifier.sign(b'{"action": "closed"}')
        assert verifier.verify_signature(b'{"action": "reopened"}', signature) is False

    def test_wrong_secret_rejected(self):
        body = b"{}"
        signature = WebhookVerifier("another secret").sign(body)
        assert WebhookVerifier(SECRET).verify_signature(body, signature) is False

    @pytest.mark.parametrize(
        "header",
        [None, "", "sha256", "sha256=", "md5=abcdef", "deadbeef"],
    )
    def test_malformed_header_rejected(self, header):
        assert WebhookVerifier(SECRET).verify_signature(b"{}", header) is False

    @pytest.mark.parametrize("header", ["sha256=\xe9abc", "sha256=zz", "sha1=12 34"])
    def test_non_hex_digest_rejected(self, header):
        """Header values decoded as latin-1 may carry arbitrary characters."""
        assert WebhookVerifier(SECRET).verify_signature(b"{}", header) is False

    def test_empty_secret_rejects_everything(self):
        verifier = WebhookVerifier("")
        body = b"{}"
        assert verifier.verify_signature(body, verifier.sign(body)) is False


class TestVerify:
    """Tests for the full verification pipeline."""

    def test_owner_is_authorized(self, make_payload):
        verifier = WebhookVerifier(SECRET)
        body = _body(make_payload)
        event = verifier.verify(body, verifier.sign(body))

        assert event.action == "closed"
        assert event.issue_reference == 42
        assert event.is_authorized_sender is True
        assert event.payload.issue.title == "Foo"

    def test_owner_match_is_case_insensitive(self, make_payload):
        verifier = WebhookVerifier(SECRET)
        body = _body(make_payload, sender="OctoCat", owner="octocat")
        assert verifier.verify(body, verifier.sign(body)).issue_reference == 42

    def test_non_owner_rejected(self, make_payload):
        """A valid signature alone is not enough."""
        verifier = WebhookVerifier(SECRET)
        body = _body(make_payload, sender="mallory")
        with pytest.raises(WebhookRejectedError) as exc_info:
            verifier.verify(body, verifier.sign(body))
        assert exc_info.value.reason == "unauthorized_sender"
        assert exc_info.value.status_code == 401

    def test_allow_list_replaces_owner_check(self, make_payload):
        verifier = WebhookVerifier(SECRET, allowed_senders={"Hubot"})
        allowed = _body(make_payload, sender="hubot")
        owner = _body(make_payload, sender="octocat")

        assert verifier.verify(allowed, verifier.sign(allowed)).issue_reference == 42
        with pytest.raises(WebhookRejectedError):
            verifier.verify(owner, verifier.sign(owner))

    def test_missing_sender_rejected(self, make_payload):
        verifier = WebhookVerifier(SECRET)
        payload = make_payload()
        del payload["sender"]
        body = json.dumps(payload).encode()
        with pytest.raises(WebhookRejectedError):
            verifier.verify(body, verifier.sign(body))

    def test_signature_checked_before_parsing(self):
        """An unsigned garbage body is a 401, not a 400."""
        with pytest.raises(WebhookRejectedError) as exc_info:
            WebhookVerifier(SECRET).verify(b"not json", "sha256=00")
        assert exc_info.value.reason == "invalid_signature"

    @pytest.mark.parametrize(
        "body",
        [
            b"not json",
            b"[]",
            b'{"action": "closed"}',
            b'{"action": "closed", "issue": {"id": 1, "title": ""}}',
            b'{"action": "closed", "issue": {"id": "abc", "title": "Foo"}}',
        ],
    )
    def test_signed_malformed_body(self, body):
        verifier = WebhookVerifier(SECRET)
        with pytest.raises(MalformedPayloadError) as exc_info:
            verifier.verify(body, verifier.sign(body))
        assert exc_info.value.status_code == 400

    def test_unknown_fields_preserved(self, make_payload):
        verifier = WebhookVerifier(SECRET)
        payload = make_payload()
        payload["installation"] = {"id": 99}
        body = json.dumps(payload).encode()

        event = verifier.verify(body, verifier.sign(body))
        assert event.payload.model_dump()["installation"] == {"id": 99}


class TestHelpers:
    """Tests for module helpers."""

    @pytest.mark.parametrize(
        "action,expected",
        [("closed", "closed"), ("reopened", "reopened"), ("opened", "other"), ("labeled", "other")],
    )
    def test_normalize_action(self, action, expected):
        assert normalize_action(action) == expected

    def test_sha256_header_preferred(self):
        headers = {"X-Hub-Signature-256": "sha256=aa", "X-Hub-Signature": "sha1=bb"}
        assert select_signature_header(headers) == "sha256=aa"

    def test_sha1_header_fallback(self):
        assert select_signature_header({"X-Hub-Signature": "sha1=bb"}) == "sha1=bb"

    def test_no_header(self):
        assert select_signature_header({}) is None
