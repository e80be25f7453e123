"""Secret masking and PII scrubbing tests."""

from __future__ import annotations

import pytest

from actiongate.redaction import (
    REDACTION_MARKER,
    get_pii_mode,
    is_sensitive_key,
    mask_secrets,
    scrub_text,
)


@pytest.mark.parametrize(
    "name",
    [
        "grantKey",
        "password",
        "client_secret",
        "accessToken",
        "apiKey",
        "Authorization",
        "creds_credential",
    ],
)
def test_sensitive_names(name: str) -> None:
    assert is_sensitive_key(name)


@pytest.mark.parametrize("name", ["jobId", "webhookUrl", "payload", "trace_id", "status"])
def test_non_sensitive_names(name: str) -> None:
    assert not is_sensitive_key(name)


def test_mask_secrets_walks_nested_structures() -> None:
    original = {
        "pave": {
            "$": {"grantKey": "grant-db-secret", "timeZone": "America/Chicago"},
            "jobs": [{"id": "1", "token": "abc"}, {"id": "2"}],
        },
        "password": {"nested": "whole value replaced"},
        "plain": "visible",
    }

    masked = mask_secrets(original)

    assert masked["pave"]["$"]["grantKey"] == REDACTION_MARKER
    assert masked["pave"]["$"]["timeZone"] == "America/Chicago"
    assert masked["pave"]["jobs"][0] == {"id": "1", "token": REDACTION_MARKER}
    assert masked["pave"]["jobs"][1] == {"id": "2"}
    assert masked["password"] == REDACTION_MARKER
    assert masked["plain"] == "visible"
    assert original["pave"]["$"]["grantKey"] == "grant-db-secret"


def test_mask_secrets_leaves_scalars_alone() -> None:
    assert mask_secrets("grantKey") == "grantKey"
    assert mask_secrets(None) is None
    assert mask_secrets([1, "two"]) == [1, "two"]


def test_pii_mode_defaults_off(monkeypatch: pytest.MonkeyPatch) -> None:
    assert get_pii_mode() == "off"
    monkeypatch.setenv("ACTIONGATE_PII_MODE", " REDACT ")
    assert get_pii_mode() == "redact"
    monkeypatch.setenv("ACTIONGATE_PII_MODE", "bogus")
    assert get_pii_mode() == "off"


def test_scrub_text_redact() -> None:
    text = "Contact jane@example.com or 555-12-3456"
    scrubbed = scrub_text(text, mode="redact")
    assert "jane@example.com" not in scrubbed
    assert "[REDACTED_EMAIL]" in scrubbed
    assert "[REDACTED_SSN]" in scrubbed


def test_scrub_text_tokenize_is_stable(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ACTIONGATE_PII_TOKEN_SALT", "salt")
    first = scrub_text("mail jane@example.com", mode="tokenize")
    second = scrub_text("mail jane@example.com", mode="tokenize")
    assert first == second
    assert first.startswith("mail tok_email_")


def test_scrub_text_off_is_identity() -> None:
    assert scrub_text("jane@example.com", mode="off") == "jane@example.com"
