"""Secret masking and optional PII scrubbing for audit records."""

from __future__ import annotations

import hashlib
import os
import re
from typing import Any

REDACTION_MARKER = "***MASKED***"

SENSITIVE_KEY_MARKERS: tuple[str, ...] = (
    "grantkey",
    "password",
    "secret",
    "token",
    "key",
    "authorization",
    "credential",
)

_SUPPORTED_MODES = {"off", "redact", "tokenize"}
_PATTERNS: list[tuple[str, re.Pattern[str]]] = [
    ("email", re.compile(r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}")),
    ("ssn", re.compile(r"\b\d{3}-\d{2}-\d{4}\b")),
    ("phone", re.compile(r"\+?\d[\d\-\s()]{7,}\d")),
]


def is_sensitive_key(name: str) -> bool:
    """Return True if a field name looks like it holds secret material."""
    lowered = name.lower()
    return any(marker in lowered for marker in SENSITIVE_KEY_MARKERS)


def mask_secrets(value: Any) -> Any:
    """Return a copy of ``value`` with every sensitive field masked.

    Walks dictionaries and lists to any depth. The value of a sensitive field
    is replaced wholesale, whatever its type.
    """
    if isinstance(value, dict):
        return {
            str(key): REDACTION_MARKER if is_sensitive_key(str(key)) else mask_secrets(item)
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [mask_secrets(item) for item in value]
    return value


def get_pii_mode() -> str:
    """Return normalized PII handling mode."""
    raw = os.getenv("ACTIONGATE_PII_MODE", "off").strip().lower()
    return raw if raw in _SUPPORTED_MODES else "off"


def _tokenize(label: str, value: str, *, salt: str) -> str:
    digest = hashlib.sha256(f"{salt}:{label}:{value}".encode()).hexdigest()
    return f"tok_{label}_{digest[:12]}"


def scrub_text(value: str, *, mode: str | None = None) -> str:
    """Redact or tokenize PII-like substrings inside free text."""
    effective_mode = mode if mode in _SUPPORTED_MODES else get_pii_mode()
    if effective_mode == "off" or not value:
        return value

    salt = os.getenv("ACTIONGATE_PII_TOKEN_SALT", "")
    scrubbed = value
    for label, pattern in _PATTERNS:
        if effective_mode == "redact":
            scrubbed = pattern.sub(f"[REDACTED_{label.upper()}]", scrubbed)
            continue

        def _replace(match: re.Match[str], pii_label: str = label) -> str:
            return _tokenize(pii_label, match.group(0), salt=salt)

        scrubbed = pattern.sub(_replace, scrubbed)
    return scrubbed
