"""Request signing and admin authentication.

Callers sign the exact raw request body with a shared secret and send the
digest as ``X-Signature: sha256=<hex>``. Verification never re-serializes the
body and fails closed on any malformed input.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import secrets

SIGNATURE_PREFIX = "sha256="


def _as_bytes(value: bytes | str) -> bytes:
    return value.encode("utf-8") if isinstance(value, str) else value


def sign_body(raw_body: bytes | str, secret: bytes | str) -> str:
    """Return the ``sha256=<hex>`` signature header value for a body."""
    digest = hmac.new(_as_bytes(secret), _as_bytes(raw_body), hashlib.sha256).hexdigest()
    return f"{SIGNATURE_PREFIX}{digest}"


def verify_signature(
    raw_body: bytes | str,
    signature_header: str | None,
    secret: bytes | str,
) -> bool:
    """Return True if ``signature_header`` is a valid HMAC of ``raw_body``."""
    if not isinstance(signature_header, str) or not signature_header.startswith(
        SIGNATURE_PREFIX
    ):
        return False

    provided_hex = signature_header[len(SIGNATURE_PREFIX):]
    try:
        provided = binascii.unhexlify(provided_hex)
    except ValueError:
        return False

    expected = hmac.new(_as_bytes(secret), _as_bytes(raw_body), hashlib.sha256).digest()
    if len(provided) != len(expected):
        return False
    return hmac.compare_digest(provided, expected)


def parse_basic_auth(authorization: str | None) -> tuple[str, str] | None:
    """Decode an ``Authorization: Basic`` header into (username, password)."""
    if not authorization:
        return None
    parts = authorization.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "basic":
        return None
    try:
        decoded = base64.b64decode(parts[1].strip(), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return None
    username, separator, password = decoded.partition(":")
    if not separator:
        return None
    return username, password


def check_basic_auth(
    authorization: str | None,
    *,
    expected_user: str,
    expected_password: str,
) -> bool:
    """Return True if the header carries the expected admin credentials."""
    credentials = parse_basic_auth(authorization)
    if credentials is None:
        return False
    username, password = credentials
    user_ok = secrets.compare_digest(username.encode(), expected_user.encode())
    pass_ok = secrets.compare_digest(password.encode(), expected_password.encode())
    return user_ok and pass_ok
