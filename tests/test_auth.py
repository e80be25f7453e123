"""Signature and admin credential tests."""

from __future__ import annotations

import base64

import pytest

from actiongate.auth import (
    check_basic_auth,
    parse_basic_auth,
    sign_body,
    verify_signature,
)

BODY = b'{"action":"echo","mode":"dry_run","idempotencyKey":"k1","params":{}}'
SECRET = "s3cret"


def test_sign_body_format() -> None:
    signature = sign_body(BODY, SECRET)
    assert signature.startswith("sha256=")
    assert len(signature) == len("sha256=") + 64


def test_verify_signature_accepts_valid() -> None:
    assert verify_signature(BODY, sign_body(BODY, SECRET), SECRET) is True


def test_verify_signature_accepts_str_and_bytes_inputs() -> None:
    signature = sign_body(BODY.decode(), SECRET.encode())
    assert verify_signature(BODY, signature, SECRET)


def test_verify_signature_accepts_uppercase_hex() -> None:
    prefix, digest = sign_body(BODY, SECRET).split("=", 1)
    assert verify_signature(BODY, f"{prefix}={digest.upper()}", SECRET)


@pytest.mark.parametrize("index", [0, 10, len(BODY) - 1])
def test_verify_signature_rejects_body_bit_flip(index: int) -> None:
    signature = sign_body(BODY, SECRET)
    mutated = bytearray(BODY)
    mutated[index] ^= 0x01
    assert verify_signature(bytes(mutated), signature, SECRET) is False


def test_verify_signature_rejects_signature_bit_flip() -> None:
    signature = sign_body(BODY, SECRET)
    digest = bytearray(bytes.fromhex(signature[len("sha256="):]))
    digest[5] ^= 0x80
    assert verify_signature(BODY, f"sha256={digest.hex()}", SECRET) is False


def test_verify_signature_rejects_wrong_secret() -> None:
    assert verify_signature(BODY, sign_body(BODY, SECRET), "s3cres") is False


def test_verify_signature_checks_exact_bytes_not_reserialized_json() -> None:
    signature = sign_body(BODY, SECRET)
    spaced = BODY.replace(b",", b", ")
    assert verify_signature(spaced, signature, SECRET) is False


@pytest.mark.parametrize(
    "header",
    [
        None,
        "",
        "sha1=abcdef",
        "SHA256=" + "0" * 64,
        "sha256 " + "0" * 64,
        "sha256=",
        "sha256=zz" + "0" * 62,
        "sha256=abc",
        "sha256=" + "0" * 62,
        "sha256=" + "0" * 66,
        "sha256= " + "0" * 64,
        "sha256=ü" + "0" * 63,
    ],
)
def test_verify_signature_fails_closed_on_malformed_headers(header: str | None) -> None:
    assert verify_signature(BODY, header, SECRET) is False


def test_parse_basic_auth() -> None:
    token = base64.b64encode(b"admin:pa:ss").decode()
    assert parse_basic_auth(f"Basic {token}") == ("admin", "pa:ss")
    assert parse_basic_auth(f"basic {token}") == ("admin", "pa:ss")


@pytest.mark.parametrize(
    "header",
    [
        None,
        "",
        "Bearer abc",
        "Basic",
        "Basic !!!",
        "Basic " + base64.b64encode(b"nocolon").decode(),
    ],
)
def test_parse_basic_auth_rejects_malformed(header: str | None) -> None:
    assert parse_basic_auth(header) is None


def test_check_basic_auth() -> None:
    good = "Basic " + base64.b64encode(b"admin:pw").decode()
    bad = "Basic " + base64.b64encode(b"admin:nope").decode()
    assert check_basic_auth(good, expected_user="admin", expected_password="pw")
    assert not check_basic_auth(bad, expected_user="admin", expected_password="pw")
    assert not check_basic_auth(None, expected_user="admin", expected_password="pw")
