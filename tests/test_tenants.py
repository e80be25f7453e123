"""Tenant resolution tests."""

from __future__ import annotations

import pytest

from actiongate.errors import ConfigurationError
from actiongate.tenants import JOBTREAD_GRANT_KEY, TenantIdentity, TenantResolver


def test_resolve_returns_own_tenant_only(tenant_resolver: TenantResolver) -> None:
    db = tenant_resolver.resolve("gk-db-0123456789")
    ci = tenant_resolver.resolve("gk-ci-9876543210")
    assert db is not None and db.name == "DB"
    assert ci is not None and ci.name == "CI"
    assert db.credential(JOBTREAD_GRANT_KEY) == "grant-db-secret"
    assert ci.credential(JOBTREAD_GRANT_KEY) == "grant-ci-secret"


@pytest.mark.parametrize(
    "credential",
    [None, "", "gk-db", "gk-db-0123456789 ", "GK-DB-0123456789", "gk-db-01234567890", "DB"],
)
def test_resolve_unknown_credentials(
    tenant_resolver: TenantResolver, credential: str | None
) -> None:
    assert tenant_resolver.resolve(credential) is None


def test_resolver_requires_keys() -> None:
    with pytest.raises(ConfigurationError):
        TenantResolver({})


def test_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ACTIONGATE_TENANTS", "DB, CI")
    monkeypatch.setenv("ACTIONGATE_GATEWAY_KEY_DB", "key-db")
    monkeypatch.setenv("ACTIONGATE_GATEWAY_KEY_CI", "key-ci")
    monkeypatch.setenv("ACTIONGATE_JT_GRANT_KEY_DB", "grant-db")

    resolver = TenantResolver.from_env()

    assert resolver.tenants == ["DB", "CI"]
    db = resolver.resolve("key-db")
    ci = resolver.resolve("key-ci")
    assert db is not None and db.has_credential(JOBTREAD_GRANT_KEY)
    assert ci is not None and not ci.has_credential(JOBTREAD_GRANT_KEY)
    with pytest.raises(ConfigurationError, match="CI"):
        ci.credential(JOBTREAD_GRANT_KEY)


def test_from_env_defaults_to_db_and_ci(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ACTIONGATE_GATEWAY_KEY_DB", "key-db")
    monkeypatch.setenv("ACTIONGATE_GATEWAY_KEY_CI", "key-ci")
    assert TenantResolver.from_env().tenants == ["DB", "CI"]


def test_from_env_missing_gateway_key_is_fatal(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ACTIONGATE_GATEWAY_KEY_DB", "key-db")
    with pytest.raises(ConfigurationError, match="ACTIONGATE_GATEWAY_KEY_CI"):
        TenantResolver.from_env()


def test_from_env_rejects_shared_keys(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ACTIONGATE_GATEWAY_KEY_DB", "same")
    monkeypatch.setenv("ACTIONGATE_GATEWAY_KEY_CI", "same")
    with pytest.raises(ConfigurationError, match="duplicates"):
        TenantResolver.from_env()


def test_identity_credentials_are_read_only_and_hidden() -> None:
    identity = TenantIdentity(name="DB", credentials={JOBTREAD_GRANT_KEY: "grant"})
    with pytest.raises(TypeError):
        identity.credentials[JOBTREAD_GRANT_KEY] = "other"  # type: ignore[index]
    assert "grant" not in repr(identity)
