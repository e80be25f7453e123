"""Tenant identities and gateway-key resolution.

Each tenant owns its downstream credentials. Executors only ever read
credentials from the identity resolved for the current request, so a request
authenticated as one tenant has no path to another tenant's secrets.
"""

from __future__ import annotations

import os
import secrets
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from actiongate.errors import ConfigurationError

JOBTREAD_GRANT_KEY = "jobtread_grant_key"

_DEFAULT_TENANTS = "DB,CI"


@dataclass(frozen=True)
class TenantIdentity:
    """Resolved caller identity with its private downstream credentials."""

    name: str
    credentials: Mapping[str, str] = field(default_factory=dict, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "credentials", MappingProxyType(dict(self.credentials))
        )

    def credential(self, name: str) -> str:
        """Return a downstream credential or raise if it is not configured."""
        value = self.credentials.get(name)
        if not value:
            raise ConfigurationError(
                f"Downstream credential {name} not configured for tenant: {self.name}"
            )
        return value

    def has_credential(self, name: str) -> bool:
        return bool(self.credentials.get(name))


class TenantResolver:
    """Map an inbound gateway key to exactly one tenant."""

    def __init__(self, gateway_keys: Mapping[str, TenantIdentity]) -> None:
        if not gateway_keys:
            raise ConfigurationError("Gateway keys not configured")
        for key, tenant in gateway_keys.items():
            if not key:
                raise ConfigurationError(
                    f"Gateway key not configured for tenant: {tenant.name}"
                )
        self._entries: tuple[tuple[bytes, TenantIdentity], ...] = tuple(
            (key.encode("utf-8"), tenant) for key, tenant in gateway_keys.items()
        )

    @classmethod
    def from_env(cls, tenant_names: Iterable[str] | None = None) -> TenantResolver:
        """Build a resolver from ``ACTIONGATE_GATEWAY_KEY_<TENANT>`` variables.

        Raises:
            ConfigurationError: if any configured tenant lacks a gateway key.
        """
        names = list(tenant_names) if tenant_names is not None else _tenant_names_from_env()
        gateway_keys: dict[str, TenantIdentity] = {}
        missing: list[str] = []
        for name in names:
            key = os.getenv(f"ACTIONGATE_GATEWAY_KEY_{name}", "").strip()
            if not key:
                missing.append(f"ACTIONGATE_GATEWAY_KEY_{name}")
                continue
            if key in gateway_keys:
                raise ConfigurationError(
                    f"Gateway key for tenant {name} duplicates another tenant's key"
                )
            credentials: dict[str, str] = {}
            grant_key = os.getenv(f"ACTIONGATE_JT_GRANT_KEY_{name}", "").strip()
            if grant_key:
                credentials[JOBTREAD_GRANT_KEY] = grant_key
            gateway_keys[key] = TenantIdentity(name=name, credentials=credentials)
        if missing:
            raise ConfigurationError(
                f"Gateway keys not configured: {', '.join(missing)}"
            )
        return cls(gateway_keys)

    @property
    def tenants(self) -> list[str]:
        return [tenant.name for _, tenant in self._entries]

    def resolve(self, credential: str | None) -> TenantIdentity | None:
        """Return the tenant owning ``credential`` or None when nothing matches."""
        if not credential:
            return None
        candidate = credential.encode("utf-8")
        matched: TenantIdentity | None = None
        # Scan every key; lookup time must not depend on which one matched.
        for key, tenant in self._entries:
            if secrets.compare_digest(candidate, key):
                matched = tenant
        return matched


def _tenant_names_from_env() -> list[str]:
    raw = os.getenv("ACTIONGATE_TENANTS", _DEFAULT_TENANTS)
    names: list[str] = []
    for part in raw.split(","):
        name = part.strip()
        if name and name not in names:
            names.append(name)
    return names
