"""Outbound webhook host allowlist."""

from __future__ import annotations

import os
from collections.abc import Iterable
from urllib.parse import urlparse

from actiongate.errors import ConfigurationError


def get_allow_hosts() -> list[str]:
    """Return the configured allowlist.

    Raises:
        ConfigurationError: if ``ACTIONGATE_ALLOW_HOSTS`` is unset or empty.
    """
    raw = os.getenv("ACTIONGATE_ALLOW_HOSTS", "")
    hosts = [item.strip().lower() for item in raw.split(",") if item.strip()]
    if not hosts:
        raise ConfigurationError("ACTIONGATE_ALLOW_HOSTS is not configured")
    return hosts


def is_host_allowed(url: str, allow_hosts: Iterable[str]) -> bool:
    """Return True if the URL's host equals an allowed host or is a subdomain of one.

    Unparseable URLs and URLs without a host are never allowed.
    """
    try:
        hostname = urlparse(url).hostname
    except ValueError:
        return False
    if not hostname:
        return False

    for allowed in allow_hosts:
        allowed = allowed.strip().lower().rstrip(".")
        if not allowed:
            continue
        if hostname == allowed or hostname.endswith(f".{allowed}"):
            return True
    return False
