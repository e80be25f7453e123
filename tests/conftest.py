"""pytest fixtures for ActionGate."""

from __future__ import annotations

import base64
import json
import os
import sys
from collections.abc import AsyncIterator, Callable
from pathlib import Path
from typing import Any

import httpx
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient

ROOT_DIR = Path(__file__).resolve().parents[1]
SRC_DIR = ROOT_DIR / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from actiongate.actions import build_default_registry
from actiongate.audit import AuditLog
from actiongate.auth import sign_body
from actiongate.dispatch import ActionRegistry
from actiongate.http import ResilientHttpClient
from actiongate.idempotency import IdempotencyCache
from actiongate.main import create_app
from actiongate.metrics import reset_metrics
from actiongate.tenants import JOBTREAD_GRANT_KEY, TenantIdentity, TenantResolver

HMAC_SECRET = "test-hmac-secret"
GATEWAY_KEYS = {"DB": "gk-db-0123456789", "CI": "gk-ci-9876543210"}
GRANT_KEYS = {"DB": "grant-db-secret", "CI": "grant-ci-secret"}
ADMIN_CREDENTIALS = ("admin", "admin-pass")
ALLOW_HOSTS = ["hook.make.com"]


class Downstream:
    """Recording stand-in for every downstream HTTP service."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.handler: Callable[[httpx.Request], httpx.Response] = self.ok

    @staticmethod
    def ok(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"data": {"ok": True}})

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)

    def bodies(self) -> list[Any]:
        return [json.loads(request.content) for request in self.requests]


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in list(os.environ):
        if name.startswith("ACTIONGATE_"):
            monkeypatch.delenv(name, raising=False)
    reset_metrics()


@pytest.fixture()
def secret() -> str:
    return HMAC_SECRET


@pytest.fixture()
def tenant_resolver() -> TenantResolver:
    return TenantResolver(
        {
            GATEWAY_KEYS[name]: TenantIdentity(
                name=name, credentials={JOBTREAD_GRANT_KEY: GRANT_KEYS[name]}
            )
            for name in ("DB", "CI")
        }
    )


@pytest.fixture()
def downstream() -> Downstream:
    return Downstream()


@pytest.fixture()
def sleeps() -> list[float]:
    return []


@pytest.fixture()
def http_client(downstream: Downstream, sleeps: list[float]) -> ResilientHttpClient:
    async def fake_sleep(delay: float) -> None:
        sleeps.append(delay)

    return ResilientHttpClient(transport=httpx.MockTransport(downstream), sleep=fake_sleep)


@pytest.fixture()
def registry(http_client: ResilientHttpClient) -> ActionRegistry:
    return build_default_registry(http_client, allow_hosts=ALLOW_HOSTS)


@pytest.fixture()
def audit_log() -> AuditLog:
    return AuditLog()


@pytest.fixture()
def idempotency_cache() -> IdempotencyCache:
    return IdempotencyCache()


@pytest.fixture()
def app(
    tenant_resolver: TenantResolver,
    registry: ActionRegistry,
    audit_log: AuditLog,
    idempotency_cache: IdempotencyCache,
    secret: str,
) -> FastAPI:
    return create_app(
        tenant_resolver=tenant_resolver,
        registry=registry,
        audit_log=audit_log,
        idempotency_cache=idempotency_cache,
        hmac_secret=secret,
        admin_credentials=ADMIN_CREDENTIALS,
    )


@pytest.fixture()
def client(app: FastAPI) -> TestClient:
    return TestClient(app)


@pytest.fixture()
async def async_client(app: FastAPI) -> AsyncIterator[AsyncClient]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as http_client:
        yield http_client


def _envelope(
    action: str = "echo",
    *,
    mode: str = "dry_run",
    idempotency_key: str = "k1",
    params: Any = None,
) -> dict[str, Any]:
    return {
        "action": action,
        "mode": mode,
        "idempotencyKey": idempotency_key,
        "params": {} if params is None else params,
    }


def _signed_request(
    payload: dict[str, Any] | str | bytes,
    *,
    tenant: str = "DB",
    secret: str = HMAC_SECRET,
) -> tuple[bytes, dict[str, str]]:
    """Serialize a payload and return it with gateway-key and signature headers."""
    if isinstance(payload, bytes):
        body = payload
    elif isinstance(payload, str):
        body = payload.encode("utf-8")
    else:
        body = json.dumps(payload).encode("utf-8")
    headers = {
        "content-type": "application/json",
        "x-gateway-key": GATEWAY_KEYS[tenant],
        "x-signature": sign_body(body, secret),
    }
    return body, headers


@pytest.fixture()
def make_envelope() -> Callable[..., dict[str, Any]]:
    return _envelope


@pytest.fixture()
def signed() -> Callable[..., tuple[bytes, dict[str, str]]]:
    return _signed_request


@pytest.fixture()
def grant_keys() -> dict[str, str]:
    return dict(GRANT_KEYS)


@pytest.fixture()
def admin_headers() -> dict[str, str]:
    token = base64.b64encode(":".join(ADMIN_CREDENTIALS).encode()).decode("ascii")
    return {"Authorization": f"Basic {token}"}
