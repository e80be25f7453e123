"""HTTP client for ActionGate."""

from __future__ import annotations

import base64
import json
import os
from collections.abc import Mapping
from types import TracebackType
from typing import Any, cast

import httpx

from actiongate.auth import sign_body


class ActionGateAPIError(RuntimeError):
    """Structured API error raised for non-2xx responses."""

    def __init__(
        self,
        *,
        method: str,
        path: str,
        status_code: int,
        payload: dict[str, Any] | str | None,
    ) -> None:
        self.method = method
        self.path = path
        self.status_code = status_code
        self.payload = payload
        message = f"{method} {path} failed with status {status_code}"
        if isinstance(payload, dict) and isinstance(payload.get("error"), str):
            message = f"{message}: {payload['error']}"
        elif isinstance(payload, str) and payload:
            message = f"{message}: {payload}"
        super().__init__(message)

    @property
    def trace_id(self) -> str | None:
        if isinstance(self.payload, dict):
            value = self.payload.get("traceId")
            return value if isinstance(value, str) else None
        return None


def encode_envelope(
    action: str,
    *,
    mode: str,
    idempotency_key: str,
    params: Mapping[str, Any] | None = None,
) -> bytes:
    """Serialize an envelope once; the same bytes are signed and sent."""
    envelope = {
        "action": action,
        "mode": mode,
        "idempotencyKey": idempotency_key,
        "params": dict(params or {}),
    }
    return json.dumps(envelope, separators=(",", ":")).encode("utf-8")


class ActionGateClient:
    """Async client for the ActionGate HTTP API.

    Example:
        ```python
        async with ActionGateClient(
            "http://localhost:8000", gateway_key="gk-db", hmac_secret="s3cret"
        ) as client:
            response = await client.execute(
                "echo", mode="dry_run", idempotency_key="k1", params={"msg": "hi"}
            )
        ```
    """

    def __init__(
        self,
        base_url: str,
        *,
        gateway_key: str | None = None,
        hmac_secret: str | None = None,
        admin_user: str | None = None,
        admin_password: str | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.gateway_key = gateway_key
        self.hmac_secret = hmac_secret
        self.admin_user = admin_user
        self.admin_password = admin_password
        self._client = httpx.AsyncClient(
            base_url=self.base_url, timeout=timeout, transport=transport
        )

    @classmethod
    def from_env(cls, *, base_url: str | None = None) -> ActionGateClient:
        """Create a client from conventional ActionGate environment variables."""
        resolved_base_url = (
            base_url or os.getenv("ACTIONGATE_URL") or "http://localhost:8000"
        ).strip()
        return cls(
            resolved_base_url,
            gateway_key=os.getenv("ACTIONGATE_GATEWAY_KEY"),
            hmac_secret=os.getenv("ACTIONGATE_HMAC_SECRET"),
            admin_user=os.getenv("ACTIONGATE_ADMIN_USER"),
            admin_password=os.getenv("ACTIONGATE_ADMIN_PASS"),
        )

    @staticmethod
    def _decode_payload(response: httpx.Response) -> dict[str, Any] | str | None:
        if not response.content:
            return None
        try:
            return cast(dict[str, Any], response.json())
        except ValueError:
            return response.text

    async def _request_json(
        self,
        method: str,
        path: str,
        *,
        content: bytes | None = None,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> dict[str, Any]:
        response = await self._client.request(
            method=method,
            url=path,
            content=content,
            params=params,
            headers=dict(headers) if headers else None,
        )
        payload = self._decode_payload(response)
        if response.status_code >= 400:
            raise ActionGateAPIError(
                method=method,
                path=path,
                status_code=response.status_code,
                payload=payload,
            )
        if isinstance(payload, dict):
            return payload
        return {}

    async def health(self) -> dict[str, Any]:
        """Fetch service health details."""
        return await self._request_json("GET", "/health")

    async def send_raw(self, body: bytes | str) -> dict[str, Any]:
        """Sign and post an already-serialized envelope."""
        if not self.gateway_key or not self.hmac_secret:
            raise ValueError("gateway_key and hmac_secret are required to execute actions")
        raw = body.encode("utf-8") if isinstance(body, str) else body
        headers = {
            "content-type": "application/json",
            "x-gateway-key": self.gateway_key,
            "x-signature": sign_body(raw, self.hmac_secret),
        }
        return await self._request_json(
            "POST", "/v1/actions/execute", content=raw, headers=headers
        )

    async def execute(
        self,
        action: str,
        *,
        mode: str = "dry_run",
        idempotency_key: str,
        params: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Run an action through the gateway."""
        body = encode_envelope(
            action, mode=mode, idempotency_key=idempotency_key, params=params
        )
        return await self.send_raw(body)

    async def get_logs(
        self,
        *,
        trace_id: str | None = None,
        tenant: str | None = None,
        action: str | None = None,
        status: str | None = None,
    ) -> list[dict[str, Any]]:
        """Query the audit log with admin credentials."""
        if not self.admin_user or not self.admin_password:
            raise ValueError("admin_user and admin_password required for admin endpoint")
        token = base64.b64encode(
            f"{self.admin_user}:{self.admin_password}".encode()
        ).decode("ascii")
        filters = {
            "traceId": trace_id,
            "tenant": tenant,
            "action": action,
            "status": status,
        }
        payload = await self._request_json(
            "GET",
            "/admin/logs",
            params={key: value for key, value in filters.items() if value},
            headers={"Authorization": f"Basic {token}"},
        )
        return cast(list[dict[str, Any]], payload.get("logs", []))

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> ActionGateClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()
