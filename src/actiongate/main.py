"""FastAPI entrypoint for ActionGate.

This module provides the HTTP API for ActionGate, a policy-enforcing gateway
between AI agents and downstream business systems. Every action request is
signed, tenant-scoped, schema-checked, idempotent in execute mode and
recorded in a redacted audit log.

Key endpoints:
    - POST /v1/actions/execute: Run one action envelope through the pipeline
    - GET /admin/logs: Query the audit log (HTTP Basic auth)
    - GET /health: Liveness check
    - GET /metrics: Prometheus metrics endpoint

The app is built by ``create_app``; run it with
``uvicorn actiongate.main:create_app --factory`` or ``python -m actiongate``.
"""

from __future__ import annotations

import json
import os
import uuid
from collections.abc import Awaitable, Callable

from fastapi import FastAPI, Header, HTTPException, Query, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from actiongate import __version__
from actiongate.actions import build_default_registry
from actiongate.audit import AuditLog
from actiongate.auth import check_basic_auth
from actiongate.dispatch import ActionRegistry
from actiongate.gateway import Gateway
from actiongate.http import ResilientHttpClient
from actiongate.idempotency import IdempotencyCache
from actiongate.logging import (
    bind_correlation_id,
    clear_logging_context,
    configure_logging,
    get_logger,
)
from actiongate.metrics import get_metrics
from actiongate.models import LogFilters, LogStatus
from actiongate.tenants import TenantResolver

logger = get_logger(__name__)

# Maximum request body size (1MB)
MAX_REQUEST_SIZE = 1 * 1024 * 1024
ADMIN_REALM = 'Basic realm="ActionGate Admin"'


def _get_log_level() -> str:
    return os.getenv("ACTIONGATE_LOG_LEVEL", "INFO")


def _get_hmac_secret() -> str | None:
    return os.getenv("ACTIONGATE_HMAC_SECRET") or None


def _get_admin_credentials() -> tuple[str, str] | None:
    user = os.getenv("ACTIONGATE_ADMIN_USER", "")
    password = os.getenv("ACTIONGATE_ADMIN_PASS", "")
    if not user or not password:
        return None
    return user, password


def _too_large() -> JSONResponse:
    return JSONResponse({"ok": False, "error": "Request body too large"}, status_code=413)


def create_app(
    *,
    tenant_resolver: TenantResolver | None = None,
    registry: ActionRegistry | None = None,
    audit_log: AuditLog | None = None,
    idempotency_cache: IdempotencyCache | None = None,
    http_client: ResilientHttpClient | None = None,
    hmac_secret: str | bytes | None = None,
    admin_credentials: tuple[str, str] | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Components not passed in are built from the environment. A tenant
    without a gateway key fails here, at startup, rather than per request.
    """
    configure_logging(_get_log_level())

    resolver = tenant_resolver if tenant_resolver is not None else TenantResolver.from_env()
    action_registry = registry if registry is not None else build_default_registry(http_client)
    gateway = Gateway(
        resolver,
        action_registry,
        hmac_secret=hmac_secret if hmac_secret is not None else _get_hmac_secret(),
        idempotency_cache=idempotency_cache,
        audit_log=audit_log,
    )

    app = FastAPI(
        title="ActionGate",
        description="Policy-enforcing action gateway for AI agents",
        version=__version__,
    )
    app.state.gateway = gateway
    app.state.audit_log = gateway.audit_log
    app.state.idempotency_cache = gateway.idempotency_cache
    app.state.admin_credentials = (
        admin_credentials if admin_credentials is not None else _get_admin_credentials()
    )

    logger.info(
        "actiongate_started",
        version=__version__,
        tenants=resolver.tenants,
        actions=action_registry.names,
    )

    def _require_admin(authorization: str | None) -> None:
        credentials = app.state.admin_credentials
        if credentials is None:
            raise HTTPException(status_code=500, detail="Admin credentials not configured")
        if not authorization or not authorization.lower().startswith("basic "):
            raise HTTPException(
                status_code=401,
                detail="Authentication required",
                headers={"WWW-Authenticate": ADMIN_REALM},
            )
        user, password = credentials
        if not check_basic_auth(authorization, expected_user=user, expected_password=password):
            logger.warning("admin_auth_failed")
            raise HTTPException(
                status_code=401,
                detail="Invalid credentials",
                headers={"WWW-Authenticate": ADMIN_REALM},
            )

    @app.middleware("http")
    async def request_size_middleware(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        """Reject requests that exceed the maximum allowed size."""
        content_length = request.headers.get("content-length")
        if content_length and content_length.isdigit() and int(content_length) > MAX_REQUEST_SIZE:
            return _too_large()
        return await call_next(request)

    @app.middleware("http")
    async def correlation_middleware(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        """Add correlation ID to requests for distributed tracing."""
        correlation_id = request.headers.get("X-Correlation-ID") or str(uuid.uuid4())
        bind_correlation_id(correlation_id)
        try:
            response = await call_next(request)
        finally:
            clear_logging_context()
        response.headers["X-Correlation-ID"] = correlation_id
        return response

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        """Render HTTP errors in the gateway's failure envelope."""
        return JSONResponse(
            {"ok": False, "error": str(exc.detail)},
            status_code=exc.status_code,
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Return query/header validation errors in the failure envelope."""
        details = json.loads(json.dumps(exc.errors(), default=str))
        return JSONResponse(
            {"ok": False, "error": "Invalid request", "details": details},
            status_code=422,
        )

    @app.get("/health")
    async def health() -> JSONResponse:
        """Return liveness status."""
        return JSONResponse({"status": "ok", "version": app.version})

    @app.get("/metrics")
    async def metrics_endpoint() -> PlainTextResponse:
        """Expose Prometheus metrics."""
        metrics = get_metrics()
        return PlainTextResponse(
            metrics.collect_all(),
            media_type="text/plain; version=0.0.4; charset=utf-8",
        )

    @app.post("/v1/actions/execute")
    async def execute_action(request: Request) -> JSONResponse:
        """Run a signed action envelope.

        The body is read raw so the signature is checked against the exact
        bytes the caller signed.
        """
        raw_body = await request.body()
        # Chunked uploads carry no Content-Length for the middleware to check.
        if len(raw_body) > MAX_REQUEST_SIZE:
            return _too_large()
        result = await app.state.gateway.handle(raw_body, request.headers)
        return JSONResponse(
            result.body,
            status_code=result.status_code,
            headers={"X-Trace-ID": result.trace_id},
        )

    @app.get("/admin/logs")
    async def admin_logs(
        authorization: str | None = Header(default=None),
        trace_id: str | None = Query(default=None, alias="traceId"),
        tenant: str | None = Query(default=None),
        action: str | None = Query(default=None),
        status: LogStatus | None = Query(default=None),
    ) -> JSONResponse:
        """Query the redacted audit log, newest entries first."""
        _require_admin(authorization)
        filters = LogFilters(trace_id=trace_id, tenant=tenant, action=action, status=status)
        entries = app.state.audit_log.query(filters)
        return JSONResponse(
            {
                "ok": True,
                "logs": [entry.model_dump(mode="json", by_alias=True) for entry in entries],
            }
        )

    return app
