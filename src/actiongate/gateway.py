"""Request execution pipeline.

This module implements the Gateway class, which runs every inbound action
request through the same ordered stages:
1. Minting a trace ID (before anything can fail)
2. Verifying the HMAC signature of the raw body
3. Resolving the tenant from the gateway key
4. Validating the envelope, then the action's params
5. Consulting the idempotency cache (execute mode only)
6. Dispatching to the action executor
7. Appending a redacted audit entry
8. Storing the response for idempotent replay (execute mode, success only)

Failures are typed ``GatewayError``s raised by the stages and mapped to a
response in exactly one place. Auth and envelope failures are answered before
any side effect and are not audited; once tenant, action and mode are known
every outcome is.
"""

from __future__ import annotations

import json
import time
import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any
from urllib.parse import urlsplit

from pydantic import BaseModel

from actiongate.audit import AuditLog
from actiongate.auth import verify_signature
from actiongate.dispatch import ActionRegistry
from actiongate.errors import (
    AuthenticationError,
    BadRequestError,
    ConfigurationError,
    GatewayError,
    InternalError,
    UnknownActionError,
    ValidationFailure,
)
from actiongate.idempotency import IdempotencyCache
from actiongate.logging import bind_trace_id, get_logger
from actiongate.metrics import get_metrics
from actiongate.models import (
    ActionEnvelope,
    ActionResponse,
    ErrorResponse,
    ExecutionMode,
    LogEntry,
    LogStatus,
)
from actiongate.schemas import ENVELOPE_SCHEMA, SchemaValidator
from actiongate.tenants import TenantIdentity, TenantResolver

logger = get_logger(__name__)

GATEWAY_KEY_HEADER = "x-gateway-key"
SIGNATURE_HEADER = "x-signature"
REPLAY_NOTE = "Idempotent replay: response served from cache"


@dataclass(frozen=True)
class PipelineResult:
    """Status code and JSON body the transport should send back."""

    status_code: int
    body: dict[str, Any]
    trace_id: str
    replayed: bool = False


@dataclass
class _RequestContext:
    trace_id: str
    started: float = field(default_factory=time.perf_counter)
    tenant: TenantIdentity | None = None
    envelope: ActionEnvelope | None = None
    params: Any = None

    @property
    def action(self) -> str | None:
        return str(self.envelope.action) if self.envelope else None

    def elapsed_ms(self) -> int:
        return int((time.perf_counter() - self.started) * 1000)


def _params_for_audit(params: Any) -> Any:
    if isinstance(params, BaseModel):
        params = params.model_dump(mode="json", by_alias=True)
    if isinstance(params, dict) and isinstance(params.get("webhookUrl"), str):
        # The hook path is the webhook's bearer credential; keep the origin only.
        url = urlsplit(params["webhookUrl"])
        params = {**params, "webhookUrl": f"{url.scheme}://{url.hostname or ''}"}
    return params


class Gateway:
    """Run action requests through authentication, validation and dispatch."""

    def __init__(
        self,
        tenant_resolver: TenantResolver,
        registry: ActionRegistry,
        *,
        hmac_secret: bytes | str | None,
        schema_validator: SchemaValidator | None = None,
        idempotency_cache: IdempotencyCache | None = None,
        audit_log: AuditLog | None = None,
    ) -> None:
        self.tenant_resolver = tenant_resolver
        self.registry = registry
        self.hmac_secret = hmac_secret
        self.schema_validator = (
            schema_validator if schema_validator is not None else SchemaValidator()
        )
        self.idempotency_cache = (
            idempotency_cache if idempotency_cache is not None else IdempotencyCache()
        )
        self.audit_log = audit_log if audit_log is not None else AuditLog()
        for name, model in registry.param_schemas().items():
            if not self.schema_validator.has_schema(name):
                self.schema_validator.register(name, model)

    async def handle(
        self, raw_body: bytes | str | None, headers: Mapping[str, str]
    ) -> PipelineResult:
        """Run one request and return the response to send.

        Never raises; every failure becomes an error response carrying the
        request's trace ID.
        """
        ctx = _RequestContext(trace_id=str(uuid.uuid4()))
        bind_trace_id(ctx.trace_id)
        try:
            return await self._run(ctx, raw_body, headers)
        except GatewayError as exc:
            return self._fail(ctx, exc)
        except Exception as exc:
            logger.exception("action_unexpected_error", action=ctx.action)
            return self._fail(ctx, InternalError(str(exc) or exc.__class__.__name__))

    async def _run(
        self,
        ctx: _RequestContext,
        raw_body: bytes | str | None,
        headers: Mapping[str, str],
    ) -> PipelineResult:
        body = raw_body.encode("utf-8") if isinstance(raw_body, str) else (raw_body or b"")
        normalized = {str(name).lower(): value for name, value in headers.items()}

        if not body.strip():
            raise BadRequestError("Request body is required")
        gateway_key = normalized.get(GATEWAY_KEY_HEADER)
        if not gateway_key:
            raise AuthenticationError("x-gateway-key header is required")
        signature = normalized.get(SIGNATURE_HEADER)
        if not signature:
            raise AuthenticationError("X-Signature header is required")
        if not self.hmac_secret:
            raise ConfigurationError("ACTIONGATE_HMAC_SECRET not configured")
        if not verify_signature(body, signature, self.hmac_secret):
            raise AuthenticationError("Invalid HMAC signature")

        tenant = self.tenant_resolver.resolve(gateway_key)
        if tenant is None:
            raise AuthenticationError("Invalid gateway key")

        try:
            payload = json.loads(body)
        except ValueError as exc:
            raise BadRequestError("Invalid JSON") from exc

        envelope_check = self.schema_validator.validate(ENVELOPE_SCHEMA, payload)
        if not envelope_check.valid:
            raise ValidationFailure("Invalid request format", details=envelope_check.errors)
        envelope: ActionEnvelope = envelope_check.value
        action = str(envelope.action)
        ctx.tenant = tenant
        ctx.envelope = envelope
        ctx.params = envelope.params
        logger.info("action_received", tenant=tenant.name, action=action, mode=str(envelope.mode))

        if not self.registry.has(action) or not self.schema_validator.has_schema(action):
            raise UnknownActionError(action)
        params_check = self.schema_validator.validate(action, envelope.params)
        if not params_check.valid:
            raise ValidationFailure("Invalid parameters for action", details=params_check.errors)
        ctx.params = params_check.value

        if envelope.mode is ExecutionMode.DRY_RUN:
            return await self._execute(ctx, tenant, envelope)

        key = IdempotencyCache.key_for(action, tenant.name, envelope.idempotency_key)
        async with self.idempotency_cache.lock(key):
            cached = self.idempotency_cache.get(key)
            if cached is not None:
                return self._replay(ctx, tenant, envelope, cached)
            result = await self._execute(ctx, tenant, envelope)
            self.idempotency_cache.put(key, result.body)
            return result

    async def _execute(
        self, ctx: _RequestContext, tenant: TenantIdentity, envelope: ActionEnvelope
    ) -> PipelineResult:
        action = str(envelope.action)
        outcome = await self.registry.dispatch(
            action, ctx.params, tenant, envelope.mode, trace_id=ctx.trace_id
        )
        notes = [str(note) for note in outcome.notes]
        response = ActionResponse(trace_id=ctx.trace_id, result=outcome.result, notes=notes)
        body = response.model_dump(mode="json", by_alias=True)

        duration = ctx.elapsed_ms()
        self._audit(ctx, tenant, envelope, status="success", duration=duration, notes=notes)
        metrics = get_metrics()
        metrics.actions_total.inc(action, "success")
        metrics.request_duration_seconds.observe(duration / 1000, action)
        logger.info(
            "action_succeeded",
            tenant=tenant.name,
            action=action,
            mode=str(envelope.mode),
            duration_ms=duration,
        )
        return PipelineResult(status_code=200, body=body, trace_id=ctx.trace_id)

    def _replay(
        self,
        ctx: _RequestContext,
        tenant: TenantIdentity,
        envelope: ActionEnvelope,
        cached: dict[str, Any],
    ) -> PipelineResult:
        action = str(envelope.action)
        original_trace_id = str(cached["traceId"])
        self._audit(
            ctx,
            tenant,
            envelope,
            status="success",
            duration=ctx.elapsed_ms(),
            notes=[REPLAY_NOTE],
            trace_id=original_trace_id,
        )
        get_metrics().idempotent_replays_total.inc(action)
        logger.info(
            "idempotent_replay",
            tenant=tenant.name,
            action=action,
            original_trace_id=original_trace_id,
        )
        return PipelineResult(
            status_code=200, body=cached, trace_id=original_trace_id, replayed=True
        )

    def _fail(self, ctx: _RequestContext, exc: GatewayError) -> PipelineResult:
        duration = ctx.elapsed_ms()
        action = ctx.action or "unknown"
        response = ErrorResponse(
            trace_id=ctx.trace_id, error=exc.caller_message, details=exc.details
        )
        body = response.model_dump(mode="json", by_alias=True, exclude_none=True)

        if ctx.tenant is not None and ctx.envelope is not None:
            self._audit(
                ctx, ctx.tenant, ctx.envelope, status="error", duration=duration, error=exc.message
            )
        metrics = get_metrics()
        metrics.actions_total.inc(action, "error")
        metrics.request_duration_seconds.observe(duration / 1000, action)

        log = logger.error if exc.status_code >= 500 else logger.warning
        log(
            "action_failed",
            tenant=ctx.tenant.name if ctx.tenant else None,
            action=ctx.action,
            status_code=exc.status_code,
            error_type=exc.__class__.__name__,
            error=exc.message,
            duration_ms=duration,
        )
        return PipelineResult(status_code=exc.status_code, body=body, trace_id=ctx.trace_id)

    def _audit(
        self,
        ctx: _RequestContext,
        tenant: TenantIdentity,
        envelope: ActionEnvelope,
        *,
        status: LogStatus,
        duration: int,
        notes: list[str] | None = None,
        error: str | None = None,
        trace_id: str | None = None,
    ) -> None:
        entry = LogEntry(
            timestamp=datetime.now(UTC),
            trace_id=trace_id or ctx.trace_id,
            tenant=tenant.name,
            action=str(envelope.action),
            mode=envelope.mode,
            status=status,
            duration=duration,
            notes=notes or [],
            error=error,
            metadata={"params": _params_for_audit(ctx.params)},
        )
        self.audit_log.append(entry)
        get_metrics().audit_entries.set(len(self.audit_log))
