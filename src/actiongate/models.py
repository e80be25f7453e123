"""Pydantic models for ActionGate.

This module defines the data structures used throughout ActionGate for:
- The action envelope submitted by callers
- Per-action parameter contracts
- Gateway responses (success and failure)
- Audit log entries and query filters

Wire names are camelCase (``idempotencyKey``, ``traceId``); Python attribute
names are snake_case.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, Literal
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, StrictStr, field_validator


class ActionName(StrEnum):
    """Actions the gateway knows how to route."""

    ECHO = "echo"
    JOBTREAD_QUERY = "jobtread.query"
    JOBTREAD_PUSH_JOB_TO_QBO = "jobtread.pushJobToQbo"
    MAKE_TRIGGER = "make.trigger"


class ExecutionMode(StrEnum):
    """Execution mode requested by the caller.

    ``dry_run`` never produces an observable side effect; ``execute`` may, and
    is subject to idempotency.
    """

    DRY_RUN = "dry_run"
    EXECUTE = "execute"


LogStatus = Literal["success", "error", "warning"]


class ActionEnvelope(BaseModel):
    """Unit of work submitted by a caller.

    Attributes:
        action: Name of the action to run.
        mode: ``dry_run`` or ``execute``.
        idempotency_key: Caller-chosen token identifying the logical operation.
        params: Action-specific payload, validated separately per action.

    Example:
        ```python
        envelope = ActionEnvelope.model_validate(
            {
                "action": "echo",
                "mode": "dry_run",
                "idempotencyKey": "k1",
                "params": {"msg": "hi"},
            }
        )
        ```
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    action: ActionName = Field(..., description="Action to run")
    mode: ExecutionMode = Field(..., description="dry_run or execute")
    idempotency_key: StrictStr = Field(
        ...,
        alias="idempotencyKey",
        min_length=1,
        max_length=256,
        description="Caller-supplied idempotency key",
    )
    params: dict[str, Any] = Field(..., description="Action parameters")


class JobTreadQueryParams(BaseModel):
    """Parameters for ``jobtread.query``."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    pave: dict[str, Any] = Field(..., description="JobTread Pave query object")


class JobTreadPushJobToQboParams(BaseModel):
    """Parameters for ``jobtread.pushJobToQbo``."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    job_id: StrictStr = Field(
        ..., alias="jobId", min_length=1, max_length=128, description="JobTread job ID"
    )


class MakeTriggerParams(BaseModel):
    """Parameters for ``make.trigger``."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    webhook_url: StrictStr = Field(..., alias="webhookUrl", description="Make.com webhook URL")
    payload: Any = Field(..., description="JSON payload posted to the webhook")

    @field_validator("webhook_url")
    @classmethod
    def validate_webhook_url(cls, value: str) -> str:
        """Require an absolute http(s) URL."""
        parsed = urlparse(value)
        if parsed.scheme not in {"http", "https"} or not parsed.hostname:
            raise ValueError("webhookUrl must be an absolute http(s) URL")
        return value


class ActionResponse(BaseModel):
    """Successful gateway response."""

    model_config = ConfigDict(populate_by_name=True)

    ok: Literal[True] = True
    trace_id: str = Field(..., alias="traceId", description="Request trace ID")
    result: Any = Field(default=None, description="Action result")
    notes: list[str] = Field(default_factory=list, description="Advisory notes")


class ErrorResponse(BaseModel):
    """Failed gateway response.

    Attributes:
        ok: Always False for error responses.
        trace_id: Trace ID for correlating with the audit log.
        error: Human-readable error message.
        details: Every violated constraint, when the failure is a validation one.
    """

    model_config = ConfigDict(populate_by_name=True)

    ok: Literal[False] = False
    trace_id: str = Field(..., alias="traceId", description="Request trace ID")
    error: str = Field(..., description="Error message")
    details: list[Any] | None = Field(default=None, description="Violation details")


class LogEntry(BaseModel):
    """Audit record of one pipeline invocation.

    Attributes:
        timestamp: When the invocation finished (UTC).
        trace_id: Trace ID returned to the caller.
        tenant: Tenant the request authenticated as.
        action: Action name.
        mode: Execution mode.
        status: ``success``, ``error`` or ``warning``.
        duration: Wall-clock duration in milliseconds.
        notes: Advisory notes produced by the action.
        error: Error message, for failed invocations.
        metadata: Extra structured context (redacted before storage).
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    timestamp: datetime = Field(..., description="Entry timestamp (UTC)")
    trace_id: str = Field(..., alias="traceId", description="Request trace ID")
    tenant: str = Field(..., description="Tenant name")
    action: str = Field(..., description="Action name")
    mode: ExecutionMode = Field(..., description="Execution mode")
    status: LogStatus = Field(..., description="Outcome status")
    duration: int = Field(..., ge=0, description="Duration in milliseconds")
    notes: list[str] = Field(default_factory=list, description="Advisory notes")
    error: str | None = Field(default=None, description="Error message")
    metadata: dict[str, Any] = Field(default_factory=dict, description="Extra context")

    @field_validator("timestamp")
    @classmethod
    def ensure_timezone(cls, value: datetime) -> datetime:
        """Treat naive timestamps as UTC so entries stay comparable."""
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value


class LogFilters(BaseModel):
    """Conjunctive audit log filters; unset fields match everything."""

    trace_id: str | None = None
    tenant: str | None = None
    action: str | None = None
    status: LogStatus | None = None
