"""Built-in actions.

Executors receive params that already passed their model, the tenant the
request authenticated as, and the execution mode. ``dry_run`` only describes
the side effect; nothing leaves the process.
"""

from __future__ import annotations

import os
from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from typing import Any

from actiongate.allowlist import get_allow_hosts, is_host_allowed
from actiongate.dispatch import ActionOutcome, ActionRegistry
from actiongate.errors import ActionValidationError, DownstreamError
from actiongate.http import HttpResult, ResilientHttpClient
from actiongate.lint import lint_pave_query
from actiongate.models import (
    ActionName,
    ExecutionMode,
    JobTreadPushJobToQboParams,
    JobTreadQueryParams,
    MakeTriggerParams,
)
from actiongate.tenants import JOBTREAD_GRANT_KEY, TenantIdentity

DEFAULT_JOBTREAD_URL = "https://api.jobtread.com/pave"
DEFAULT_JOBTREAD_TIMEZONE = "America/Chicago"


def _ensure_success(response: HttpResult, context: str) -> HttpResult:
    if response.status >= 400:
        raise DownstreamError(f"{context}: downstream returned HTTP {response.status}")
    return response


class EchoAction:
    """Return the params unchanged; never touches anything outside the process."""

    async def run(
        self,
        params: Any,
        tenant: TenantIdentity,
        mode: ExecutionMode,
        *,
        trace_id: str,
    ) -> ActionOutcome:
        return ActionOutcome(
            result={
                "echo": params,
                "traceId": trace_id,
                "timestamp": datetime.now(UTC).isoformat(),
            }
        )


class _JobTreadAction:
    def __init__(
        self,
        http_client: ResilientHttpClient,
        *,
        url: str = DEFAULT_JOBTREAD_URL,
        timezone: str = DEFAULT_JOBTREAD_TIMEZONE,
    ) -> None:
        self.http_client = http_client
        self.url = url
        self.timezone = timezone

    def _pave_body(self, tenant: TenantIdentity, query: dict[str, Any]) -> dict[str, Any]:
        body: dict[str, Any] = {
            "version": {},
            "$": {},
            "currentGrant": {"_type": {}, "id": {}},
            **query,
        }
        caller_vars = body["$"] if isinstance(body["$"], dict) else {}
        # The tenant's grant key always wins over anything the caller put in "$".
        body["$"] = {
            **caller_vars,
            "grantKey": tenant.credential(JOBTREAD_GRANT_KEY),
            "timeZone": self.timezone,
        }
        return body

    async def _post(self, body: dict[str, Any], context: str) -> HttpResult:
        try:
            response = await self.http_client.send(self.url, "POST", body=body)
        except DownstreamError as exc:
            raise DownstreamError(f"{context}: {exc.message}") from exc
        return _ensure_success(response, context)


class JobTreadQueryAction(_JobTreadAction):
    """Lint and run a Pave query against JobTread with the tenant's grant key."""

    async def run(
        self,
        params: JobTreadQueryParams,
        tenant: TenantIdentity,
        mode: ExecutionMode,
        *,
        trace_id: str,
    ) -> ActionOutcome:
        lint = lint_pave_query(params.pave)
        if not lint.valid:
            raise ActionValidationError(
                "JobTread query validation failed:\n" + "\n".join(lint.errors),
                details=list(lint.errors),
            )

        if mode is ExecutionMode.DRY_RUN:
            return ActionOutcome(
                result="Dry run: Query validated successfully. Would execute against JobTread API.",
                notes=list(lint.notes),
            )

        response = await self._post(
            self._pave_body(tenant, params.pave), "JobTread query failed"
        )
        return ActionOutcome(result=response.data, notes=list(lint.notes))


class JobTreadPushJobToQboAction(_JobTreadAction):
    """Push a JobTread job to QuickBooks Online."""

    async def run(
        self,
        params: JobTreadPushJobToQboParams,
        tenant: TenantIdentity,
        mode: ExecutionMode,
        *,
        trace_id: str,
    ) -> ActionOutcome:
        job_id = params.job_id
        if mode is ExecutionMode.DRY_RUN:
            return ActionOutcome(
                result=(
                    f"Dry run: Would push job {job_id} to QuickBooks Online via JobTread API."
                ),
                notes=["This is a side-effect action - idempotency is enforced by the server"],
            )

        mutation = {
            "pushJobToQbo": {
                "_type": {},
                "$": {"id": job_id},
                "job": {"_type": {}, "$": {"id": job_id}, "id": {}, "qboId": {}},
            }
        }
        response = await self._post(
            self._pave_body(tenant, mutation), "Failed to push job to QuickBooks"
        )
        return ActionOutcome(
            result=response.data,
            notes=[f"Job {job_id} pushed to QuickBooks Online successfully"],
        )


class MakeTriggerAction:
    """POST a payload to an allowlisted Make.com webhook.

    The host check runs in both modes, so a dry run also tells the caller
    whether the real call would be permitted.
    """

    def __init__(
        self,
        http_client: ResilientHttpClient,
        *,
        allow_hosts: Sequence[str] | Callable[[], Sequence[str]] = get_allow_hosts,
    ) -> None:
        self.http_client = http_client
        self._allow_hosts = allow_hosts

    def allow_hosts(self) -> Sequence[str]:
        if callable(self._allow_hosts):
            return self._allow_hosts()
        return self._allow_hosts

    async def run(
        self,
        params: MakeTriggerParams,
        tenant: TenantIdentity,
        mode: ExecutionMode,
        *,
        trace_id: str,
    ) -> ActionOutcome:
        url = params.webhook_url
        if not is_host_allowed(url, self.allow_hosts()):
            raise ActionValidationError(
                f"Webhook URL host not allowed: {url}. "
                "Host must be in ACTIONGATE_ALLOW_HOSTS."
            )

        if mode is ExecutionMode.DRY_RUN:
            return ActionOutcome(
                result=f"Dry run: Would POST payload to Make.com webhook: {url}",
                notes=["Webhook URL validated against ACTIONGATE_ALLOW_HOSTS"],
            )

        context = "Failed to trigger Make.com webhook"
        try:
            response = await self.http_client.send(url, "POST", body=params.payload)
        except DownstreamError as exc:
            raise DownstreamError(f"{context}: {exc.message}") from exc
        _ensure_success(response, context)
        return ActionOutcome(
            result=response.data,
            notes=["Make.com webhook triggered successfully"],
        )


def build_default_registry(
    http_client: ResilientHttpClient | None = None,
    *,
    jobtread_url: str | None = None,
    jobtread_timezone: str | None = None,
    allow_hosts: Sequence[str] | Callable[[], Sequence[str]] | None = None,
) -> ActionRegistry:
    """Register the built-in actions against one shared HTTP client.

    Unset options fall back to ``ACTIONGATE_JOBTREAD_URL``,
    ``ACTIONGATE_JOBTREAD_TIMEZONE`` and ``ACTIONGATE_ALLOW_HOSTS``. The
    allowlist is read per call, so a missing value fails the request that
    needs it rather than startup.
    """
    client = http_client or ResilientHttpClient.from_env()
    url = jobtread_url or os.getenv("ACTIONGATE_JOBTREAD_URL", DEFAULT_JOBTREAD_URL)
    timezone = jobtread_timezone or os.getenv(
        "ACTIONGATE_JOBTREAD_TIMEZONE", DEFAULT_JOBTREAD_TIMEZONE
    )

    registry = ActionRegistry()
    registry.register(ActionName.ECHO, EchoAction())
    registry.register(
        ActionName.JOBTREAD_QUERY,
        JobTreadQueryAction(client, url=url, timezone=timezone),
        JobTreadQueryParams,
    )
    registry.register(
        ActionName.JOBTREAD_PUSH_JOB_TO_QBO,
        JobTreadPushJobToQboAction(client, url=url, timezone=timezone),
        JobTreadPushJobToQboParams,
    )
    registry.register(
        ActionName.MAKE_TRIGGER,
        MakeTriggerAction(client, allow_hosts=allow_hosts or get_allow_hosts),
        MakeTriggerParams,
    )
    return registry
