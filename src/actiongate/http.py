"""Outbound HTTP with bounded retries.

Every downstream call an action makes goes through ``ResilientHttpClient``.
Transport failures (connection refused, DNS, timeouts, resets) are retried
with exponential backoff; HTTP error statuses are returned to the caller
untouched. The client keeps no state between calls.
"""

from __future__ import annotations

import asyncio
import json
import os
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urlparse

import httpx

from actiongate.errors import DownstreamError
from actiongate.logging import get_logger
from actiongate.metrics import get_metrics

logger = get_logger(__name__)

DEFAULT_TIMEOUT_MS = 20000
DEFAULT_MAX_RETRIES = 2


@dataclass(frozen=True)
class HttpResult:
    """Status, headers and decoded body of a completed exchange."""

    status: int
    headers: dict[str, str] = field(default_factory=dict)
    data: Any = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


def _decode_body(response: httpx.Response) -> Any:
    text = response.text
    if not text:
        return None
    try:
        return json.loads(text)
    except ValueError:
        return text


def _describe(exc: BaseException | None) -> str:
    return str(exc) or exc.__class__.__name__


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return max(0, int(raw))
    except ValueError:
        return default


class ResilientHttpClient:
    """Send one logical request, retrying transport failures.

    Args:
        transport: Optional httpx transport; tests pass ``httpx.MockTransport``.
        timeout_ms: Default per-phase timeout budget in milliseconds.
        max_retries: Default number of retries after the first attempt.
        sleep: Coroutine used for backoff delays.
    """

    def __init__(
        self,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        max_retries: int = DEFAULT_MAX_RETRIES,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._transport = transport
        self._sleep = sleep
        self.timeout_ms = timeout_ms
        self.max_retries = max_retries

    @classmethod
    def from_env(
        cls,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> ResilientHttpClient:
        return cls(
            transport=transport,
            sleep=sleep,
            timeout_ms=_env_int("ACTIONGATE_HTTP_TIMEOUT_MS", DEFAULT_TIMEOUT_MS),
            max_retries=_env_int("ACTIONGATE_HTTP_MAX_RETRIES", DEFAULT_MAX_RETRIES),
        )

    async def send(
        self,
        url: str,
        method: str = "POST",
        headers: dict[str, str] | None = None,
        body: Any = None,
        timeout_ms: int | None = None,
        max_retries: int | None = None,
    ) -> HttpResult:
        """Send a request and return the decoded response.

        A ``str`` body is sent verbatim; any other non-None body is serialized
        as JSON. Only a serialized body gets ``content-type: application/json``,
        and only when the caller did not set a content type under any
        capitalization.

        Raises:
            DownstreamError: after ``max_retries + 1`` transport failures.
        """
        budget_ms = self.timeout_ms if timeout_ms is None else timeout_ms
        retries = self.max_retries if max_retries is None else max_retries
        attempts = max(0, retries) + 1

        request_headers = dict(headers or {})
        content: str | None
        if body is None:
            content = None
        elif isinstance(body, str):
            content = body
        else:
            content = json.dumps(body)
            if not any(name.lower() == "content-type" for name in request_headers):
                request_headers["content-type"] = "application/json"

        # One budget applied to each phase: connect, write, read and pool acquisition.
        timeout = httpx.Timeout(budget_ms / 1000)
        host = urlparse(url).hostname or ""
        last_error: Exception | None = None

        for attempt in range(1, attempts + 1):
            try:
                async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as client:
                    response = await client.request(
                        method, url, headers=request_headers, content=content
                    )
                result = HttpResult(
                    status=response.status_code,
                    headers=dict(response.headers),
                    data=_decode_body(response),
                )
                logger.info(
                    "downstream_response",
                    method=method,
                    host=host,
                    status=result.status,
                    attempt=attempt,
                )
                return result
            except httpx.TransportError as exc:
                last_error = exc
                if attempt < attempts:
                    delay = 2 ** (attempt - 1)
                    logger.warning(
                        "downstream_retry",
                        method=method,
                        host=host,
                        attempt=attempt,
                        delay_seconds=delay,
                        error=_describe(exc),
                    )
                    get_metrics().downstream_retries_total.inc(host)
                    await self._sleep(delay)

        message = f"HTTP request failed after {attempts} attempts: {_describe(last_error)}"
        logger.error("downstream_failed", method=method, host=host, attempts=attempts)
        raise DownstreamError(message)
