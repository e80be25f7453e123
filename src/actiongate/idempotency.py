"""Process-lifetime idempotency cache for execute-mode requests.

The cache maps ``action:tenant:idempotencyKey`` to the terminal response of
the first successful execution. Entries never expire; the cache starts empty
at process start and is discarded at exit. It is not shared between gateway
instances.
"""

from __future__ import annotations

import asyncio
import copy
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from threading import Lock
from typing import Any


class IdempotencyCache:
    """Memoize terminal responses and serialize work per key.

    ``lock(key)`` gives racing requests for the same key mutual exclusion, so
    the first one performs the side effect and the rest observe its stored
    response. Requests for different keys never wait on each other.
    """

    def __init__(self) -> None:
        self._responses: dict[str, dict[str, Any]] = {}
        self._key_locks: dict[str, asyncio.Lock] = {}
        self._waiters: dict[str, int] = {}
        self._lock = Lock()

    @staticmethod
    def key_for(action: str, tenant: str, idempotency_key: str) -> str:
        """Compose the cache key; tenant is part of it so tenants never collide."""
        return f"{action}:{tenant}:{idempotency_key}"

    def __len__(self) -> int:
        with self._lock:
            return len(self._responses)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._responses

    def get(self, key: str) -> dict[str, Any] | None:
        """Return a copy of the stored response, or None on a miss."""
        with self._lock:
            stored = self._responses.get(key)
        return copy.deepcopy(stored) if stored is not None else None

    def put(self, key: str, response: dict[str, Any]) -> None:
        """Store a response; the first stored response for a key wins."""
        snapshot = copy.deepcopy(response)
        with self._lock:
            self._responses.setdefault(key, snapshot)

    def clear(self) -> None:
        with self._lock:
            self._responses.clear()

    @asynccontextmanager
    async def lock(self, key: str) -> AsyncIterator[None]:
        """Hold the per-key lock for the duration of the block."""
        with self._lock:
            key_lock = self._key_locks.get(key)
            if key_lock is None:
                key_lock = asyncio.Lock()
                self._key_locks[key] = key_lock
            self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            async with key_lock:
                yield
        finally:
            with self._lock:
                remaining = self._waiters[key] - 1
                if remaining:
                    self._waiters[key] = remaining
                else:
                    del self._waiters[key]
                    del self._key_locks[key]
