"""Append-only, retention-bounded audit log.

Entries are redacted before they are stored, so nothing readable through
``query`` can hold secret material. Retention is enforced on every append;
an idle log is never pruned.
"""

from __future__ import annotations

import os
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from threading import Lock
from typing import Any

from actiongate.models import LogEntry, LogFilters, LogStatus
from actiongate.redaction import get_pii_mode, mask_secrets, scrub_text

DEFAULT_RETENTION_DAYS = 60


def _utcnow() -> datetime:
    return datetime.now(UTC)


def get_retention_days() -> int:
    raw = os.getenv("ACTIONGATE_LOG_RETENTION_DAYS", str(DEFAULT_RETENTION_DAYS))
    try:
        return max(0, int(raw))
    except ValueError:
        return DEFAULT_RETENTION_DAYS


class AuditLog:
    """In-process audit store shared by every request."""

    def __init__(
        self,
        retention: timedelta | None = None,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.retention = (
            retention if retention is not None else timedelta(days=get_retention_days())
        )
        self._clock = clock
        self._entries: list[LogEntry] = []
        self._lock = Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def append(self, entry: LogEntry) -> LogEntry:
        """Redact and store an entry, then drop entries past the retention horizon.

        Returns a copy of the entry as stored; the stored record itself is
        never handed out.
        """
        stored = _redact_entry(entry)
        cutoff = self._clock() - self.retention
        with self._lock:
            self._entries.append(stored)
            self._entries = [item for item in self._entries if item.timestamp >= cutoff]
        return stored.model_copy(deep=True)

    def query(
        self,
        filters: LogFilters | None = None,
        *,
        trace_id: str | None = None,
        tenant: str | None = None,
        action: str | None = None,
        status: LogStatus | None = None,
    ) -> list[LogEntry]:
        """Return entries matching every supplied filter, newest first."""
        effective = filters if filters is not None else LogFilters(
            trace_id=trace_id, tenant=tenant, action=action, status=status
        )
        with self._lock:
            snapshot = list(self._entries)

        matches = [entry for entry in snapshot if _matches(entry, effective)]
        matches.sort(key=lambda entry: entry.timestamp, reverse=True)
        return [entry.model_copy(deep=True) for entry in matches]


def _matches(entry: LogEntry, filters: LogFilters) -> bool:
    if filters.trace_id and entry.trace_id != filters.trace_id:
        return False
    if filters.tenant and entry.tenant != filters.tenant:
        return False
    if filters.action and entry.action != filters.action:
        return False
    if filters.status and entry.status != filters.status:
        return False
    return True


def _redact_entry(entry: LogEntry) -> LogEntry:
    pii_mode = get_pii_mode()
    payload: dict[str, Any] = entry.model_dump()
    masked = mask_secrets(payload)
    masked["notes"] = [scrub_text(note, mode=pii_mode) for note in masked["notes"]]
    if masked.get("error"):
        masked["error"] = scrub_text(masked["error"], mode=pii_mode)
    return LogEntry.model_validate(masked)
