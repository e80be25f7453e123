"""Business-rule lint for JobTread Pave queries.

Runs before a query is sent anywhere. Errors block the query; notes are
advisory and travel back to the caller with the result.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

MAX_PAGE_SIZE = 100


@dataclass(frozen=True)
class LintResult:
    valid: bool
    errors: list[str] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)


def lint_pave_query(pave: Any) -> LintResult:
    """Walk a Pave query and check it against the tenant's schema limits.

    Rules:
        - ``email`` requested under ``contacts.nodes`` is an error; the field
          is only reachable through ``contacts.edges.node``.
        - A numeric ``size`` above ``MAX_PAGE_SIZE`` is an error.
        - ``unitPrice`` requested without ``unitCost`` alongside it is a note.
    """
    errors: list[str] = []
    notes: list[str] = []
    _walk(pave, "", errors, notes)
    return LintResult(valid=not errors, errors=errors, notes=notes)


def _walk(node: Any, path: str, errors: list[str], notes: list[str]) -> None:
    if isinstance(node, list):
        for index, item in enumerate(node):
            _walk(item, f"{path}[{index}]", errors, notes)
        return
    if not isinstance(node, Mapping):
        return

    if "contacts.nodes" in path and "email" in node:
        errors.append(
            "contacts.nodes.email is not supported due to tenant schema limitations. "
            f"Use contacts.edges.node.email instead. Found at: {path}.email"
        )

    size = node.get("size")
    # bool is an int subclass; true/false is not a page size.
    if isinstance(size, (int, float)) and not isinstance(size, bool) and size > MAX_PAGE_SIZE:
        errors.append(
            f"Page size limit exceeded: {path}.size = {size}. "
            f"Maximum allowed is {MAX_PAGE_SIZE}. Please use pagination for larger result sets."
        )

    if "unitPrice" in node and "unitCost" not in node:
        notes.append(
            f"unitPrice used at {path} without unitCost. "
            "Consider using unitCost as it is the authoritative source for pricing data."
        )

    for key, value in node.items():
        child = f"{path}.{key}" if path else str(key)
        _walk(value, child, errors, notes)
