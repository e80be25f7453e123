"""Structural validation of envelopes and action parameters.

Schemas are pydantic models looked up by schema ID. Validation collects every
violated constraint rather than stopping at the first one, and never touches
network or storage.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ValidationError

from actiongate.models import ActionEnvelope

ENVELOPE_SCHEMA = "envelope"


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating one value against one schema."""

    valid: bool
    errors: list[dict[str, str]] = field(default_factory=list)
    value: Any = None


def format_location(loc: tuple[int | str, ...]) -> str:
    """Render a pydantic error location as a JSONPath-like string."""
    path = "$"
    for part in loc:
        if isinstance(part, int):
            path += f"[{part}]"
        else:
            path += f".{part}"
    return path


def _format_errors(exc: ValidationError) -> list[dict[str, str]]:
    return [
        {
            "path": format_location(tuple(error["loc"])),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors(include_url=False, include_input=False, include_context=False)
    ]


class SchemaValidator:
    """Validate values against schemas registered by ID.

    A schema registered as ``None`` places no structural constraint on the
    value; it is accepted as-is.
    """

    def __init__(self, schemas: Mapping[str, type[BaseModel] | None] | None = None) -> None:
        self._schemas: dict[str, type[BaseModel] | None] = {ENVELOPE_SCHEMA: ActionEnvelope}
        if schemas:
            self._schemas.update(schemas)

    def register(self, schema_id: str, model: type[BaseModel] | None) -> None:
        self._schemas[schema_id] = model

    def has_schema(self, schema_id: str) -> bool:
        return schema_id in self._schemas

    def validate(self, schema_id: str, value: Any) -> ValidationResult:
        """Validate ``value`` and return every violation found.

        Raises:
            LookupError: if no schema is registered under ``schema_id``.
        """
        if schema_id not in self._schemas:
            raise LookupError(f"No schema registered: {schema_id}")
        model = self._schemas[schema_id]
        if model is None:
            return ValidationResult(valid=True, value=value)
        try:
            parsed = model.model_validate(value)
        except ValidationError as exc:
            return ValidationResult(valid=False, errors=_format_errors(exc))
        return ValidationResult(valid=True, value=parsed)
