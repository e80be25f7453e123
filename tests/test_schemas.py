"""Schema validation tests."""

from __future__ import annotations

from typing import Any

import pytest

from actiongate.models import (
    ActionEnvelope,
    ActionName,
    ExecutionMode,
    JobTreadPushJobToQboParams,
    MakeTriggerParams,
)
from actiongate.schemas import ENVELOPE_SCHEMA, SchemaValidator, format_location


@pytest.fixture()
def validator() -> SchemaValidator:
    return SchemaValidator(
        {
            "echo": None,
            "jobtread.pushJobToQbo": JobTreadPushJobToQboParams,
            "make.trigger": MakeTriggerParams,
        }
    )


def _paths(errors: list[dict[str, str]]) -> set[str]:
    return {error["path"] for error in errors}


def test_valid_envelope(validator: SchemaValidator) -> None:
    result = validator.validate(
        ENVELOPE_SCHEMA,
        {"action": "echo", "mode": "dry_run", "idempotencyKey": "k1", "params": {"a": 1}},
    )
    assert result.valid
    assert result.errors == []
    assert isinstance(result.value, ActionEnvelope)
    assert result.value.action is ActionName.ECHO
    assert result.value.mode is ExecutionMode.DRY_RUN
    assert result.value.idempotency_key == "k1"


def test_envelope_reports_every_missing_field(validator: SchemaValidator) -> None:
    result = validator.validate(ENVELOPE_SCHEMA, {})
    assert not result.valid
    assert _paths(result.errors) == {"$.action", "$.mode", "$.idempotencyKey", "$.params"}


def test_envelope_reports_unknown_action_alongside_other_violations(
    validator: SchemaValidator,
) -> None:
    result = validator.validate(
        ENVELOPE_SCHEMA,
        {"action": "rm.rf", "mode": "yolo", "idempotencyKey": "k1", "params": {}},
    )
    assert not result.valid
    assert _paths(result.errors) == {"$.action", "$.mode"}


def test_envelope_is_strict_about_extra_fields(validator: SchemaValidator) -> None:
    result = validator.validate(
        ENVELOPE_SCHEMA,
        {
            "action": "echo",
            "mode": "dry_run",
            "idempotencyKey": "k1",
            "params": {},
            "brand": "DB",
        },
    )
    assert not result.valid
    assert _paths(result.errors) == {"$.brand"}


@pytest.mark.parametrize(
    "payload",
    [
        {"action": "echo", "mode": "dry_run", "idempotencyKey": "", "params": {}},
        {"action": "echo", "mode": "dry_run", "idempotencyKey": 7, "params": {}},
        {"action": "echo", "mode": "dry_run", "idempotencyKey": "k", "params": []},
        ["not", "an", "object"],
        "string",
    ],
)
def test_envelope_type_violations(validator: SchemaValidator, payload: Any) -> None:
    assert not validator.validate(ENVELOPE_SCHEMA, payload).valid


def test_envelope_is_immutable(validator: SchemaValidator) -> None:
    envelope = validator.validate(
        ENVELOPE_SCHEMA,
        {"action": "echo", "mode": "execute", "idempotencyKey": "k1", "params": {}},
    ).value
    with pytest.raises(ValueError):
        envelope.mode = ExecutionMode.DRY_RUN


@pytest.mark.parametrize("params", [{}, {"anything": [1, {"nested": True}]}, {"x": None}])
def test_echo_accepts_anything(validator: SchemaValidator, params: dict[str, Any]) -> None:
    result = validator.validate("echo", params)
    assert result.valid
    assert result.value == params


def test_params_collects_all_errors(validator: SchemaValidator) -> None:
    result = validator.validate("make.trigger", {"webhookUrl": 5, "extra": True})
    assert not result.valid
    assert _paths(result.errors) == {"$.webhookUrl", "$.payload", "$.extra"}


def test_make_trigger_requires_absolute_http_url(validator: SchemaValidator) -> None:
    for url in ("ftp://hook.make.com/x", "/relative", "https://"):
        result = validator.validate("make.trigger", {"webhookUrl": url, "payload": {}})
        assert not result.valid, url
    ok = validator.validate(
        "make.trigger", {"webhookUrl": "https://hook.make.com/abc", "payload": None}
    )
    assert ok.valid
    assert ok.value.webhook_url == "https://hook.make.com/abc"


def test_push_job_requires_non_empty_string(validator: SchemaValidator) -> None:
    assert not validator.validate("jobtread.pushJobToQbo", {"jobId": ""}).valid
    assert not validator.validate("jobtread.pushJobToQbo", {"jobId": 12}).valid
    assert validator.validate("jobtread.pushJobToQbo", {"jobId": "22Nm"}).valid


def test_unknown_schema_id_raises(validator: SchemaValidator) -> None:
    assert not validator.has_schema("nope")
    with pytest.raises(LookupError):
        validator.validate("nope", {})


def test_format_location() -> None:
    assert format_location(()) == "$"
    assert format_location(("pave", "jobs", 0, "size")) == "$.pave.jobs[0].size"
