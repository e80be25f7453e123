"""Action registry and dispatcher.

Each action name maps to exactly one executor and the pydantic model its
``params`` must satisfy. Dispatch never retries and never swallows executor
failures; whatever the executor raises reaches the pipeline unchanged.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol

from pydantic import BaseModel

from actiongate.errors import UnknownActionError
from actiongate.logging import get_logger
from actiongate.models import ExecutionMode
from actiongate.tenants import TenantIdentity

logger = get_logger(__name__)


@dataclass(frozen=True)
class ActionOutcome:
    """What an executor hands back to the pipeline."""

    result: Any = None
    notes: list[str] = field(default_factory=list)


class ActionExecutor(Protocol):
    """Callable boundary every action implements.

    ``params`` is already validated; it is the model instance registered for
    the action, or the raw mapping when the action declares no model. In
    ``dry_run`` mode an executor must not cause any downstream side effect.
    """

    async def run(
        self,
        params: Any,
        tenant: TenantIdentity,
        mode: ExecutionMode,
        *,
        trace_id: str,
    ) -> ActionOutcome: ...


@dataclass(frozen=True)
class _Registration:
    executor: ActionExecutor
    params_model: type[BaseModel] | None


class ActionRegistry:
    """Route action names to executors."""

    def __init__(self) -> None:
        self._actions: dict[str, _Registration] = {}

    def register(
        self,
        name: str,
        executor: ActionExecutor,
        params_model: type[BaseModel] | None = None,
    ) -> None:
        name = str(name)
        if name in self._actions:
            raise ValueError(f"Action already registered: {name}")
        self._actions[name] = _Registration(executor=executor, params_model=params_model)

    def has(self, name: str) -> bool:
        return name in self._actions

    def get(self, name: str) -> ActionExecutor:
        registration = self._actions.get(name)
        if registration is None:
            raise UnknownActionError(name)
        return registration.executor

    @property
    def names(self) -> list[str]:
        return sorted(self._actions)

    def param_schemas(self) -> dict[str, type[BaseModel] | None]:
        """Return the params model registered for every action, keyed by name."""
        return {name: item.params_model for name, item in self._actions.items()}

    async def dispatch(
        self,
        action: str,
        params: Any,
        tenant: TenantIdentity,
        mode: ExecutionMode,
        *,
        trace_id: str,
    ) -> ActionOutcome:
        """Invoke the executor registered for ``action``.

        Raises:
            UnknownActionError: if nothing is registered under ``action``.
        """
        executor = self.get(action)
        logger.debug("action_dispatched", action=action, tenant=tenant.name, mode=str(mode))
        return await executor.run(params, tenant, mode, trace_id=trace_id)
