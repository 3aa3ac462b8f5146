"""Typed task handlers and the in-process agent that executes them.

Each task ``type`` a backend serves is declared once as a :class:`TaskSpec`
with a pydantic input and output model, so the payload contract is checked
before the handler runs and the handler output is checked before it is
returned to the dispatcher.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, ValidationError

from agent_relay.orchestrator.models import HealthStatus, Result, Task

logger = logging.getLogger(__name__)

HealthProbe = Callable[[], Awaitable[HealthStatus]]


class TaskFailure(Exception):
    """Raised by a handler for an expected operational failure.

    The message is returned to the caller as ``Result.error``.
    """


@runtime_checkable
class Agent(Protocol):
    """Contract every in-process backend satisfies."""

    id: str
    type: str
    version: str

    def capabilities(self) -> list[str]: ...

    async def execute(self, task: Task) -> Result: ...

    async def health(self) -> HealthStatus: ...


@dataclass(frozen=True)
class TaskSpec:
    input_model: type[BaseModel]
    output_model: type[BaseModel]
    fn: Callable[[Any], Awaitable[BaseModel]]


class SpecAgent:
    """In-process agent that routes ``task.type`` to a registered TaskSpec."""

    def __init__(
        self,
        *,
        agent_id: str,
        agent_type: str,
        specs: dict[str, TaskSpec],
        version: str = "1.0.0",
        health_probe: HealthProbe | None = None,
    ) -> None:
        self.id = agent_id
        self.type = agent_type
        self.version = version
        self.specs = specs
        self._health_probe = health_probe

    def capabilities(self) -> list[str]:
        return sorted(self.specs.keys())

    async def execute(self, task: Task) -> Result:
        started_at = time.perf_counter()
        spec = self.specs.get(task.type)
        if spec is None:
            return self._fail(f"Unknown task type: {task.type}", started_at)

        try:
            payload = spec.input_model.model_validate(task.payload)
        except ValidationError as exc:
            return self._fail(f"Invalid payload for {task.type}: {_first_error(exc)}", started_at)

        try:
            raw_output = await spec.fn(payload)
        except TaskFailure as exc:
            return self._fail(str(exc), started_at)

        output = spec.output_model.model_validate(raw_output)
        return Result.ok(
            output.model_dump(mode="json", by_alias=True),
            latency=_duration_ms(started_at),
            backend_id=self.id,
            version=self.version,
        )

    async def health(self) -> HealthStatus:
        if self._health_probe is None:
            return HealthStatus(status="healthy", last_check=datetime.now(UTC))
        return await self._health_probe()

    def _fail(self, error: str, started_at: float) -> Result:
        logger.warning("agent_task event=failed agent_id=%s error=%s", self.id, error)
        return Result.fail(error, latency=_duration_ms(started_at), backend_id=self.id)


def _first_error(exc: ValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return str(exc)
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ())) or "payload"
    return f"{location}: {first.get('msg', 'invalid value')}"


def _duration_ms(started_at: float) -> float:
    return round((time.perf_counter() - started_at) * 1000.0, 2)
