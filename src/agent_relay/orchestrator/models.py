"""Task/result envelope and backend registration models.

These shapes cross process boundaries, so they serialize with camelCase
aliases (``sessionId``, ``backendId``) and accept either spelling on input.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

Runtime = Literal["in-process", "http", "container", "process"]
REMOTE_RUNTIMES: frozenset[str] = frozenset({"http", "container", "process"})

HealthState = Literal["healthy", "unhealthy", "unknown"]


class WireModel(BaseModel):
    """Base model for payloads exchanged with callers and remote backends."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class TaskContext(WireModel):
    model_config = ConfigDict(extra="allow")

    session_id: str | None = None
    user_id: str | None = None
    request_id: str | None = None


class Task(WireModel):
    """One capability call. ``id`` is for tracing only, never deduplicated."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    type: str = Field(min_length=1)
    payload: dict[str, Any] = Field(default_factory=dict)
    context: TaskContext = Field(default_factory=TaskContext)


class ResultMetadata(WireModel):
    model_config = ConfigDict(extra="allow")

    latency: float | None = None
    backend_id: str | None = None
    version: str | None = None


class Result(WireModel):
    """Outcome of exactly one task. The dispatcher never retries it."""

    success: bool
    data: Any = None
    error: str | None = None
    metadata: ResultMetadata = Field(default_factory=ResultMetadata)

    @classmethod
    def ok(cls, data: Any = None, **metadata: Any) -> Result:
        return cls(success=True, data=data, metadata=ResultMetadata(**metadata))

    @classmethod
    def fail(cls, error: str, **metadata: Any) -> Result:
        return cls(success=False, error=error, metadata=ResultMetadata(**metadata))


class BackendConfig(WireModel):
    model_config = ConfigDict(extra="allow")

    url: str | None = None
    image: str | None = None
    script: str | None = None
    env: dict[str, str] = Field(default_factory=dict)
    ports: list[int] = Field(default_factory=list)
    health_endpoint: str | None = None


class BackendDefinition(WireModel):
    """Registration record. Selection is always by explicit ``id``."""

    id: str = Field(min_length=1)
    type: str = Field(min_length=1)
    version: str | None = None
    runtime: Runtime
    config: BackendConfig = Field(default_factory=BackendConfig)
    capabilities: list[str] = Field(default_factory=list)


class HealthStatus(WireModel):
    status: HealthState
    last_check: datetime | None = None
    error: str | None = None
    latency: float | None = None
