"""Backend registry: one explicit value per process, passed to whoever needs it."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from agent_relay.orchestrator.models import BackendDefinition
from agent_relay.orchestrator.specs import Agent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BackendHandle:
    definition: BackendDefinition
    agent: Agent | None = None
    endpoint: str | None = None

    @property
    def id(self) -> str:
        return self.definition.id

    @property
    def type(self) -> str:
        return self.definition.type

    @property
    def runtime(self) -> str:
        return self.definition.runtime


class BackendRegistry:
    """Map of backend id to handle. Re-registering an id replaces the entry."""

    def __init__(self) -> None:
        self._backends: dict[str, BackendHandle] = {}

    def register(self, handle: BackendHandle) -> BackendHandle:
        if handle.id in self._backends:
            logger.warning("backend_registry event=overwrite backend_id=%s", handle.id)
        self._backends[handle.id] = handle
        logger.info(
            "backend_registry event=registered backend_id=%s type=%s runtime=%s",
            handle.id,
            handle.type,
            handle.runtime,
        )
        return handle

    def get(self, backend_id: str) -> BackendHandle | None:
        return self._backends.get(backend_id)

    def get_by_type(self, backend_type: str) -> list[BackendHandle]:
        return [handle for handle in self._backends.values() if handle.type == backend_type]

    def list(self) -> list[BackendHandle]:
        return list(self._backends.values())

    def unregister(self, backend_id: str) -> bool:
        return self._backends.pop(backend_id, None) is not None
