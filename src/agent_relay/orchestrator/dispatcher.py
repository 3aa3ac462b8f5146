"""Routes a task to a registered backend with a bounded, retry-free call."""

from __future__ import annotations

import asyncio
import logging
import time

import httpx

from agent_relay.orchestrator.models import BackendDefinition, HealthStatus, Result, Task
from agent_relay.orchestrator.registry import BackendHandle, BackendRegistry
from agent_relay.orchestrator.runtimes import (
    HttpRuntime,
    InProcessRuntime,
    ProcessRuntime,
    resolve_endpoint,
)
from agent_relay.orchestrator.specs import Agent

logger = logging.getLogger(__name__)


class Dispatcher:
    """Resolve ``backend_id`` to a runtime and execute exactly one round trip.

    ``execute`` never raises for operational failures: unknown backends,
    network errors, non-2xx replies, malformed replies and timeouts all come
    back as ``Result(success=False)``. Retrying is left to the caller.
    """

    def __init__(
        self,
        registry: BackendRegistry | None = None,
        *,
        timeout_s: float = 30.0,
        health_timeout_s: float = 5.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.registry = registry or BackendRegistry()
        self.timeout_s = timeout_s
        self.health_timeout_s = health_timeout_s
        self._owns_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(timeout=timeout_s)
        self._runtimes = {
            "in-process": InProcessRuntime(),
            "http": HttpRuntime(self._http_client),
            "container": HttpRuntime(self._http_client),
            "process": ProcessRuntime(),
        }

    def register(
        self,
        definition: BackendDefinition,
        implementation: Agent | None = None,
    ) -> BackendHandle:
        """Validate and store a backend. Last registration for an id wins."""
        _validate_definition(definition, implementation)
        handle = BackendHandle(
            definition=definition,
            agent=implementation if definition.runtime == "in-process" else None,
            endpoint=resolve_endpoint(definition),
        )
        return self.registry.register(handle)

    def unregister(self, backend_id: str) -> bool:
        return self.registry.unregister(backend_id)

    def get(self, backend_id: str) -> BackendHandle | None:
        return self.registry.get(backend_id)

    def list(self) -> list[BackendHandle]:
        return self.registry.list()

    def list_by_type(self, backend_type: str) -> list[BackendHandle]:
        return self.registry.get_by_type(backend_type)

    async def execute(self, backend_id: str, task: Task) -> Result:
        handle = self.registry.get(backend_id)
        if handle is None:
            logger.warning(
                "dispatch event=not_registered backend_id=%s task_id=%s", backend_id, task.id
            )
            return Result.fail(f"backend not registered: {backend_id}", backend_id=backend_id)

        runtime = self._runtimes[handle.runtime]
        started_at = time.perf_counter()
        logger.info(
            "dispatch event=start backend_id=%s runtime=%s task_id=%s task_type=%s",
            backend_id,
            handle.runtime,
            task.id,
            task.type,
        )
        try:
            result = await asyncio.wait_for(runtime.execute(handle, task), timeout=self.timeout_s)
        except TimeoutError:
            result = Result.fail(f"backend {backend_id} timed out after {self.timeout_s:g}s")
        except Exception as exc:  # noqa: BLE001
            logger.exception(
                "dispatch event=backend_error backend_id=%s task_id=%s", backend_id, task.id
            )
            result = Result.fail(f"backend {backend_id} failed: {exc}")

        latency_ms = round((time.perf_counter() - started_at) * 1000.0, 2)
        metadata = result.metadata
        if metadata.latency is None:
            metadata.latency = latency_ms
        if metadata.backend_id is None:
            metadata.backend_id = backend_id
        if metadata.version is None:
            metadata.version = handle.definition.version

        log = logger.info if result.success else logger.warning
        log(
            "dispatch event=completed backend_id=%s task_id=%s success=%s latency_ms=%s error=%s",
            backend_id,
            task.id,
            result.success,
            latency_ms,
            result.error,
        )
        return result

    async def check_health(self, backend_id: str) -> HealthStatus:
        handle = self.registry.get(backend_id)
        if handle is None:
            return HealthStatus(status="unknown", error="backend not registered")
        runtime = self._runtimes[handle.runtime]
        try:
            return await asyncio.wait_for(runtime.health(handle), timeout=self.health_timeout_s)
        except TimeoutError:
            return HealthStatus(
                status="unhealthy",
                error=f"health check timed out after {self.health_timeout_s:g}s",
            )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http_client.aclose()


def _validate_definition(definition: BackendDefinition, implementation: Agent | None) -> None:
    config = definition.config
    if definition.runtime == "in-process" and implementation is None:
        raise ValueError("In-process backends require an implementation")
    if definition.runtime == "http" and not config.url:
        raise ValueError("HTTP backends require config.url")
    if definition.runtime == "container" and not (config.url or config.ports):
        raise ValueError("Container backends require config.url or config.ports")
    if definition.runtime == "process" and not (config.script or "").strip():
        raise ValueError("Process backends require config.script")
