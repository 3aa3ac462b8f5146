"""Execution runtimes: in-process call, HTTP/container round trip, subprocess."""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import os
import shlex
import shutil
import time
from datetime import UTC, datetime

import httpx

from agent_relay.orchestrator.models import BackendDefinition, HealthStatus, Result, Task
from agent_relay.orchestrator.registry import BackendHandle

logger = logging.getLogger(__name__)

MAX_ERROR_CHARS = 300


def resolve_endpoint(definition: BackendDefinition) -> str | None:
    """Base URL for http/container backends, or None when not applicable."""
    config = definition.config
    if config.url:
        return config.url.rstrip("/")
    if definition.runtime == "container" and config.ports:
        return f"http://127.0.0.1:{config.ports[0]}"
    return None


class InProcessRuntime:
    async def execute(self, handle: BackendHandle, task: Task) -> Result:
        if handle.agent is None:
            return Result.fail(f"backend {handle.id} has no in-process implementation")
        return await handle.agent.execute(task)

    async def health(self, handle: BackendHandle) -> HealthStatus:
        if handle.agent is None:
            return HealthStatus(status="unhealthy", error="Instance not available")
        return await handle.agent.health()


class HttpRuntime:
    """POSTs the wire task to ``{endpoint}/execute``; used for http and container."""

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    async def execute(self, handle: BackendHandle, task: Task) -> Result:
        if not handle.endpoint:
            return Result.fail(f"backend {handle.id} has no endpoint")

        url = f"{handle.endpoint}/execute"
        try:
            response = await self._client.post(url, json=task.to_wire())
        except httpx.HTTPError as exc:
            logger.warning(
                "http_runtime event=request_failed backend_id=%s reason=%s", handle.id, exc
            )
            reason = str(exc) or type(exc).__name__
            return Result.fail(f"request to backend {handle.id} failed: {reason}")

        if not response.is_success:
            return Result.fail(f"HTTP {response.status_code}: {response.reason_phrase}")

        try:
            return Result.model_validate(response.json())
        except ValueError as exc:
            logger.warning(
                "http_runtime event=malformed_response backend_id=%s reason=%s",
                handle.id,
                str(exc)[:MAX_ERROR_CHARS],
            )
            return Result.fail(f"malformed response from backend {handle.id}")

    async def health(self, handle: BackendHandle) -> HealthStatus:
        if not handle.endpoint:
            return HealthStatus(status="unhealthy", error="Endpoint not available")

        path = handle.definition.config.health_endpoint or "/health"
        started_at = time.perf_counter()
        try:
            response = await self._client.get(f"{handle.endpoint}{path}")
        except httpx.HTTPError as exc:
            return HealthStatus(status="unhealthy", error=str(exc) or type(exc).__name__)
        latency = round((time.perf_counter() - started_at) * 1000.0, 2)
        if response.is_success:
            return HealthStatus(status="healthy", last_check=datetime.now(UTC), latency=latency)
        return HealthStatus(
            status="unhealthy",
            last_check=datetime.now(UTC),
            error=f"HTTP {response.status_code}",
            latency=latency,
        )


class ProcessRuntime:
    """Runs ``config.script`` once per task: JSON task on stdin, JSON result on stdout."""

    async def execute(self, handle: BackendHandle, task: Task) -> Result:
        argv = shlex.split(handle.definition.config.script or "")
        if not argv:
            return Result.fail(f"backend {handle.id} has no script")

        env = {**os.environ, **handle.definition.config.env}
        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=env,
            )
        except OSError as exc:
            return Result.fail(f"could not start backend {handle.id}: {exc}")

        try:
            stdout, stderr = await proc.communicate(json.dumps(task.to_wire()).encode("utf-8"))
        except asyncio.CancelledError:
            with contextlib.suppress(ProcessLookupError):
                proc.kill()
            await proc.wait()
            raise

        if proc.returncode != 0:
            tail = stderr.decode("utf-8", errors="replace").strip()[-MAX_ERROR_CHARS:]
            return Result.fail(f"backend {handle.id} exited with code {proc.returncode}: {tail}")

        output = stdout.decode("utf-8", errors="replace")
        lines = [line for line in output.splitlines() if line.strip()]
        if not lines:
            return Result.fail(f"malformed response from backend {handle.id}")
        try:
            return Result.model_validate_json(lines[-1])
        except ValueError:
            return Result.fail(f"malformed response from backend {handle.id}")

    async def health(self, handle: BackendHandle) -> HealthStatus:
        argv = shlex.split(handle.definition.config.script or "")
        if argv and shutil.which(argv[0]):
            return HealthStatus(status="healthy", last_check=datetime.now(UTC))
        return HealthStatus(status="unhealthy", error="script not executable")
