"""FastAPI app entrypoint for agent-relay."""

from __future__ import annotations

import uuid
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import Field, ValidationError

from agent_relay.agents.schemas import AnswerInput
from agent_relay.config.logs import configure_logging
from agent_relay.config.settings import Settings, get_settings
from agent_relay.orchestrator.models import REMOTE_RUNTIMES, BackendDefinition, Task, WireModel
from agent_relay.pipeline.errors import AnswerTimeoutError, DedupeTimeoutError
from agent_relay.wiring import Services, build_services

USER_MESSAGES = {
    400: "The request was not valid.",
    404: "We couldn't find what you were looking for.",
    502: "Something went wrong. Please try again.",
    504: "That took too long. Please try again.",
}


class ExecuteTaskRequest(WireModel):
    agent_id: str = Field(min_length=1)
    task: dict[str, Any]


def failure_status(error: str) -> int:
    lowered = error.lower()
    if "not registered" in lowered or "not found" in lowered:
        return 404
    if "timed out" in lowered:
        return 504
    if lowered.startswith(("invalid payload", "unknown task type", "malformed task")):
        return 400
    return 502


def failure_response(status_code: int, error: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"ok": False, "message": USER_MESSAGES[status_code], "error": error},
    )


def create_app(
    *,
    services: Services | None = None,
    settings_override: Settings | None = None,
) -> FastAPI:
    settings = settings_override or get_settings()
    configure_logging(settings.log_level)
    owns_services = services is None
    runtime_services = services or build_services(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        if owns_services:
            await runtime_services.aclose()
        else:
            await runtime_services.background.drain()

    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.state.settings = settings
    app.state.services = runtime_services

    def _services(request: Request) -> Services:
        return request.app.state.services

    @app.get("/health")
    async def health(request: Request) -> dict[str, Any]:
        current = _services(request)
        return {
            "status": "ok",
            "service": settings.app_name,
            "backends": len(current.dispatcher.list()),
            "llmProvider": current.plugins.effective_llm_provider,
        }

    @app.get("/agents")
    async def list_agents(request: Request) -> dict[str, Any]:
        handles = _services(request).dispatcher.list()
        return {"agents": [handle.definition.to_wire() for handle in handles]}

    @app.get("/agents/{agent_id}")
    async def get_agent(agent_id: str, request: Request):
        handle = _services(request).dispatcher.get(agent_id)
        if handle is None:
            return failure_response(404, f"backend not registered: {agent_id}")
        return handle.definition.to_wire()

    @app.post("/agents/register")
    async def register_agent(payload: dict[str, Any], request: Request):
        try:
            definition = BackendDefinition.model_validate(payload)
        except ValidationError as exc:
            return failure_response(400, f"invalid backend definition: {exc.errors()[0]['msg']}")
        if definition.runtime not in REMOTE_RUNTIMES:
            return failure_response(
                400, "only http, container and process backends can be registered"
            )
        try:
            handle = _services(request).dispatcher.register(definition)
        except ValueError as exc:
            return failure_response(400, str(exc))
        return {"ok": True, "agent": handle.definition.to_wire()}

    @app.get("/agents/{agent_id}/health")
    async def agent_health(agent_id: str, request: Request):
        dispatcher = _services(request).dispatcher
        if dispatcher.get(agent_id) is None:
            return failure_response(404, f"backend not registered: {agent_id}")
        status = await dispatcher.check_health(agent_id)
        return status.to_wire()

    @app.post("/agents/{agent_id}/execute")
    async def execute_on_agent(agent_id: str, payload: dict[str, Any], request: Request):
        """Wire endpoint for remote dispatchers: always replies with a Result."""
        try:
            task = Task.model_validate(payload)
        except ValidationError as exc:
            return failure_response(400, f"malformed task: {exc.errors()[0]['msg']}")
        result = await _services(request).dispatcher.execute(agent_id, task)
        return result.to_wire()

    @app.post("/tasks/execute")
    async def execute_task(payload: ExecuteTaskRequest, request: Request):
        raw_task = dict(payload.task)
        raw_task.setdefault("id", f"task_{uuid.uuid4().hex}")
        try:
            task = Task.model_validate(raw_task)
        except ValidationError as exc:
            return failure_response(400, f"malformed task: {exc.errors()[0]['msg']}")

        result = await _services(request).dispatcher.execute(payload.agent_id, task)
        if not result.success:
            error = result.error or "task failed"
            return failure_response(failure_status(error), error)
        return {"ok": True, "result": result.to_wire()}

    @app.post("/answer")
    async def answer(payload: AnswerInput, request: Request):
        try:
            result = await _services(request).pipeline.answer(
                payload.session_id, payload.question, payload.persona
            )
        except (AnswerTimeoutError, DedupeTimeoutError) as exc:
            return failure_response(504, f"answer timed out: {exc}")
        return {"ok": True, **result.to_wire()}

    return app


app = create_app()
