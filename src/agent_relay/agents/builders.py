"""In-process agents that expose plugins and the answer pipeline as typed tasks."""

from __future__ import annotations

import time
from datetime import UTC, datetime
from typing import Any, TypeVar

from agent_relay.agents.schemas import (
    ActionList,
    AnswerInput,
    EmptyInput,
    EscalateInput,
    IndexInput,
    MessageList,
    SearchInput,
    SearchOutput,
    SessionList,
    SessionRef,
)
from agent_relay.orchestrator.models import HealthStatus
from agent_relay.orchestrator.specs import HealthProbe, SpecAgent, TaskFailure, TaskSpec
from agent_relay.pipeline.answer import AnswerPipeline, AnswerResult
from agent_relay.pipeline.errors import AnswerTimeoutError, DedupeTimeoutError, PipelineError
from agent_relay.pipeline.escalation import Escalator
from agent_relay.plugins.base import DataPlugin, LLMPlugin, PluginResult, RetrievalPlugin
from agent_relay.plugins.models import (
    ActionLog,
    ChatRequest,
    ChatResponse,
    Escalation,
    IndexStats,
    Message,
    NewSession,
    RetrievalStatus,
    Session,
)

T = TypeVar("T")


def _unwrap(result: PluginResult[T]) -> T:
    if not result.ok or result.data is None:
        raise TaskFailure(result.error or "plugin returned no data")
    return result.data


def _plugin_probe(*plugins: Any) -> HealthProbe:
    async def probe() -> HealthStatus:
        started_at = time.perf_counter()
        failures: list[str] = []
        for plugin in plugins:
            health = await plugin.health_check()
            if not health.healthy:
                failures.append(f"{plugin.metadata.name}: {health.message or health.status}")
        return HealthStatus(
            status="unhealthy" if failures else "healthy",
            last_check=datetime.now(UTC),
            error="; ".join(failures) or None,
            latency=round((time.perf_counter() - started_at) * 1000.0, 2),
        )

    return probe


def build_retrieval_agent(
    retrieval: RetrievalPlugin, *, agent_id: str = "retrieval-agent"
) -> SpecAgent:
    async def search(payload: SearchInput) -> SearchOutput:
        found = await retrieval.search(payload.query, payload.max_results)
        return SearchOutput(
            results=_unwrap(found), fallback=bool(found.metadata.get("fallback", False))
        )

    async def index(payload: IndexInput) -> IndexStats:
        return _unwrap(await retrieval.index(payload.documents, payload.replace))

    async def get_status(_: EmptyInput) -> RetrievalStatus:
        return _unwrap(await retrieval.status())

    return SpecAgent(
        agent_id=agent_id,
        agent_type="retrieval",
        version=retrieval.metadata.version,
        health_probe=_plugin_probe(retrieval),
        specs={
            "search": TaskSpec(input_model=SearchInput, output_model=SearchOutput, fn=search),
            "index": TaskSpec(input_model=IndexInput, output_model=IndexStats, fn=index),
            "getStatus": TaskSpec(
                input_model=EmptyInput, output_model=RetrievalStatus, fn=get_status
            ),
        },
    )


def build_data_agent(
    data: DataPlugin,
    *,
    escalator: Escalator | None = None,
    agent_id: str = "data-agent",
) -> SpecAgent:
    async def create_session(payload: NewSession) -> Session:
        return _unwrap(await data.create_session(payload))

    async def end_session(payload: SessionRef) -> Session:
        return _unwrap(await data.end_session(payload.session_id))

    async def list_sessions(_: EmptyInput) -> SessionList:
        return SessionList(sessions=_unwrap(await data.list_sessions()))

    async def append_message(payload: Message) -> Message:
        return _unwrap(await data.append_message(payload))

    async def get_messages(payload: SessionRef) -> MessageList:
        return MessageList(messages=_unwrap(await data.get_messages_by_session(payload.session_id)))

    async def log_action(payload: ActionLog) -> ActionLog:
        return _unwrap(await data.log_action(payload))

    async def get_actions(payload: SessionRef) -> ActionList:
        return ActionList(actions=_unwrap(await data.get_actions_by_session(payload.session_id)))

    async def upsert_escalation(payload: Escalation) -> Escalation:
        return _unwrap(await data.upsert_escalation(payload))

    specs = {
        "createSession": TaskSpec(NewSession, Session, create_session),
        "endSession": TaskSpec(SessionRef, Session, end_session),
        "listSessions": TaskSpec(EmptyInput, SessionList, list_sessions),
        "appendMessage": TaskSpec(Message, Message, append_message),
        "getMessagesBySession": TaskSpec(SessionRef, MessageList, get_messages),
        "logAction": TaskSpec(ActionLog, ActionLog, log_action),
        "getActionsBySession": TaskSpec(SessionRef, ActionList, get_actions),
        "upsertEscalation": TaskSpec(Escalation, Escalation, upsert_escalation),
    }

    if escalator is not None:

        async def escalate(payload: EscalateInput) -> Escalation:
            return _unwrap(
                await escalator.escalate(payload.session_id, payload.reason, payload.severity)
            )

        specs["escalate"] = TaskSpec(EscalateInput, Escalation, escalate)

    return SpecAgent(
        agent_id=agent_id,
        agent_type="data",
        version=data.metadata.version,
        health_probe=_plugin_probe(data),
        specs=specs,
    )


def build_llm_agent(llm: LLMPlugin, *, agent_id: str = "llm-agent") -> SpecAgent:
    async def chat(payload: ChatRequest) -> ChatResponse:
        return _unwrap(await llm.chat(payload))

    return SpecAgent(
        agent_id=agent_id,
        agent_type="llm",
        version=llm.metadata.version,
        health_probe=_plugin_probe(llm),
        specs={"chat": TaskSpec(ChatRequest, ChatResponse, chat)},
    )


def build_answer_agent(pipeline: AnswerPipeline, *, agent_id: str = "answer-agent") -> SpecAgent:
    async def answer(payload: AnswerInput) -> AnswerResult:
        try:
            return await pipeline.answer(payload.session_id, payload.question, payload.persona)
        except (AnswerTimeoutError, DedupeTimeoutError) as exc:
            raise TaskFailure(f"answer timed out: {exc}") from exc
        except PipelineError as exc:
            raise TaskFailure(str(exc)) from exc

    return SpecAgent(
        agent_id=agent_id,
        agent_type="answer",
        health_probe=_plugin_probe(pipeline.retrieval, pipeline.llm),
        specs={"answer": TaskSpec(AnswerInput, AnswerResult, answer)},
    )


def build_agent_map(
    *,
    retrieval: RetrievalPlugin,
    data: DataPlugin,
    llm: LLMPlugin,
    pipeline: AnswerPipeline,
    escalator: Escalator | None = None,
) -> dict[str, SpecAgent]:
    """Agents keyed by the kind name the worker and wiring use."""
    return {
        "retrieval": build_retrieval_agent(retrieval),
        "data": build_data_agent(data, escalator=escalator),
        "llm": build_llm_agent(llm),
        "answer": build_answer_agent(pipeline),
    }
