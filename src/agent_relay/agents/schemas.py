"""Payload and output models for every task type the bundled agents serve."""

from __future__ import annotations

from pydantic import ConfigDict, Field

from agent_relay.orchestrator.models import WireModel
from agent_relay.plugins.models import ActionLog, IndexDocument, Message, SearchSnippet, Session


class StrictPayload(WireModel):
    """Task payloads reject unknown keys."""

    model_config = ConfigDict(extra="forbid")


class EmptyInput(StrictPayload):
    pass


class SearchInput(StrictPayload):
    query: str = Field(min_length=1)
    max_results: int = Field(default=5, ge=1, le=50)


class SearchOutput(WireModel):
    results: list[SearchSnippet]
    fallback: bool = False


class IndexInput(StrictPayload):
    documents: list[IndexDocument]
    replace: bool = False


class AnswerInput(StrictPayload):
    question: str = Field(min_length=1)
    session_id: str | None = None
    persona: str | None = None


class SessionRef(StrictPayload):
    session_id: str = Field(min_length=1)


class SessionList(WireModel):
    sessions: list[Session]


class MessageList(WireModel):
    messages: list[Message]


class ActionList(WireModel):
    actions: list[ActionLog]


class EscalateInput(StrictPayload):
    session_id: str = Field(min_length=1)
    reason: str = Field(min_length=1)
    severity: str = "medium"
