"""Records exchanged through the retrieval, data, LLM and email plugins."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import Field

from agent_relay.orchestrator.models import WireModel


class IndexDocument(WireModel):
    id: str = Field(min_length=1)
    text: str
    source: str
    metadata: dict[str, Any] = Field(default_factory=dict)


class SearchSnippet(WireModel):
    source: str
    text: str
    score: float = Field(ge=0.0, le=1.0)
    url: str | None = None
    metadata: dict[str, Any] | None = None


class IndexStats(WireModel):
    indexed: int
    total: int


class RetrievalStatus(WireModel):
    indexed: bool
    doc_count: int
    engine: str


class Session(WireModel):
    session_id: str
    channel: str = "web"
    persona: str = "default"
    user_name: str = ""
    started_at: datetime
    ended_at: datetime | None = None


class NewSession(WireModel):
    """Session fields a caller may supply. The id is always backend-generated."""

    channel: str = "web"
    persona: str = "default"
    user_name: str = ""
    started_at: datetime | None = None


class SourceRef(WireModel):
    type: str = "file"
    id: str
    title: str | None = None
    url: str | None = None


class Message(WireModel):
    session_id: str
    sender: str = Field(alias="from")
    text: str
    source_refs: list[SourceRef] = Field(default_factory=list)
    latency_ms: float = 0.0
    ts: datetime | None = None


class ActionLog(WireModel):
    session_id: str
    type: str
    status: str
    payload: dict[str, Any] | None = None
    result: dict[str, Any] | None = None
    ts: datetime | None = None


class Escalation(WireModel):
    session_id: str
    reason: str
    severity: str
    thread_id: str = ""
    status: str = "open"
    last_email_at: datetime | None = None
    created_at: datetime | None = None


class ChatRequest(WireModel):
    system: str
    user: str
    provider: str | None = None
    model: str | None = None


class ChatResponse(WireModel):
    text: str
    provider: str | None = None
    model: str | None = None


class EmailMessage(WireModel):
    to: str
    subject: str
    body: str
    thread_id: str | None = None


class EmailReceipt(WireModel):
    message_id: str
    thread_id: str


class PluginMetadata(WireModel):
    name: str
    version: str
    description: str = ""
    capabilities: list[str] = Field(default_factory=list)


class PluginHealth(WireModel):
    healthy: bool
    status: str
    message: str | None = None
    latency: float | None = None
