"""Plugin capability contracts.

Backends satisfy these protocols structurally; none of them inherit from a
shared base class. Operational failures come back as ``PluginResult(ok=False)``
and are never raised across the plugin boundary.
"""

from __future__ import annotations

from typing import Any, Generic, Protocol, TypeVar, runtime_checkable

from pydantic import Field

from agent_relay.orchestrator.models import WireModel
from agent_relay.plugins.models import (
    ActionLog,
    ChatRequest,
    ChatResponse,
    EmailMessage,
    EmailReceipt,
    Escalation,
    IndexDocument,
    IndexStats,
    Message,
    NewSession,
    PluginHealth,
    PluginMetadata,
    RetrievalStatus,
    SearchSnippet,
    Session,
)

T = TypeVar("T")


class PluginResult(WireModel, Generic[T]):
    ok: bool
    data: T | None = None
    error: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


def ok(data: T = None, **metadata: Any) -> PluginResult[T]:
    return PluginResult(ok=True, data=data, metadata=metadata)


def fail(message: str, **metadata: Any) -> PluginResult[Any]:
    return PluginResult(ok=False, error=message, metadata=metadata)


@runtime_checkable
class RetrievalPlugin(Protocol):
    metadata: PluginMetadata

    async def search(
        self, query: str, max_results: int = 5
    ) -> PluginResult[list[SearchSnippet]]: ...

    async def index(
        self, documents: list[IndexDocument], replace: bool = False
    ) -> PluginResult[IndexStats]: ...

    async def status(self) -> PluginResult[RetrievalStatus]: ...

    async def health_check(self) -> PluginHealth: ...


@runtime_checkable
class DataPlugin(Protocol):
    metadata: PluginMetadata

    async def create_session(self, session: NewSession) -> PluginResult[Session]: ...

    async def end_session(self, session_id: str) -> PluginResult[Session]: ...

    async def list_sessions(self) -> PluginResult[list[Session]]: ...

    async def append_message(self, message: Message) -> PluginResult[Message]: ...

    async def get_messages_by_session(self, session_id: str) -> PluginResult[list[Message]]: ...

    async def log_action(self, action: ActionLog) -> PluginResult[ActionLog]: ...

    async def get_actions_by_session(self, session_id: str) -> PluginResult[list[ActionLog]]: ...

    async def upsert_escalation(self, escalation: Escalation) -> PluginResult[Escalation]: ...

    async def get_escalation(self, session_id: str) -> PluginResult[Escalation | None]: ...

    async def health_check(self) -> PluginHealth: ...


@runtime_checkable
class LLMPlugin(Protocol):
    metadata: PluginMetadata

    async def chat(self, request: ChatRequest) -> PluginResult[ChatResponse]: ...

    async def health_check(self) -> PluginHealth: ...


@runtime_checkable
class EmailPlugin(Protocol):
    metadata: PluginMetadata

    async def send(self, message: EmailMessage) -> PluginResult[EmailReceipt]: ...

    async def health_check(self) -> PluginHealth: ...
