"""In-memory data backend for tests and default operation."""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from agent_relay.plugins.base import PluginResult, fail, ok
from agent_relay.plugins.latency import generate_id, simulate_latency
from agent_relay.plugins.models import (
    ActionLog,
    Escalation,
    Message,
    NewSession,
    PluginHealth,
    PluginMetadata,
    Session,
)

logger = logging.getLogger(__name__)


class InMemoryDataPlugin:
    """Sessions, append-only messages/actions and one escalation per session.

    Every write is keyed by ``session_id``. Concurrent writes to the same
    escalation are last-write-wins.
    """

    def __init__(self, *, latency_ms: tuple[int, int] = (10, 50)) -> None:
        self.metadata = PluginMetadata(
            name="data-memory",
            version="1.0.0",
            description="In-memory data store",
            capabilities=["sessions", "messages", "actions", "escalations"],
        )
        self.latency_ms = latency_ms
        self._sessions: dict[str, Session] = {}
        self._messages: dict[str, list[Message]] = {}
        self._actions: dict[str, list[ActionLog]] = {}
        self._escalations: dict[str, Escalation] = {}

    async def create_session(self, session: NewSession) -> PluginResult[Session]:
        await simulate_latency(*self.latency_ms)

        record = Session(
            session_id=generate_id("session"),
            channel=session.channel,
            persona=session.persona,
            user_name=session.user_name,
            started_at=session.started_at or datetime.now(UTC),
        )
        self._sessions[record.session_id] = record
        self._messages.setdefault(record.session_id, [])
        self._actions.setdefault(record.session_id, [])
        logger.info("data_store event=session_created session_id=%s", record.session_id)
        return ok(record.model_copy())

    async def end_session(self, session_id: str) -> PluginResult[Session]:
        await simulate_latency(*self.latency_ms)

        current = self._sessions.get(session_id)
        if current is None:
            return fail(f"session {session_id} not found")
        updated = current.model_copy(update={"ended_at": datetime.now(UTC)})
        self._sessions[session_id] = updated
        logger.info("data_store event=session_ended session_id=%s", session_id)
        return ok(updated.model_copy())

    async def list_sessions(self) -> PluginResult[list[Session]]:
        await simulate_latency(*self.latency_ms)
        return ok([session.model_copy() for session in self._sessions.values()])

    async def append_message(self, message: Message) -> PluginResult[Message]:
        await simulate_latency(*self.latency_ms)

        record = message.model_copy(update={"ts": datetime.now(UTC)}, deep=True)
        self._messages.setdefault(message.session_id, []).append(record)
        return ok(record.model_copy(deep=True))

    async def get_messages_by_session(self, session_id: str) -> PluginResult[list[Message]]:
        await simulate_latency(*self.latency_ms)
        messages = self._messages.get(session_id, [])
        return ok([message.model_copy(deep=True) for message in messages])

    async def log_action(self, action: ActionLog) -> PluginResult[ActionLog]:
        await simulate_latency(*self.latency_ms)

        record = action.model_copy(update={"ts": datetime.now(UTC)}, deep=True)
        self._actions.setdefault(action.session_id, []).append(record)
        return ok(record.model_copy(deep=True))

    async def get_actions_by_session(self, session_id: str) -> PluginResult[list[ActionLog]]:
        await simulate_latency(*self.latency_ms)
        actions = self._actions.get(session_id, [])
        return ok([action.model_copy(deep=True) for action in actions])

    async def upsert_escalation(self, escalation: Escalation) -> PluginResult[Escalation]:
        await simulate_latency(*self.latency_ms)

        now = datetime.now(UTC)
        existing = self._escalations.get(escalation.session_id)
        record = escalation.model_copy(
            update={
                "created_at": existing.created_at if existing is not None else now,
                "last_email_at": now,
            }
        )
        self._escalations[escalation.session_id] = record
        logger.info(
            "data_store event=escalation_upserted session_id=%s severity=%s",
            escalation.session_id,
            escalation.severity,
        )
        return ok(record.model_copy())

    async def health_check(self) -> PluginHealth:
        return PluginHealth(healthy=True, status="healthy", message="data plugin is operational")

    async def get_escalation(self, session_id: str) -> PluginResult[Escalation | None]:
        await simulate_latency(*self.latency_ms)

        record = self._escalations.get(session_id)
        return ok(record.model_copy() if record is not None else None)

    def stats(self) -> dict[str, int]:
        return {
            "sessions": len(self._sessions),
            "total_messages": sum(len(items) for items in self._messages.values()),
            "total_actions": sum(len(items) for items in self._actions.values()),
            "escalations": len(self._escalations),
        }

    def clear_all(self) -> None:
        """Drop every record. Test isolation only."""
        self._sessions.clear()
        self._messages.clear()
        self._actions.clear()
        self._escalations.clear()
