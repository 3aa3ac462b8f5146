"""Notification backend used for escalation delivery."""

from __future__ import annotations

import logging

from agent_relay.plugins.base import PluginResult, fail, ok
from agent_relay.plugins.latency import generate_id, simulate_latency
from agent_relay.plugins.models import EmailMessage, EmailReceipt, PluginHealth, PluginMetadata

logger = logging.getLogger(__name__)


class LoggingEmailPlugin:
    """Records outgoing mail in memory and logs it instead of sending."""

    def __init__(
        self,
        *,
        latency_ms: tuple[int, int] = (10, 50),
        fail_with: str | None = None,
    ) -> None:
        self.metadata = PluginMetadata(
            name="email-logging",
            version="1.0.0",
            description="In-memory outbox",
            capabilities=["send"],
        )
        self.latency_ms = latency_ms
        self.fail_with = fail_with
        self.outbox: list[EmailMessage] = []

    async def send(self, message: EmailMessage) -> PluginResult[EmailReceipt]:
        await simulate_latency(*self.latency_ms)
        if self.fail_with is not None:
            return fail(self.fail_with)

        thread_id = message.thread_id or generate_id("thread")
        self.outbox.append(message.model_copy(update={"thread_id": thread_id}))
        logger.info(
            "email event=queued to=%s subject=%s thread_id=%s",
            message.to,
            message.subject,
            thread_id,
        )
        return ok(EmailReceipt(message_id=generate_id("msg"), thread_id=thread_id))

    async def health_check(self) -> PluginHealth:
        return PluginHealth(healthy=True, status="healthy", message="email plugin is operational")
