"""Hand a session over to a human."""

from __future__ import annotations

import logging

from agent_relay.pipeline.background import BackgroundTasks
from agent_relay.plugins.base import DataPlugin, EmailPlugin, PluginResult
from agent_relay.plugins.models import ActionLog, EmailMessage, Escalation

logger = logging.getLogger(__name__)


class Escalator:
    def __init__(
        self,
        *,
        data: DataPlugin,
        email: EmailPlugin,
        background: BackgroundTasks,
        notify_to: str = "support@example.com",
    ) -> None:
        self.data = data
        self.email = email
        self.background = background
        self.notify_to = notify_to

    async def escalate(
        self, session_id: str, reason: str, severity: str = "medium"
    ) -> PluginResult[Escalation]:
        """Upsert the escalation and log it; the notification mail is sent detached.

        A repeat escalation keeps the session's mail thread.
        """
        existing = await self.data.get_escalation(session_id)
        thread_id = ""
        if existing.ok and existing.data is not None:
            thread_id = existing.data.thread_id

        upserted = await self.data.upsert_escalation(
            Escalation(session_id=session_id, reason=reason, severity=severity, thread_id=thread_id)
        )
        if not upserted.ok or upserted.data is None:
            logger.warning(
                "escalation event=upsert_failed session_id=%s reason=%s",
                session_id,
                upserted.error,
            )
            return upserted

        logged = await self.data.log_action(
            ActionLog(
                session_id=session_id,
                type="escalation",
                status="open",
                payload={"reason": reason, "severity": severity},
            )
        )
        if not logged.ok:
            logger.warning(
                "escalation event=action_log_failed session_id=%s reason=%s",
                session_id,
                logged.error,
            )

        self.background.spawn(
            self._notify(upserted.data), description=f"escalation_email:{session_id}"
        )
        logger.info("escalation event=opened session_id=%s severity=%s", session_id, severity)
        return upserted

    async def _notify(self, snapshot: Escalation) -> None:
        sent = await self.email.send(
            EmailMessage(
                to=self.notify_to,
                subject=f"[{snapshot.severity}] Escalation for session {snapshot.session_id}",
                body=snapshot.reason,
                thread_id=snapshot.thread_id or None,
            )
        )
        if not sent.ok or sent.data is None:
            logger.warning(
                "escalation event=email_failed session_id=%s reason=%s",
                snapshot.session_id,
                sent.error,
            )
            return
        if sent.data.thread_id == snapshot.thread_id:
            return

        # Only the thread id is written back, and only onto the record this mail was about.
        current = await self.data.get_escalation(snapshot.session_id)
        if not current.ok or current.data is None:
            logger.warning(
                "escalation event=thread_update_failed session_id=%s reason=%s",
                snapshot.session_id,
                current.error or "escalation missing",
            )
            return
        if _revision(current.data) != _revision(snapshot):
            logger.info(
                "escalation event=thread_update_skipped session_id=%s reason=superseded",
                snapshot.session_id,
            )
            return
        await self.data.upsert_escalation(
            current.data.model_copy(update={"thread_id": sent.data.thread_id})
        )


def _revision(escalation: Escalation) -> tuple:
    return (escalation.reason, escalation.severity, escalation.last_email_at)
