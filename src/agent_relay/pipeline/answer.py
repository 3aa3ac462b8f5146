"""Retrieval-augmented answer pipeline."""

from __future__ import annotations

import asyncio
import logging
import time

from pydantic import Field

from agent_relay.orchestrator.models import WireModel
from agent_relay.pipeline.background import BackgroundTasks
from agent_relay.pipeline.dedupe import RequestDeduplicator, dedupe_key
from agent_relay.pipeline.errors import AnswerTimeoutError
from agent_relay.pipeline.guardrails import (
    GuardrailContext,
    GuardrailRegistry,
    build_default_guardrails,
)
from agent_relay.pipeline.prompts import (
    build_system_prompt,
    build_user_prompt,
    fallback_answer,
    strip_citation_markers,
)
from agent_relay.plugins.base import DataPlugin, LLMPlugin, RetrievalPlugin
from agent_relay.plugins.models import ActionLog, ChatRequest, Message, SearchSnippet, SourceRef
from agent_relay.retrieval.scoring import fallback_snippets

logger = logging.getLogger(__name__)

BLOCKED_FALLBACK_TEXT = "I can't help with that request."


class Citation(WireModel):
    source: str
    text: str
    score: float
    url: str | None = None


class AnswerResult(WireModel):
    final_text: str
    citations: list[Citation] = Field(default_factory=list)
    latency_ms: float = 0.0
    blocked: bool = False
    block_reason: str | None = None
    fallback_used: bool = False


class AnswerPipeline:
    """Guardrails, retrieval, one LLM call, then detached session persistence.

    Concurrent calls with the same session and question share one run.
    """

    def __init__(
        self,
        *,
        retrieval: RetrievalPlugin,
        llm: LLMPlugin,
        data: DataPlugin | None = None,
        guardrails: GuardrailRegistry | None = None,
        deduplicator: RequestDeduplicator | None = None,
        background: BackgroundTasks | None = None,
        max_results: int = 2,
        answer_timeout_s: float = 45.0,
        paraphrase: bool = True,
        default_persona: str = "default",
        llm_provider: str | None = None,
        llm_model: str | None = None,
    ) -> None:
        self.retrieval = retrieval
        self.llm = llm
        self.data = data
        self.guardrails = guardrails or build_default_guardrails()
        self.deduplicator = deduplicator or RequestDeduplicator()
        self.background = background or BackgroundTasks()
        self.max_results = max_results
        self.answer_timeout_s = answer_timeout_s
        self.paraphrase = paraphrase
        self.default_persona = default_persona
        self.llm_provider = llm_provider
        self.llm_model = llm_model

    async def answer(
        self, session_id: str | None, question: str, persona: str | None = None
    ) -> AnswerResult:
        key = dedupe_key(session_id, question)
        try:
            return await asyncio.wait_for(
                self.deduplicator.run(key, lambda: self._run(session_id, question, persona)),
                timeout=self.answer_timeout_s,
            )
        except TimeoutError as exc:
            logger.warning(
                "answer event=timeout session_id=%s timeout_s=%s", session_id, self.answer_timeout_s
            )
            raise AnswerTimeoutError(
                f"answer not ready within {self.answer_timeout_s:g}s"
            ) from exc

    async def _run(
        self, session_id: str | None, question: str, persona: str | None
    ) -> AnswerResult:
        started = time.perf_counter()
        persona = persona or self.default_persona

        verdict = self.guardrails.check(
            GuardrailContext(query=question, session_id=session_id, persona=persona),
            persona,
        )
        if not verdict.allowed:
            result = AnswerResult(
                final_text=verdict.reason or BLOCKED_FALLBACK_TEXT,
                latency_ms=_elapsed_ms(started),
                blocked=True,
                block_reason=verdict.category,
            )
            self._persist(session_id, question, result, blocked_by=verdict.guardrail)
            return result

        snippets = await self._retrieve(question)
        request = ChatRequest(
            system=build_system_prompt(persona),
            user=build_user_prompt(question, snippets),
            provider=self.llm_provider,
            model=self.llm_model,
        )
        response = await self.llm.chat(request)

        fallback_used = False
        if response.ok and response.data is not None and response.data.text.strip():
            raw_text = response.data.text
        else:
            logger.warning(
                "answer event=llm_failed session_id=%s reason=%s",
                session_id,
                response.error or "empty response",
            )
            raw_text = fallback_answer(snippets)
            fallback_used = True

        final_text = strip_citation_markers(raw_text) if self.paraphrase else raw_text.strip()
        result = AnswerResult(
            final_text=final_text,
            citations=[
                Citation(source=item.source, text=item.text, score=item.score, url=item.url)
                for item in snippets
            ],
            latency_ms=_elapsed_ms(started),
            fallback_used=fallback_used,
        )
        logger.info(
            "answer event=completed session_id=%s citations=%d fallback=%s latency_ms=%.1f",
            session_id,
            len(result.citations),
            fallback_used,
            result.latency_ms,
        )
        self._persist(session_id, question, result)
        return result

    async def _retrieve(self, question: str) -> list[SearchSnippet]:
        found = await self.retrieval.search(question, self.max_results)
        if found.ok and found.data is not None:
            return list(found.data)
        logger.warning("answer event=retrieval_failed reason=%s", found.error)
        return fallback_snippets()[: self.max_results]

    def _persist(
        self,
        session_id: str | None,
        question: str,
        result: AnswerResult,
        *,
        blocked_by: str | None = None,
    ) -> None:
        if session_id is None or self.data is None:
            return
        self.background.spawn(
            self._write_exchange(self.data, session_id, question, result, blocked_by),
            description=f"persist_exchange:{session_id}",
        )

    async def _write_exchange(
        self,
        data: DataPlugin,
        session_id: str,
        question: str,
        result: AnswerResult,
        blocked_by: str | None,
    ) -> None:
        written = await data.append_message(
            Message(session_id=session_id, sender="user", text=question)
        )
        if not written.ok:
            logger.warning(
                "answer event=persist_failed session_id=%s reason=%s", session_id, written.error
            )
            return

        written = await data.append_message(
            Message(
                session_id=session_id,
                sender="agent",
                text=result.final_text,
                source_refs=[
                    SourceRef(id=citation.source, title=citation.source, url=citation.url)
                    for citation in result.citations
                ],
                latency_ms=result.latency_ms,
            )
        )
        if not written.ok:
            logger.warning(
                "answer event=persist_failed session_id=%s reason=%s", session_id, written.error
            )
            return

        if result.blocked:
            logged = await data.log_action(
                ActionLog(
                    session_id=session_id,
                    type="guardrail_block",
                    status="blocked",
                    payload={"guardrail": blocked_by, "category": result.block_reason},
                )
            )
            if not logged.ok:
                logger.warning(
                    "answer event=persist_failed session_id=%s reason=%s", session_id, logged.error
                )


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)
