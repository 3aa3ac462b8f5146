"""Construct plugins, the answer pipeline and the dispatcher from settings."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import httpx

from agent_relay.agents import build_agent_map
from agent_relay.config.settings import Settings
from agent_relay.orchestrator.dispatcher import Dispatcher
from agent_relay.orchestrator.models import BackendDefinition
from agent_relay.orchestrator.specs import SpecAgent
from agent_relay.pipeline.answer import AnswerPipeline
from agent_relay.pipeline.background import BackgroundTasks
from agent_relay.pipeline.dedupe import RequestDeduplicator
from agent_relay.pipeline.escalation import Escalator
from agent_relay.pipeline.guardrails import GuardrailRegistry, build_default_guardrails
from agent_relay.plugins.base import DataPlugin, EmailPlugin, LLMPlugin, RetrievalPlugin
from agent_relay.plugins.email import LoggingEmailPlugin
from agent_relay.plugins.memory_data import InMemoryDataPlugin
from agent_relay.plugins.memory_retrieval import InMemoryRetrievalPlugin
from agent_relay.plugins.mock_llm import MockLLMPlugin
from agent_relay.plugins.openai_llm import OpenAIChatPlugin

logger = logging.getLogger(__name__)

DEFAULT_BACKEND_IDS = {
    "retrieval": "retrieval-agent",
    "data": "data-agent",
    "llm": "llm-agent",
    "answer": "answer-agent",
}


@dataclass
class PluginSet:
    retrieval: RetrievalPlugin
    data: DataPlugin
    llm: LLMPlugin
    email: EmailPlugin
    requested_llm_provider: str = "mock"
    effective_llm_provider: str = "mock"
    fallback_reason: str | None = None


@dataclass
class Services:
    settings: Settings
    plugins: PluginSet
    background: BackgroundTasks
    guardrails: GuardrailRegistry
    deduplicator: RequestDeduplicator
    pipeline: AnswerPipeline
    escalator: Escalator
    dispatcher: Dispatcher
    agents: dict[str, SpecAgent] = field(default_factory=dict)

    async def aclose(self) -> None:
        await self.background.drain()
        await self.dispatcher.aclose()
        close = getattr(self.plugins.llm, "aclose", None)
        if close is not None:
            await close()


def build_llm(settings: Settings) -> tuple[LLMPlugin, str, str | None]:
    """Return the LLM plugin, the provider actually used and any fallback reason."""
    latency = settings.latency_window_ms()
    provider = settings.llm_provider.lower().strip()
    if provider == "mock":
        return MockLLMPlugin(latency_ms=latency), "mock", None
    if provider != "openai":
        return MockLLMPlugin(latency_ms=latency), "mock", f"unsupported llm provider: {provider}"

    api_key = settings.resolved_openai_api_key()
    if not api_key:
        return MockLLMPlugin(latency_ms=latency), "mock", "OPENAI_API_KEY is missing"
    try:
        plugin = OpenAIChatPlugin(
            api_key=api_key,
            model=settings.llm_model,
            base_url=settings.llm_base_url,
            timeout_s=settings.llm_timeout_s,
        )
    except Exception as exc:  # noqa: BLE001
        return MockLLMPlugin(latency_ms=latency), "mock", str(exc)
    return plugin, "openai", None


def build_plugins(settings: Settings) -> PluginSet:
    latency = settings.latency_window_ms()
    retrieval = InMemoryRetrievalPlugin(
        corpus_dir=settings.resolved_corpus_dir(),
        latency_ms=latency,
        rank_before_truncate=settings.retrieval_rank_before_truncate,
    )
    retrieval.initialize()

    llm, effective_provider, fallback_reason = build_llm(settings)
    if fallback_reason:
        logger.warning(
            "plugins event=llm_fallback requested=%s effective=%s reason=%s",
            settings.llm_provider,
            effective_provider,
            fallback_reason,
        )
    return PluginSet(
        retrieval=retrieval,
        data=InMemoryDataPlugin(latency_ms=latency),
        llm=llm,
        email=LoggingEmailPlugin(latency_ms=latency),
        requested_llm_provider=settings.llm_provider,
        effective_llm_provider=effective_provider,
        fallback_reason=fallback_reason,
    )


def build_services(
    settings: Settings,
    *,
    plugins: PluginSet | None = None,
    http_client: httpx.AsyncClient | None = None,
    register_defaults: bool = True,
) -> Services:
    plugins = plugins or build_plugins(settings)
    background = BackgroundTasks()
    guardrails = build_default_guardrails()
    deduplicator = RequestDeduplicator(timeout_s=settings.dedupe_timeout_s)
    pipeline = AnswerPipeline(
        retrieval=plugins.retrieval,
        llm=plugins.llm,
        data=plugins.data,
        guardrails=guardrails,
        deduplicator=deduplicator,
        background=background,
        max_results=settings.retrieval_max_results,
        answer_timeout_s=settings.answer_timeout_s,
        paraphrase=settings.paraphrase_citations,
        default_persona=settings.default_persona,
        llm_provider=plugins.effective_llm_provider,
    )
    escalator = Escalator(data=plugins.data, email=plugins.email, background=background)
    dispatcher = Dispatcher(
        timeout_s=settings.dispatch_timeout_s,
        health_timeout_s=settings.health_timeout_s,
        http_client=http_client,
    )
    agents = build_agent_map(
        retrieval=plugins.retrieval,
        data=plugins.data,
        llm=plugins.llm,
        pipeline=pipeline,
        escalator=escalator,
    )
    if register_defaults:
        for agent in agents.values():
            dispatcher.register(
                BackendDefinition(
                    id=agent.id,
                    type=agent.type,
                    version=agent.version,
                    runtime="in-process",
                    capabilities=agent.capabilities(),
                ),
                agent,
            )
    return Services(
        settings=settings,
        plugins=plugins,
        background=background,
        guardrails=guardrails,
        deduplicator=deduplicator,
        pipeline=pipeline,
        escalator=escalator,
        dispatcher=dispatcher,
        agents=agents,
    )
