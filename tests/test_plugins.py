from __future__ import annotations

import json
from pathlib import Path

import httpx
import pytest

from agent_relay.config.settings import Settings
from agent_relay.plugins import DataPlugin, EmailPlugin, LLMPlugin, RetrievalPlugin
from agent_relay.plugins.email import LoggingEmailPlugin
from agent_relay.plugins.memory_data import InMemoryDataPlugin
from agent_relay.plugins.memory_retrieval import InMemoryRetrievalPlugin
from agent_relay.plugins.mock_llm import MockLLMPlugin, render_mock_answer
from agent_relay.plugins.models import ChatRequest, EmailMessage
from agent_relay.plugins.openai_llm import OpenAIChatPlugin
from agent_relay.wiring import build_plugins


def test_reference_backends_satisfy_plugin_protocols() -> None:
    assert isinstance(InMemoryRetrievalPlugin(), RetrievalPlugin)
    assert isinstance(InMemoryDataPlugin(), DataPlugin)
    assert isinstance(MockLLMPlugin(), LLMPlugin)
    assert isinstance(LoggingEmailPlugin(), EmailPlugin)


def test_render_mock_answer_cites_each_context_block() -> None:
    prompt = "Context:\n[1] (a.md) alpha\n[2] (b.md) beta\n\nQuestion: What is alpha?"

    assert render_mock_answer(prompt) == (
        "Here is what the documentation says about: What is alpha? [1][2]"
    )


@pytest.mark.asyncio
async def test_openai_plugin_posts_chat_completion() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200, json={"choices": [{"message": {"content": "  Refunds take 30 days [1]. "}}]}
        )

    plugin = OpenAIChatPlugin(
        api_key="sk-test",
        model="gpt-test",
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )

    result = await plugin.chat(ChatRequest(system="sys", user="usr"))

    assert result.ok is True
    assert result.data.text == "Refunds take 30 days [1]."
    assert result.data.provider == "openai"
    assert str(seen[0].url) == "https://api.openai.com/v1/chat/completions"
    assert seen[0].headers["Authorization"] == "Bearer sk-test"
    body = json.loads(seen[0].content)
    assert body["model"] == "gpt-test"
    assert body["messages"][1] == {"role": "user", "content": "usr"}
    await plugin.aclose()


@pytest.mark.asyncio
async def test_openai_plugin_reports_http_and_parse_errors() -> None:
    responses = iter(
        [
            httpx.Response(429, json={"error": "slow down"}),
            httpx.Response(200, json={"choices": []}),
        ]
    )
    plugin = OpenAIChatPlugin(
        api_key="sk-test",
        client=httpx.AsyncClient(transport=httpx.MockTransport(lambda request: next(responses))),
    )

    rate_limited = await plugin.chat(ChatRequest(system="s", user="u"))
    empty = await plugin.chat(ChatRequest(system="s", user="u"))

    assert rate_limited.ok is False
    assert rate_limited.error == "OpenAI API request failed: HTTP 429"
    assert empty.ok is False
    assert empty.error == "OpenAI response did not contain choices"
    await plugin.aclose()


def test_openai_plugin_requires_api_key() -> None:
    with pytest.raises(RuntimeError, match="OPENAI_API_KEY"):
        OpenAIChatPlugin(api_key="")


def test_build_plugins_falls_back_to_mock_without_api_key(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    settings = Settings(_env_file=None, llm_provider="openai", openai_api_key="")

    plugins = build_plugins(settings)

    assert isinstance(plugins.llm, MockLLMPlugin)
    assert plugins.requested_llm_provider == "openai"
    assert plugins.effective_llm_provider == "mock"
    assert plugins.fallback_reason == "OPENAI_API_KEY is missing"


def test_build_plugins_uses_openai_with_key() -> None:
    settings = Settings(_env_file=None, llm_provider="openai", openai_api_key="sk-test")

    plugins = build_plugins(settings)

    assert isinstance(plugins.llm, OpenAIChatPlugin)
    assert plugins.fallback_reason is None


@pytest.mark.asyncio
async def test_build_plugins_indexes_configured_corpus(tmp_path: Path) -> None:
    (tmp_path / "faq.md").write_text("# FAQ\nAsk us.\n## Hours\nNine to five.", encoding="utf-8")
    settings = Settings(_env_file=None, corpus_dir=str(tmp_path))

    plugins = build_plugins(settings)
    status = await plugins.retrieval.status()

    assert status.data.doc_count == 2


@pytest.mark.asyncio
async def test_email_plugin_records_outbox_and_assigns_thread() -> None:
    plugin = LoggingEmailPlugin(latency_ms=(0, 0))

    sent = await plugin.send(EmailMessage(to="ops@acme.io", subject="s", body="b"))
    reply = await plugin.send(
        EmailMessage(to="ops@acme.io", subject="re", body="b", thread_id=sent.data.thread_id)
    )

    assert sent.data.thread_id.startswith("thread_")
    assert reply.data.thread_id == sent.data.thread_id
    assert [message.thread_id for message in plugin.outbox] == [sent.data.thread_id] * 2
