"""Deterministic LLM backend used by default and in tests."""

from __future__ import annotations

import re
from collections import deque

from agent_relay.plugins.base import PluginResult, fail, ok
from agent_relay.plugins.latency import simulate_latency
from agent_relay.plugins.models import ChatRequest, ChatResponse, PluginHealth, PluginMetadata

CALL_LOG_LIMIT = 1000
QUESTION_LINE = re.compile(r"^Question:\s*(.+)$", re.MULTILINE)
CONTEXT_MARKER = re.compile(r"^\[(\d+)\]", re.MULTILINE)


class MockLLMPlugin:
    """Echoes the question back with citation markers for each context block."""

    def __init__(
        self,
        *,
        latency_ms: tuple[int, int] = (20, 80),
        default_provider: str = "mock",
        fail_with: str | None = None,
    ) -> None:
        self.metadata = PluginMetadata(
            name="llm-mock",
            version="1.0.0",
            description="Templated responses for offline runs",
            capabilities=["chat"],
        )
        self.latency_ms = latency_ms
        self.default_provider = default_provider
        self.fail_with = fail_with
        self.calls: deque[ChatRequest] = deque(maxlen=CALL_LOG_LIMIT)
        self.call_count = 0

    async def chat(self, request: ChatRequest) -> PluginResult[ChatResponse]:
        self.call_count += 1
        self.calls.append(request)
        await simulate_latency(*self.latency_ms)

        if self.fail_with is not None:
            return fail(self.fail_with)

        provider = request.provider or self.default_provider
        return ok(
            ChatResponse(
                text=render_mock_answer(request.user),
                provider=provider,
                model=request.model or "mock-1",
            ),
            mocked=True,
        )

    async def health_check(self) -> PluginHealth:
        return PluginHealth(healthy=True, status="healthy", message="llm plugin is operational")


def render_mock_answer(user_prompt: str) -> str:
    match = QUESTION_LINE.search(user_prompt)
    question = match.group(1).strip() if match else user_prompt.strip()[:100]
    markers = "".join(f"[{number}]" for number in CONTEXT_MARKER.findall(user_prompt))
    answer = f"Here is what the documentation says about: {question}"
    return f"{answer} {markers}".strip()
