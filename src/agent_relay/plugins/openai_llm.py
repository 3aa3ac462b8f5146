"""LLM backend for the OpenAI chat completions REST API."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from agent_relay.plugins.base import PluginResult, fail, ok
from agent_relay.plugins.models import ChatRequest, ChatResponse, PluginHealth, PluginMetadata

logger = logging.getLogger(__name__)


class OpenAIChatPlugin:
    """One POST per chat call. Retries are left to the caller."""

    def __init__(
        self,
        *,
        api_key: str,
        model: str = "gpt-4o-mini",
        base_url: str = "https://api.openai.com/v1",
        timeout_s: float = 20.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if not api_key:
            raise RuntimeError("OPENAI_API_KEY is missing")
        self.metadata = PluginMetadata(
            name="llm-openai",
            version="1.0.0",
            description="OpenAI chat completions",
            capabilities=["chat"],
        )
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        self._client = client or httpx.AsyncClient(timeout=timeout_s)

    async def chat(self, request: ChatRequest) -> PluginResult[ChatResponse]:
        model = request.model or self.model
        payload = {
            "model": model,
            "messages": [
                {"role": "system", "content": request.system},
                {"role": "user", "content": request.user},
            ],
        }
        try:
            response = await self._client.post(
                f"{self.base_url}/chat/completions",
                json=payload,
                headers={"Authorization": f"Bearer {self.api_key}"},
            )
        except httpx.HTTPError as exc:
            logger.warning("OpenAI request failed model=%s reason=%s", model, exc)
            return fail(f"OpenAI request failed: {str(exc) or type(exc).__name__}")

        if not response.is_success:
            logger.warning(
                "OpenAI request failed model=%s status=%s body=%s",
                model,
                response.status_code,
                response.text[:200],
            )
            return fail(f"OpenAI API request failed: HTTP {response.status_code}")

        try:
            text = _extract_content(response.json())
        except ValueError as exc:
            return fail(str(exc))
        return ok(ChatResponse(text=text, provider="openai", model=model))

    async def health_check(self) -> PluginHealth:
        return PluginHealth(healthy=True, status="healthy", message=f"model={self.model}")

    async def aclose(self) -> None:
        await self._client.aclose()


def _extract_content(response_json: Any) -> str:
    if not isinstance(response_json, dict):
        raise ValueError("OpenAI response was not a JSON object")
    choices = response_json.get("choices", [])
    if not choices:
        raise ValueError("OpenAI response did not contain choices")

    message = choices[0].get("message", {})
    content = message.get("content", "")
    if isinstance(content, str) and content.strip():
        return content.strip()
    if isinstance(content, list):
        text_segments: list[str] = []
        for item in content:
            if isinstance(item, dict):
                text = item.get("text")
                if isinstance(text, str):
                    text_segments.append(text)
        merged = "".join(text_segments).strip()
        if merged:
            return merged
    raise ValueError("OpenAI response content could not be parsed as text")
