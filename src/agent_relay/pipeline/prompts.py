"""Prompt composition and display helpers for grounded answers."""

from __future__ import annotations

import re

from agent_relay.plugins.models import SearchSnippet

CITATION_MARKER = re.compile(r"\s*\[\d+\]")
WHITESPACE = re.compile(r"[ \t]+")

SYSTEM_PROMPT = (
    "You are a support assistant. Answer only from the numbered context blocks. "
    "Cite every claim with the matching marker, for example [1]. "
    "If the context does not cover the question, say so."
)
PERSONA_PROMPTS = {
    "default": "",
    "concise": "Keep the answer to two or three sentences.",
    "detailed": "Give a step-by-step answer when the context allows it.",
    "greeter": "Be warm and welcoming, and point newcomers to where they can learn more.",
    "escalator": "Acknowledge the frustration and say a human will follow up.",
    "technical": "Prefer exact setting names, commands and error messages from the context.",
}
NO_CONTEXT_ANSWER = "I couldn't find anything in the documentation about that yet."


def build_system_prompt(persona: str | None = None) -> str:
    extra = PERSONA_PROMPTS.get((persona or "default").lower(), "")
    return f"{SYSTEM_PROMPT} {extra}".strip()


def build_user_prompt(question: str, snippets: list[SearchSnippet]) -> str:
    blocks = [
        f"[{index}] ({snippet.source}) {snippet.text}"
        for index, snippet in enumerate(snippets, start=1)
    ]
    context = "\n".join(blocks) if blocks else "(no context)"
    return f"Context:\n{context}\n\nQuestion: {question}"


def strip_citation_markers(text: str) -> str:
    stripped = CITATION_MARKER.sub("", text)
    lines = [WHITESPACE.sub(" ", line).strip() for line in stripped.splitlines()]
    return "\n".join(lines).strip()


def fallback_answer(snippets: list[SearchSnippet]) -> str:
    if not snippets:
        return NO_CONTEXT_ANSWER
    bullets = "\n".join(
        f"- {snippet.text.strip()} ({snippet.source})" for snippet in snippets
    )
    return f"Here's what I found:\n{bullets}"
