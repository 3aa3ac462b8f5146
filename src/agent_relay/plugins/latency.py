"""Small helpers reference backends call explicitly instead of inheriting."""

from __future__ import annotations

import asyncio
import random
import secrets


async def simulate_latency(min_ms: int = 10, max_ms: int = 50) -> None:
    """Sleep for a random duration in ``[min_ms, max_ms]`` milliseconds."""
    if max_ms <= 0:
        return
    delay_ms = random.uniform(min_ms, max(min_ms, max_ms))
    await asyncio.sleep(delay_ms / 1000.0)


def generate_id(prefix: str, size: int = 16) -> str:
    """Opaque URL-safe identifier such as ``session_Xy3...``."""
    return f"{prefix}_{secrets.token_urlsafe(size)[:size]}"
