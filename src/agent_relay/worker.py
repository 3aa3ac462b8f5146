"""Process backend entrypoint.

Usage::

    python -m agent_relay.worker --agent retrieval < task.json

Reads one JSON task from stdin, runs it on the selected bundled agent and
writes the JSON result as the last line of stdout. Logs go to stderr.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from pydantic import ValidationError

from agent_relay.config.logs import configure_logging
from agent_relay.config.settings import get_settings
from agent_relay.orchestrator.models import Result, Task
from agent_relay.wiring import DEFAULT_BACKEND_IDS, build_services

logger = logging.getLogger(__name__)


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run one task on a bundled agent.")
    parser.add_argument("--agent", required=True, choices=sorted(DEFAULT_BACKEND_IDS))
    return parser.parse_args(argv)


async def run_task(agent_kind: str, raw_task: str) -> Result:
    try:
        task = Task.model_validate_json(raw_task)
    except ValidationError as exc:
        return Result.fail(f"malformed task: {exc.errors()[0].get('msg', 'invalid')}")

    services = build_services(get_settings(), register_defaults=False)
    try:
        result = await services.agents[agent_kind].execute(task)
    finally:
        await services.aclose()
    logger.info(
        "worker event=completed agent=%s task_id=%s success=%s",
        agent_kind,
        task.id,
        result.success,
    )
    return result


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    configure_logging(get_settings().log_level)
    result = asyncio.run(run_task(args.agent, sys.stdin.read()))
    sys.stdout.write(result.model_dump_json(by_alias=True, exclude_none=True) + "\n")
    sys.stdout.flush()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
