from __future__ import annotations

import argparse
import asyncio
import json
from pathlib import Path

from agent_relay.config.logs import configure_logging
from agent_relay.config.settings import get_settings
from agent_relay.wiring import build_services


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Index a markdown corpus and answer a question against it."
    )
    parser.add_argument("--corpus", type=Path, required=True)
    parser.add_argument("--question", required=True)
    parser.add_argument("--session-id", default=None)
    parser.add_argument("--persona", default=None)
    parser.add_argument("--max-results", type=int, default=None)
    parser.add_argument(
        "--search-only",
        action="store_true",
        help="Print the raw ranked snippets instead of an answer.",
    )
    parser.add_argument(
        "--rank-before-truncate",
        action="store_true",
        help="Rank every match before keeping the top results.",
    )
    return parser.parse_args()


async def _run(args: argparse.Namespace) -> dict:
    overrides: dict[str, object] = {"corpus_dir": str(args.corpus)}
    if args.max_results is not None:
        overrides["retrieval_max_results"] = args.max_results
    if args.rank_before_truncate:
        overrides["retrieval_rank_before_truncate"] = True
    settings = get_settings().model_copy(update=overrides)

    services = build_services(settings)
    try:
        if args.search_only:
            found = await services.plugins.retrieval.search(
                args.question, settings.retrieval_max_results
            )
            return found.to_wire()
        result = await services.pipeline.answer(args.session_id, args.question, args.persona)
        return result.to_wire()
    finally:
        await services.aclose()


def main() -> None:
    args = _parse_args()
    configure_logging(get_settings().log_level)
    if not args.corpus.is_dir():
        raise SystemExit(f"Corpus directory not found: {args.corpus}")
    print(json.dumps(asyncio.run(_run(args)), indent=2))


if __name__ == "__main__":
    main()
