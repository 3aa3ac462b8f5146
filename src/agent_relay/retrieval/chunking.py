"""Split markdown sources into heading-delimited index documents."""

from __future__ import annotations

import logging
import re
from pathlib import Path

from agent_relay.plugins.models import IndexDocument

logger = logging.getLogger(__name__)

# A chunk starts at a level-1 or level-2 heading at the beginning of a line.
SECTION_BOUNDARY = re.compile(r"\n(?=##? )")


def chunk_markdown(text: str) -> list[str]:
    """Return heading-delimited sections in source order, blank sections dropped."""
    return [part.strip() for part in SECTION_BOUNDARY.split(text) if part.strip()]


def documents_from_text(text: str, *, source: str) -> list[IndexDocument]:
    return [
        IndexDocument(
            id=f"{source}-{index}",
            text=chunk,
            source=source,
            metadata={"file": source, "chunkIndex": index},
        )
        for index, chunk in enumerate(chunk_markdown(text))
    ]


def load_markdown_corpus(directory: Path) -> list[IndexDocument]:
    """Chunk every ``*.md`` file below ``directory``; unreadable files are skipped."""
    root = directory.expanduser().resolve()
    if not root.is_dir():
        return []

    documents: list[IndexDocument] = []
    for file_path in sorted(root.rglob("*.md")):
        relative = file_path.relative_to(root).as_posix()
        try:
            text = file_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("corpus_load event=skip_file file=%s reason=%s", relative, exc)
            continue
        documents.extend(documents_from_text(text, source=relative))
    return documents
