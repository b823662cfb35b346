"""Build the session query text from a question and optional attached files."""

import logging
from dataclasses import dataclass
from pathlib import Path

from consensus.heuristics import clamp_text

logger = logging.getLogger(__name__)

ATTACHMENTS_HEADER = "--- ATTACHED FILES ---"
FILE_TRUNCATION_SUFFIX = "\n...[FILE TRUNCATED]..."
OMISSION_NOTE = "\n[NOTE: Additional file content omitted to fit limits]\n"

TEXT_EXTENSIONS = frozenset({
    ".txt", ".md", ".csv", ".json", ".log",
    ".js", ".ts", ".jsx", ".tsx", ".py", ".java", ".cpp", ".c", ".h",
    ".go", ".rs", ".rb", ".php", ".html", ".css", ".scss", ".sql",
    ".yaml", ".yml", ".toml", ".xml", ".sh", ".bash",
})


@dataclass
class Attachment:
    name: str
    kind: str      # file extension without the dot, or "error"
    content: str


def read_attachment(path: Path, max_chars: int = 20000) -> Attachment:
    """Read a plain-text file as an attachment, clamped to ``max_chars``.

    Unsupported or unreadable files become an ``error`` attachment so the
    agents see that something was attached but could not be read.
    """
    ext = path.suffix.lower()
    if ext not in TEXT_EXTENSIONS:
        logger.warning("Unsupported attachment type: %s", path.name)
        return Attachment(name=path.name, kind="error", content=f"[Error: Unsupported: {ext or 'no extension'}]")
    try:
        content = path.read_text(encoding="utf-8", errors="replace")
    except OSError as exc:
        logger.warning("Could not read attachment %s: %s", path.name, exc)
        return Attachment(name=path.name, kind="error", content=f"[Error: {exc}]")
    return Attachment(name=path.name, kind=ext.lstrip("."), content=clamp_text(content, max_chars, FILE_TRUNCATION_SUFFIX))


def build_query(question: str, attachments: list[Attachment], max_total_chars: int = 60000) -> str:
    """Append attachments to the question as labeled code blocks.

    Stops at the first file that would push the attachment section past
    ``max_total_chars`` and leaves a visible note instead.

    Raises:
        ValueError: Neither a question nor attachments were given.
    """
    question = (question or "").strip()
    if not question and not attachments:
        raise ValueError("Provide a question or attach files.")

    query = question
    if not attachments:
        return query

    query += f"\n\n{ATTACHMENTS_HEADER}\n"
    total_used = 0
    for attachment in attachments:
        block = f"\n### File: {attachment.name} ({attachment.kind})\n```\n{attachment.content}\n```\n"
        if total_used + len(block) > max_total_chars:
            logger.info("Attachment limit reached at %s, omitting the rest", attachment.name)
            query += OMISSION_NOTE
            break
        query += block
        total_used += len(block)
    return query
