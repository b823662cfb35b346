"""Question files: frontmatter parsing, inbox scanning and archiving."""

import shutil
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

import frontmatter

from config.config_loader import VALID_MODES


@dataclass
class QuestionFile:
    path: Path
    question: str
    mode: str | None = None
    iterations: int | None = None
    attachments: list[Path] = field(default_factory=list)


def ensure_dirs(inbox_dir: Path, archive_dir: Path) -> None:
    inbox_dir.mkdir(parents=True, exist_ok=True)
    archive_dir.mkdir(parents=True, exist_ok=True)


def scan_inbox(inbox_dir: Path) -> list[Path]:
    """Return all .md files in inbox_dir, oldest first."""
    return sorted(inbox_dir.glob("*.md"), key=lambda p: p.stat().st_mtime)


def parse_question_file(file_path: Path) -> QuestionFile:
    """Parse a markdown question with optional YAML frontmatter.

    Recognized keys: ``mode`` (fast/robust), ``iterations`` (int) and
    ``attachments`` (list of paths, relative to the question file).

    Raises:
        ValueError: A recognized key has an invalid value.
    """
    post = frontmatter.load(str(file_path))
    meta = dict(post.metadata)

    mode = meta.get("mode")
    if mode is not None:
        mode = str(mode).lower()
        if mode not in VALID_MODES:
            raise ValueError(f"{file_path.name}: mode must be one of {VALID_MODES}, got {mode!r}")

    iterations = meta.get("iterations")
    if iterations is not None:
        try:
            iterations = int(iterations)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"{file_path.name}: iterations must be an integer") from exc

    raw_attachments = meta.get("attachments") or []
    if isinstance(raw_attachments, str):
        raw_attachments = [raw_attachments]
    attachments = [file_path.parent / str(p) for p in raw_attachments]

    return QuestionFile(
        path=file_path,
        question=post.content.strip(),
        mode=mode,
        iterations=iterations,
        attachments=attachments,
    )


def archive_file(file_path: Path, archive_dir: Path, *, failed: bool = False) -> Path:
    """Move file to archive_dir with a timestamp prefix ("FAILED_" first on failure)."""
    timestamp = datetime.now().strftime("%Y-%m-%dT%H%M")
    prefix = "FAILED_" if failed else ""
    dest = archive_dir / f"{prefix}{timestamp}_{file_path.name}"
    shutil.move(str(file_path), str(dest))
    return dest
