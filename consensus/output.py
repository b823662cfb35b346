"""Rich console rendering of progress events and markdown transcript saving."""

import logging
import re
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.markdown import Markdown
from rich.markup import escape
from rich.panel import Panel
from rich.rule import Rule
from rich.text import Text

from consensus.events import ConsensusEvent, EventType
from consensus.models import Answer, ReviewVerdict, SessionResult

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)


def _slug(text: str, max_len: int = 40) -> str:
    """Convert text to a filename-safe slug."""
    slug = re.sub(r"[^\w\s-]", "", text.lower())
    slug = re.sub(r"[\s_-]+", "-", slug).strip("-")
    return slug[:max_len] or "query"


def _preview(text: str, words: int = 50) -> str:
    """Return the first N words of a text."""
    all_words = text.split()
    preview = " ".join(all_words[:words])
    if len(all_words) > words:
        preview += "..."
    return preview


def _review_line(result: dict | None) -> str:
    if result is None:
        return "[red]unparseable review[/red]"
    flags = [
        name for name in ("has_unsupported_claims", "has_contradictions")
        if result.get(name)
    ]
    if not result.get("is_complete"):
        flags.append("incomplete")
    colour = "green" if result.get("decision") == "ACCEPT" else "yellow"
    flag_str = f" flags: {', '.join(flags)}" if flags else ""
    return f"[{colour}]{escape(str(result.get('decision')))}[/{colour}] confidence={result.get('confidence', 0.5):.2f}{flag_str}"


class ProgressPrinter:
    """Event sink that renders a session's progress as it happens."""

    def __init__(self, out: Console | None = None) -> None:
        self._console = out or console

    def __call__(self, event: ConsensusEvent) -> None:
        data = event.data
        if event.event is EventType.STATUS:
            self._console.print(Text(str(data.get("message", "")), style="dim"))
        elif event.event is EventType.ITERATION:
            self._console.print(Rule(f"[bold cyan]Iteration {data.get('iteration')}[/bold cyan]"))
        elif event.event is EventType.STEP:
            self._console.print(f"  [cyan]{escape(str(data.get('model')))}[/cyan] {escape(str(data.get('action')))}...")
        elif event.event is EventType.ANSWER:
            self._console.print(
                Panel(Text(_preview(data.get("text", ""))), title=f"[bold]{escape(str(data.get('model')))}[/bold]", border_style="dim")
            )
        elif event.event is EventType.REVIEW:
            self._console.print(
                f"  {escape(str(data.get('reviewer')))} on {escape(str(data.get('reviewed')))}: {_review_line(data.get('result'))}"
            )
        elif event.event is EventType.CONSENSUS:
            self._console.print(
                f"[bold green]Consensus[/bold green] in iteration {data.get('iteration')} "
                f"({data.get('total_calls')} calls)"
            )
        elif event.event is EventType.FALLBACK:
            self._console.print(
                f"[bold yellow]No consensus[/bold yellow] after {data.get('iterations')} iteration(s), "
                f"best-effort answer ({data.get('total_calls')} calls)"
            )
        elif event.event is EventType.ERROR:
            self._console.print(f"[bold red]Error:[/bold red] {escape(str(data.get('message')))}")


def print_outcome(result: SessionResult) -> None:
    """Print the final answer with its consensus/fallback label."""
    outcome = result.outcome
    if outcome.is_consensus:
        title = "[bold green]CONSENSUS[/bold green]"
    else:
        title = "[bold yellow]FALLBACK (best effort)[/bold yellow]"
    console.print(Rule(title))
    console.print(
        Text(
            f"Mode: {result.mode} | "
            f"Iterations: {outcome.iterations_used} | "
            f"Calls: {outcome.total_calls} | "
            f"Duration: {result.total_duration_sec:.1f}s",
            style="dim",
        )
    )
    console.print(Markdown(outcome.answer or "_(empty answer)_"))


def _answer_lines(label: str, answer: Answer) -> list[str]:
    lines = [f"### {label}", "", answer.text or "_(empty)_", ""]
    notes = []
    if answer.marker_appended:
        notes.append("no completion marker")
    if answer.looks_truncated:
        notes.append("looks truncated")
    if notes:
        lines += [f"*{' | '.join(notes)}*", ""]
    return lines


def _review_lines(verdict: ReviewVerdict) -> list[str]:
    lines = [f"#### {verdict.reviewer} on {verdict.reviewed}", ""]
    if verdict.result is None:
        lines += [f"Review could not be parsed after {verdict.attempts} attempt(s).", ""]
        return lines
    r = verdict.result
    lines += [
        f"- **Decision:** {r.decision.value}",
        f"- **Complete:** {r.is_complete}",
        f"- **Unsupported claims:** {r.has_unsupported_claims}",
        f"- **Contradictions:** {r.has_contradictions}",
        f"- **Confidence:** {r.confidence:.2f}",
    ]
    lines += [f"- Issue: {issue}" for issue in r.issues]
    lines += [f"- Suggestion: {s}" for s in r.suggestions]
    lines.append("")
    return lines


def save_to_file(result: SessionResult, output_dir: Path, slug_override: str | None = None) -> Path:
    """Save the full session transcript as a markdown file.

    Args:
        result: The finished session.
        output_dir: Directory to save the file in.
        slug_override: If provided, use this as the filename stem instead of
            deriving one from the query text. Used in inbox mode.

    Returns:
        Path to the saved file.
    """
    output_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    first_line = result.query.strip().splitlines()[0] if result.query.strip() else ""
    slug = slug_override if slug_override is not None else _slug(first_line)
    filepath = output_dir / f"{timestamp}_{slug}.md"

    outcome = result.outcome
    outcome_label = "Consensus" if outcome.is_consensus else "Fallback (best effort)"

    lines: list[str] = [
        f"# AI Consensus: {first_line[:80]}",
        "",
        f"**Date:** {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}",
        f"**Agents:** {result.primary_label}, {result.secondary_label}",
        f"**Mode:** {result.mode}",
        f"**Outcome:** {outcome_label}",
        f"**Iterations:** {outcome.iterations_used}",
        f"**Calls:** {outcome.total_calls}",
        f"**Duration:** {result.total_duration_sec:.1f}s",
        f"**Source:** {result.source}",
        "",
        "---",
        "",
    ]

    for record in result.rounds:
        lines += [f"## Iteration {record.number}", ""]
        lines += _answer_lines(result.primary_label, record.primary)
        lines += _answer_lines(result.secondary_label, record.secondary)
        lines += _review_lines(record.review_of_secondary)
        lines += _review_lines(record.review_of_primary)

    lines += [f"## Final Answer ({outcome_label})", "", outcome.answer, ""]

    filepath.write_text("\n".join(lines), encoding="utf-8")
    logger.info("Transcript saved to: %s", filepath)
    return filepath
