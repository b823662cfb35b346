"""Tests for consensus/output.py."""

import io
from pathlib import Path

import pytest
from rich.console import Console

from consensus.events import ConsensusEvent, EventType
from consensus.heuristics import to_answer
from consensus.models import (
    ConsensusOutcome,
    Decision,
    IterationRecord,
    OutcomeKind,
    ReviewResult,
    ReviewVerdict,
    SessionResult,
)
from consensus.output import ProgressPrinter, _slug, save_to_file

from tests.conftest import complete_answer


def test_slug_basic():
    assert _slug("Should we use YAML or JSON?") == "should-we-use-yaml-or-json"


def test_slug_max_len():
    long_text = "a" * 100
    assert len(_slug(long_text)) <= 40


def test_slug_special_chars():
    result = _slug("API vs. SDK (2024)")
    assert "." not in result
    assert "(" not in result
    assert ")" not in result


def test_slug_empty_falls_back():
    assert _slug("???") == "query"


def _record() -> IterationRecord:
    accept = ReviewResult(Decision.ACCEPT, True, False, False, confidence=0.9)
    return IterationRecord(
        number=1,
        primary=to_answer("claude", complete_answer("Claude says use YAML.")),
        secondary=to_answer("openai", "GPT says use YAML and"),
        review_of_primary=ReviewVerdict(reviewer="GPT", reviewed="Claude", result=accept),
        review_of_secondary=ReviewVerdict(reviewer="Claude", reviewed="GPT", result=None, attempts=2),
        primary_accepted=True,
        secondary_accepted=False,
    )


@pytest.fixture
def sample_session_result() -> SessionResult:
    return SessionResult(
        query="Should we use YAML or JSON?\n\nMore context here.",
        source="cli",
        mode="robust",
        outcome=ConsensusOutcome(OutcomeKind.FALLBACK, "Claude says use YAML.", 1, 6),
        rounds=[_record()],
        primary_label="Claude",
        secondary_label="GPT",
        total_duration_sec=10.5,
    )


def test_save_to_file_creates_file(tmp_path: Path, sample_session_result: SessionResult):
    saved = save_to_file(sample_session_result, tmp_path / "output")
    assert saved.exists()
    assert saved.suffix == ".md"
    assert saved.name.endswith("_should-we-use-yaml-or-json.md")


def test_save_to_file_creates_output_dir(tmp_path: Path, sample_session_result: SessionResult):
    output_dir = tmp_path / "nested" / "output"
    assert not output_dir.exists()
    save_to_file(sample_session_result, output_dir)
    assert output_dir.exists()


def test_save_to_file_content(tmp_path: Path, sample_session_result: SessionResult):
    content = save_to_file(sample_session_result, tmp_path).read_text(encoding="utf-8")
    assert "# AI Consensus: Should we use YAML or JSON?" in content
    assert "**Agents:** Claude, GPT" in content
    assert "**Outcome:** Fallback (best effort)" in content
    assert "## Iteration 1" in content
    assert "Review could not be parsed after 2 attempt(s)." in content
    assert "- **Decision:** ACCEPT" in content
    assert "no completion marker | looks truncated" in content
    assert "## Final Answer (Fallback (best effort))" in content


def test_save_to_file_slug_override(tmp_path: Path, sample_session_result: SessionResult):
    saved = save_to_file(sample_session_result, tmp_path, slug_override="my-question")
    assert saved.name.endswith("_my-question.md")


def _render(events: list[ConsensusEvent]) -> str:
    buf = io.StringIO()
    printer = ProgressPrinter(Console(file=buf, width=120, force_terminal=False))
    for event in events:
        printer(event)
    return buf.getvalue()


def test_progress_printer_renders_events():
    output = _render([
        ConsensusEvent(EventType.ITERATION, {"iteration": 2}),
        ConsensusEvent(EventType.STEP, {"model": "Claude", "action": "solving"}),
        ConsensusEvent(EventType.REVIEW, {
            "reviewer": "GPT",
            "reviewed": "Claude",
            "result": {"decision": "REVISE", "is_complete": False, "confidence": 0.4},
        }),
        ConsensusEvent(EventType.CONSENSUS, {"iteration": 2, "total_calls": 8, "answer": "x"}),
    ])
    assert "Iteration 2" in output
    assert "Claude solving..." in output
    assert "REVISE" in output
    assert "incomplete" in output
    assert "Consensus" in output


def test_progress_printer_unparseable_review():
    output = _render([
        ConsensusEvent(EventType.REVIEW, {"reviewer": "Claude", "reviewed": "GPT", "result": None}),
    ])
    assert "unparseable review" in output


def test_progress_printer_keeps_bracketed_answer_text():
    output = _render([
        ConsensusEvent(EventType.ANSWER, {"model": "Claude", "text": "See the handler at [/api/v1] for [details]."}),
        ConsensusEvent(EventType.STATUS, {"message": "Mode: ROBUST [x]"}),
        ConsensusEvent(EventType.ERROR, {"message": "[openai] API call failed: [/oops]"}),
    ])
    assert "[/api/v1]" in output
    assert "[details]" in output
    assert "Mode: ROBUST [x]" in output
    assert "[openai] API call failed: [/oops]" in output


def test_progress_printer_escapes_review_labels():
    output = _render([
        ConsensusEvent(EventType.REVIEW, {"reviewer": "[/GPT]", "reviewed": "Claude", "result": None}),
    ])
    assert "[/GPT] on Claude" in output
