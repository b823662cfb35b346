"""Completion-marker handling, truncation detection and review JSON parsing.

Everything here is a pure function of its input text.
"""

import json
import logging
import math
import re

from consensus.models import Answer, Decision, ReviewResult

logger = logging.getLogger(__name__)

COMPLETION_MARKER = "END_OF_ANSWER"

REVIEW_TRUNCATION_SUFFIX = "\n...[TRUNCATED_FOR_REVIEW]..."
DEFAULT_TRUNCATION_SUFFIX = "\n...[TRUNCATED]..."

MAX_REVIEW_ITEMS = 10

_MARKER_RE = re.compile(rf"\b{COMPLETION_MARKER}\b")
_TRAILING_MARKER_RE = re.compile(rf"\s*{COMPLETION_MARKER}\s*$")

# colon, hyphen, bullet, ellipsis character
_UNTERMINATED_END_RE = re.compile(r"[:\-•…]$")
# a single letter left over after whitespace, e.g. "the answer is a"
_LONE_LETTER_END_RE = re.compile(r"\s[A-Za-z]$")

_DANGLING_CONNECTORS = (
    "and", "or", "with", "without", "to", "for", "because",
    "including", "like", "such as", "e.g.", "via", "is", "are", "was", "were",
)
_UNFINISHED_MARKERS = ("consider adding", "to be continued", "todo", "next steps", "continue")


def has_completion_marker(text: str | None) -> bool:
    return bool(_MARKER_RE.search(text or ""))


def strip_completion_marker(text: str | None) -> str:
    """Remove a trailing completion marker and surrounding whitespace."""
    return _TRAILING_MARKER_RE.sub("", text or "").strip()


def ensure_completion_marker(text: str | None) -> str:
    """Append the completion marker when the agent did not emit it."""
    stripped = (text or "").strip()
    if has_completion_marker(stripped):
        return stripped
    return f"{stripped}\n{COMPLETION_MARKER}" if stripped else COMPLETION_MARKER


def looks_truncated(text: str | None) -> bool:
    """Conservative check for an answer that was cut off mid-thought.

    Tolerates false positives: a complete answer ending in a colon is
    flagged too. Callers pass marker-stripped text.
    """
    if not text or not text.strip():
        return True
    t = text.strip()
    if _UNTERMINATED_END_RE.search(t) or t.endswith("..."):
        return True
    if _LONE_LETTER_END_RE.search(t):
        return True
    lower = t.lower()
    for word in _DANGLING_CONNECTORS:
        if lower == word or lower.endswith(" " + word):
            return True
    return any(lower.endswith(marker) for marker in _UNFINISHED_MARKERS)


def to_answer(agent: str, output: str) -> Answer:
    """Normalize raw agent output into an Answer."""
    marker_appended = not has_completion_marker(output)
    raw = ensure_completion_marker(output)
    text = strip_completion_marker(raw)
    answer = Answer(
        agent=agent,
        raw=raw,
        text=text,
        marker_appended=marker_appended,
        looks_truncated=looks_truncated(text),
    )
    if answer.looks_truncated:
        logger.debug("Answer from %s looks truncated (%d chars)", agent, len(text))
    return answer


def clamp_text(text: str | None, max_chars: int, suffix: str = DEFAULT_TRUNCATION_SUFFIX) -> str:
    if not text:
        return ""
    return text if len(text) <= max_chars else text[:max_chars] + suffix


def clamp_for_review(text: str | None, max_chars: int = 14000) -> str:
    return clamp_text(text or "", max_chars, REVIEW_TRUNCATION_SUFFIX)


def _clamp_confidence(value: object) -> float:
    if isinstance(value, bool) or value is None:
        return 0.5
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError, OverflowError):
        return 0.5
    if not math.isfinite(number):
        return 0.5
    return max(0.0, min(1.0, number))


def _string_list(value: object) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value[:MAX_REVIEW_ITEMS]]


def parse_review(text: str | None) -> ReviewResult | None:
    """Parse a reviewer's output as one strict JSON object.

    Returns None when the text is not a JSON object or carries no valid
    decision. Boolean flags count only when they are literally ``true``.
    """
    try:
        obj = json.loads(text or "")
    except (json.JSONDecodeError, ValueError):
        return None
    if not isinstance(obj, dict):
        return None

    decision_raw = str(obj.get("decision") or "").upper()
    if decision_raw not in (Decision.ACCEPT.value, Decision.REVISE.value):
        return None

    return ReviewResult(
        decision=Decision(decision_raw),
        is_complete=obj.get("is_complete") is True,
        has_unsupported_claims=obj.get("has_unsupported_claims") is True,
        has_contradictions=obj.get("has_contradictions") is True,
        issues=_string_list(obj.get("issues")),
        suggestions=_string_list(obj.get("suggestions")),
        confidence=_clamp_confidence(obj.get("confidence")),
    )
