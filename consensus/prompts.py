"""Prompt builders for solving, cross-review and revision.

Templates come from the ``prompts`` section of settings.yaml. Each builder is
a pure function of its arguments; the date is passed in, never read here.
"""

from datetime import date

from config.config_loader import PromptsConfig
from consensus.heuristics import COMPLETION_MARKER, clamp_for_review
from consensus.models import ReviewResult


def _bullets(items: list[str]) -> str:
    return "\n- ".join(items) if items else "(none)"


def build_solve_prompt(templates: PromptsConfig, query: str, role: str, today: date) -> str:
    return templates.solve.format(
        today=today.isoformat(),
        role=role,
        query=query,
        marker=COMPLETION_MARKER,
    )


def build_review_prompt(
    templates: PromptsConfig,
    query: str,
    answer: str,
    reviewer: str,
    today: date,
    max_answer_chars: int = 14000,
) -> str:
    """Prompt asking ``reviewer`` to judge ``answer`` and reply with review JSON."""
    return templates.review.format(
        today=today.isoformat(),
        reviewer=reviewer,
        query=query,
        answer=clamp_for_review(answer, max_answer_chars),
    )


def build_json_retry_prompt(templates: PromptsConfig, review_prompt: str) -> str:
    return f"{templates.json_only_prefix}\n\n{review_prompt}"


def build_revision_prompt(
    templates: PromptsConfig,
    query: str,
    role: str,
    other_answer: str,
    critique: ReviewResult,
    today: date,
    max_answer_chars: int = 14000,
) -> str:
    """Prompt asking ``role`` to rewrite its answer in full.

    The critique's issues and suggestions are passed through verbatim; the
    other agent's answer is framed as untrusted reference material.
    """
    return templates.revision.format(
        today=today.isoformat(),
        role=role,
        decision=critique.decision.value,
        is_complete=str(critique.is_complete).lower(),
        has_unsupported_claims=str(critique.has_unsupported_claims).lower(),
        has_contradictions=str(critique.has_contradictions).lower(),
        issues=_bullets(critique.issues),
        suggestions=_bullets(critique.suggestions),
        query=query,
        other_answer=clamp_for_review(other_answer, max_answer_chars),
        marker=COMPLETION_MARKER,
    )


def pick_solve_budget(query: str, ceiling: int | None = None) -> int:
    """Token budget for a solve call: shorter queries get smaller budgets."""
    length = len(query or "")
    if length < 500:
        budget = 600
    elif length < 3000:
        budget = 1500
    elif length < 9000:
        budget = 2500
    else:
        budget = 3500
    return min(budget, ceiling) if ceiling else budget
