"""Acceptance gate applied to each agent's answer every round."""

from consensus.heuristics import has_completion_marker, looks_truncated, strip_completion_marker
from consensus.models import Decision, ReviewResult


def accept(review: ReviewResult | None, raw_answer: str) -> bool:
    """True only if the opposing review and the answer text both pass.

    Requires a parsed ACCEPT review with no flags raised, a completion
    marker in the raw answer, and a marker-stripped answer that does not
    look truncated.
    """
    if review is None:
        return False
    if review.decision is not Decision.ACCEPT:
        return False
    if not review.is_complete or review.has_unsupported_claims or review.has_contradictions:
        return False
    if not has_completion_marker(raw_answer):
        return False
    return not looks_truncated(strip_completion_marker(raw_answer))
