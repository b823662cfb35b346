"""Best-answer selection for consensus and fallback outcomes."""

import logging

from consensus.heuristics import looks_truncated
from consensus.models import ReviewResult

logger = logging.getLogger(__name__)

NEUTRAL_CONFIDENCE = 0.5


def _confidence(review: ReviewResult | None) -> float:
    return review.confidence if review is not None else NEUTRAL_CONFIDENCE


def pick_best(
    answer_a: str,
    answer_b: str,
    review_of_a: ReviewResult | None,
    review_of_b: ReviewResult | None,
) -> str:
    """Pick between two answers using the confidence the *other* agent gave each.

    Higher cross-review confidence wins; on an exact tie the longer answer
    wins, and a length tie goes to ``answer_b``.
    """
    score_a = _confidence(review_of_a)
    score_b = _confidence(review_of_b)
    if score_b > score_a:
        return answer_b
    if score_a > score_b:
        return answer_a
    return answer_b if len(answer_b or "") >= len(answer_a or "") else answer_a


def is_bad(answer: str, review: ReviewResult | None) -> bool:
    """An answer is bad if it looks cut off or its reviewer raised a content flag."""
    if looks_truncated(answer):
        return True
    return review is not None and (review.has_unsupported_claims or review.has_contradictions)


def pick_fallback(
    answer_a: str,
    answer_b: str,
    review_of_a: ReviewResult | None,
    review_of_b: ReviewResult | None,
) -> str:
    """Best-effort answer once the iteration cap is hit without consensus."""
    a_bad = is_bad(answer_a, review_of_a)
    b_bad = is_bad(answer_b, review_of_b)
    if a_bad and not b_bad:
        logger.info("Fallback: first answer flagged bad, using second")
        chosen = answer_b
    elif b_bad and not a_bad:
        logger.info("Fallback: second answer flagged bad, using first")
        chosen = answer_a
    else:
        chosen = pick_best(answer_a, answer_b, review_of_a, review_of_b)
    return (chosen or "").strip()
