"""Tests for consensus/models.py dataclasses."""

from consensus.models import (
    DEFAULT_REVIEW,
    ConsensusOutcome,
    Decision,
    OutcomeKind,
    ReviewResult,
    ReviewVerdict,
)


def test_default_review_is_pessimistic():
    assert DEFAULT_REVIEW.decision is Decision.REVISE
    assert DEFAULT_REVIEW.is_complete is False
    assert DEFAULT_REVIEW.has_unsupported_claims is True
    assert DEFAULT_REVIEW.confidence == 0.2


def test_review_result_to_dict_uses_plain_decision():
    review = ReviewResult(Decision.ACCEPT, True, False, False, issues=["x"], confidence=0.7)
    data = review.to_dict()
    assert data["decision"] == "ACCEPT"
    assert data["issues"] == ["x"]
    assert data["confidence"] == 0.7


def test_verdict_absent_result_uses_default():
    verdict = ReviewVerdict(reviewer="Claude", reviewed="GPT", result=None, attempts=2)
    assert verdict.parsed is False
    assert verdict.effective is DEFAULT_REVIEW


def test_verdict_parsed_result_is_effective():
    review = ReviewResult(Decision.ACCEPT, True, False, False)
    verdict = ReviewVerdict(reviewer="GPT", reviewed="Claude", result=review)
    assert verdict.parsed is True
    assert verdict.effective is review


def test_outcome_kind():
    assert ConsensusOutcome(OutcomeKind.CONSENSUS, "a", 1, 4).is_consensus is True
    assert ConsensusOutcome(OutcomeKind.FALLBACK, "a", 5, 20).is_consensus is False
