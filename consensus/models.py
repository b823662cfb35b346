"""Pure dataclasses for the consensus pipeline. No I/O, no deps."""

from dataclasses import asdict, dataclass, field
from enum import Enum


class AgentRole(str, Enum):
    PRIMARY = "primary"
    SECONDARY = "secondary"


class Decision(str, Enum):
    ACCEPT = "ACCEPT"
    REVISE = "REVISE"


class OutcomeKind(str, Enum):
    CONSENSUS = "consensus"
    FALLBACK = "fallback"


@dataclass
class Turn:
    role: str              # "user" or "assistant"
    content: str


@dataclass
class CallOptions:
    max_tokens: int
    temperature: float | None = None
    stop_sequences: list[str] | None = None  # None for review calls


@dataclass
class ModelResponse:
    provider: str          # "claude", "openai"
    model: str             # actual model string used
    content: str
    latency_sec: float
    token_count: int | None


@dataclass
class Answer:
    agent: str
    raw: str               # marker guaranteed present
    text: str              # marker stripped
    marker_appended: bool  # the agent did not emit the marker itself
    looks_truncated: bool  # computed on `text`, never on `raw`


@dataclass
class ReviewResult:
    decision: Decision
    is_complete: bool
    has_unsupported_claims: bool
    has_contradictions: bool
    issues: list[str] = field(default_factory=list)
    suggestions: list[str] = field(default_factory=list)
    confidence: float = 0.5

    def to_dict(self) -> dict:
        data = asdict(self)
        data["decision"] = self.decision.value
        return data


# Substituted for an absent review wherever a critique must be fed back.
DEFAULT_REVIEW = ReviewResult(
    decision=Decision.REVISE,
    is_complete=False,
    has_unsupported_claims=True,
    has_contradictions=False,
    issues=["Review parse failed"],
    suggestions=["Be complete and grounded."],
    confidence=0.2,
)


@dataclass
class ReviewVerdict:
    """One agent's judgment of the other's answer.

    ``result`` is None when the reviewer's output could not be parsed even
    after the corrective retry. Callers must decide explicitly how to treat
    that case; ``effective`` gives the pessimistic default.
    """

    reviewer: str
    reviewed: str
    result: ReviewResult | None
    raw_text: str = ""
    attempts: int = 1

    @property
    def parsed(self) -> bool:
        return self.result is not None

    @property
    def effective(self) -> ReviewResult:
        return self.result if self.result is not None else DEFAULT_REVIEW


@dataclass
class IterationRecord:
    number: int
    primary: Answer
    secondary: Answer
    review_of_primary: ReviewVerdict     # written by the secondary agent
    review_of_secondary: ReviewVerdict   # written by the primary agent
    primary_accepted: bool = False
    secondary_accepted: bool = False


@dataclass
class ConsensusOutcome:
    kind: OutcomeKind
    answer: str
    iterations_used: int
    total_calls: int

    @property
    def is_consensus(self) -> bool:
        return self.kind is OutcomeKind.CONSENSUS


@dataclass
class SessionResult:
    """Everything the CLI needs to render and save a finished session."""

    query: str
    source: str
    mode: str
    outcome: ConsensusOutcome
    rounds: list[IterationRecord]
    primary_label: str
    secondary_label: str
    total_duration_sec: float
