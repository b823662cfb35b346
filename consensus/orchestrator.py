"""Consensus orchestration: solve, cross-review, gate, revise or fall back."""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date

from config.config_loader import VALID_MODES, DefaultsConfig, PromptsConfig
from consensus.events import ConsensusEvent, EventSink, EventType, null_sink
from consensus.gate import accept
from consensus.heuristics import COMPLETION_MARKER, parse_review, to_answer
from consensus.limiter import LimiterRegistry
from consensus.models import (
    Answer,
    CallOptions,
    ConsensusOutcome,
    IterationRecord,
    OutcomeKind,
    ReviewVerdict,
    Turn,
)
from consensus.prompts import (
    build_json_retry_prompt,
    build_review_prompt,
    build_revision_prompt,
    build_solve_prompt,
    pick_solve_budget,
)
from consensus.providers.base import ConfigurationError, ProviderError
from consensus.selection import pick_best, pick_fallback
from consensus.transport import Agent, AgentClient, CallStats

logger = logging.getLogger(__name__)


@dataclass
class SessionSettings:
    mode: str = "robust"
    iterations: int = 5
    max_iterations: int = 20
    review_max_tokens: int = 700
    max_answer_chars_for_review: int = 14000

    @classmethod
    def from_defaults(
        cls,
        defaults: DefaultsConfig,
        mode: str | None = None,
        iterations: int | None = None,
    ) -> "SessionSettings":
        return cls(
            mode=(mode or defaults.mode).lower(),
            iterations=iterations if iterations is not None else defaults.iterations,
            max_iterations=defaults.max_iterations,
            review_max_tokens=defaults.review_max_tokens,
            max_answer_chars_for_review=defaults.max_answer_chars_for_review,
        )

    @property
    def is_fast(self) -> bool:
        return self.mode == "fast"

    def effective_iterations(self) -> int:
        """Rounds this session may run. Fast mode always runs exactly one.

        Raises:
            ConfigurationError: Unknown mode or iteration count out of range.
        """
        if self.mode not in VALID_MODES:
            raise ConfigurationError(f"Unknown mode '{self.mode}', expected one of {VALID_MODES}")
        if self.is_fast:
            return 1
        if not 1 <= self.iterations <= self.max_iterations:
            raise ConfigurationError(
                f"Iterations must be between 1 and {self.max_iterations}, got {self.iterations}"
            )
        return self.iterations


class _Session:
    """State owned by a single run: clients, conversations, call counter."""

    def __init__(
        self,
        query: str,
        primary: Agent,
        secondary: Agent,
        prompts: PromptsConfig,
        settings: SessionSettings,
        sink: EventSink,
        limiters: LimiterRegistry,
        today: date,
    ) -> None:
        self.query = query
        self.primary = primary
        self.secondary = secondary
        self.prompts = prompts
        self.settings = settings
        self.today = today
        self.stats = CallStats()
        self._sink = sink
        self.primary_client = AgentClient(primary, limiters, self.stats)
        self.secondary_client = AgentClient(secondary, limiters, self.stats)
        self.primary_conversation = [Turn("user", build_solve_prompt(prompts, query, primary.label, today))]
        self.secondary_conversation = [Turn("user", build_solve_prompt(prompts, query, secondary.label, today))]

    def emit(self, event: EventType, **data: object) -> None:
        self._sink(ConsensusEvent(event, dict(data)))

    async def _solve(self, client: AgentClient, agent: Agent, conversation: list[Turn]) -> Answer:
        options = CallOptions(
            max_tokens=pick_solve_budget(self.query, agent.max_tokens),
            temperature=agent.temperature,
            stop_sequences=[COMPLETION_MARKER],
        )
        output = await client.call(list(conversation), options)
        answer = to_answer(agent.name, output)
        if answer.marker_appended:
            logger.debug("%s answer had no completion marker; appended", agent.label)
        return answer

    async def _review(self, client: AgentClient, reviewer: Agent, reviewed: Agent, answer: Answer) -> ReviewVerdict:
        """Ask ``reviewer`` to judge ``answer``, retrying once on unparseable JSON."""
        prompt = build_review_prompt(
            self.prompts,
            self.query,
            answer.text,
            f"{reviewer.label} (reviewer)",
            self.today,
            self.settings.max_answer_chars_for_review,
        )
        options = CallOptions(
            max_tokens=self.settings.review_max_tokens,
            temperature=reviewer.review_temperature,
        )
        raw = await client.call([Turn("user", prompt)], options)
        result = parse_review(raw)
        attempts = 1
        if result is None:
            logger.info("%s review of %s was not valid JSON, retrying once", reviewer.label, reviewed.label)
            raw = await client.call([Turn("user", build_json_retry_prompt(self.prompts, prompt))], options)
            result = parse_review(raw)
            attempts = 2
            if result is None:
                logger.warning("%s review of %s unparseable after retry", reviewer.label, reviewed.label)
        return ReviewVerdict(
            reviewer=reviewer.label,
            reviewed=reviewed.label,
            result=result,
            raw_text=raw,
            attempts=attempts,
        )

    async def run_round(self, number: int) -> IterationRecord:
        p, s = self.primary, self.secondary

        self.emit(EventType.STEP, model=p.label, action="solving")
        self.emit(EventType.STEP, model=s.label, action="solving")
        primary_answer, secondary_answer = await asyncio.gather(
            self._solve(self.primary_client, p, self.primary_conversation),
            self._solve(self.secondary_client, s, self.secondary_conversation),
        )
        self.emit(EventType.ANSWER, model=p.label, text=primary_answer.text)
        self.emit(EventType.ANSWER, model=s.label, text=secondary_answer.text)

        self.emit(EventType.STEP, model=p.label, action=f"reviewing {s.label}")
        self.emit(EventType.STEP, model=s.label, action=f"reviewing {p.label}")
        review_of_secondary, review_of_primary = await asyncio.gather(
            self._review(self.primary_client, p, s, secondary_answer),
            self._review(self.secondary_client, s, p, primary_answer),
        )
        for verdict in (review_of_secondary, review_of_primary):
            self.emit(
                EventType.REVIEW,
                reviewer=verdict.reviewer,
                reviewed=verdict.reviewed,
                result=verdict.result.to_dict() if verdict.result else None,
                attempts=verdict.attempts,
            )

        return IterationRecord(
            number=number,
            primary=primary_answer,
            secondary=secondary_answer,
            review_of_primary=review_of_primary,
            review_of_secondary=review_of_secondary,
        )

    def extend_for_revision(self, record: IterationRecord) -> None:
        """Feed each agent its own answer and the other agent's critique of it."""
        self.primary_conversation.append(Turn("assistant", f"{record.primary.text}\n{COMPLETION_MARKER}"))
        self.primary_conversation.append(Turn("user", build_revision_prompt(
            self.prompts,
            self.query,
            self.primary.label,
            record.secondary.text,
            record.review_of_primary.effective,
            self.today,
            self.settings.max_answer_chars_for_review,
        )))
        self.secondary_conversation.append(Turn("assistant", f"{record.secondary.text}\n{COMPLETION_MARKER}"))
        self.secondary_conversation.append(Turn("user", build_revision_prompt(
            self.prompts,
            self.query,
            self.secondary.label,
            record.primary.text,
            record.review_of_secondary.effective,
            self.today,
            self.settings.max_answer_chars_for_review,
        )))


def _best_of(record: IterationRecord) -> str:
    return pick_best(
        record.primary.text,
        record.secondary.text,
        record.review_of_primary.result,
        record.review_of_secondary.result,
    )


def _fallback_of(record: IterationRecord) -> str:
    return pick_fallback(
        record.primary.text,
        record.secondary.text,
        record.review_of_primary.result,
        record.review_of_secondary.result,
    )


async def run_consensus(
    query: str,
    primary: Agent,
    secondary: Agent,
    prompts: PromptsConfig,
    settings: SessionSettings,
    sink: EventSink = null_sink,
    limiters: LimiterRegistry | None = None,
    on_round_complete: Callable[[IterationRecord], None] | None = None,
    today: date | None = None,
) -> ConsensusOutcome:
    """Run one consensus session to a consensus or fallback outcome.

    Progress is reported through ``sink``; the terminal ``consensus`` or
    ``fallback`` event carries the same answer as the returned outcome.

    Raises:
        ConfigurationError: Invalid mode, iteration count or empty query,
            before any call is made.
        ProviderError: A non-retryable agent failure.

    Any failure once the session has started emits an ``error`` event
    before it propagates.
    """
    if not (query or "").strip():
        raise ConfigurationError("Query is empty")
    iterations = settings.effective_iterations()

    session = _Session(
        query=query,
        primary=primary,
        secondary=secondary,
        prompts=prompts,
        settings=settings,
        sink=sink,
        limiters=limiters or LimiterRegistry(),
        today=today or date.today(),
    )
    session.emit(EventType.STATUS, message=f"Mode: {settings.mode.upper()} | Max iterations: {iterations}")
    logger.info("Starting %s session: %s vs %s, up to %d rounds", settings.mode, primary.label, secondary.label, iterations)

    try:
        number = 1
        while True:
            session.emit(EventType.ITERATION, iteration=number)
            record = await session.run_round(number)

            if settings.is_fast:
                if on_round_complete:
                    on_round_complete(record)
                return _finish(session, OutcomeKind.CONSENSUS, _best_of(record), number)

            record.secondary_accepted = accept(record.review_of_secondary.result, record.secondary.raw)
            record.primary_accepted = accept(record.review_of_primary.result, record.primary.raw)
            if on_round_complete:
                on_round_complete(record)

            if record.primary_accepted and record.secondary_accepted:
                return _finish(session, OutcomeKind.CONSENSUS, _best_of(record), number)

            logger.info(
                "Round %d: no consensus (%s accepted=%s, %s accepted=%s)",
                number, primary.label, record.primary_accepted, secondary.label, record.secondary_accepted,
            )
            session.emit(EventType.STATUS, message=f"Iteration {number}: No consensus. Both revising...")
            if number == iterations:
                return _finish(session, OutcomeKind.FALLBACK, _fallback_of(record), iterations)
            session.extend_for_revision(record)
            number += 1
    except ProviderError as exc:
        logger.error("Session aborted: %s", exc)
        session.emit(EventType.ERROR, message=str(exc))
        raise
    except Exception as exc:
        logger.exception("Session failed unexpectedly")
        session.emit(EventType.ERROR, message=str(exc) or type(exc).__name__)
        raise


def _finish(session: _Session, kind: OutcomeKind, answer: str, iterations_used: int) -> ConsensusOutcome:
    outcome = ConsensusOutcome(
        kind=kind,
        answer=answer,
        iterations_used=iterations_used,
        total_calls=session.stats.calls,
    )
    if kind is OutcomeKind.CONSENSUS:
        session.emit(EventType.CONSENSUS, iteration=iterations_used, total_calls=outcome.total_calls, answer=answer)
    else:
        session.emit(EventType.FALLBACK, iterations=iterations_used, total_calls=outcome.total_calls, answer=answer)
    logger.info("Session finished: %s after %d round(s), %d calls", kind.value, iterations_used, outcome.total_calls)
    return outcome
