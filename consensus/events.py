"""Typed progress events emitted by a consensus session."""

import json
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum


class EventType(str, Enum):
    STATUS = "status"
    ITERATION = "iteration"
    STEP = "step"
    ANSWER = "answer"
    REVIEW = "review"
    CONSENSUS = "consensus"
    FALLBACK = "fallback"
    ERROR = "error"


@dataclass
class ConsensusEvent:
    event: EventType
    data: dict = field(default_factory=dict)

    def format_sse(self) -> str:
        """Render as a server-sent-events frame."""
        return f"event: {self.event.value}\ndata: {json.dumps(self.data, ensure_ascii=False)}\n\n"


EventSink = Callable[[ConsensusEvent], None]


def null_sink(event: ConsensusEvent) -> None:
    return None
