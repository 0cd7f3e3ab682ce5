"""
Linear state machine for one Patient -> Person pipeline run.

    start -> inbound_validated -> extracted -> formatted -> outbound_built
          -> outbound_validated -> sent -> created | rejected

Any non-terminal state may also exit early to invalid_inbound,
invalid_outbound, gateway_rejected or unexpected_failure. A state is never
revisited and nothing leaves a terminal state.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class PipelineState(str, Enum):
    START = "start"
    INBOUND_VALIDATED = "inbound_validated"
    EXTRACTED = "extracted"
    FORMATTED = "formatted"
    OUTBOUND_BUILT = "outbound_built"
    OUTBOUND_VALIDATED = "outbound_validated"
    SENT = "sent"
    CREATED = "created"
    REJECTED = "rejected"
    INVALID_INBOUND = "invalid_inbound"
    INVALID_OUTBOUND = "invalid_outbound"
    GATEWAY_REJECTED = "gateway_rejected"
    UNEXPECTED_FAILURE = "unexpected_failure"


HAPPY_PATH: tuple[PipelineState, ...] = (
    PipelineState.START,
    PipelineState.INBOUND_VALIDATED,
    PipelineState.EXTRACTED,
    PipelineState.FORMATTED,
    PipelineState.OUTBOUND_BUILT,
    PipelineState.OUTBOUND_VALIDATED,
    PipelineState.SENT,
)

TERMINAL_STATES = frozenset(
    {
        PipelineState.CREATED,
        PipelineState.REJECTED,
        PipelineState.INVALID_INBOUND,
        PipelineState.INVALID_OUTBOUND,
        PipelineState.GATEWAY_REJECTED,
        PipelineState.UNEXPECTED_FAILURE,
    }
)

EARLY_EXITS = frozenset(
    {
        PipelineState.INVALID_INBOUND,
        PipelineState.INVALID_OUTBOUND,
        PipelineState.GATEWAY_REJECTED,
        PipelineState.UNEXPECTED_FAILURE,
    }
)


def _allowed_targets(state: PipelineState) -> frozenset[PipelineState]:
    if state in TERMINAL_STATES:
        return frozenset()
    if state == PipelineState.SENT:
        return frozenset({PipelineState.CREATED, PipelineState.REJECTED}) | EARLY_EXITS
    return frozenset({HAPPY_PATH[HAPPY_PATH.index(state) + 1]}) | EARLY_EXITS


class InvalidTransition(RuntimeError):
    pass


@dataclass
class StateVisit:
    """How long the run stayed in one state."""

    state: PipelineState
    entered_at: float
    duration_ms: float = 0.0


@dataclass
class PipelineStateMachine:
    run_id: str
    visits: list[StateVisit] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.visits.append(StateVisit(PipelineState.START, time.perf_counter()))

    @property
    def state(self) -> PipelineState:
        return self.visits[-1].state

    @property
    def finished(self) -> bool:
        return self.state in TERMINAL_STATES

    def advance(self, target: PipelineState) -> PipelineState:
        current = self.visits[-1]
        if target not in _allowed_targets(current.state):
            raise InvalidTransition(f"Cannot move from '{current.state.value}' to '{target.value}'")
        if any(visit.state == target for visit in self.visits):
            raise InvalidTransition(f"State '{target.value}' already visited")

        now = time.perf_counter()
        current.duration_ms = (now - current.entered_at) * 1000
        self.visits.append(StateVisit(target, now))
        log = logger.info if target not in EARLY_EXITS else logger.warning
        log("Run %s: %s -> %s", self.run_id, current.state.value, target.value)
        return target

    def to_dict(self) -> dict[str, Any]:
        """Serialize the visited path (stored in pipeline_runs.states)."""
        return {
            "final_state": self.state.value,
            "states": [
                {"state": visit.state.value, "duration_ms": round(visit.duration_ms, 2)}
                for visit in self.visits
            ],
        }
