"""Reverse mode state machine.

Decides whether the next question is shown forward (item → answer) or reversed
(answer → item). Direction only ever changes after a run of correct answers and
a random gate; wrong answers reset the run but never flip.
"""
import logging
import random
from dataclasses import dataclass
from enum import Enum
from practice_engine import constants

logger = logging.getLogger(__name__)


class Direction(str, Enum):
    """Presentation direction of a question."""
    FORWARD = "forward"
    REVERSE = "reverse"

    def flipped(self) -> "Direction":
        return Direction.REVERSE if self is Direction.FORWARD else Direction.FORWARD


@dataclass
class ReverseModeState:
    """Per-session reverse mode state."""
    current_direction: Direction = Direction.FORWARD
    consecutive_correct_in_direction: int = 0
    consecutive_wrong_overall: int = 0


class ReverseModeController:
    """Owns a ReverseModeState and applies the transition rules."""

    def __init__(
        self,
        threshold: int = constants.REVERSE_FLIP_THRESHOLD,
        flip_probability: float = constants.REVERSE_FLIP_PROBABILITY,
        rng: random.Random = None,
        state: ReverseModeState = None,
        enabled: bool = True
    ):
        self.threshold = threshold
        self.flip_probability = flip_probability
        self.rng = rng or random.Random()
        self.state = state or ReverseModeState()
        self.enabled = enabled

    def current_direction(self) -> Direction:
        return self.state.current_direction

    def decide_next(self) -> Direction:
        """
        Register a correct answer and decide the direction of the next question.

        Returns:
            Direction to use for the next question
        """
        state = self.state
        state.consecutive_wrong_overall = 0

        if not self.enabled:
            return state.current_direction

        state.consecutive_correct_in_direction += 1

        if state.consecutive_correct_in_direction >= self.threshold:
            # The gate is only sampled once the threshold is met
            if self.rng.random() < self.flip_probability:
                state.current_direction = state.current_direction.flipped()
                state.consecutive_correct_in_direction = 0
                logger.debug(f"Reverse mode flipped to {state.current_direction.value}")

        return state.current_direction

    def record_wrong(self) -> None:
        """Register a wrong answer. Never changes direction."""
        self.state.consecutive_correct_in_direction = 0
        self.state.consecutive_wrong_overall += 1

    def reset(self) -> None:
        self.state = ReverseModeState()
