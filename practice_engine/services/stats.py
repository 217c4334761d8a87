"""Cumulative practice statistics updated by answer events."""
from collections import deque
from dataclasses import dataclass, field, replace
from typing import Deque, Dict, Optional
from practice_engine import constants
from practice_engine.errors import InvalidArgument

COUNTER_NAMES = (
    "total_correct",
    "total_wrong",
    "total_answers",
    "current_streak",
    "best_streak",
    "current_wrong_streak",
)
"""Counters addressable by name from achievement criteria."""

CATEGORY_COUNTER_PREFIX = "category:"
"""Prefix addressing a per-category correct counter, e.g. ``category:kana``."""


@dataclass(frozen=True)
class AnswerEvent:
    """One learner response."""
    item: str
    correct: bool
    answer_time_ms: int = 0
    category: str = "general"

    def validate(self) -> None:
        """
        Check the event is well formed.

        Raises:
            InvalidArgument: On an empty item key or category, a non-boolean
                ``correct`` flag, or a negative answer time
        """
        if not isinstance(self.item, str) or not self.item:
            raise InvalidArgument("AnswerEvent.item must be a non-empty string")
        if not isinstance(self.correct, bool):
            raise InvalidArgument("AnswerEvent.correct must be a boolean")
        if isinstance(self.answer_time_ms, bool) or not isinstance(self.answer_time_ms, int) \
                or self.answer_time_ms < 0:
            raise InvalidArgument("AnswerEvent.answer_time_ms must be a non-negative integer")
        if not isinstance(self.category, str) or not self.category:
            raise InvalidArgument("AnswerEvent.category must be a non-empty string")


@dataclass
class StatsSnapshot:
    """Cumulative counters for one session."""
    total_correct: int = 0
    total_wrong: int = 0
    current_streak: int = 0
    best_streak: int = 0
    current_wrong_streak: int = 0
    category_counts: Dict[str, int] = field(default_factory=dict)
    character_history: Deque[str] = field(default_factory=deque)
    fastest_answer_ms: Optional[int] = None
    total_answer_time_ms: int = 0
    timed_answer_count: int = 0

    @property
    def total_answers(self) -> int:
        return self.total_correct + self.total_wrong

    @property
    def accuracy(self) -> float:
        if self.total_answers == 0:
            return 0.0
        return self.total_correct / self.total_answers

    @property
    def average_answer_ms(self) -> Optional[float]:
        if self.timed_answer_count == 0:
            return None
        return self.total_answer_time_ms / self.timed_answer_count

    @property
    def distinct_items(self) -> int:
        return len(set(self.character_history))

    def counter(self, name: str) -> int:
        """
        Look up a counter by name.

        Args:
            name: One of COUNTER_NAMES or ``category:<name>``

        Returns:
            Counter value (unknown categories count as 0)

        Raises:
            KeyError: If the name is not a known counter
        """
        if name.startswith(CATEGORY_COUNTER_PREFIX):
            return self.category_counts.get(name[len(CATEGORY_COUNTER_PREFIX):], 0)
        if name not in COUNTER_NAMES:
            raise KeyError(f"Unknown counter: {name}")
        return getattr(self, name)

    def to_dict(self) -> dict:
        return {
            "total_correct": self.total_correct,
            "total_wrong": self.total_wrong,
            "total_answers": self.total_answers,
            "current_streak": self.current_streak,
            "best_streak": self.best_streak,
            "current_wrong_streak": self.current_wrong_streak,
            "accuracy": round(self.accuracy, 4),
            "category_counts": dict(self.category_counts),
            "character_history": list(self.character_history),
            "distinct_items": self.distinct_items,
            "fastest_answer_ms": self.fastest_answer_ms,
            "average_answer_ms": self.average_answer_ms,
        }


class StatsAccumulator:
    """Pure in-memory reducer of answer events into a StatsSnapshot."""

    def __init__(self, history_limit: int = constants.CHARACTER_HISTORY_LIMIT, stats: StatsSnapshot = None):
        self.history_limit = history_limit
        stats = stats or StatsSnapshot()
        # Bounded log: appending past the limit evicts the oldest entry
        stats.character_history = deque(stats.character_history, maxlen=history_limit)
        self._stats = stats

    def apply(self, event: AnswerEvent) -> None:
        """
        Update counters after an answer.

        Updates:
        - total_correct / total_wrong
        - current_streak, best_streak, current_wrong_streak
        - character_history and category counters (correct answers only)
        - fastest and average answer time (timed correct answers only)
        """
        stats = self._stats

        if event.correct:
            stats.total_correct += 1
            stats.current_streak += 1
            stats.best_streak = max(stats.best_streak, stats.current_streak)
            stats.current_wrong_streak = 0
            stats.character_history.append(event.item)
            stats.category_counts[event.category] = stats.category_counts.get(event.category, 0) + 1

            if event.answer_time_ms > 0:
                stats.total_answer_time_ms += event.answer_time_ms
                stats.timed_answer_count += 1
                if stats.fastest_answer_ms is None or event.answer_time_ms < stats.fastest_answer_ms:
                    stats.fastest_answer_ms = event.answer_time_ms
        else:
            stats.total_wrong += 1
            stats.current_streak = 0
            stats.current_wrong_streak += 1

    def snapshot(self) -> StatsSnapshot:
        """Return a copy that later events will not mutate."""
        return replace(
            self._stats,
            category_counts=dict(self._stats.category_counts),
            character_history=deque(self._stats.character_history, maxlen=self.history_limit),
        )

    @property
    def stats(self) -> StatsSnapshot:
        """Live view of the accumulated stats."""
        return self._stats

    def reset(self) -> None:
        self._stats = StatsSnapshot(character_history=deque(maxlen=self.history_limit))
