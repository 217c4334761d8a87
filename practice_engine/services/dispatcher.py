"""Answer event pipeline.

Every answer event is applied in a fixed order:

1. AdaptiveSelector.record_outcome
2. ReverseModeController.record_wrong / decide_next
3. StatsAccumulator.apply
4. AchievementEvaluator.evaluate (reads the post-update stats)

The dispatcher owns the session's logical sequence counter, which replaces
wall-clock time for recency and unlock ordering.
"""
import logging
from dataclasses import dataclass, field
from typing import List, Set
from practice_engine.errors import InvalidArgument
from practice_engine.services.achievements import (
    AchievementCatalog,
    AchievementEvaluator,
    AchievementUnlockRecord,
)
from practice_engine.services.adaptive import AdaptiveSelector
from practice_engine.services.reverse_mode import Direction, ReverseModeController
from practice_engine.services.stats import AnswerEvent, StatsAccumulator

logger = logging.getLogger(__name__)


@dataclass
class DispatchResult:
    """What the presentation layer needs after one answer."""
    direction: Direction
    newly_unlocked: List[str] = field(default_factory=list)
    sequence: int = 0

    def to_dict(self) -> dict:
        return {
            "direction": self.direction.value,
            "newly_unlocked": list(self.newly_unlocked),
            "sequence": self.sequence,
        }


class EventDispatcher:
    """Applies answer events to one session's components."""

    def __init__(
        self,
        selector: AdaptiveSelector,
        reverse_mode: ReverseModeController,
        stats: StatsAccumulator,
        catalog: AchievementCatalog,
        evaluator: AchievementEvaluator = None,
        unlock_records: List[AchievementUnlockRecord] = None,
        sequence: int = 0,
        session_id: str = None
    ):
        self.selector = selector
        self.reverse_mode = reverse_mode
        self.stats = stats
        self.catalog = catalog
        self.evaluator = evaluator or AchievementEvaluator()
        self.unlock_records: List[AchievementUnlockRecord] = list(unlock_records or [])
        self.unlocked: Set[str] = {record.id for record in self.unlock_records}
        self.sequence = sequence
        self.session_id = session_id

    def dispatch(self, event: AnswerEvent) -> DispatchResult:
        """
        Apply one answer event.

        The event is validated before any component is touched, so a rejected
        event leaves the session unchanged.

        Args:
            event: Learner response

        Returns:
            DispatchResult with the direction for the next question and the
            achievements unlocked by this event

        Raises:
            InvalidArgument: On a malformed event or an item never selected
        """
        event.validate()
        if event.item not in self.selector.table:
            raise InvalidArgument(f"Unknown item key: {event.item!r}")

        self.sequence += 1
        sequence = self.sequence

        self.selector.record_outcome(event.item, event.correct, sequence)

        if event.correct:
            direction = self.reverse_mode.decide_next()
        else:
            self.reverse_mode.record_wrong()
            direction = self.reverse_mode.current_direction()

        self.stats.apply(event)

        evaluation = self.evaluator.evaluate(self.stats.stats, self.catalog, self.unlocked)

        for achievement_id in evaluation.newly_unlocked:
            self.unlock_records.append(AchievementUnlockRecord(achievement_id, sequence))
            logger.info(
                f"Achievement unlocked: {achievement_id}",
                extra={
                    "session_id": self.session_id,
                    "achievement_id": achievement_id,
                    "sequence": sequence,
                }
            )

        return DispatchResult(
            direction=direction,
            newly_unlocked=evaluation.newly_unlocked,
            sequence=sequence,
        )

    def progress(self) -> dict:
        """Progress per achievement id for the current stats, without unlocking."""
        # Evaluate against a copy so a read never records an unlock
        return self.evaluator.evaluate(self.stats.snapshot(), self.catalog, set(self.unlocked)).progress

    def reset(self) -> None:
        """Explicit session reset: clears weights, direction and stats.

        Unlock records are permanent and the sequence counter stays monotonic.
        """
        self.selector.reset()
        self.reverse_mode.reset()
        self.stats.reset()
