"""Achievement criteria, catalog ordering and unlock evaluation.

Criteria are a small tagged set of kinds rather than arbitrary callables, so a
catalog can be stored as data and every criterion evaluated without side
effects:

- counter_threshold: a named stats counter reaches ``target``
- streak_length: best correct streak reaches ``target``
- distinct_items: distinct items in the character history reach ``target``
- answer_speed: fastest timed correct answer is at most ``target`` ms
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple
from practice_engine import constants
from practice_engine.errors import InvalidArgument
from practice_engine.services.stats import (
    CATEGORY_COUNTER_PREFIX,
    COUNTER_NAMES,
    StatsSnapshot,
)

logger = logging.getLogger(__name__)

UNLOCK_PROGRESS = 100.0


class Rarity(str, Enum):
    """Achievement rarity, ordered common < uncommon < rare < epic < legendary."""
    COMMON = "common"
    UNCOMMON = "uncommon"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"

    @property
    def rank(self) -> int:
        return constants.RARITY_ORDER.index(self.value)


class CriterionKind(str, Enum):
    """Supported criterion kinds."""
    COUNTER_THRESHOLD = "counter_threshold"
    STREAK_LENGTH = "streak_length"
    DISTINCT_ITEMS = "distinct_items"
    ANSWER_SPEED = "answer_speed"


@dataclass(frozen=True)
class Criterion:
    """Maps a StatsSnapshot to a progress percentage in [0, 100]."""
    kind: CriterionKind
    target: int
    counter: Optional[str] = None

    def __post_init__(self):
        if self.target <= 0:
            raise InvalidArgument(f"Criterion target must be positive, got {self.target}")
        if self.kind == CriterionKind.COUNTER_THRESHOLD:
            if not self.counter:
                raise InvalidArgument("counter_threshold criteria need a counter name")
            if self.counter not in COUNTER_NAMES and not (
                self.counter.startswith(CATEGORY_COUNTER_PREFIX)
                and len(self.counter) > len(CATEGORY_COUNTER_PREFIX)
            ):
                raise InvalidArgument(f"Unknown counter: {self.counter}")

    def progress(self, stats: StatsSnapshot) -> float:
        """
        Compute progress toward this criterion.

        Args:
            stats: Post-update stats snapshot

        Returns:
            Float between 0.0 and 100.0
        """
        if self.kind == CriterionKind.COUNTER_THRESHOLD:
            value = stats.counter(self.counter)
        elif self.kind == CriterionKind.STREAK_LENGTH:
            value = stats.best_streak
        elif self.kind == CriterionKind.DISTINCT_ITEMS:
            value = stats.distinct_items
        else:  # ANSWER_SPEED
            if not stats.fastest_answer_ms:
                return 0.0
            # Faster than target counts as complete
            return min(UNLOCK_PROGRESS, self.target / stats.fastest_answer_ms * 100.0)

        return max(0.0, min(UNLOCK_PROGRESS, value / self.target * 100.0))

    def to_dict(self) -> dict:
        data = {"kind": self.kind.value, "target": self.target}
        if self.counter is not None:
            data["counter"] = self.counter
        return data


@dataclass(frozen=True)
class AchievementDefinition:
    """Static, caller-supplied achievement."""
    id: str
    title: str
    category: str
    rarity: Rarity
    points: int
    criterion: Criterion
    description: str = ""

    @property
    def sort_key(self) -> Tuple[int, int, str]:
        return (self.rarity.rank, self.points, self.id)

    def progress(self, stats: StatsSnapshot) -> float:
        return self.criterion.progress(stats)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "rarity": self.rarity.value,
            "points": self.points,
            "criterion": self.criterion.to_dict(),
        }


@dataclass(frozen=True)
class AchievementUnlockRecord:
    """Permanent record of an unlock."""
    id: str
    unlocked_at_sequence: int


class AchievementCatalog:
    """Immutable, pre-ordered collection of achievement definitions.

    Loaded once at process start and shared read-only between sessions.
    """

    def __init__(self, definitions: Iterable[AchievementDefinition]):
        ordered = sorted(definitions, key=lambda d: d.sort_key)
        by_id: Dict[str, AchievementDefinition] = {}
        for definition in ordered:
            if definition.id in by_id:
                raise InvalidArgument(f"Duplicate achievement id: {definition.id}")
            by_id[definition.id] = definition
        self._ordered: Tuple[AchievementDefinition, ...] = tuple(ordered)
        self._by_id = by_id

    def __iter__(self):
        return iter(self._ordered)

    def __len__(self) -> int:
        return len(self._ordered)

    def __contains__(self, achievement_id: str) -> bool:
        return achievement_id in self._by_id

    def get(self, achievement_id: str) -> Optional[AchievementDefinition]:
        return self._by_id.get(achievement_id)

    @property
    def categories(self) -> List[str]:
        return sorted({d.category for d in self._ordered})


@dataclass
class EvaluationResult:
    """Outcome of evaluating a catalog against one stats snapshot."""
    newly_unlocked: List[str] = field(default_factory=list)
    progress: Dict[str, float] = field(default_factory=dict)


def _ordered(catalog: Iterable[AchievementDefinition]) -> Sequence[AchievementDefinition]:
    if isinstance(catalog, AchievementCatalog):
        return tuple(catalog)
    return sorted(catalog, key=lambda d: d.sort_key)


class AchievementEvaluator:
    """Computes unlock status and progress for a catalog."""

    def evaluate(
        self,
        stats: StatsSnapshot,
        catalog: Iterable[AchievementDefinition],
        unlocked: Set[str]
    ) -> EvaluationResult:
        """
        Evaluate every definition not yet unlocked.

        Newly satisfied definitions are appended to ``newly_unlocked`` and
        added to ``unlocked`` in place, so evaluating the same snapshot again
        returns nothing new. Output follows rarity, then points, then id.

        Args:
            stats: Post-update stats snapshot
            catalog: Achievement definitions
            unlocked: Ids already unlocked (mutated)

        Returns:
            EvaluationResult with newly unlocked ids and progress per id
        """
        result = EvaluationResult()

        for definition in _ordered(catalog):
            if definition.id in unlocked:
                result.progress[definition.id] = UNLOCK_PROGRESS
                continue

            try:
                progress = definition.progress(stats)
            except Exception:
                logger.warning(
                    f"Criterion for achievement {definition.id!r} failed; treating progress as 0",
                    exc_info=True,
                    extra={"achievement_id": definition.id}
                )
                progress = 0.0

            if progress >= UNLOCK_PROGRESS:
                unlocked.add(definition.id)
                result.newly_unlocked.append(definition.id)
                progress = UNLOCK_PROGRESS

            result.progress[definition.id] = progress

        return result


@dataclass
class AchievementSummary:
    """Headline numbers for an achievements overview."""
    unlocked_count: int
    total_count: int
    total_points: int
    level: int
    completion_percentage: float


def summarize_achievements(catalog: AchievementCatalog, unlocked: Iterable[str]) -> AchievementSummary:
    """
    Summarize unlocked achievements.

    Level starts at 1 and rises by one every POINTS_PER_LEVEL points. Ids
    missing from the catalog are ignored.

    Args:
        catalog: Achievement catalog
        unlocked: Unlocked achievement ids

    Returns:
        AchievementSummary with counts, points, level and completion percentage
    """
    unlocked_defs = [catalog.get(i) for i in set(unlocked) if i in catalog]
    total_points = sum(d.points for d in unlocked_defs)
    total_count = len(catalog)
    completion = (len(unlocked_defs) / total_count * 100) if total_count else 0.0

    return AchievementSummary(
        unlocked_count=len(unlocked_defs),
        total_count=total_count,
        total_points=total_points,
        level=total_points // constants.POINTS_PER_LEVEL + 1,
        completion_percentage=round(completion, 1),
    )


def filter_by_category(catalog: Iterable[AchievementDefinition], category: str) -> List[AchievementDefinition]:
    """Return definitions in ``category`` (``"all"`` matches everything), preserving order."""
    if category == constants.ALL_CATEGORIES:
        return list(catalog)
    return [d for d in catalog if d.category == category]
