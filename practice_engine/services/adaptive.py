"""Adaptive item selection algorithm."""
import logging
import random
from typing import Dict, List, Optional, Sequence
from practice_engine.config import EngineTuning
from practice_engine.errors import InvalidArgument
from practice_engine.services.weights import CharacterWeight, CharacterWeightTable

logger = logging.getLogger(__name__)


class AdaptiveSelector:
    """Weighted random selection over a caller-owned pool.

    Strategy:
    - Unseen items start at the initial weight
    - Correct answers shrink an item's weight (down to a floor)
    - Wrong answers grow it (up to a ceiling)
    - The immediately previous selection is down-weighted, never excluded
    """

    def __init__(
        self,
        tuning: EngineTuning = None,
        rng: random.Random = None,
        table: CharacterWeightTable = None
    ):
        self.tuning = tuning or EngineTuning()
        self.rng = rng or random.Random()
        self.table = table if table is not None else CharacterWeightTable(self.tuning.initial_weight)
        self.last_selected: Optional[str] = None

    def effective_weights(self, pool: Sequence[str]) -> List[float]:
        """
        Compute effective weights for every pool item, in pool order.

        Creates missing table entries as a side effect.

        Args:
            pool: Item keys eligible for selection

        Returns:
            List of effective weights aligned with ``pool``
        """
        weights = []
        for item in pool:
            entry = self.table.ensure(item)
            penalty = self.tuning.recency_penalty if item == self.last_selected else 1.0
            weights.append(entry.weight * penalty)
        return weights

    def select(self, pool: Sequence[str]) -> str:
        """
        Choose the next item using cumulative-weight sampling.

        Args:
            pool: Item keys eligible for selection (never mutated)

        Returns:
            Selected item key

        Raises:
            InvalidArgument: If the pool is empty
        """
        if not pool:
            raise InvalidArgument("Selection pool is empty")

        weights = self.effective_weights(pool)
        total = sum(weights)

        if total <= 0:
            # Every weight tuned down to zero: fall back to pool order
            chosen = pool[0]
        else:
            draw = self.rng.random() * total
            chosen = pool[-1]  # guards against float drift on the last boundary
            cumulative = 0.0
            for item, weight in zip(pool, weights):
                cumulative += weight
                # A draw landing exactly on a boundary goes to the earlier item
                if weight > 0 and cumulative >= draw:
                    chosen = item
                    break

        self.last_selected = chosen
        return chosen

    def most_likely(self, pool: Sequence[str]) -> str:
        """
        Return the pool item with the highest effective weight.

        Ties resolve to the earlier item in pool order.

        Raises:
            InvalidArgument: If the pool is empty
        """
        if not pool:
            raise InvalidArgument("Selection pool is empty")
        weights = self.effective_weights(pool)
        best_index = max(range(len(pool)), key=lambda i: (weights[i], -i))
        return pool[best_index]

    def record_outcome(self, item: str, correct: bool, sequence: int) -> CharacterWeight:
        """
        Update an item's weight after an answer.

        Args:
            item: Item key that was answered
            correct: Whether the answer was correct
            sequence: Logical sequence number of the answer event

        Returns:
            The updated CharacterWeight

        Raises:
            InvalidArgument: If the item was never placed in a selection pool
        """
        entry = self.table.get(item)
        if entry is None:
            raise InvalidArgument(f"Unknown item key: {item!r}")

        if correct:
            entry.weight = max(entry.weight * self.tuning.correct_multiplier, self.tuning.min_weight)
            entry.correct_count += 1
        else:
            entry.weight = min(entry.weight * self.tuning.wrong_multiplier, self.tuning.max_weight)
            entry.wrong_count += 1

        entry.exposure_count += 1
        entry.last_seen_at = sequence

        logger.debug(
            f"Weight for {item!r} is now {entry.weight:.3f} after "
            f"{'correct' if correct else 'wrong'} answer",
            extra={"item": item, "sequence": sequence}
        )
        return entry

    def weight_of(self, item: str) -> float:
        """Current stored weight for ``item`` (initial weight if never seen)."""
        entry = self.table.get(item)
        return entry.weight if entry else self.tuning.initial_weight

    def item_scores(self) -> Dict[str, Dict[str, int]]:
        """
        Get per-item correct/wrong counts.

        Returns:
            Dictionary mapping item key to {"correct": n, "wrong": n}
        """
        return {
            item: {"correct": entry.correct_count, "wrong": entry.wrong_count}
            for item, entry in self.table.items()
        }

    def reset(self) -> None:
        """Forget all weights and the previous selection."""
        self.table.clear()
        self.last_selected = None
