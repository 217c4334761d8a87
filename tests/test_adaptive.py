"""Unit tests for adaptive selection algorithm."""
import random
import pytest
from practice_engine.config import EngineTuning
from practice_engine.errors import InvalidArgument
from practice_engine.services.adaptive import AdaptiveSelector


class FixedRandom(random.Random):
    """Random source that always draws the same value."""

    def __init__(self, value: float):
        super().__init__(0)
        self.value = value

    def random(self):
        return self.value


class TestSelection:
    """Tests for weighted item selection."""

    def test_select_returns_pool_member(self, rng):
        """Every selection must come from the pool."""
        selector = AdaptiveSelector(rng=rng)
        pools = [["a"], ["a", "b"], ["x", "y", "z"], [str(i) for i in range(30)]]

        for pool in pools:
            for _ in range(50):
                assert selector.select(pool) in pool

    def test_empty_pool_raises(self, rng):
        """Selecting from an empty pool is an invalid argument."""
        selector = AdaptiveSelector(rng=rng)
        with pytest.raises(InvalidArgument):
            selector.select([])

    def test_single_item_pool_ignores_recency_penalty(self, rng):
        """A pool of one always returns that item, even right after selecting it."""
        selector = AdaptiveSelector(rng=rng)
        for _ in range(20):
            assert selector.select(["solo"]) == "solo"
        assert selector.last_selected == "solo"

    def test_entries_created_lazily(self, rng):
        """Unseen pool items get the initial weight and zero exposure."""
        selector = AdaptiveSelector(rng=rng)
        assert "a" not in selector.table

        selector.select(["a", "b"])

        entry = selector.table.get("a")
        assert entry.weight == 1.0
        assert entry.exposure_count == 0
        assert entry.last_seen_at is None

    def test_pool_not_mutated(self, rng):
        """The caller's pool is never modified."""
        pool = ["a", "b", "c"]
        selector = AdaptiveSelector(rng=rng)
        for _ in range(10):
            selector.select(pool)
        assert pool == ["a", "b", "c"]

    def test_same_seed_same_sequence(self):
        """Selection is deterministic for a fixed random source."""
        pool = ["a", "b", "c", "d"]
        first = AdaptiveSelector(rng=random.Random(99))
        second = AdaptiveSelector(rng=random.Random(99))

        assert [first.select(pool) for _ in range(25)] == [second.select(pool) for _ in range(25)]

    def test_recency_penalty_applies_to_previous_selection(self):
        """The previous selection is down-weighted by the recency penalty."""
        selector = AdaptiveSelector(rng=FixedRandom(0.0))
        pool = ["a", "b"]

        assert selector.select(pool) == "a"
        assert selector.effective_weights(pool) == [pytest.approx(0.15), 1.0]

    def test_recency_penalty_reduces_repeats(self):
        """Back-to-back repeats should be rare but not impossible."""
        selector = AdaptiveSelector(rng=random.Random(7))
        pool = ["a", "b"]

        picks = [selector.select(pool) for _ in range(400)]
        repeats = sum(1 for prev, cur in zip(picks, picks[1:]) if prev == cur)

        # Expected repeat rate is 0.15 / 1.15, roughly 13%
        assert 0 < repeats < 100

    def test_boundary_draw_resolves_to_earlier_item(self):
        """A draw exactly on a cumulative boundary goes to the earlier item."""
        # total = 2.0, draw = 0.5 * 2.0 = 1.0 == cumulative weight of "a"
        selector = AdaptiveSelector(rng=FixedRandom(0.5))
        assert selector.select(["a", "b"]) == "a"

    def test_draw_walks_cumulative_weights(self):
        """A draw past the first boundary selects the next item."""
        selector = AdaptiveSelector(rng=FixedRandom(0.6))
        assert selector.select(["a", "b", "c"]) == "b"

    def test_most_likely_prefers_heaviest_item(self, rng):
        """most_likely returns the item with the highest effective weight."""
        selector = AdaptiveSelector(rng=rng)
        pool = ["a", "b", "c"]
        selector.select(pool)
        selector.last_selected = None
        selector.record_outcome("c", correct=False, sequence=1)

        assert selector.most_likely(pool) == "c"

    def test_most_likely_ties_resolve_to_pool_order(self, rng):
        """Equal weights resolve to the earliest item."""
        selector = AdaptiveSelector(rng=rng)
        assert selector.most_likely(["b", "a", "c"]) == "b"


class TestRecordOutcome:
    """Tests for weight updates after answers."""

    def test_correct_answers_shrink_weight_to_floor(self, rng):
        """Repeated correct answers never raise the weight and stop at the floor."""
        selector = AdaptiveSelector(rng=rng)
        selector.select(["a"])

        previous = selector.weight_of("a")
        for sequence in range(1, 21):
            selector.record_outcome("a", correct=True, sequence=sequence)
            current = selector.weight_of("a")
            assert current <= previous
            assert current >= 0.05
            previous = current

        assert selector.weight_of("a") == pytest.approx(0.05)

    def test_correct_answer_multiplier(self, rng):
        """A correct answer multiplies the weight by 0.6."""
        selector = AdaptiveSelector(rng=rng)
        selector.select(["a"])
        selector.record_outcome("a", correct=True, sequence=1)
        assert selector.weight_of("a") == pytest.approx(0.6)

    def test_wrong_answers_grow_weight_to_ceiling(self, rng):
        """Repeated wrong answers cap the weight at 10.0."""
        selector = AdaptiveSelector(rng=rng)
        selector.select(["a"])
        for sequence in range(1, 11):
            selector.record_outcome("a", correct=False, sequence=sequence)

        assert selector.weight_of("a") == pytest.approx(10.0)

    def test_three_wrong_answers_make_item_most_likely(self):
        """Three wrong answers on A raise its weight to 1.8 ** 3."""
        selector = AdaptiveSelector(rng=random.Random(2024))
        pool = ["A", "B", "C"]

        for sequence in range(1, 4):
            selector.select(pool)
            selector.record_outcome("A", correct=False, sequence=sequence)

        assert selector.weight_of("A") == pytest.approx(5.832)
        assert selector.weight_of("B") == 1.0
        assert selector.weight_of("C") == 1.0
        assert max(pool, key=selector.weight_of) == "A"

        # Without the recency penalty in play, A dominates the draw
        selector.last_selected = None
        assert selector.most_likely(pool) == "A"

    def test_counts_and_sequence_updated(self, rng):
        """Exposure, correct/wrong counts and last_seen_at track each answer."""
        selector = AdaptiveSelector(rng=rng)
        selector.select(["a"])

        selector.record_outcome("a", correct=True, sequence=4)
        selector.record_outcome("a", correct=False, sequence=7)

        entry = selector.table.get("a")
        assert entry.exposure_count == 2
        assert entry.correct_count == 1
        assert entry.wrong_count == 1
        assert entry.last_seen_at == 7
        assert entry.correct_count + entry.wrong_count <= entry.exposure_count

    def test_unknown_item_raises(self, rng):
        """Recording an outcome for an item never placed in a pool is invalid."""
        selector = AdaptiveSelector(rng=rng)
        with pytest.raises(InvalidArgument):
            selector.record_outcome("ghost", correct=True, sequence=1)

    def test_custom_tuning(self, rng):
        """Multipliers and bounds come from the tuning."""
        tuning = EngineTuning(correct_multiplier=0.5, wrong_multiplier=3.0, min_weight=0.2, max_weight=4.0)
        selector = AdaptiveSelector(tuning=tuning, rng=rng)
        selector.select(["a", "b"])

        selector.record_outcome("a", correct=False, sequence=1)
        selector.record_outcome("a", correct=False, sequence=2)
        selector.record_outcome("b", correct=True, sequence=3)
        selector.record_outcome("b", correct=True, sequence=4)
        selector.record_outcome("b", correct=True, sequence=5)

        assert selector.weight_of("a") == pytest.approx(4.0)
        assert selector.weight_of("b") == pytest.approx(0.2)

    def test_item_scores(self, rng):
        """item_scores reports per-item correct and wrong counts."""
        selector = AdaptiveSelector(rng=rng)
        selector.select(["a", "b"])
        selector.record_outcome("a", correct=True, sequence=1)
        selector.record_outcome("a", correct=False, sequence=2)

        assert selector.item_scores() == {
            "a": {"correct": 1, "wrong": 1},
            "b": {"correct": 0, "wrong": 0},
        }

    def test_reset_clears_table(self, rng):
        """Reset forgets weights and the previous selection."""
        selector = AdaptiveSelector(rng=rng)
        selector.select(["a"])
        selector.record_outcome("a", correct=False, sequence=1)

        selector.reset()

        assert len(selector.table) == 0
        assert selector.last_selected is None
        assert selector.weight_of("a") == 1.0
