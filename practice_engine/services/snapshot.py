"""Session state <-> plain dict conversion for persistence.

The engine owns this format only insofar as it must round-trip its own state
exactly (including the random generator state, so a restored session replays
the same draws). Decoding validates every invariant and raises
StateCorruption instead of repairing anything.
"""
import math
import random
from collections import deque
from typing import Any, Dict
from practice_engine.config import EngineTuning
from practice_engine.errors import StateCorruption
from practice_engine.services.achievements import AchievementCatalog, AchievementUnlockRecord
from practice_engine.services.adaptive import AdaptiveSelector
from practice_engine.services.dispatcher import EventDispatcher
from practice_engine.services.reverse_mode import Direction, ReverseModeController, ReverseModeState
from practice_engine.services.session import PracticeSession
from practice_engine.services.stats import StatsAccumulator, StatsSnapshot
from practice_engine.services.weights import CharacterWeight, CharacterWeightTable

SNAPSHOT_VERSION = 1


def session_to_dict(session: PracticeSession) -> Dict[str, Any]:
    """
    Encode a session as a JSON-compatible dict.

    Callers that share the session between threads should hold it
    (``with session:``) while encoding.
    """
    dispatcher = session.dispatcher
    selector = dispatcher.selector
    reverse = dispatcher.reverse_mode.state
    stats = dispatcher.stats.stats
    rng_version, rng_internal, rng_gauss = session.rng.getstate()

    return {
        "version": SNAPSHOT_VERSION,
        "session_id": session.session_id,
        "pool": list(session.pool),
        "reverse_enabled": session.reverse_enabled,
        "sequence": dispatcher.sequence,
        "rng_state": [rng_version, list(rng_internal), rng_gauss],
        "last_selected": selector.last_selected,
        "weights": {
            item: {
                "weight": entry.weight,
                "last_seen_at": entry.last_seen_at,
                "exposure_count": entry.exposure_count,
                "correct_count": entry.correct_count,
                "wrong_count": entry.wrong_count,
            }
            for item, entry in selector.table.items()
        },
        "reverse_mode": {
            "current_direction": reverse.current_direction.value,
            "consecutive_correct_in_direction": reverse.consecutive_correct_in_direction,
            "consecutive_wrong_overall": reverse.consecutive_wrong_overall,
        },
        "stats": {
            "total_correct": stats.total_correct,
            "total_wrong": stats.total_wrong,
            "current_streak": stats.current_streak,
            "best_streak": stats.best_streak,
            "current_wrong_streak": stats.current_wrong_streak,
            "category_counts": dict(stats.category_counts),
            "character_history": list(stats.character_history),
            "fastest_answer_ms": stats.fastest_answer_ms,
            "total_answer_time_ms": stats.total_answer_time_ms,
            "timed_answer_count": stats.timed_answer_count,
        },
        "unlocked": [
            {"id": record.id, "unlocked_at_sequence": record.unlocked_at_sequence}
            for record in dispatcher.unlock_records
        ],
    }


def _check(condition: bool, message: str) -> None:
    if not condition:
        raise StateCorruption(message)


def _non_negative_int(value: Any, name: str) -> int:
    _check(isinstance(value, int) and not isinstance(value, bool) and value >= 0,
           f"{name} must be a non-negative integer, got {value!r}")
    return value


def _decode_weight(item: str, raw: Dict[str, Any], sequence: int) -> CharacterWeight:
    weight = raw["weight"]
    _check(isinstance(weight, (int, float)) and not isinstance(weight, bool)
           and math.isfinite(weight) and weight >= 0,
           f"weight for {item!r} must be a finite non-negative number")

    entry = CharacterWeight(
        weight=float(weight),
        last_seen_at=raw.get("last_seen_at"),
        exposure_count=_non_negative_int(raw["exposure_count"], f"{item}.exposure_count"),
        correct_count=_non_negative_int(raw["correct_count"], f"{item}.correct_count"),
        wrong_count=_non_negative_int(raw["wrong_count"], f"{item}.wrong_count"),
    )

    _check(entry.correct_count + entry.wrong_count <= entry.exposure_count,
           f"correct_count + wrong_count exceeds exposure_count for {item!r}")
    if entry.last_seen_at is not None:
        _non_negative_int(entry.last_seen_at, f"{item}.last_seen_at")
        _check(entry.last_seen_at <= sequence, f"last_seen_at for {item!r} is ahead of the sequence counter")
    return entry


def _decode_stats(raw: Dict[str, Any], history_limit: int) -> StatsSnapshot:
    stats = StatsSnapshot(
        total_correct=_non_negative_int(raw["total_correct"], "total_correct"),
        total_wrong=_non_negative_int(raw["total_wrong"], "total_wrong"),
        current_streak=_non_negative_int(raw["current_streak"], "current_streak"),
        best_streak=_non_negative_int(raw["best_streak"], "best_streak"),
        current_wrong_streak=_non_negative_int(raw.get("current_wrong_streak", 0), "current_wrong_streak"),
        category_counts={
            str(name): _non_negative_int(count, f"category_counts.{name}")
            for name, count in raw.get("category_counts", {}).items()
        },
        character_history=deque(str(item) for item in raw.get("character_history", [])),
        fastest_answer_ms=raw.get("fastest_answer_ms"),
        total_answer_time_ms=_non_negative_int(raw.get("total_answer_time_ms", 0), "total_answer_time_ms"),
        timed_answer_count=_non_negative_int(raw.get("timed_answer_count", 0), "timed_answer_count"),
    )

    _check(stats.current_streak <= stats.best_streak, "current_streak exceeds best_streak")
    _check(stats.best_streak <= stats.total_correct, "best_streak exceeds total_correct")
    _check(len(stats.character_history) <= history_limit, "character_history exceeds its size limit")
    _check(len(stats.character_history) <= stats.total_correct, "character_history longer than total_correct")
    _check(sum(stats.category_counts.values()) <= stats.total_correct, "category counts exceed total_correct")
    if stats.fastest_answer_ms is not None:
        _non_negative_int(stats.fastest_answer_ms, "fastest_answer_ms")
    return stats


def session_from_dict(
    data: Dict[str, Any],
    catalog: AchievementCatalog,
    tuning: EngineTuning = None,
    expected_id: str = None
) -> PracticeSession:
    """
    Rebuild a session from a snapshot dict.

    Args:
        data: Output of ``session_to_dict`` (possibly via JSON)
        catalog: Shared achievement catalog
        tuning: Engine tuning (defaults if omitted)
        expected_id: Id the snapshot was stored under, if known

    Returns:
        Restored PracticeSession

    Raises:
        StateCorruption: If the snapshot is malformed or violates an invariant
    """
    tuning = tuning or EngineTuning()

    try:
        _check(data.get("version") == SNAPSHOT_VERSION, f"unsupported snapshot version {data.get('version')!r}")

        session_id = data["session_id"]
        _check(isinstance(session_id, str) and bool(session_id), "session_id must be a non-empty string")
        _check(expected_id is None or session_id == expected_id,
               f"snapshot belongs to session {session_id!r}, not {expected_id!r}")
        sequence = _non_negative_int(data["sequence"], "sequence")
        pool = [str(item) for item in data["pool"]]
        _check(len(pool) > 0, "snapshot pool is empty")

        table = CharacterWeightTable(tuning.initial_weight)
        for item, raw_weight in data["weights"].items():
            table.put(item, _decode_weight(item, raw_weight, sequence))

        last_selected = data.get("last_selected")
        _check(last_selected is None or last_selected in table, "last_selected is not in the weight table")

        raw_reverse = data["reverse_mode"]
        try:
            direction = Direction(raw_reverse["current_direction"])
        except ValueError as e:
            raise StateCorruption(f"unknown direction {raw_reverse['current_direction']!r}") from e
        reverse_state = ReverseModeState(
            current_direction=direction,
            consecutive_correct_in_direction=_non_negative_int(
                raw_reverse["consecutive_correct_in_direction"], "consecutive_correct_in_direction"),
            consecutive_wrong_overall=_non_negative_int(
                raw_reverse["consecutive_wrong_overall"], "consecutive_wrong_overall"),
        )

        stats = _decode_stats(data["stats"], tuning.history_limit)

        records = []
        seen_ids = set()
        for raw_record in data.get("unlocked", []):
            record = AchievementUnlockRecord(
                id=str(raw_record["id"]),
                unlocked_at_sequence=_non_negative_int(raw_record["unlocked_at_sequence"], "unlocked_at_sequence"),
            )
            _check(record.id not in seen_ids, f"duplicate unlock record {record.id!r}")
            _check(record.unlocked_at_sequence <= sequence, f"unlock {record.id!r} is ahead of the sequence counter")
            seen_ids.add(record.id)
            records.append(record)

        rng = random.Random()
        rng_version, rng_internal, rng_gauss = data["rng_state"]
        rng.setstate((rng_version, tuple(rng_internal), rng_gauss))
    except StateCorruption:
        raise
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise StateCorruption(f"malformed snapshot: {e}") from e

    reverse_enabled = bool(data.get("reverse_enabled", True))
    selector = AdaptiveSelector(tuning, rng, table)
    selector.last_selected = last_selected

    dispatcher = EventDispatcher(
        selector=selector,
        reverse_mode=ReverseModeController(
            threshold=tuning.flip_threshold,
            flip_probability=tuning.flip_probability,
            rng=rng,
            state=reverse_state,
            enabled=reverse_enabled,
        ),
        stats=StatsAccumulator(tuning.history_limit, stats),
        catalog=catalog,
        unlock_records=records,
        sequence=sequence,
        session_id=session_id,
    )

    return PracticeSession(
        session_id=session_id,
        pool=pool,
        catalog=catalog,
        tuning=tuning,
        rng=rng,
        reverse_enabled=reverse_enabled,
        dispatcher=dispatcher,
    )
