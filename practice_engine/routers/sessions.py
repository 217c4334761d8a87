"""Practice session endpoints.

Each request maps to at most one engine operation (``select`` or
``dispatch``) on one session; the session's lock serializes concurrent calls.
"""
import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, Request, HTTPException
from pydantic import BaseModel, Field, validator
from sqlalchemy.orm import Session
from practice_engine.constants import (
    ALL_CATEGORIES,
    ANSWER_SUBMISSION_RATE_LIMIT,
    SESSION_START_RATE_LIMIT,
)
from practice_engine.db.database import get_db
from practice_engine.db.store import SnapshotStore
from practice_engine.errors import InvalidArgument, SessionNotFound, StateCorruption
from practice_engine.rate_limit import limiter
from practice_engine.services.achievements import filter_by_category, summarize_achievements
from practice_engine.services.catalog import Catalog
from practice_engine.services.session import PracticeSession, SessionRegistry
from practice_engine.services.stats import AnswerEvent

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/sessions", tags=["sessions"])


class StartSessionRequest(BaseModel):
    """Request body for starting a practice session."""
    pool_groups: List[str] = Field(default_factory=list, description="Catalog group names to practice")
    items: List[str] = Field(default_factory=list, description="Extra item keys to practice")
    seed: Optional[int] = Field(None, description="Random seed for deterministic replay")
    reverse_enabled: bool = True

    @validator('items')
    def validate_items(cls, v):
        """Reject blank item keys."""
        cleaned = [item.strip() for item in v]
        if any(not item for item in cleaned):
            raise ValueError('items cannot contain blank keys')
        return cleaned


class AnswerSubmission(BaseModel):
    """Request body for answer submission."""
    item: str = Field(..., min_length=1, max_length=100, description="Item key that was answered")
    correct: bool
    answer_time_ms: int = Field(0, ge=0, description="Elapsed response time in milliseconds")
    category: str = Field("general", min_length=1, max_length=50, description="Practice domain")

    @validator('item')
    def validate_item(cls, v):
        """Validate that item is not empty or whitespace."""
        if not v or v.strip() == '':
            raise ValueError('item cannot be empty')
        return v.strip()


def get_registry(request: Request) -> SessionRegistry:
    return request.app.state.registry


def get_catalog(request: Request) -> Catalog:
    return request.app.state.catalog


def get_store(request: Request) -> SnapshotStore:
    return request.app.state.store


def load_session(
    session_id: str,
    registry: SessionRegistry,
    store: SnapshotStore,
    db: Session
) -> PracticeSession:
    """
    Find a live session, restoring it from its snapshot if needed.

    A snapshot that fails validation is deleted: the session cannot be
    repaired and the client must start a new one.
    """
    try:
        return registry.get(session_id)
    except SessionNotFound:
        pass

    try:
        session = store.load_snapshot(db, session_id)
    except StateCorruption as e:
        logger.error(f"Discarding corrupt snapshot: {e}", extra={"session_id": session_id})
        store.delete_snapshot(db, session_id)
        raise HTTPException(status_code=409, detail=f"Session state is corrupt: {e}")

    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")

    logger.info("Restored practice session from snapshot", extra={"session_id": session_id})
    return registry.add(session)


@router.post("")
@limiter.limit(SESSION_START_RATE_LIMIT)
async def start_session(
    start_request: StartSessionRequest,
    request: Request,
    db: Session = Depends(get_db)
):
    """
    Start a new practice session.

    Args:
        start_request: Pool groups and/or item keys, optional seed

    Returns:
    - session_id
    - pool (resolved item keys)
    - direction for the first question
    """
    catalog = get_catalog(request)
    registry = get_registry(request)
    store = get_store(request)

    try:
        pool = catalog.resolve_pool(start_request.pool_groups, start_request.items)
    except InvalidArgument as e:
        raise HTTPException(status_code=400, detail=str(e))

    session = PracticeSession.start(
        pool=pool,
        catalog=catalog.achievements,
        tuning=store.tuning,
        seed=start_request.seed,
        reverse_enabled=start_request.reverse_enabled,
    )
    registry.add(session)
    store.save_snapshot(db, session)

    return {
        "session_id": session.session_id,
        "pool": list(session.pool),
        "direction": session.direction.value,
        "reverse_enabled": session.reverse_enabled
    }


@router.get("/{session_id}/next")
async def next_item(
    session_id: str,
    request: Request,
    db: Session = Depends(get_db)
):
    """
    Select the next item to present.

    Returns:
    - item key
    - direction (forward or reverse)
    """
    store = get_store(request)
    session = load_session(session_id, get_registry(request), store, db)

    item = session.select()
    store.save_snapshot(db, session)

    return {
        "item": item,
        "direction": session.direction.value
    }


@router.post("/{session_id}/answer")
@limiter.limit(ANSWER_SUBMISSION_RATE_LIMIT)
async def submit_answer(
    session_id: str,
    answer: AnswerSubmission,
    request: Request,
    db: Session = Depends(get_db)
):
    """
    Submit the learner's answer for an item.

    Updates, in order:
    - item weight
    - reverse mode direction
    - session stats
    - achievement unlocks

    Returns:
    - direction for the next question
    - newly unlocked achievement ids and details
    - event sequence number
    """
    store = get_store(request)
    session = load_session(session_id, get_registry(request), store, db)

    event = AnswerEvent(
        item=answer.item,
        correct=answer.correct,
        answer_time_ms=answer.answer_time_ms,
        category=answer.category
    )

    try:
        result = session.dispatch(event)
    except InvalidArgument as e:
        raise HTTPException(status_code=400, detail=str(e))

    store.save_snapshot(db, session)

    unlocked_details = [
        session.catalog.get(achievement_id).to_dict()
        for achievement_id in result.newly_unlocked
    ]

    return {
        **result.to_dict(),
        "achievements": unlocked_details
    }


@router.get("/{session_id}/stats")
async def get_stats(
    session_id: str,
    request: Request,
    db: Session = Depends(get_db)
):
    """
    Get cumulative stats for a session.

    Returns:
    - counters, streaks, accuracy and answer times
    - per-item correct/wrong counts
    - current direction and sequence number
    """
    session = load_session(session_id, get_registry(request), get_store(request), db)

    with session:
        stats = session.stats.snapshot()
        item_scores = session.selector.item_scores()
        sequence = session.dispatcher.sequence
        direction = session.direction

    return {
        "session_id": session.session_id,
        "stats": stats.to_dict(),
        "item_scores": item_scores,
        "direction": direction.value,
        "sequence": sequence
    }


@router.get("/{session_id}/achievements")
async def get_achievements(
    session_id: str,
    request: Request,
    category: str = ALL_CATEGORIES,
    db: Session = Depends(get_db)
):
    """
    List achievements with progress, plus an overview summary.

    Args:
        category: Category filter ("all" for every category)

    Returns:
    - achievements (in evaluation order) with progress and unlock info
    - summary (unlocked count, total, points, level, completion percentage)
    """
    session = load_session(session_id, get_registry(request), get_store(request), db)
    achievements = session.catalog

    progress = session.progress()
    with session:
        unlocked_at = {
            record.id: record.unlocked_at_sequence
            for record in session.dispatcher.unlock_records
        }

    entries = []
    for definition in filter_by_category(achievements, category):
        entries.append({
            **definition.to_dict(),
            "progress": round(progress.get(definition.id, 0.0), 1),
            "unlocked": definition.id in unlocked_at,
            "unlocked_at_sequence": unlocked_at.get(definition.id)
        })

    summary = summarize_achievements(achievements, unlocked_at.keys())

    return {
        "category": category,
        "categories": [ALL_CATEGORIES] + achievements.categories,
        "achievements": entries,
        "summary": {
            "unlocked_count": summary.unlocked_count,
            "total_count": summary.total_count,
            "total_points": summary.total_points,
            "level": summary.level,
            "completion_percentage": summary.completion_percentage
        }
    }


@router.post("/{session_id}/reset")
async def reset_session(
    session_id: str,
    request: Request,
    db: Session = Depends(get_db)
):
    """
    Reset weights, direction and stats. Unlocked achievements are kept.
    """
    store = get_store(request)
    session = load_session(session_id, get_registry(request), store, db)

    session.reset()
    store.save_snapshot(db, session)

    return {"session_id": session.session_id, "direction": session.direction.value}


@router.delete("/{session_id}")
async def end_session(
    session_id: str,
    request: Request,
    db: Session = Depends(get_db)
):
    """
    End a session: tear down live state and delete the stored snapshot.
    """
    removed = get_registry(request).end(session_id)
    deleted = get_store(request).delete_snapshot(db, session_id)

    if removed is None and not deleted:
        raise HTTPException(status_code=404, detail="Session not found")

    return {"session_id": session_id, "ended": True}
