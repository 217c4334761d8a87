"""Per-session engine state and the registry of live sessions.

A PracticeSession bundles one learner's selector, reverse mode state, stats
and dispatcher behind a lock; at most one ``select`` or ``dispatch`` runs on a
session at a time. Sessions share nothing mutable: the only shared object is
the read-only achievement catalog.
"""
import logging
import random
import threading
import uuid
from collections import OrderedDict
from typing import Dict, List, Optional, Sequence
from practice_engine import constants
from practice_engine.config import EngineTuning
from practice_engine.errors import InvalidArgument, SessionNotFound
from practice_engine.services.achievements import AchievementCatalog
from practice_engine.services.adaptive import AdaptiveSelector
from practice_engine.services.dispatcher import DispatchResult, EventDispatcher
from practice_engine.services.reverse_mode import Direction, ReverseModeController
from practice_engine.services.stats import AnswerEvent, StatsAccumulator

logger = logging.getLogger(__name__)


class PracticeSession:
    """One learner's practice session."""

    def __init__(
        self,
        session_id: str,
        pool: Sequence[str],
        catalog: AchievementCatalog,
        tuning: EngineTuning = None,
        rng: random.Random = None,
        reverse_enabled: bool = True,
        dispatcher: EventDispatcher = None
    ):
        if not pool:
            raise InvalidArgument("Selection pool is empty")

        self.session_id = session_id
        self.pool = tuple(pool)
        self.tuning = tuning or EngineTuning()
        self.rng = rng or random.Random()
        self.reverse_enabled = reverse_enabled
        self._lock = threading.Lock()

        if dispatcher is None:
            dispatcher = EventDispatcher(
                selector=AdaptiveSelector(self.tuning, self.rng),
                reverse_mode=ReverseModeController(
                    threshold=self.tuning.flip_threshold,
                    flip_probability=self.tuning.flip_probability,
                    rng=self.rng,
                    enabled=reverse_enabled,
                ),
                stats=StatsAccumulator(self.tuning.history_limit),
                catalog=catalog,
                session_id=session_id,
            )
        self.dispatcher = dispatcher

    @classmethod
    def start(
        cls,
        pool: Sequence[str],
        catalog: AchievementCatalog,
        tuning: EngineTuning = None,
        seed: Optional[int] = None,
        reverse_enabled: bool = True,
        session_id: str = None
    ) -> "PracticeSession":
        """
        Create a fresh session.

        Args:
            pool: Item keys eligible for selection
            catalog: Shared achievement catalog
            tuning: Engine tuning (defaults if omitted)
            seed: Seed for deterministic replay
            reverse_enabled: Whether reverse mode may flip at all
            session_id: Explicit id (generated if omitted)

        Returns:
            New PracticeSession
        """
        session_id = session_id or f"ps_{uuid.uuid4()}"
        session = cls(
            session_id=session_id,
            pool=pool,
            catalog=catalog,
            tuning=tuning,
            rng=random.Random(seed),
            reverse_enabled=reverse_enabled,
        )
        logger.info(
            f"Started practice session with {len(session.pool)} items",
            extra={"session_id": session_id}
        )
        return session

    @property
    def selector(self) -> AdaptiveSelector:
        return self.dispatcher.selector

    @property
    def reverse_mode(self) -> ReverseModeController:
        return self.dispatcher.reverse_mode

    @property
    def stats(self) -> StatsAccumulator:
        return self.dispatcher.stats

    @property
    def catalog(self) -> AchievementCatalog:
        return self.dispatcher.catalog

    @property
    def direction(self) -> Direction:
        return self.reverse_mode.current_direction()

    def select(self, pool: Sequence[str] = None) -> str:
        """Choose the next item from ``pool`` (the session pool by default)."""
        with self._lock:
            return self.selector.select(pool if pool is not None else self.pool)

    def dispatch(self, event: AnswerEvent) -> DispatchResult:
        """Apply one answer event atomically."""
        with self._lock:
            return self.dispatcher.dispatch(event)

    def progress(self) -> Dict[str, float]:
        with self._lock:
            return self.dispatcher.progress()

    def unlocked_ids(self) -> List[str]:
        with self._lock:
            return [record.id for record in self.dispatcher.unlock_records]

    def reset(self) -> None:
        with self._lock:
            self.dispatcher.reset()
        logger.info("Practice session reset", extra={"session_id": self.session_id})

    def __enter__(self):
        self._lock.acquire()
        return self

    def __exit__(self, exc_type, exc, tb):
        self._lock.release()


class SessionRegistry:
    """Thread-safe LRU map of live sessions keyed by id.

    Holds at most ``max_sessions`` sessions; registering one more evicts the
    least recently used. Every mutation is followed by a snapshot save, so an
    evicted session is restored from the store on its next request.
    """

    def __init__(self, max_sessions: int = constants.MAX_LIVE_SESSIONS):
        if max_sessions < 1:
            raise InvalidArgument(f"max_sessions must be at least 1, got {max_sessions}")
        self.max_sessions = max_sessions
        self._sessions: "OrderedDict[str, PracticeSession]" = OrderedDict()
        self._lock = threading.Lock()

    def __contains__(self, session_id: str) -> bool:
        with self._lock:
            return session_id in self._sessions

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def add(self, session: PracticeSession) -> PracticeSession:
        """Register a session, keeping an already-live one with the same id."""
        evicted = []
        with self._lock:
            live = self._sessions.setdefault(session.session_id, session)
            self._sessions.move_to_end(session.session_id)
            while len(self._sessions) > self.max_sessions:
                evicted.append(self._sessions.popitem(last=False)[0])

        for session_id in evicted:
            logger.debug("Evicted idle practice session from memory", extra={"session_id": session_id})
        return live

    def get(self, session_id: str) -> PracticeSession:
        """
        Look up a live session.

        Raises:
            SessionNotFound: If no live session has this id
        """
        with self._lock:
            session = self._sessions.get(session_id)
            if session is not None:
                self._sessions.move_to_end(session_id)
        if session is None:
            raise SessionNotFound(f"Session {session_id} not found")
        return session

    def end(self, session_id: str) -> Optional[PracticeSession]:
        """Tear down a session. Returns the removed session, if any."""
        with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is not None:
            logger.info("Practice session ended", extra={"session_id": session_id})
        return session

    def clear(self) -> None:
        with self._lock:
            self._sessions.clear()
