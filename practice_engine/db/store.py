"""Snapshot persistence backed by SQLAlchemy."""
import json
import logging
from datetime import datetime
from typing import Optional
from sqlalchemy.orm import Session
from practice_engine.config import EngineTuning
from practice_engine.db.models import SessionSnapshot
from practice_engine.errors import StateCorruption
from practice_engine.services.achievements import AchievementCatalog
from practice_engine.services.session import PracticeSession
from practice_engine.services.snapshot import session_from_dict, session_to_dict

logger = logging.getLogger(__name__)


class SnapshotStore:
    """Loads and saves practice sessions as JSON blobs.

    Retries, if any, belong here rather than in the engine; the store lets
    database errors propagate to the caller.
    """

    def __init__(self, catalog: AchievementCatalog, tuning: EngineTuning = None):
        self.catalog = catalog
        self.tuning = tuning

    def load_snapshot(self, db: Session, session_id: str) -> Optional[PracticeSession]:
        """
        Load a stored session.

        Args:
            db: Database session
            session_id: Practice session id

        Returns:
            Restored PracticeSession, or None if nothing is stored

        Raises:
            StateCorruption: If the stored state fails validation
        """
        row = db.query(SessionSnapshot).filter(SessionSnapshot.id == session_id).first()
        if row is None:
            return None
        try:
            state = json.loads(row.state)
        except ValueError as e:
            raise StateCorruption(f"malformed snapshot: {e}") from e
        return session_from_dict(state, self.catalog, self.tuning, expected_id=session_id)

    def save_snapshot(self, db: Session, session: PracticeSession) -> None:
        """
        Persist a session, replacing any previous snapshot.

        Args:
            db: Database session
            session: Practice session to save
        """
        with session:
            state = session_to_dict(session)

        payload = json.dumps(state, ensure_ascii=False)
        row = db.query(SessionSnapshot).filter(SessionSnapshot.id == session.session_id).first()

        if row is None:
            row = SessionSnapshot(id=session.session_id, state=payload, sequence=state["sequence"])
            db.add(row)
        else:
            row.state = payload
            row.sequence = state["sequence"]
            row.updated_at = datetime.utcnow()

        db.commit()
        logger.debug(
            f"Saved snapshot at sequence {state['sequence']}",
            extra={"session_id": session.session_id, "sequence": state["sequence"]}
        )

    def delete_snapshot(self, db: Session, session_id: str) -> bool:
        """Delete a stored snapshot. Returns True if one existed."""
        deleted = db.query(SessionSnapshot).filter(SessionSnapshot.id == session_id).delete()
        db.commit()
        return deleted > 0
