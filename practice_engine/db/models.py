"""SQLAlchemy models for the practice engine's persistence collaborator."""
from datetime import datetime
from sqlalchemy import Column, Integer, Text, DateTime, Index
from practice_engine.db.database import Base


class SessionSnapshot(Base):
    """Serialized engine state for one practice session.

    ``state`` holds the JSON document produced by the snapshot codec; the
    database treats it as an opaque blob.
    """
    __tablename__ = "session_snapshots"

    id = Column(Text, primary_key=True)  # practice session id
    state = Column(Text, nullable=False)
    sequence = Column(Integer, nullable=False, default=0)  # last dispatched event
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index('idx_snapshot_updated', 'updated_at'),
    )
