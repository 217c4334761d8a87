"""Database initialization."""
import logging
from sqlalchemy import inspect
from practice_engine.db.database import engine, Base
from practice_engine.db import models  # noqa: F401  registers tables on Base

logger = logging.getLogger(__name__)


def init_db() -> None:
    """
    Initialize database: create tables from the SQLAlchemy models.

    Safe to call multiple times - table creation is idempotent.
    """
    logger.info("Initializing database...")

    existing_tables = inspect(engine).get_table_names()
    if not existing_tables:
        logger.info("No existing tables found. Schema will be created from scratch.")

    Base.metadata.create_all(bind=engine)
    logger.info("Tables created/verified successfully.")


if __name__ == "__main__":
    # Set up basic logging for standalone execution
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    init_db()
    print("Database initialization complete.")
