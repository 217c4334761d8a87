"""Pytest fixtures for testing."""
import copy
import random
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from practice_engine.config import EngineTuning
from practice_engine.db.database import Base, get_db
from practice_engine.db.store import SnapshotStore
from practice_engine.main import app
from practice_engine.rate_limit import limiter
from practice_engine.services.catalog import build_catalog
from practice_engine.services.session import SessionRegistry

TEST_CATALOG = {
    "groups": {
        "vowels": ["a", "i", "u", "e", "o"],
        "k-row": ["ka", "ki", "ku", "ke", "ko"],
    },
    "achievements": [
        {"id": "first_correct", "title": "First Correct", "category": "milestone", "rarity": "common",
         "points": 10, "criterion": {"kind": "counter_threshold", "counter": "total_correct", "target": 1}},
        {"id": "ten_correct", "title": "Ten Correct", "category": "milestone", "rarity": "uncommon",
         "points": 20, "criterion": {"kind": "counter_threshold", "counter": "total_correct", "target": 10}},
        {"id": "streak_5", "title": "Streak of Five", "category": "streak", "rarity": "uncommon",
         "points": 25, "criterion": {"kind": "streak_length", "target": 5}},
        {"id": "three_distinct", "title": "Three Distinct", "category": "mastery", "rarity": "common",
         "points": 15, "criterion": {"kind": "distinct_items", "target": 3}},
        {"id": "kana_20", "title": "Kana Twenty", "category": "consistency", "rarity": "rare",
         "points": 40, "criterion": {"kind": "counter_threshold", "counter": "category:kana", "target": 20}},
        {"id": "quick", "title": "Quick", "category": "mastery", "rarity": "epic",
         "points": 80, "criterion": {"kind": "answer_speed", "target": 500}},
    ],
}


@pytest.fixture
def rng():
    """Deterministically seeded random source."""
    return random.Random(1234)


@pytest.fixture
def tuning():
    """Default engine tuning."""
    return EngineTuning()


@pytest.fixture
def raw_catalog():
    """Raw catalog document."""
    return copy.deepcopy(TEST_CATALOG)


@pytest.fixture
def catalog(raw_catalog):
    """Small validated catalog with pool groups."""
    return build_catalog(raw_catalog)


@pytest.fixture
def achievements(catalog):
    """Achievement catalog only."""
    return catalog.achievements


@pytest.fixture(scope="function")
def test_db():
    """Create an in-memory test database for each test."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(engine)

    SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    db = SessionLocal()

    yield db

    db.close()
    Base.metadata.drop_all(engine)


@pytest.fixture
def store(achievements, tuning):
    """Snapshot store bound to the test catalog."""
    return SnapshotStore(achievements, tuning)


@pytest.fixture(scope="function")
def test_client(catalog, tuning):
    """Create a test client with an in-memory database and fresh session registry."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(engine)
    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db

    previous_state = (app.state.catalog, app.state.registry, app.state.store)
    app.state.catalog = catalog
    app.state.registry = SessionRegistry()
    app.state.store = SnapshotStore(catalog.achievements, tuning)
    previous_enabled = limiter.enabled
    limiter.enabled = False

    client = TestClient(app)
    client.session_factory = TestingSessionLocal

    yield client

    # Cleanup
    limiter.enabled = previous_enabled
    app.state.catalog, app.state.registry, app.state.store = previous_state
    app.dependency_overrides.clear()
    Base.metadata.drop_all(engine)
