"""Achievement catalog and selection pool provider.

The catalog is configuration data: a JSON document with an ``achievements``
list and a ``groups`` mapping of group name to item keys. It is validated once
at startup and shared read-only by every session.
"""
import json
import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple
from pydantic import BaseModel, Field, ValidationError, validator
from practice_engine.errors import InvalidArgument
from practice_engine.services.achievements import (
    AchievementCatalog,
    AchievementDefinition,
    Criterion,
    CriterionKind,
    Rarity,
)

logger = logging.getLogger(__name__)

# Built-in catalog used when no ACHIEVEMENT_CATALOG_PATH is configured
DEFAULT_CATALOG = {
    "groups": {
        "hiragana.a": ["あ", "い", "う", "え", "お"],
        "hiragana.ka": ["か", "き", "く", "け", "こ"],
        "hiragana.sa": ["さ", "し", "す", "せ", "そ"],
        "katakana.a": ["ア", "イ", "ウ", "エ", "オ"],
        "katakana.ka": ["カ", "キ", "ク", "ケ", "コ"],
        "vocabulary.basics": ["水", "火", "山", "川", "日", "月"],
    },
    "achievements": [
        {"id": "first_steps", "title": "First Steps", "category": "milestone", "rarity": "common",
         "points": 10, "description": "Answer your first question correctly",
         "criterion": {"kind": "counter_threshold", "counter": "total_correct", "target": 1}},
        {"id": "getting_started", "title": "Getting Started", "category": "milestone", "rarity": "common",
         "points": 20, "description": "Answer 10 questions correctly",
         "criterion": {"kind": "counter_threshold", "counter": "total_correct", "target": 10}},
        {"id": "century", "title": "Century", "category": "milestone", "rarity": "rare",
         "points": 50, "description": "Answer 100 questions correctly",
         "criterion": {"kind": "counter_threshold", "counter": "total_correct", "target": 100}},
        {"id": "thousand_strong", "title": "Thousand Strong", "category": "milestone", "rarity": "legendary",
         "points": 200, "description": "Answer 1000 questions correctly",
         "criterion": {"kind": "counter_threshold", "counter": "total_correct", "target": 1000}},
        {"id": "on_fire", "title": "On Fire", "category": "streak", "rarity": "uncommon",
         "points": 25, "description": "Reach a streak of 10",
         "criterion": {"kind": "streak_length", "target": 10}},
        {"id": "unstoppable", "title": "Unstoppable", "category": "streak", "rarity": "epic",
         "points": 100, "description": "Reach a streak of 50",
         "criterion": {"kind": "streak_length", "target": 50}},
        {"id": "explorer", "title": "Explorer", "category": "mastery", "rarity": "uncommon",
         "points": 30, "description": "Answer 10 different characters correctly",
         "criterion": {"kind": "distinct_items", "target": 10}},
        {"id": "kana_scholar", "title": "Kana Scholar", "category": "consistency", "rarity": "rare",
         "points": 60, "description": "Answer 50 kana questions correctly",
         "criterion": {"kind": "counter_threshold", "counter": "category:kana", "target": 50}},
        {"id": "wordsmith", "title": "Wordsmith", "category": "consistency", "rarity": "rare",
         "points": 60, "description": "Answer 50 vocabulary questions correctly",
         "criterion": {"kind": "counter_threshold", "counter": "category:vocabulary", "target": 50}},
        {"id": "lightning_reflexes", "title": "Lightning Reflexes", "category": "mastery", "rarity": "epic",
         "points": 75, "description": "Answer correctly in under a second",
         "criterion": {"kind": "answer_speed", "target": 1000}},
    ],
}


class CriterionModel(BaseModel):
    """Raw criterion entry."""
    kind: CriterionKind
    target: int = Field(..., gt=0)
    counter: Optional[str] = None


class AchievementModel(BaseModel):
    """Raw achievement entry."""
    id: str = Field(..., min_length=1, max_length=100)
    title: str = Field(..., min_length=1)
    description: str = ""
    category: str = Field(..., min_length=1)
    rarity: Rarity
    points: int = Field(..., ge=0)
    criterion: CriterionModel


class CatalogModel(BaseModel):
    """Raw catalog document."""
    achievements: List[AchievementModel] = []
    groups: Dict[str, List[str]] = {}

    @validator("groups")
    def validate_groups(cls, v):
        """Reject empty groups and blank item keys."""
        for name, items in v.items():
            if not items:
                raise ValueError(f"group {name!r} has no items")
            if any(not item.strip() for item in items):
                raise ValueError(f"group {name!r} contains a blank item key")
        return v


@dataclass(frozen=True)
class Catalog:
    """Validated achievements plus pool group membership."""
    achievements: AchievementCatalog
    groups: Dict[str, Tuple[str, ...]]

    def resolve_pool(self, groups: Iterable[str] = (), items: Iterable[str] = ()) -> Tuple[str, ...]:
        """
        Build a selection pool from group names and explicit item keys.

        Order follows the arguments; duplicates are dropped.

        Raises:
            InvalidArgument: On an unknown group or an empty result
        """
        pool: List[str] = []
        seen = set()

        for name in groups:
            if name not in self.groups:
                raise InvalidArgument(f"Unknown pool group: {name}")
            for item in self.groups[name]:
                if item not in seen:
                    seen.add(item)
                    pool.append(item)

        for item in items:
            if item not in seen:
                seen.add(item)
                pool.append(item)

        if not pool:
            raise InvalidArgument("Selection pool is empty")
        return tuple(pool)


def build_catalog(raw: dict) -> Catalog:
    """
    Validate a raw catalog document.

    Args:
        raw: Parsed JSON document

    Returns:
        Catalog

    Raises:
        InvalidArgument: If the document fails validation
    """
    try:
        model = CatalogModel(**raw)
    except ValidationError as e:
        raise InvalidArgument(f"Invalid achievement catalog: {e}") from e

    definitions = [
        AchievementDefinition(
            id=entry.id,
            title=entry.title,
            description=entry.description,
            category=entry.category,
            rarity=entry.rarity,
            points=entry.points,
            criterion=Criterion(
                kind=entry.criterion.kind,
                target=entry.criterion.target,
                counter=entry.criterion.counter,
            ),
        )
        for entry in model.achievements
    ]

    return Catalog(
        achievements=AchievementCatalog(definitions),
        groups={name: tuple(items) for name, items in model.groups.items()},
    )


def load_catalog(path: str = "") -> Catalog:
    """
    Load the catalog from a JSON file, or the built-in catalog if no path is given.

    Args:
        path: Path to a JSON catalog file

    Returns:
        Catalog
    """
    if not path:
        logger.info("Using built-in achievement catalog")
        return build_catalog(DEFAULT_CATALOG)

    with open(path, "r", encoding="utf-8") as f:
        raw = json.load(f)

    catalog = build_catalog(raw)
    logger.info(
        f"Loaded {len(catalog.achievements)} achievements and "
        f"{len(catalog.groups)} pool groups from {path}"
    )
    return catalog
