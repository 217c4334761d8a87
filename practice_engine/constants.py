"""Application-wide constants and configuration values.

This module centralizes the tuning values used by the practice engine, making
them easier to maintain and adjust. Every value here can be overridden at
runtime through ``settings.engine_tuning`` (see ``practice_engine.config``).
"""

# Adaptive Selection Configuration
INITIAL_WEIGHT = 1.0
"""Weight given to an item the first time it enters a selection pool."""

CORRECT_WEIGHT_MULTIPLIER = 0.6
"""Factor applied to an item's weight after a correct answer."""

WRONG_WEIGHT_MULTIPLIER = 1.8
"""Factor applied to an item's weight after a wrong answer."""

MIN_WEIGHT = 0.05
"""Floor for item weights so well-known items are never starved."""

MAX_WEIGHT = 10.0
"""Ceiling for item weights so one troublesome item cannot dominate."""

RECENCY_PENALTY = 0.15
"""Multiplier applied to the immediately previous selection (down-weights repeats)."""

# Reverse Mode Configuration
REVERSE_FLIP_THRESHOLD = 3
"""Consecutive correct answers in one direction required before a flip is considered."""

REVERSE_FLIP_PROBABILITY = 0.5
"""Chance that a flip happens once the threshold is reached."""

# Stats Configuration
CHARACTER_HISTORY_LIMIT = 100
"""Maximum number of correctly answered items kept in the character history log."""

# Session Registry Configuration
MAX_LIVE_SESSIONS = 1000
"""Maximum number of practice sessions kept in memory; the least recently used is evicted beyond this."""

# Achievement Configuration
RARITY_ORDER = ("common", "uncommon", "rare", "epic", "legendary")
"""Achievement rarities from least to most rare. Used for evaluation ordering."""

POINTS_PER_LEVEL = 100
"""Achievement points required to advance one achievement level."""

ALL_CATEGORIES = "all"
"""Category filter value that matches every achievement."""

# Rate Limiting
SESSION_START_RATE_LIMIT = "10/minute"
"""Maximum number of session starts allowed per minute per client."""

ANSWER_SUBMISSION_RATE_LIMIT = "120/minute"
"""Maximum number of answer submissions allowed per minute per client."""

DEFAULT_RATE_LIMIT = "300/minute"
"""Default limit applied to every other endpoint."""

# Logging
DEFAULT_LOG_LEVEL = "INFO"
"""Default logging level for the application."""
