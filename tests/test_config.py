"""Tests for settings and engine tuning."""
import json
import logging
from practice_engine import constants
from practice_engine.config import EngineTuning, Settings
from practice_engine import logging_config
from practice_engine.logging_config import ColoredFormatter, JSONFormatter, setup_logging


class TestEngineTuning:
    """Tests for tuning defaults and environment overrides."""

    def test_defaults_match_constants(self):
        """Default tuning uses the documented constants."""
        tuning = Settings().engine_tuning

        assert tuning == EngineTuning()
        assert tuning.correct_multiplier == constants.CORRECT_WEIGHT_MULTIPLIER
        assert tuning.recency_penalty == 0.15
        assert tuning.flip_threshold == 3
        assert tuning.history_limit == 100

    def test_environment_overrides(self, monkeypatch):
        """Tuning values can be overridden through the environment."""
        monkeypatch.setenv("RECENCY_PENALTY", "0.3")
        monkeypatch.setenv("REVERSE_FLIP_THRESHOLD", "5")
        monkeypatch.setenv("CHARACTER_HISTORY_LIMIT", "50")

        tuning = Settings().engine_tuning

        assert tuning.recency_penalty == 0.3
        assert tuning.flip_threshold == 5
        assert tuning.history_limit == 50
        assert tuning.wrong_multiplier == constants.WRONG_WEIGHT_MULTIPLIER

    def test_environment_flags(self, monkeypatch):
        """is_production and is_development follow ENVIRONMENT."""
        settings = Settings()
        monkeypatch.setattr(settings, "ENVIRONMENT", "Production")

        assert settings.is_production is True
        assert settings.is_development is False


class TestJSONFormatter:
    """Tests for structured log output."""

    def test_context_fields_included(self):
        """Session context passed via ``extra`` lands in the JSON record."""
        record = logging.LogRecord("practice_engine.test", logging.INFO, __file__, 1,
                                   "Achievement unlocked", None, None)
        record.session_id = "ps_1"
        record.achievement_id = "first_correct"
        record.sequence = 4

        data = json.loads(JSONFormatter().format(record))

        assert data["message"] == "Achievement unlocked"
        assert data["session_id"] == "ps_1"
        assert data["achievement_id"] == "first_correct"
        assert data["sequence"] == 4
        assert "item" not in data

    def test_non_ascii_item_kept_readable(self):
        """Item keys outside ASCII are written as-is."""
        record = logging.LogRecord("practice_engine.test", logging.INFO, __file__, 1,
                                   "Item selected", None, None)
        record.item = "αβ"

        assert '"item": "αβ"' in JSONFormatter().format(record)


class TestColoredFormatter:
    """Tests for development log output."""

    def test_context_suffix_and_record_untouched(self):
        """Context is appended to the line and the record keeps its plain level name."""
        record = logging.LogRecord("practice_engine.test", logging.WARNING, __file__, 1,
                                   "Session restored", None, None)
        record.session_id = "ps_1"
        record.sequence = 3

        line = ColoredFormatter(fmt="%(levelname)s %(message)s").format(record)

        assert line.endswith("Session restored [session_id=ps_1 sequence=3]")
        assert "\033[33mWARNING\033[0m" in line
        assert record.levelname == "WARNING"


class TestSetupLogging:
    """Tests for root logger configuration."""

    def test_repeated_setup_keeps_one_handler(self):
        """Configuring twice replaces the engine handler rather than adding another."""
        root = logging.getLogger()
        previous_level = root.level
        try:
            setup_logging("INFO")
            first = logging_config._installed_handler
            setup_logging("WARNING")
            second = logging_config._installed_handler

            assert first not in root.handlers
            assert root.handlers.count(second) == 1
            assert root.level == logging.WARNING
        finally:
            root.removeHandler(logging_config._installed_handler)
            logging_config._installed_handler = None
            root.setLevel(previous_level)
