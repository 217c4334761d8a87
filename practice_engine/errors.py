"""Error types raised by the practice engine."""


class EngineError(Exception):
    """Base class for all practice engine errors."""


class InvalidArgument(EngineError, ValueError):
    """Caller supplied an unusable value (empty pool, unknown item, malformed event)."""


class StateCorruption(EngineError):
    """A loaded snapshot violates an engine invariant.

    Fatal to the session: the state is never repaired, the caller must discard
    it and start a fresh session.
    """


class SessionNotFound(EngineError, KeyError):
    """No live or stored session exists for the given id."""

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the plain message
        return str(self.args[0]) if self.args else "Session not found"
