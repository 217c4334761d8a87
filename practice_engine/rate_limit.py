"""Shared slowapi limiter.

Lives in its own module so routers can decorate endpoints without importing
the application.
"""
import os
from slowapi import Limiter
from slowapi.util import get_remote_address
from practice_engine.constants import DEFAULT_RATE_LIMIT

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[DEFAULT_RATE_LIMIT],
    enabled=os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true",
)
