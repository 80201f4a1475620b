"""
Logging helpers shared by the chain and the HTTP layer
"""

import time
import logging
from typing import Optional


class Timer:
    """Context manager measuring an operation; logs the duration on success."""

    def __init__(self, name: str, logger: Optional[logging.Logger] = None):
        self.name = name
        self.logger = logger or logging.getLogger(__name__)
        self.start_time = None
        self.duration = None

    def __enter__(self):
        self.start_time = time.time()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.duration = time.time() - self.start_time
        if exc_type is None:
            self.logger.info(f"{self.name} completed in {self.duration:.2f}s")

    @property
    def duration_ms(self) -> float:
        """Elapsed so far while running, final duration once exited"""
        if self.duration is None:
            return (time.time() - self.start_time) * 1000 if self.start_time else 0.0
        return self.duration * 1000


def truncate_for_log(text: Optional[str], limit: int = 200) -> str:
    """Shorten model output so log lines stay readable."""
    if not text:
        return ""
    if len(text) <= limit:
        return text
    return f"{text[:limit]}... ({len(text)} chars)"
