# kaizbot/infra/uptime.py
from __future__ import annotations

import time


def format_uptime(seconds: float) -> str:
    """3725.4 -> '1h 2m 5s'"""
    total = int(seconds)
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)
    return f"{hours}h {minutes}m {secs}s"


class UptimeTracker:
    """Process uptime, measured on the monotonic clock."""

    def __init__(self):
        self._started = time.monotonic()

    @property
    def seconds(self) -> float:
        return time.monotonic() - self._started

    def formatted(self) -> str:
        return format_uptime(self.seconds)
