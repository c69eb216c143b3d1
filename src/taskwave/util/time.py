from __future__ import annotations

import time
from datetime import datetime


def now_iso() -> str:
    """Return timezone-aware current local time in ISO format."""
    return datetime.now().astimezone().isoformat(timespec="seconds")


def monotonic() -> float:
    return time.monotonic()


def elapsed_ms(start: float, end: float | None = None) -> float:
    """Milliseconds between two monotonic readings, rounded to 0.1ms."""
    stop = time.monotonic() if end is None else end
    return round((stop - start) * 1000.0, 1)
