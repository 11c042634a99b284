"""Time helpers."""

from __future__ import annotations

import time


def now_s() -> int:
    """Return current unix timestamp in seconds."""
    return int(time.time())
