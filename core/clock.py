from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable

# Anything that returns an aware "now". Services take one so tests can pin time.
Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
