"""Time helpers."""

from __future__ import annotations

import time
from datetime import datetime, timedelta, timezone


def now_ms() -> int:
    """Return current timestamp in milliseconds."""
    return int(time.time() * 1000)


def expires_at(delta: timedelta) -> datetime:
    """Timezone-aware UTC instant ``delta`` from now, for token expiry claims."""
    return datetime.now(tz=timezone.utc) + delta
