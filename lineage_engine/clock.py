"""Wall-clock helpers. All engine timestamps are epoch milliseconds."""

import time

MS_PER_DAY = 24 * 60 * 60 * 1000


def now_ms() -> int:
    """Current time in epoch milliseconds."""
    return int(time.time() * 1000)
