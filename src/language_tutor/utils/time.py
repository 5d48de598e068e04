import time
from datetime import datetime, timezone


def get_current_timestamp() -> int:
    """Milliseconds since the epoch."""
    return time.time_ns() // 1_000_000


def format_timestamp(timestamp: int, fmt: str = "%Y%m%d%H%M%S") -> str:
    return datetime.fromtimestamp(timestamp / 1000, tz=timezone.utc).strftime(fmt)
