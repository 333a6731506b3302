import time
from datetime import datetime, timezone


def now_ms() -> int:
    """Epoch milliseconds, the timestamp unit stored on records"""
    return int(time.time() * 1000)


def now_iso() -> str:
    # e.g. 2025-03-01T08:15:30.123Z
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def today() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d")
