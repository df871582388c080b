"""System clock adapter for the core Clock protocol."""

from datetime import datetime, timezone


class SystemClock:
    """Wall-clock UTC time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)
