"""Shared utility functions."""
import re
from datetime import datetime, timedelta, timezone


def parse_since(value: str) -> datetime:
    """Parse a relative time string like '1h', '30m', '2d', '3M', '1y' or an
    ISO-8601 date/datetime into a UTC datetime.

    Supports:
      - Relative: 30s, 30m, 2h, 1d, 1w, 3M, 1y
      - Absolute: 2026-02-14, 2026-02-14T10:00:00, 2026-02-14T10:00:00Z

    Raises ValueError on invalid input.
    """
    stripped = value.strip()

    match = re.match(r"^(\d+)\s*([smhdwMy])$", stripped)
    if match:
        amount, unit = int(match.group(1)), match.group(2)
        deltas = {
            "s": timedelta(seconds=amount),
            "m": timedelta(minutes=amount),
            "h": timedelta(hours=amount),
            "d": timedelta(days=amount),
            "w": timedelta(weeks=amount),
            "M": timedelta(days=amount * 30),
            "y": timedelta(days=amount * 365),
        }
        return datetime.now(timezone.utc) - deltas[unit]

    for fmt in ("%Y-%m-%dT%H:%M:%S%z", "%Y-%m-%dT%H:%M:%SZ", "%Y-%m-%dT%H:%M:%S", "%Y-%m-%d"):
        try:
            dt = datetime.strptime(stripped, fmt)
            if dt.tzinfo is None:
                dt = dt.replace(tzinfo=timezone.utc)
            return dt
        except ValueError:
            continue

    raise ValueError(
        f"Invalid since value '{value}'. "
        "Use relative (30m, 2h, 1d) or ISO date (2026-02-14, 2026-02-14T10:00:00Z)"
    )


def format_duration(ms: float) -> str:
    """Return a compact duration like '850ms', '2.4s' or '3m12s'."""
    if ms < 1000:
        return f"{ms:.0f}ms"
    seconds = ms / 1000
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes, secs = divmod(int(seconds), 60)
    return f"{minutes}m{secs:02d}s"
