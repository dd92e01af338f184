"""Retry wait computation.

Delay formula: min(base_ms * 2 ^ attempt, cap_ms), unless the server sent a
usable Retry-After header.
"""

import time
from email.utils import parsedate_to_datetime
from typing import Optional

DEFAULT_BASE_MS = 1000
DEFAULT_CAP_MS = 30000


def compute_delay(attempt: int, base_ms: int = DEFAULT_BASE_MS,
                  cap_ms: int = DEFAULT_CAP_MS) -> int:
    """Exponential backoff for a 0-based attempt index, in milliseconds.

    Invalid or negative attempts are treated as attempt 0.
    """
    try:
        attempt = max(0, int(attempt))
    except (TypeError, ValueError):
        attempt = 0
    # 2 ** 64 already exceeds any sane cap
    attempt = min(attempt, 64)
    return int(min(base_ms * (2 ** attempt), cap_ms))


def parse_retry_after_header(value: Optional[str]) -> Optional[int]:
    """Convert a Retry-After header to milliseconds.

    Accepts delta-seconds ("120") or an HTTP-date. Returns None when the
    value cannot be read; dates in the past give 0.
    """
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None

    if value.isdigit():
        return int(value) * 1000

    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        return None
    if when is None:
        return None

    delay_ms = int((when.timestamp() - time.time()) * 1000)
    return max(0, delay_ms)
