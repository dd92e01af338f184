"""Tests for retry wait computation."""

from datetime import datetime, timedelta, timezone
from email.utils import format_datetime

from issue_bridge.constants import MAX_RETRIES
from issue_bridge.services.jira.backoff import compute_delay, parse_retry_after_header


def test_delay_doubles_per_attempt() -> None:
    assert compute_delay(0) == 1000
    assert compute_delay(1) == 2000
    assert compute_delay(2) == 4000


def test_delay_is_monotonic_up_to_max_retries() -> None:
    delays = [compute_delay(i) for i in range(MAX_RETRIES)]
    assert delays == sorted(delays)
    assert all(d > 0 for d in delays)


def test_delay_is_capped() -> None:
    assert compute_delay(10) == 30000
    assert compute_delay(1000) == 30000
    assert compute_delay(3, base_ms=100, cap_ms=500) == 500


def test_invalid_attempt_is_treated_as_zero() -> None:
    assert compute_delay(-3) == compute_delay(0)
    assert compute_delay("nope") == compute_delay(0)  # type: ignore[arg-type]


def test_retry_after_seconds() -> None:
    assert parse_retry_after_header("120") == 120000
    assert parse_retry_after_header(" 0 ") == 0


def test_retry_after_unreadable() -> None:
    assert parse_retry_after_header(None) is None
    assert parse_retry_after_header("") is None
    assert parse_retry_after_header("not-a-date") is None


def test_retry_after_http_date() -> None:
    when = datetime.now(timezone.utc) + timedelta(seconds=60)
    delay = parse_retry_after_header(format_datetime(when, usegmt=True))

    assert delay is not None
    assert 55000 <= delay <= 60000


def test_retry_after_date_in_past_is_zero() -> None:
    when = datetime.now(timezone.utc) - timedelta(hours=1)
    assert parse_retry_after_header(format_datetime(when, usegmt=True)) == 0
