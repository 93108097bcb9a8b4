"""Tests for the injectable clock."""

from datetime import datetime, timedelta, timezone

from payment_kernel.domain.clock import DeterministicClock, SystemClock


def test_system_clock_is_aware():
    assert SystemClock().now().tzinfo is not None


def test_deterministic_clock_is_stable():
    clock = DeterministicClock()
    assert clock.now() == clock.now()
    assert clock.now() == datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


def test_advance_and_set_time():
    clock = DeterministicClock()
    start = clock.now()
    assert clock.advance(90) == start + timedelta(seconds=90)

    target = datetime(2025, 6, 1, tzinfo=timezone.utc)
    clock.set_time(target)
    assert clock.now() == target
