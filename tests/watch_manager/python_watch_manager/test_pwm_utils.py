"""
Tests for the PythonWatchManager utilities
"""
# Standard
from datetime import datetime, timedelta

# Third Party
import pytest

# Local
from minecraft_operator.test_helpers.helpers import TEST_KEY
from minecraft_operator.watch_manager.python_watch_manager.utils import (
    ReconcileRequestType,
    ScheduledRequeue,
    backoff_delay,
    parse_time_delta,
)


@pytest.mark.parametrize(
    ["time_str", "expected"],
    [
        ("5s", timedelta(seconds=5)),
        ("0.5s", timedelta(seconds=0.5)),
        ("10m", timedelta(minutes=10)),
        ("1hr", timedelta(hours=1)),
        ("1hr5m10s", timedelta(hours=1, minutes=5, seconds=10)),
        ("", None),
        ("soon", None),
    ],
)
def test_parse_time_delta(time_str, expected):
    assert parse_time_delta(time_str) == expected


@pytest.mark.parametrize(
    ["failures", "expected_seconds"],
    [(0, 1), (1, 1), (2, 2), (3, 4), (6, 32), (10, 300), (1000, 300)],
)
def test_backoff_delay(failures, expected_seconds):
    assert backoff_delay(failures, 1, 300) == timedelta(seconds=expected_seconds)


def test_scheduled_requeues_order_by_time():
    now = datetime.now()
    later = ScheduledRequeue(
        now + timedelta(seconds=1), TEST_KEY, ReconcileRequestType.REQUEUED
    )
    sooner = ScheduledRequeue(now, TEST_KEY, ReconcileRequestType.BACKOFF)
    assert sorted([later, sooner]) == [sooner, later]


def test_scheduled_requeue_to_request():
    request = ScheduledRequeue(
        datetime.now(), TEST_KEY, ReconcileRequestType.BACKOFF
    ).to_request()
    assert request.key == TEST_KEY
    assert request.type == ReconcileRequestType.BACKOFF
