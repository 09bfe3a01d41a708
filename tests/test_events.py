"""Tests for StageEvent rendering."""

import logging
from datetime import datetime

from tourpipe.core.events import StageEvent


def test_info_line():
    evt = StageEvent(stage="spatial", message="Stage spatial started",
                     timestamp=datetime(2026, 1, 1, 9, 5, 7))
    assert evt.render() == "[09:05:07] Stage spatial started"
    assert evt.level == logging.INFO


def test_error_line():
    evt = StageEvent(stage="spatial", message="CUDA out of memory", severity="error",
                     timestamp=datetime(2026, 1, 1, 14, 0, 0))
    assert evt.render() == "[14:00:00] ERROR: CUDA out of memory"
    assert evt.level == logging.ERROR


def test_warning_line():
    evt = StageEvent(stage="reasoning", message="approximate", severity="warning",
                     timestamp=datetime(2026, 1, 1, 0, 0, 1))
    assert evt.render() == "[00:00:01] WARNING: approximate"
    assert evt.level == logging.WARNING


def test_default_timestamp_is_now():
    evt = StageEvent(stage="render", message="x")
    assert abs((datetime.now() - evt.timestamp).total_seconds()) < 5
