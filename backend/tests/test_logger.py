import json
import logging
import sys
from datetime import datetime, timezone

from utils.logger import JSONFormatter


def make_record(**extra):
    record = logging.LogRecord("refresh.beat_savior", logging.WARNING, __file__, 1, "Refresh failed", None, None)
    record.__dict__.update(extra)
    return record


def test_extra_fields_become_top_level_keys():
    line = JSONFormatter().format(make_record(player_id="P", count=3))
    data = json.loads(line)

    assert data["message"] == "Refresh failed"
    assert data["level"] == "WARNING"
    assert data["logger"] == "refresh.beat_savior"
    assert data["player_id"] == "P"
    assert data["count"] == 3
    assert "lineno" not in data


def test_unserialisable_values_are_stringified():
    when = datetime(2024, 5, 1, tzinfo=timezone.utc)
    data = json.loads(JSONFormatter().format(make_record(next_refresh=when)))

    assert data["next_refresh"] == str(when)


def test_exceptions_are_included():
    try:
        raise RuntimeError("boom")
    except RuntimeError:
        record = logging.LogRecord("x", logging.ERROR, __file__, 1, "failed", None, sys.exc_info())

    data = json.loads(JSONFormatter().format(record))

    assert "RuntimeError: boom" in data["exception"]
