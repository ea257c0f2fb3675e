"""
Tests for log formatting.
"""
import json
import logging

from app.logging_setup import JsonFormatter, PlainFormatter


def make_record(**extra):
    record = logging.makeLogRecord(
        {"name": "app.downloads", "levelname": "ERROR", "levelno": logging.ERROR,
         "msg": "Download %s failed: %s", "args": ("job-1", "boom")}
    )
    record.__dict__.update(extra)
    return record


class TestPlainFormatter:

    def test_context_fields_appended(self):
        line = PlainFormatter().format(make_record(job_id="job-1", user_id="user-123"))
        assert "Download job-1 failed: boom" in line
        assert line.endswith("job_id=job-1 user_id=user-123")

    def test_no_context_no_suffix(self):
        line = PlainFormatter().format(make_record())
        assert line.endswith("Download job-1 failed: boom")

    def test_unrelated_extras_ignored(self):
        line = PlainFormatter().format(make_record(user_id="u", secret="s"))
        assert "secret" not in line
        assert line.endswith("user_id=u")


class TestJsonFormatter:

    def test_context_fields_promoted(self):
        payload = json.loads(JsonFormatter().format(make_record(generation_id="g-1", user_id="u")))
        assert payload["message"] == "Download job-1 failed: boom"
        assert payload["generation_id"] == "g-1"
        assert payload["user_id"] == "u"
        assert payload["level"] == "ERROR"
