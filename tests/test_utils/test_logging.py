"""Tests for structlog configuration helpers."""

import json

import pytest
import structlog
from structlog.testing import capture_logs

from app.utils.logging import configure_logging, get_logger


@pytest.fixture(autouse=True)
def reset_structlog():
    yield
    structlog.reset_defaults()


class TestGetLogger:
    def test_binds_module_name(self):
        log = get_logger("app.services.example")

        with capture_logs() as logs:
            log.info("job_enqueued", job_id="job-1")

        assert len(logs) == 1
        assert logs[0]["event"] == "job_enqueued"
        assert logs[0]["job_id"] == "job-1"
        assert logs[0]["logger_name"] == "app.services.example"

    def test_bind_adds_context(self):
        log = get_logger("app.queue").bind(job_id="job-2")

        with capture_logs() as logs:
            log.warning("job_execution_crashed")

        assert logs[0]["job_id"] == "job-2"
        assert logs[0]["log_level"] == "warning"


class TestConfigureLogging:
    def test_json_output(self, capsys):
        configure_logging(level="INFO", json_output=True)
        log = get_logger("app.main")

        log.info("service_started", service="reel-digest")

        entry = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
        assert entry["event"] == "service_started"
        assert entry["service"] == "reel-digest"
        assert entry["logger_name"] == "app.main"
        assert entry["level"] == "info"
        assert "timestamp" in entry

    def test_level_filters_lower_events(self, capsys):
        configure_logging(level="WARNING", json_output=True)
        log = get_logger("app.main")

        log.info("hidden_event")
        log.warning("visible_event")

        out = capsys.readouterr().out
        assert "hidden_event" not in out
        assert "visible_event" in out

    def test_unknown_level_defaults_to_info(self, capsys):
        configure_logging(level="chatty", json_output=True)

        get_logger("app.main").info("shown_event")
        get_logger("app.main").debug("debug_event")

        out = capsys.readouterr().out
        assert "shown_event" in out
        assert "debug_event" not in out
