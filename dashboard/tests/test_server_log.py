import json
import logging
from datetime import datetime, timezone

import pytest

from mccdash.monitoring.server_log import (
    MAX_MEMORY_LOGS,
    LogSession,
    DailyJsonFileHandler,
    attach_memory_handler,
    configure_file_logging,
    get_logs_by_context,
    get_recent_logs,
    memory_handler,
)


@pytest.fixture
def log():
    logger = logging.getLogger("mccdash.test-server-log")
    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    attach_memory_handler(logger)
    memory_handler.clear()
    yield logger
    logger.removeHandler(memory_handler)
    memory_handler.clear()


def test_ring_buffer_keeps_newest_entries(log):
    for i in range(MAX_MEMORY_LOGS + 20):
        log.info("message %s", i)
    entries = get_recent_logs(limit=500)
    assert len(entries) == MAX_MEMORY_LOGS
    assert entries[0]["message"] == f"message {MAX_MEMORY_LOGS + 19}"
    assert entries[-1]["message"] == "message 20"


def test_context_and_level_filters(log):
    log.info("fetched", extra={"context": "google-ads", "data": {"count": 3}})
    log.warning("slow", extra={"context": "google-ads"})
    log.error("boom", extra={"context": "hierarchy-api"})

    ads = get_logs_by_context("google-ads")
    assert [e["message"] for e in ads] == ["slow", "fetched"]
    assert ads[1]["data"] == {"count": 3}
    assert [e["message"] for e in get_logs_by_context("google-ads", level="warn")] == ["slow"]
    assert [e["message"] for e in get_recent_logs(level="error")] == ["boom"]


def test_context_defaults_to_logger_name(log):
    log.info("plain")
    assert get_recent_logs(1)[0]["context"] == "mccdash.test-server-log"


def test_log_session_groups_records(log):
    session = LogSession("accounts", logger=log)
    session.warning("retrying", {"attempt": 2})
    session.end("success")

    entries = get_logs_by_context(f"session:accounts:{session.session_id}")
    assert [e["message"] for e in entries] == [
        "Session ended with status: success",
        "retrying",
        "Session started",
    ]
    assert entries[1]["level"] == "warning"


@pytest.fixture
def file_log():
    logger = logging.getLogger("mccdash.test-file-log")
    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    yield logger
    for h in list(logger.handlers):
        logger.removeHandler(h)
        h.close()


def test_file_logging_writes_daily_json_lines(file_log, tmp_path):
    assert configure_file_logging(file_log, str(tmp_path)) is True
    file_log.warning("disk check", extra={"context": "api:accounts", "data": {"n": 1}})
    for h in file_log.handlers:
        h.flush()

    day = datetime.now(timezone.utc).strftime("%Y-%m-%d")
    lines = (tmp_path / f"server-{day}.log").read_text(encoding="utf-8").splitlines()
    entries = [json.loads(line) for line in lines]
    assert entries[-1]["message"] == "disk check"
    assert entries[-1]["level"] == "warning"
    assert entries[-1]["context"] == "api:accounts"
    assert entries[-1]["data"] == {"n": 1}
    assert not (tmp_path / ".write-test").exists()


def test_file_logging_falls_back_when_dir_unusable(file_log, tmp_path):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("x", encoding="utf-8")
    assert configure_file_logging(file_log, str(blocker / "logs")) is False
    assert not any(isinstance(h, DailyJsonFileHandler) for h in file_log.handlers)
