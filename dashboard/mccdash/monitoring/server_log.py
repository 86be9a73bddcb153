# mccdash/monitoring/server_log.py
"""
In-process log capture for the debug endpoints.

Every record that reaches the ``mccdash`` logger tree is copied into a
bounded ring buffer (newest first). When a writable directory is available
the same records are also appended as JSON lines to ``server-YYYY-MM-DD.log``.

Records can carry two optional extras:

    log.info("Fetched accounts", extra={"context": "google-ads", "data": {"count": 3}})

``context`` defaults to the logger name.
"""
from __future__ import annotations

import json
import logging
import os
import uuid
from collections import deque
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

MAX_MEMORY_LOGS = 100

_LEVEL_ALIASES = {"warn": "warning", "fatal": "critical"}

_state = {"file_logging": False, "log_dir": None}


def _normalize_level(level: Optional[str]) -> Optional[str]:
    if not level:
        return None
    level = level.strip().lower()
    return _LEVEL_ALIASES.get(level, level)


def _jsonable(value: Any) -> Any:
    if value is None:
        return None
    try:
        return json.loads(json.dumps(value, default=str))
    except (TypeError, ValueError):
        return repr(value)


def entry_from_record(record: logging.LogRecord) -> dict:
    return {
        "id": str(uuid.uuid4()),
        "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
        "level": record.levelname.lower(),
        "context": getattr(record, "context", None) or record.name,
        "message": record.getMessage(),
        "data": _jsonable(getattr(record, "data", None)),
    }


# ---- Handlers ----------------------------------------------------------------

class MemoryLogHandler(logging.Handler):
    """Ring buffer of the most recent log entries, newest first."""

    def __init__(self, capacity: int = MAX_MEMORY_LOGS, level: int = logging.DEBUG):
        super().__init__(level)
        self._entries: deque[dict] = deque(maxlen=capacity)

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self._entries.appendleft(entry_from_record(record))
        except Exception:
            self.handleError(record)

    def entries(self) -> list[dict]:
        with self.lock:
            return list(self._entries)

    def clear(self) -> None:
        with self.lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class JsonLineFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = entry_from_record(record)
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class DailyJsonFileHandler(logging.FileHandler):
    """Appends JSON lines to ``server-<UTC date>.log``, switching files at midnight."""

    def __init__(self, directory: str | os.PathLike):
        self.directory = Path(directory)
        self._day = self._today()
        super().__init__(self._path_for(self._day), encoding="utf-8", delay=True)
        self.setFormatter(JsonLineFormatter())

    @staticmethod
    def _today() -> str:
        return datetime.now(timezone.utc).strftime("%Y-%m-%d")

    def _path_for(self, day: str) -> str:
        return str(self.directory / f"server-{day}.log")

    def emit(self, record: logging.LogRecord) -> None:
        day = self._today()
        if day != self._day:
            self.acquire()
            try:
                if self.stream:
                    self.stream.close()
                    self.stream = None
                self._day = day
                self.baseFilename = os.path.abspath(self._path_for(day))
            finally:
                self.release()
        super().emit(record)


memory_handler = MemoryLogHandler()


# ---- Setup -------------------------------------------------------------------

def is_serverless() -> bool:
    return any(os.getenv(k) for k in ("VERCEL", "AWS_LAMBDA_FUNCTION_NAME", "K_SERVICE"))


def default_log_dir() -> str:
    if is_serverless():
        return "/tmp/logs"
    return os.path.join(os.getcwd(), "logs")


def attach_memory_handler(logger: logging.Logger) -> MemoryLogHandler:
    if memory_handler not in logger.handlers:
        logger.addHandler(memory_handler)
    return memory_handler


def configure_file_logging(logger: logging.Logger, log_dir: Optional[str] = None) -> bool:
    """Attach the daily JSON-lines handler. Returns False (memory-only) when the dir is unusable."""
    directory = Path(log_dir or default_log_dir())
    _state["log_dir"] = str(directory)
    try:
        directory.mkdir(parents=True, exist_ok=True)
        marker = directory / ".write-test"
        marker.write_text("ok", encoding="utf-8")
        marker.unlink()
    except OSError as e:
        _state["file_logging"] = False
        logger.warning("File logging disabled (%s not writable): %s", directory, e)
        return False

    for h in list(logger.handlers):
        if isinstance(h, DailyJsonFileHandler):
            logger.removeHandler(h)
            h.close()
    handler = DailyJsonFileHandler(directory)
    handler.setLevel(logging.DEBUG)
    logger.addHandler(handler)
    _state["file_logging"] = True
    logger.info("File logging enabled at %s", directory)
    return True


# ---- Queries -----------------------------------------------------------------

def get_recent_logs(limit: int = 50, level: Optional[str] = None) -> list[dict]:
    entries = memory_handler.entries()
    wanted = _normalize_level(level)
    if wanted:
        entries = [e for e in entries if e["level"] == wanted]
    return entries[: max(limit, 0)]


def get_logs_by_context(context: str, limit: int = 50, level: Optional[str] = None) -> list[dict]:
    entries = [e for e in memory_handler.entries() if (e["context"] or "").startswith(context)]
    wanted = _normalize_level(level)
    if wanted:
        entries = [e for e in entries if e["level"] == wanted]
    return entries[: max(limit, 0)]


def logger_status() -> dict:
    return {
        "isServerless": is_serverless(),
        "logDirectory": _state["log_dir"],
        "fileLoggingAvailable": _state["file_logging"],
        "inMemoryLogCount": len(memory_handler),
        "environment": os.getenv("ENVIRONMENT", os.getenv("FLASK_ENV", "production")),
    }


# ---- Sessions ----------------------------------------------------------------

class LogSession:
    """Groups the records of one operation under ``session:<name>:<id>``."""

    def __init__(self, name: str, logger: Optional[logging.Logger] = None):
        self.name = name
        self.session_id = str(uuid.uuid4())
        self.context = f"session:{name}:{self.session_id}"
        self._logger = logger or logging.getLogger("mccdash.sessions")
        self.info("Session started")

    def log(self, level: int, message: str, data: Any = None) -> None:
        self._logger.log(level, message, extra={"context": self.context, "data": data})

    def debug(self, message: str, data: Any = None) -> None:
        self.log(logging.DEBUG, message, data)

    def info(self, message: str, data: Any = None) -> None:
        self.log(logging.INFO, message, data)

    def warning(self, message: str, data: Any = None) -> None:
        self.log(logging.WARNING, message, data)

    def error(self, message: str, data: Any = None) -> None:
        self.log(logging.ERROR, message, data)

    def end(self, status: str = "success", data: Any = None) -> None:
        self.info(f"Session ended with status: {status}", data)


def create_log_session(name: str, logger: Optional[logging.Logger] = None) -> LogSession:
    return LogSession(name, logger)
