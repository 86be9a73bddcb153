# mccdash/monitoring/diagnostics.py
from __future__ import annotations

import logging
import time
import traceback
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeout
from datetime import datetime, timezone
from typing import Any, Callable, Optional, TypeVar

log = logging.getLogger("mccdash.diagnostics")

T = TypeVar("T")

DEFAULT_TRACE_TIMEOUT_MS = 15000

_executor = ThreadPoolExecutor(max_workers=8, thread_name_prefix="mccdash-timeout")


class OperationTimeout(TimeoutError):
    pass


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def format_error(error: Optional[BaseException]) -> Optional[dict]:
    """Flatten an exception (including HTTP and Google Ads failures) into a JSON-safe dict."""
    if error is None:
        return None

    detail: dict[str, Any] = {
        "name": type(error).__name__,
        "message": str(error),
        "stack": "".join(traceback.format_exception(type(error), error, error.__traceback__)),
    }

    response = getattr(error, "response", None)
    if response is not None:
        detail["response"] = {
            "status": getattr(response, "status_code", None),
            "data": (getattr(response, "text", "") or "")[:2000],
        }

    for attr in ("code", "request_id", "failure"):
        value = getattr(error, attr, None)
        if value is None or callable(value):
            continue
        detail[attr] = value if isinstance(value, (str, int, float, bool)) else str(value)

    return detail


class DiagnosticTracer:
    """
    Collects timestamped traces for a single operation.

    A tracer belongs to exactly one call; create a new one per operation so
    concurrent requests never share traces.
    """

    def __init__(self, name: str = "operation", clock: Callable[[], float] = time.monotonic):
        self.name = name
        self._clock = clock
        self.traces: list[dict] = []
        self.active = False
        self.timeout_ms = DEFAULT_TRACE_TIMEOUT_MS
        self.start_time: Optional[str] = None
        self.end_time: Optional[str] = None
        self.duration_ms: Optional[int] = None
        self.timed_out = False
        self.error: Optional[str] = None
        self.error_detail: Optional[dict] = None
        self._t0 = 0.0

    def _elapsed_ms(self) -> int:
        return int((self._clock() - self._t0) * 1000)

    def start(self, timeout_ms: int = DEFAULT_TRACE_TIMEOUT_MS) -> "DiagnosticTracer":
        self.traces = []
        self.active = True
        self.timeout_ms = timeout_ms
        self.start_time = _now_iso()
        self.end_time = None
        self.duration_ms = None
        self.timed_out = False
        self.error = None
        self.error_detail = None
        self._t0 = self._clock()
        self.add_trace("tracer", f"Started {self.name}", {"timeoutMs": timeout_ms})
        return self

    def add_trace(self, source: str, message: str, data: Any = None) -> None:
        if not self.active:
            return
        elapsed = self._elapsed_ms()
        self.traces.append({
            "timestamp": _now_iso(),
            "elapsedMs": elapsed,
            "source": source,
            "message": message,
            "data": data,
        })
        log.debug("[%s] %s: %s", self.name, source, message)
        if elapsed > self.timeout_ms:
            self.timed_out = True
            self.end(error=f"Operation timed out after {self.timeout_ms}ms")

    def end(self, error: Any = None, error_detail: Optional[dict] = None) -> dict:
        if self.active:
            self.active = False
            self.end_time = _now_iso()
            self.duration_ms = self._elapsed_ms()
        if error is not None and self.error is None:
            self.error = str(error)
            if error_detail is None and isinstance(error, BaseException):
                error_detail = format_error(error)
            self.error_detail = error_detail
        return self.report()

    def report(self) -> dict:
        return {
            "name": self.name,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "duration": self.duration_ms,
            "timedOut": self.timed_out,
            "traces": list(self.traces),
            "error": self.error,
            "errorDetail": self.error_detail,
        }


def run_with_timeout(fn: Callable[[], T], seconds: float, message: str = "Operation") -> T:
    """Run ``fn`` on a worker thread; raise OperationTimeout if it outlives ``seconds``."""
    future = _executor.submit(fn)
    try:
        return future.result(timeout=seconds)
    except FuturesTimeout:
        future.cancel()
        raise OperationTimeout(f"{message}: Timeout after {int(seconds * 1000)}ms") from None
