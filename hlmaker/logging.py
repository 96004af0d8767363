"""
Structured event logging for the HLMaker quoting core.

Every diagnostic the core emits is one JSON object per line:

    {"ts_ms": 1717000000000, "event": "risk_approved", "side": "BUY", "price": 100.5, "size": 1.5}

Components:
- JsonlLogger: append-only JSON Lines writer used by every component
- DebugLogger: JsonlLogger with level filtering and prefixed event names
- performance_trace: decorator timing hot paths (per-event pipeline) at DEBUG
- ErrorContext: exception capture with location, traceback and context

Usage:
    logger = DebugLogger("./data/logs/hl_events.jsonl", level="DEBUG")
    logger.write("signal_snapshot", {"mid": 100.1, "vol": 0.0})

    @performance_trace()
    def handle(self, event):
        ...
"""
import asyncio
import functools
import inspect
import json
import os
import time
import traceback
from typing import Any, Callable, Dict, Optional

from .utils import now_ms


class JsonlLogger:
    """JSON Lines logger for structured event records.

    Each record gets an automatic ``ts_ms`` (wall clock, milliseconds) and an
    ``event`` name; the payload is merged in. The file is opened in append
    mode with line buffering so a crash loses at most the current line.

    Not thread-safe: the router is the single writer.
    """

    def __init__(self, path: str):
        self.path = path
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        self._fp = open(path, "a", buffering=1)

    def write(self, event_type: str, payload: Dict[str, Any]) -> None:
        """Append one event record."""
        rec = {"ts_ms": now_ms(), "event": event_type, **payload}
        self._fp.write(json.dumps(rec, separators=(",", ":"), ensure_ascii=False) + "\n")

    def close(self) -> None:
        """Close the underlying file. Safe to call more than once."""
        try:
            self._fp.close()
        except OSError:
            pass


class DebugLogger(JsonlLogger):
    """JsonlLogger with hierarchical levels.

    Levels follow the stdlib numbering (DEBUG=10 ... CRITICAL=50). Events
    below the configured level are dropped. debug() and error() prefix
    their events (``debug_``, ``error_``) so they can be filtered in the
    log stream; plain write() records are never filtered.
    """

    LEVELS = {
        'DEBUG': 10,
        'INFO': 20,
        'WARNING': 30,
        'ERROR': 40,
        'CRITICAL': 50,
    }

    def __init__(self, path: str, level: str = 'INFO'):
        super().__init__(path)
        # Unknown level names fall back to INFO
        self.level = self.LEVELS.get(level.upper(), self.LEVELS['INFO'])

    def debug(self, event_type: str, payload: Dict[str, Any]) -> None:
        if self.level <= self.LEVELS['DEBUG']:
            self.write(f"debug_{event_type}", payload)

    def error(self, event_type: str, payload: Dict[str, Any]) -> None:
        if self.level <= self.LEVELS['ERROR']:
            self.write(f"error_{event_type}", payload)


def log_debug(logger: JsonlLogger, event_type: str, payload: Dict[str, Any]) -> None:
    """Emit a debug event if the logger supports levels; plain loggers skip it."""
    if isinstance(logger, DebugLogger):
        logger.debug(event_type, payload)


def performance_trace(logger_attr: str = 'logger'):
    """Time the decorated method and log the duration at DEBUG level.

    The logger is looked up on the instance (``self.<logger_attr>``). Nothing
    is measured unless it is a DebugLogger at DEBUG level. Works for both sync
    and async methods. Failures are logged with their duration and re-raised.
    """

    def _active_logger(args) -> Optional[DebugLogger]:
        if not args:
            return None
        logger = getattr(args[0], logger_attr, None)
        if not isinstance(logger, DebugLogger) or logger.level > DebugLogger.LEVELS['DEBUG']:
            return None
        return logger

    def _record(logger: DebugLogger, func: Callable, event: str, start: float, n_args: int) -> None:
        logger.debug(event, {
            "function": f"{func.__module__}.{func.__qualname__}",
            "duration_ms": round((time.perf_counter() - start) * 1000, 3),
            "args_count": n_args,
        })

    def _record_error(logger: DebugLogger, func: Callable, start: float, e: Exception) -> None:
        logger.error("perf_function_error", {
            "function": f"{func.__module__}.{func.__qualname__}",
            "duration_ms": round((time.perf_counter() - start) * 1000, 3),
            "error": str(e),
            "error_type": type(e).__name__,
        })

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs):
            logger = _active_logger(args)
            if logger is None:
                return await func(*args, **kwargs)
            start = time.perf_counter()
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                _record_error(logger, func, start, e)
                raise
            _record(logger, func, "perf_async_function", start, len(args) + len(kwargs))
            return result

        @functools.wraps(func)
        def sync_wrapper(*args, **kwargs):
            logger = _active_logger(args)
            if logger is None:
                return func(*args, **kwargs)
            start = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                _record_error(logger, func, start, e)
                raise
            _record(logger, func, "perf_sync_function", start, len(args) + len(kwargs))
            return result

        if asyncio.iscoroutinefunction(func):
            return async_wrapper
        return sync_wrapper

    return decorator


class ErrorContext:
    """Exception capture with location and caller-supplied context.

    Usage:
        try:
            router.handle(event)
        except Exception as e:
            ErrorContext.log_operation_error(logger, "handle_event", e, {"kind": "book"})
            raise

    Output:
        {"event": "error_detailed_error", "error_message": "...", "error_type": "ValueError",
         "function": "handle", "file": ".../router.py", "line": 120,
         "stack_trace": "Traceback ...", "context": {"operation": "handle_event"}}
    """

    @staticmethod
    def capture_error(
        logger: JsonlLogger,
        error: Exception,
        context: Optional[Dict[str, Any]] = None,
        include_stack: bool = True
    ) -> None:
        """Log an exception with the frame that reported it."""
        function_name = "unknown"
        file_name = "unknown"
        line_number = 0

        frame = inspect.currentframe()
        try:
            # capture_error <- log_operation_error <- caller
            caller_frame = frame
            for _ in range(3):
                if caller_frame:
                    caller_frame = caller_frame.f_back
            if caller_frame:
                function_name = caller_frame.f_code.co_name
                file_name = caller_frame.f_code.co_filename
                line_number = caller_frame.f_lineno
        except AttributeError:
            pass
        finally:
            del frame

        error_payload = {
            "error_message": str(error),
            "error_type": type(error).__name__,
            "function": function_name,
            "file": file_name,
            "line": line_number,
            "timestamp": now_ms(),
        }
        if include_stack:
            error_payload["stack_trace"] = "".join(
                traceback.format_exception(type(error), error, error.__traceback__)
            )
        if context:
            error_payload["context"] = context

        if isinstance(logger, DebugLogger):
            logger.error("detailed_error", error_payload)
        else:
            logger.write("error_detailed_error", error_payload)

    @staticmethod
    def log_operation_error(
        logger: JsonlLogger,
        operation: str,
        error: Exception,
        context: Optional[Dict[str, Any]] = None
    ) -> None:
        """Log an error raised by a named operation."""
        full_context = {
            "operation": operation,
            **(context or {}),
        }
        ErrorContext.capture_error(logger, error, full_context)


def make_logger(path: str, level: str = "INFO", enable_performance: bool = False) -> JsonlLogger:
    """Plain JsonlLogger for default INFO runs, DebugLogger otherwise."""
    if level.upper() != "INFO" or enable_performance:
        return DebugLogger(path, level=level)
    return JsonlLogger(path)
