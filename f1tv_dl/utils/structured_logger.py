"""
Structured logging system for better log analysis and debugging.
Provides JSON-formatted logs with context and metadata.
"""

import json
import logging
import time
from datetime import datetime
from pathlib import Path
from typing import IO, Any, Callable, Optional

from f1tv_dl.core.events import EventBus, EventType, QueueEvent


class StructuredLogger:
    """
    Logger that outputs both human-readable and machine-parseable logs.

    Usage:
        logger = StructuredLogger("f1tv_dl", log_dir=Path("logs"))
        logger.info("job_completed", job_id="job_1", output_path="race.mp4")
    """

    def __init__(
        self,
        name: str,
        log_dir: Optional[Path] = None,
        enable_json: bool = True,
        enable_console: bool = True,
    ):
        """
        Args:
            name: Logger name
            log_dir: Directory for JSON log files (None = disabled)
            enable_json: Enable JSON file logging
            enable_console: Enable console output
        """
        self.name = name
        self.log_dir = log_dir
        self.enable_json = enable_json and log_dir is not None
        self.enable_console = enable_console
        self._logger = logging.getLogger(name)

        self._json_file: Optional[IO[str]] = None
        self.json_log_path: Optional[Path] = None
        if self.enable_json:
            log_dir.mkdir(parents=True, exist_ok=True)
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            self.json_log_path = log_dir / f"f1tv_dl_{timestamp}.jsonl"
            self._json_file = open(self.json_log_path, "a", encoding="utf-8")  # noqa: SIM115

        # Added to every entry.
        self._session_context: dict[str, Any] = {
            "session_id": f"{int(time.time())}_{id(self)}",
            "start_time": datetime.now().isoformat(),
        }

    def set_session_context(self, **kwargs) -> None:
        self._session_context.update(kwargs)

    def _format_message(self, event: str, **context) -> str:
        parts = [f"[{event}]"]
        for key, value in context.items():
            parts.append(f"{key}={value}")
        return " ".join(parts)

    def _write_json(self, level: str, event: str, **context) -> None:
        if not self._json_file or self._json_file.closed:
            return
        entry = {
            "timestamp": datetime.now().isoformat(),
            "level": level,
            "event": event,
            **self._session_context,
            **context,
        }
        try:
            self._json_file.write(json.dumps(entry, default=str) + "\n")
            self._json_file.flush()
        except OSError as e:
            self._logger.warning(f"JSON logging failed: {e}")

    def _log(self, level: int, event: str, **context) -> None:
        if self.enable_console:
            self._logger.log(level, self._format_message(event, **context))
        if self.enable_json:
            self._write_json(logging.getLevelName(level), event, **context)

    def debug(self, event: str, **context) -> None:
        self._log(logging.DEBUG, event, **context)

    def info(self, event: str, **context) -> None:
        self._log(logging.INFO, event, **context)

    def warning(self, event: str, **context) -> None:
        self._log(logging.WARNING, event, **context)

    def error(self, event: str, **context) -> None:
        self._log(logging.ERROR, event, **context)

    def close(self) -> None:
        if self._json_file and not self._json_file.closed:
            self._json_file.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


class JobEventLogger:
    """Writes download queue events to a StructuredLogger."""

    _LEVELS = {
        EventType.JOB_FAILED: "error",
        EventType.JOB_RETRYING: "warning",
        EventType.JOB_PROGRESS: "debug",
    }

    def __init__(self, logger: StructuredLogger):
        self.logger = logger
        self._unsubscribe: Optional[Callable[[], None]] = None

    def attach(self, events: EventBus) -> None:
        self._unsubscribe = events.subscribe(self.handle)

    def detach(self) -> None:
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None

    def handle(self, event: QueueEvent) -> None:
        context = dict(event.data)
        if event.job is not None:
            context.update(job_id=event.job.id, name=event.job.name, state=event.job.state.value)
        level = self._LEVELS.get(event.type, "info")
        getattr(self.logger, level)(event.type.value, **context)


def create_structured_logger(
    log_dir: Optional[Path] = None, enable_json: bool = False
) -> tuple[StructuredLogger, JobEventLogger]:
    """
    Returns:
        Tuple of (base_logger, job_event_logger)
    """
    base = StructuredLogger(
        "f1tv_dl.events", log_dir=log_dir, enable_json=enable_json, enable_console=False
    )
    return base, JobEventLogger(base)
