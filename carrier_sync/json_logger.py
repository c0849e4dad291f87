"""Newline-delimited JSON events for carrier sync runs."""
from __future__ import annotations

import json
import sys
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, Optional, TextIO

__all__ = ["JsonLogger", "get_logger", "log_event", "timed_event", "new_run_id"]

_AUTO = object()


def new_run_id() -> str:
    return datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S%f")


def _configured_log_file() -> str | None:
    from carrier_sync.config import config

    return config.json_log_file.strip() or None


class JsonLogger:
    """Write one JSON object per event to a stream and, optionally, a file.

    Child loggers created with :meth:`bind` share the parent's stream, file
    handle and closed state; only the root logger closes the file.
    """

    def __init__(
        self,
        run_id: Optional[str] = None,
        stream: TextIO | None = None,
        *,
        log_file_path: str | None | object = _AUTO,
    ) -> None:
        self.run_id = run_id or new_run_id()
        self.stream = stream or sys.stdout
        self.context: Dict[str, Any] = {"run_id": self.run_id}
        raw_path = _configured_log_file() if log_file_path is _AUTO else log_file_path
        self.log_file_path = self._prepare_path(raw_path)  # type: ignore[arg-type]
        self._file = open(self.log_file_path, "a", encoding="utf-8") if self.log_file_path else None
        self._root = True
        self._state = {"closed": False}

    @staticmethod
    def _prepare_path(raw_path: str | None) -> str | None:
        if not raw_path:
            return None
        path = Path(raw_path).expanduser().resolve()
        path.parent.mkdir(parents=True, exist_ok=True)
        return str(path)

    def bind(self, **fields: Any) -> "JsonLogger":
        child = JsonLogger(run_id=self.run_id, stream=self.stream, log_file_path=None)
        child.context = {**self.context, **fields}
        child.log_file_path = self.log_file_path
        child._file = self._file
        child._root = False
        child._state = self._state
        return child

    @property
    def closed(self) -> bool:
        return self._state["closed"]

    def _write(self, event: Dict[str, Any]) -> None:
        line = json.dumps(event, default=str, ensure_ascii=False)
        self.stream.write(line + "\n")
        self.stream.flush()
        if self._file:
            self._file.write(line + "\n")
            self._file.flush()

    def info(self, *, phase: str, status: str = "ok", message: str = "", **fields: Any) -> None:
        if self.closed:
            return
        event = {**self.context, "phase": phase, "status": status, "message": message, **fields}
        event.setdefault("ts", datetime.now(timezone.utc).isoformat())
        self._write(event)

    def warn(self, *, phase: str, message: str, **fields: Any) -> None:
        self.info(phase=phase, status="warn", message=message, **fields)

    def error(self, *, phase: str, message: str, **fields: Any) -> None:
        self.info(phase=phase, status="error", message=message, **fields)

    def close(self) -> None:
        if not self._root or self.closed:
            return
        self._state["closed"] = True
        if self._file:
            self._file.close()
            self._file = None

    def __enter__(self) -> "JsonLogger":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


def get_logger(run_id: Optional[str] = None) -> JsonLogger:
    return JsonLogger(run_id=run_id)


def log_event(*, logger: JsonLogger, phase: str, status: str = "ok", message: str = "", **extras: Any) -> None:
    logger.info(phase=phase, status=status, message=message, **extras)


@contextmanager
def timed_event(*, logger: JsonLogger, phase: str, message: str = "", **fields: Any) -> Iterator[None]:
    start = time.perf_counter()
    try:
        yield
    except Exception as exc:
        logger.error(
            phase=phase,
            message=f"{message} failed: {exc}",
            duration_ms=int((time.perf_counter() - start) * 1000),
            **fields,
        )
        raise
    logger.info(
        phase=phase,
        message=message,
        duration_ms=int((time.perf_counter() - start) * 1000),
        **fields,
    )
