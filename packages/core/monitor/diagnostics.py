from __future__ import annotations

import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Optional

log = logging.getLogger(__name__)


class _IsoFormatter(logging.Formatter):
    def formatTime(self, record: logging.LogRecord, datefmt: Optional[str] = None) -> str:
        return datetime.fromtimestamp(record.created).astimezone().isoformat(timespec="milliseconds")


class DiagnosticLog:
    """
    Append-only decision trace for troubleshooting, one timestamped line per
    decision. Writes nothing while disabled. The file handler is opened in
    append mode and serializes concurrent writers with its own lock.
    """

    def __init__(self, path: Path, enabled: bool = False) -> None:
        self._lock = threading.Lock()
        self._path = Path(path)
        self._enabled = enabled
        self._handler: Optional[logging.FileHandler] = None
        self._fmt = _IsoFormatter("%(asctime)s %(message)s")

    @property
    def path(self) -> Path:
        return self._path

    @property
    def enabled(self) -> bool:
        return self._enabled

    def set_enabled(self, enabled: bool) -> None:
        with self._lock:
            self._enabled = enabled
            if not enabled:
                self._close_handler()

    def set_path(self, path: Path) -> None:
        with self._lock:
            self._close_handler()
            self._path = Path(path)

    def trace(self, message: str) -> None:
        log.debug(message)
        record = logging.makeLogRecord({
            "name": __name__,
            "msg": message,
            "levelno": logging.DEBUG,
            "levelname": "DEBUG",
        })
        with self._lock:
            if not self._enabled:
                return
            self._open_handler().handle(record)

    def close(self) -> None:
        with self._lock:
            self._close_handler()

    def _open_handler(self) -> logging.FileHandler:
        if self._handler is None:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            handler = logging.FileHandler(str(self._path), mode="a", encoding="utf-8")
            handler.setFormatter(self._fmt)
            self._handler = handler
        return self._handler

    def _close_handler(self) -> None:
        if self._handler is not None:
            self._handler.close()
            self._handler = None
