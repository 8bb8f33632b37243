"""
Process-name watcher for compatibility-layer games.

Wine/CrossOver titles run as a child process (e.g. `helldivers2.exe`) whose
name differs from the frontmost launcher's bundle identifier, so they are
matched by name pattern against the full command line.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
from typing import Optional

import psutil

log = logging.getLogger(__name__)


class ProcessWatcher:
    """Answers "is a process matching this name running?" via `pgrep -f`."""

    def __init__(self, timeout: float = 3.0, pgrep: Optional[str] = None) -> None:
        self._timeout = timeout
        self._pgrep = pgrep or shutil.which("pgrep")

    def is_running(self, name: str) -> bool:
        if not name:
            return False
        if self._pgrep is None:
            return _psutil_match(name)
        try:
            result = subprocess.run(
                [self._pgrep, "-f", name],
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                timeout=self._timeout,
            )
        except subprocess.TimeoutExpired:
            log.debug("pgrep -f %r timed out", name)
            return False
        except OSError as e:
            log.debug("pgrep failed for %r: %s", name, e)
            return False
        return result.returncode == 0


class PsutilProcessWatcher(ProcessWatcher):
    """Same contract, scanning the process table with psutil instead of pgrep."""

    def is_running(self, name: str) -> bool:
        if not name:
            return False
        return _psutil_match(name)


def _psutil_match(pattern: str) -> bool:
    for p in psutil.process_iter(attrs=["name", "cmdline"]):
        try:
            pname = p.info.get("name") or ""
            cmdline = " ".join(p.info.get("cmdline") or [])
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            continue
        if pattern in pname or pattern in cmdline:
            return True
    return False


def make_process_watcher(backend: str, timeout: float) -> ProcessWatcher:
    if backend == "psutil":
        return PsutilProcessWatcher()
    return ProcessWatcher(timeout=timeout)
