"""
Game Mode controller backed by the `gamepolicyctl` developer tool.

Runs `xcrun gamepolicyctl game-mode status|set <on|off|auto>` and reads the
combined stdout+stderr as a textual contract. The tool ships with Xcode or the
Command Line Tools; when it is missing every call degrades to "unavailable" /
failure instead of raising.
"""

from __future__ import annotations

import logging
import re
import shutil
import subprocess
from typing import List, Optional

from packages.core.monitor.types import (
    GameModeState,
    PolicyAssignment,
    PolicySetting,
    PolicyStatus,
)
from .controller import PolicyController

log = logging.getLogger(__name__)

UNAVAILABLE_MARKER = "unable to find utility"
TEMPORARY_MARKER = "will soon turn off"
AUTOMATIC_MARKER = "enablement policy is currently automatic"
MANUAL_MARKER = "enablement policy is currently disabled"

_MODE_ON = re.compile(r"mode is\b[^.\n]*\bon\b", re.IGNORECASE)
_MODE_OFF = re.compile(r"mode is\b[^.\n]*\boff\b", re.IGNORECASE)

VALID_SETTINGS = ("on", "off", "auto")


def parse_status(output: str) -> PolicyStatus:
    """Turn `game-mode status` output into a PolicyStatus."""
    if UNAVAILABLE_MARKER in output:
        return PolicyStatus(available=False, raw=output)

    mode: GameModeState = "UNKNOWN"
    if _MODE_ON.search(output):
        mode = "TEMPORARY_ON" if TEMPORARY_MARKER in output else "ON"
    elif _MODE_OFF.search(output):
        mode = "OFF"

    assignment: PolicyAssignment = "UNKNOWN"
    if AUTOMATIC_MARKER in output:
        assignment = "AUTOMATIC"
    elif MANUAL_MARKER in output:
        assignment = "MANUAL"

    return PolicyStatus(available=True, mode=mode, assignment=assignment, raw=output)


def is_set_confirmed(requested: PolicySetting, output: str) -> bool:
    return requested in output


class GamePolicyCtl(PolicyController):
    """
    Policy controller invoking `xcrun gamepolicyctl game-mode ...`.

    Availability is re-derived on every status() call; nothing is cached
    across a failed probe.
    """

    def __init__(self, timeout: float = 3.0, xcrun: Optional[str] = None) -> None:
        self._timeout = timeout
        self._xcrun = xcrun or shutil.which("xcrun") or "/usr/bin/xcrun"

    def _run(self, args: List[str]) -> Optional[str]:
        """Run the tool and return combined output, or None if it could not run."""
        cmd = [self._xcrun, "gamepolicyctl", "game-mode", *args]
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self._timeout,
            )
        except subprocess.TimeoutExpired:
            log.warning("gamepolicyctl %s timed out after %.1fs", " ".join(args), self._timeout)
            return None
        except FileNotFoundError:
            log.debug("xcrun not found at %s", self._xcrun)
            return None
        except OSError as e:
            log.debug("gamepolicyctl OS error: %s", e)
            return None

        return (result.stdout or "") + (result.stderr or "")

    def status(self) -> PolicyStatus:
        output = self._run(["status"])
        if output is None:
            return PolicyStatus(available=False)
        status = parse_status(output)
        log.debug("gamepolicyctl status: available=%s mode=%s assignment=%s",
                  status.available, status.mode, status.assignment)
        return status

    def set(self, mode: PolicySetting) -> bool:
        if mode not in VALID_SETTINGS:
            raise ValueError(f"Unsupported game mode setting: {mode!r}")
        output = self._run(["set", mode])
        if output is None:
            return False
        ok = is_set_confirmed(mode, output)
        if not ok:
            log.debug("gamepolicyctl set %s not confirmed: %s", mode, output.strip()[:200])
        return ok
