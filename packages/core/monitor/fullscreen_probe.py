"""
Fullscreen probe using the macOS accessibility API.

A process counts as fullscreen when one of its top-level windows either sets
AXFullScreen, or covers at least 95% of the main display in both dimensions
(many games fill the screen without using native fullscreen).
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Callable, Optional, Sequence, Tuple

from .types import FullscreenProbeResult, WindowInfo

log = logging.getLogger(__name__)

FULLSCREEN_RATIO = 0.95
DEFAULT_SCREEN_SIZE = (1920.0, 1080.0)

AX_ERROR_SUCCESS = 0
AX_ERROR_API_DISABLED = -25211  # accessibility not granted
AX_ERROR_CANNOT_COMPLETE = -25204  # messaging timeout / app unresponsive

ScreenSize = Tuple[float, float]


def classify_windows(windows: Sequence[WindowInfo], screen: ScreenSize) -> FullscreenProbeResult:
    """Apply the flag-then-size test to windows in OS-reported order."""
    min_w = screen[0] * FULLSCREEN_RATIO
    min_h = screen[1] * FULLSCREEN_RATIO
    for i, w in enumerate(windows):
        if w.fullscreen_flag:
            log.debug("window[%d] AXFullScreen=true", i)
            return "FULLSCREEN"
        if w.size is not None and w.size[0] >= min_w and w.size[1] >= min_h:
            log.debug("window[%d] size=%.0fx%.0f fills screen %.0fx%.0f", i, w.size[0], w.size[1], *screen)
            return "FULLSCREEN"
    return "NOT_FULLSCREEN"


def result_for_ax_error(code: int) -> FullscreenProbeResult:
    """Map a failed window-list query to a probe result."""
    if code in (AX_ERROR_API_DISABLED, AX_ERROR_CANNOT_COMPLETE):
        return "PERMISSION_DENIED"
    return "NOT_FULLSCREEN"


class FullscreenProber(ABC):
    @abstractmethod
    def probe(self, pid: int) -> FullscreenProbeResult:
        ...


class AXFullscreenProber(FullscreenProber):
    """Reads AXWindows / AXFullScreen / AXSize through pyobjc."""

    def __init__(self, screen_size: Callable[[], Optional[ScreenSize]], timeout: float = 3.0) -> None:
        self._screen_size = screen_size
        self._timeout = timeout

    def probe(self, pid: int) -> FullscreenProbeResult:
        from ApplicationServices import (
            AXUIElementCopyAttributeValue,
            AXUIElementCreateApplication,
            AXUIElementSetMessagingTimeout,
            kAXWindowsAttribute,
        )

        app = AXUIElementCreateApplication(pid)
        AXUIElementSetMessagingTimeout(app, self._timeout)
        err, ax_windows = AXUIElementCopyAttributeValue(app, kAXWindowsAttribute, None)
        if err != AX_ERROR_SUCCESS or ax_windows is None:
            result = result_for_ax_error(err)
            log.debug("pid=%s AXWindows err=%s -> %s", pid, err, result)
            return result

        windows = [self._window_info(w) for w in ax_windows]
        screen = self._screen_size() or DEFAULT_SCREEN_SIZE
        result = classify_windows(windows, screen)
        if result == "NOT_FULLSCREEN":
            first = windows[0] if windows else None
            log.debug("pid=%s windows=%d first=%s screen=%.0fx%.0f -> NOT_FULLSCREEN",
                      pid, len(windows), first, *screen)
        return result

    @staticmethod
    def _window_info(window) -> WindowInfo:
        from ApplicationServices import (
            AXUIElementCopyAttributeValue,
            AXValueGetValue,
            kAXSizeAttribute,
            kAXValueCGSizeType,
        )

        flag: Optional[bool] = None
        err, value = AXUIElementCopyAttributeValue(window, "AXFullScreen", None)
        if err == AX_ERROR_SUCCESS and value is not None:
            flag = bool(value)

        size: Optional[ScreenSize] = None
        err, value = AXUIElementCopyAttributeValue(window, kAXSizeAttribute, None)
        if err == AX_ERROR_SUCCESS and value is not None:
            ok, cg_size = AXValueGetValue(value, kAXValueCGSizeType, None)
            if ok:
                size = (float(cg_size.width), float(cg_size.height))

        return WindowInfo(fullscreen_flag=flag, size=size)
