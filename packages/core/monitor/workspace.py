"""
Bridge to the OS workspace: frontmost application, main display size,
app launch/terminate notifications and the accessibility trust flag.
"""

from __future__ import annotations

import logging
import sys
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, List, Optional, Tuple

from .types import FrontmostObservation

log = logging.getLogger(__name__)

AppEventCallback = Callable[[str], None]


class Workspace(ABC):
    @abstractmethod
    def frontmost(self) -> Optional[FrontmostObservation]:
        """Frontmost process, or None when the OS can't report one with an app id."""
        ...

    @abstractmethod
    def main_screen_size(self) -> Optional[Tuple[float, float]]:
        ...

    def accessibility_trusted(self) -> bool:
        return False

    def subscribe(self, cb: AppEventCallback) -> None:
        """Call cb("launched"/"terminated") on app lifecycle events."""

    def unsubscribe(self) -> None:
        pass

    def pump(self, seconds: float) -> None:
        """Run the platform event loop for a while (headless mode)."""
        time.sleep(seconds)


class CocoaWorkspace(Workspace):
    """NSWorkspace / NSScreen / AX via pyobjc. macOS only."""

    def __init__(self) -> None:
        self._tokens: List[Any] = []

    def frontmost(self) -> Optional[FrontmostObservation]:
        from AppKit import NSWorkspace

        app = NSWorkspace.sharedWorkspace().frontmostApplication()
        if app is None:
            return None
        bundle_id = app.bundleIdentifier()
        if not bundle_id:
            return None
        return FrontmostObservation(
            pid=int(app.processIdentifier()),
            app_id=str(bundle_id),
            name=str(app.localizedName() or bundle_id),
        )

    def main_screen_size(self) -> Optional[Tuple[float, float]]:
        from AppKit import NSScreen

        screen = NSScreen.mainScreen()
        if screen is None:
            return None
        size = screen.frame().size
        return (float(size.width), float(size.height))

    def accessibility_trusted(self) -> bool:
        from ApplicationServices import AXIsProcessTrusted

        return bool(AXIsProcessTrusted())

    def subscribe(self, cb: AppEventCallback) -> None:
        from AppKit import (
            NSOperationQueue,
            NSWorkspace,
            NSWorkspaceDidLaunchApplicationNotification,
            NSWorkspaceDidTerminateApplicationNotification,
        )

        if self._tokens:
            return
        center = NSWorkspace.sharedWorkspace().notificationCenter()
        queue = NSOperationQueue.mainQueue()
        for name, event in (
            (NSWorkspaceDidLaunchApplicationNotification, "launched"),
            (NSWorkspaceDidTerminateApplicationNotification, "terminated"),
        ):
            token = center.addObserverForName_object_queue_usingBlock_(
                name, None, queue, lambda _note, event=event: cb(event)
            )
            self._tokens.append(token)
        log.info("Observing application launch/terminate notifications")

    def unsubscribe(self) -> None:
        from AppKit import NSWorkspace

        center = NSWorkspace.sharedWorkspace().notificationCenter()
        for token in self._tokens:
            center.removeObserver_(token)
        self._tokens = []

    def pump(self, seconds: float) -> None:
        from Foundation import NSDate, NSRunLoop

        NSRunLoop.currentRunLoop().runUntilDate_(NSDate.dateWithTimeIntervalSinceNow_(seconds))


class NullWorkspace(Workspace):
    """Used off macOS: never reports a frontmost app, so evaluations defer."""

    def frontmost(self) -> Optional[FrontmostObservation]:
        return None

    def main_screen_size(self) -> Optional[Tuple[float, float]]:
        return None


def make_workspace() -> Workspace:
    if sys.platform != "darwin":
        log.warning("Not running on macOS; frontmost-app detection is disabled")
        return NullWorkspace()
    return CocoaWorkspace()
