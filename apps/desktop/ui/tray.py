"""
Menu-bar status indicator: shows the Game Mode state and offers
Sync now / Set automatic / diagnostics toggle / Quit.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable

from PySide6.QtCore import QObject, QTimer, Qt, Signal
from PySide6.QtGui import QAction, QColor, QIcon, QPainter, QPixmap
from PySide6.QtWidgets import QApplication, QMenu, QSystemTrayIcon

from packages.core.monitor.reconciler import ReconciliationEngine
from packages.core.monitor.types import EngineSnapshot

from .status import IndicatorLevel, indicator_level, status_text

log = logging.getLogger(__name__)

LEVEL_COLORS = {
    "on": "#34C759",
    "off": "#8E8E93",
    "unavailable": "#FF9500",
}


def _dot_icon(color: str) -> QIcon:
    pix = QPixmap(18, 18)
    pix.fill(Qt.transparent)
    painter = QPainter(pix)
    painter.setRenderHint(QPainter.Antialiasing)
    painter.setBrush(QColor(color))
    painter.setPen(Qt.NoPen)
    painter.drawEllipse(3, 3, 12, 12)
    painter.end()
    return QIcon(pix)


class TrayIndicator(QObject):
    """Tray icon bound to the engine; engine callbacks arrive via a queued signal."""

    state_changed = Signal(object)
    sync_failed = Signal(str)

    def __init__(
        self,
        engine: ReconciliationEngine,
        refresh_ms: int,
        diagnostics_enabled: bool,
        on_toggle_diagnostics: Callable[[bool], None],
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self.engine = engine
        self._on_toggle_diagnostics = on_toggle_diagnostics
        self._icons = {level: _dot_icon(color) for level, color in LEVEL_COLORS.items()}
        self._level: IndicatorLevel | None = None

        self.tray = QSystemTrayIcon(self)
        self.menu = QMenu()
        self._build_menu(diagnostics_enabled)
        self.tray.setContextMenu(self.menu)

        self.state_changed.connect(self._render)
        self.sync_failed.connect(self._show_failure)
        self.engine.on_state_change(self.state_changed.emit)
        self.engine.on_error(lambda msg: log.error("Engine error: %s", msg))

        self._render(self.engine.get_state())
        self.tray.show()

        self._status_timer = QTimer(self)
        self._status_timer.timeout.connect(self._refresh_in_background)
        self._status_timer.start(refresh_ms)
        self._refresh_in_background()

    def _build_menu(self, diagnostics_enabled: bool) -> None:
        self.title_action = QAction("Game Mode: -", self.menu)
        self.title_action.setEnabled(False)
        self.menu.addAction(self.title_action)
        self.menu.addSeparator()

        sync_action = QAction("Sync now", self.menu)
        sync_action.triggered.connect(self._sync_now)
        self.menu.addAction(sync_action)

        auto_action = QAction("Set automatic", self.menu)
        auto_action.triggered.connect(self._set_automatic)
        self.menu.addAction(auto_action)

        self.diag_action = QAction("Write debug log", self.menu)
        self.diag_action.setCheckable(True)
        self.diag_action.setChecked(diagnostics_enabled)
        self.diag_action.toggled.connect(self._on_toggle_diagnostics)
        self.menu.addAction(self.diag_action)
        self.menu.addSeparator()

        quit_action = QAction("Quit Game Mode for All", self.menu)
        quit_action.triggered.connect(QApplication.quit)
        self.menu.addAction(quit_action)

    def _render(self, snap: EngineSnapshot) -> None:
        text = status_text(snap)
        self.title_action.setText(text)
        self.tray.setToolTip(text)
        level = indicator_level(snap)
        if level != self._level:
            self._level = level
            self.tray.setIcon(self._icons[level])

    def _run_in_background(self, fn: Callable[[], object], name: str) -> None:
        threading.Thread(target=fn, name=name, daemon=True).start()

    def _refresh_in_background(self) -> None:
        self._run_in_background(self.engine.refresh_status, "StatusRefresh")

    def _sync_now(self) -> None:
        def run() -> None:
            outcome = self.engine.sync_now()
            if outcome is None or outcome.succeeded is False:
                log.warning("Manual sync failed: %s", outcome)
                self.sync_failed.emit("Could not change Game Mode. Is Xcode installed?")
            self.engine.refresh_status()
        self._run_in_background(run, "ManualSync")

    def _set_automatic(self) -> None:
        self._run_in_background(self.engine.set_automatic, "SetAutomatic")

    def _show_failure(self, message: str) -> None:
        self.tray.showMessage("Game Mode for All", message, QSystemTrayIcon.Warning, 5000)
