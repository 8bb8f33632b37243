"""
Game Mode reconciliation engine.

Decides on every evaluation whether Game Mode should be on or handed back to
automatic, following Apple's own rule: on while a trigger app is frontmost
and fullscreen, automatic otherwise.

State machine: UNKNOWN -> ON | OFF, driven only by evaluate(). The state
changes only after gamepolicyctl confirmed the write. TEMPORARY_ON is only
ever reported by refresh_status() and never drives a transition.

Evaluations come from the timer thread, app launch/terminate notifications,
trigger edits and manual syncs. All of them run under one lock, so two
evaluations never interleave and never issue overlapping policy writes.
"""

from __future__ import annotations

import dataclasses
import logging
import random
import threading
import time
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Tuple

from packages.core.policy.controller import PolicyController
from .diagnostics import DiagnosticLog
from .fullscreen_probe import FullscreenProber
from .process_watcher import ProcessWatcher
from .triggers import TriggerSet, TriggerStore
from .types import (
    Decision,
    EngineSnapshot,
    EvaluationOutcome,
    FrontmostObservation,
    PolicySetting,
)
from .workspace import Workspace

log = logging.getLogger(__name__)


@dataclass
class EngineConfig:
    """Configuration for the reconciliation loop."""
    check_interval_seconds: float
    check_tolerance_seconds: float
    compat_launcher_ids: Tuple[str, ...]


class ReconciliationEngine:
    """
    Background reconciler that drives Game Mode from the frontmost app,
    its fullscreen state and the watched process names.
    """

    def __init__(
        self,
        config: dict,
        controller: PolicyController,
        workspace: Workspace,
        prober: FullscreenProber,
        watcher: ProcessWatcher,
        triggers: TriggerStore,
        diagnostics: Optional[DiagnosticLog] = None,
    ) -> None:
        self._cfg = self._parse_config(config)
        self._controller = controller
        self._workspace = workspace
        self._prober = prober
        self._watcher = watcher
        self._triggers = triggers
        self._diag = diagnostics

        self._eval_lock = threading.Lock()  # one evaluation / policy write at a time
        self._lock = threading.Lock()  # guards _state and _pending_reason
        self._state = EngineSnapshot()
        self._pending_reason: Optional[str] = None

        self._state_cbs: List[Callable[[EngineSnapshot], None]] = []
        self._error_cb: Optional[Callable[[str], None]] = None

        self._thread: Optional[threading.Thread] = None
        self._stop_evt = threading.Event()
        self._wake_evt = threading.Event()

        self._triggers.on_change(self._on_triggers_changed)

    @staticmethod
    def _parse_config(config: dict) -> EngineConfig:
        return EngineConfig(
            check_interval_seconds=float(config.get("check_interval_seconds", 1.5)),
            check_tolerance_seconds=float(config.get("check_tolerance_seconds", 0.3)),
            compat_launcher_ids=tuple(config.get("compat_launcher_ids", ("com.codeweavers.CrossOver",))),
        )

    def on_state_change(self, cb: Callable[[EngineSnapshot], None]) -> None:
        self._state_cbs.append(cb)

    def on_error(self, cb: Callable[[str], None]) -> None:
        self._error_cb = cb

    def get_state(self) -> EngineSnapshot:
        with self._lock:
            return dataclasses.replace(self._state)

    def is_running(self) -> bool:
        with self._lock:
            return self._state.status == "RUNNING"

    # --- lifecycle ---

    def start(self) -> None:
        with self._lock:
            if self._state.status == "RUNNING":
                return
            self._state.status = "RUNNING"
            self._pending_reason = "start"

        self._stop_evt.clear()
        self._wake_evt.set()  # evaluate immediately
        self._workspace.subscribe(self._on_app_event)
        self._thread = threading.Thread(target=self._run, name="ReconciliationEngine", daemon=True)
        self._thread.start()
        log.info("Reconciliation started (interval %.1fs)", self._cfg.check_interval_seconds)

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop_evt.set()
        self._wake_evt.set()
        self._workspace.unsubscribe()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        self._thread = None
        with self._lock:
            self._state.status = "STOPPED"
        log.info("Reconciliation stopped")

    def request_evaluation(self, reason: str) -> None:
        """Ask the loop to evaluate as soon as possible; bursts coalesce into one run."""
        if not self.is_running():
            self._safe_evaluate(reason)
            return
        with self._lock:
            self._pending_reason = reason
        self._wake_evt.set()

    def sync_now(self) -> Optional[EvaluationOutcome]:
        """Manual sync: evaluate on the caller's thread and report the outcome."""
        return self._safe_evaluate("manual sync")

    # --- evaluation ---

    def evaluate(self, reason: str = "manual") -> EvaluationOutcome:
        with self._eval_lock:
            outcome = self._evaluate_locked(reason)
        self._publish()
        return outcome

    def _evaluate_locked(self, reason: str) -> EvaluationOutcome:
        front = self._workspace.frontmost()
        with self._lock:
            cfg = self._cfg
            self._state.frontmost = front

        if front is None or not front.app_id:
            # Fullscreen games often report no frontmost app for a moment;
            # turning Game Mode off here would kick them out of it.
            self._trace(f"check[{reason}]: no frontmost app or no bundle id -> leave state unchanged")
            return self._record(EvaluationOutcome("DEFERRED", reason="no frontmost application"))

        triggers = self._triggers.snapshot()
        why = self._trigger_reason(front, triggers, cfg)

        if why is None:
            self._trace(
                f"check[{reason}]: frontmost={front.display_name} app_id={front.app_id} "
                f"selected={len(triggers.app_ids)} watched={len(triggers.process_names)} "
                f"-> not trigger -> set auto"
            )
            return self._apply("auto", "AUTOMATIC", "not a trigger")

        # The frontmost pid is probed even when a watched process made this a trigger.
        probe = self._prober.probe(front.pid)
        should_enable = probe in ("FULLSCREEN", "PERMISSION_DENIED")
        if probe == "PERMISSION_DENIED":
            self._trace(
                f"check[{reason}]: frontmost={front.display_name} app_id={front.app_id} trigger=yes ({why}) "
                f"accessibilityDenied=true -> shouldEnable=true (enable when frontmost)"
            )
        else:
            self._trace(
                f"check[{reason}]: frontmost={front.display_name} app_id={front.app_id} trigger=yes ({why}) "
                f"probe={probe} -> shouldEnable={should_enable}"
            )

        if should_enable:
            return self._apply("on", "ENABLE", f"{why}, {probe.lower()}")
        return self._apply("auto", "AUTOMATIC", f"{why}, not fullscreen")

    def _trigger_reason(
        self, front: FrontmostObservation, triggers: TriggerSet, cfg: EngineConfig
    ) -> Optional[str]:
        if front.app_id in triggers.app_ids:
            return "selected app"
        if front.app_id in cfg.compat_launcher_ids:
            running = self._first_running(triggers.grouped_process_names)
            if running is not None:
                return f"launcher process {running} running"
        running = self._first_running(triggers.orphan_process_names)
        if running is not None:
            return f"watched process {running} running"
        return None

    def _first_running(self, names: Iterable[str]) -> Optional[str]:
        for name in names:
            if self._watcher.is_running(name):
                return name
        return None

    def _apply(self, setting: PolicySetting, decision: Decision, why: str) -> EvaluationOutcome:
        ok = self._controller.set(setting)
        self._trace(f"set {setting} -> success={ok}")
        if ok:
            with self._lock:
                self._state.state = "ON" if setting == "on" else "OFF"
                self._state.assignment = "AUTOMATIC" if setting == "auto" else "MANUAL"
        else:
            log.debug("gamepolicyctl set %s failed; state unchanged", setting)
        return self._record(EvaluationOutcome(decision, setting, ok, why))

    def _record(self, outcome: EvaluationOutcome) -> EvaluationOutcome:
        with self._lock:
            self._state.last_outcome = outcome
        return outcome

    def _safe_evaluate(self, reason: str) -> Optional[EvaluationOutcome]:
        try:
            return self.evaluate(reason)
        except Exception as e:
            log.exception("Evaluation error")
            self._emit_error(str(e))
            return None

    # --- manual override / status ---

    def set_enabled(self, enabled: bool) -> bool:
        return self._override("on" if enabled else "off")

    def set_automatic(self) -> bool:
        return self._override("auto")

    def _override(self, setting: PolicySetting) -> bool:
        with self._eval_lock:
            ok = self._controller.set(setting)
            self._trace(f"manual set {setting} -> success={ok}")
            if ok:
                with self._lock:
                    self._state.state = "ON" if setting == "on" else "OFF"
                    self._state.assignment = "AUTOMATIC" if setting == "auto" else "MANUAL"
        self.refresh_status()
        return ok

    def refresh_status(self) -> EngineSnapshot:
        """Query the authoritative status for display; never changes engine state."""
        status = self._controller.status()
        with self._lock:
            self._state.available = status.available
            self._state.reported_state = status.mode
            if status.assignment != "UNKNOWN":
                self._state.assignment = status.assignment
        self._publish()
        return self.get_state()

    # --- plumbing ---

    def _on_app_event(self, event: str) -> None:
        self.request_evaluation(f"app {event}")

    def _on_triggers_changed(self, _snapshot: TriggerSet) -> None:
        self.request_evaluation("triggers changed")

    def _next_delay(self) -> float:
        with self._lock:
            cfg = self._cfg
        return cfg.check_interval_seconds + random.uniform(0.0, max(cfg.check_tolerance_seconds, 0.0))

    def _run(self) -> None:
        while not self._stop_evt.is_set():
            woke = self._wake_evt.wait(self._next_delay())
            if self._stop_evt.is_set():
                break
            self._wake_evt.clear()
            with self._lock:
                reason = (self._pending_reason or "wake") if woke else "timer"
                self._pending_reason = None
            if self._safe_evaluate(reason) is None:
                time.sleep(1.0)

    def _trace(self, message: str) -> None:
        if self._diag is not None:
            self._diag.trace(message)
        else:
            log.debug(message)

    def _publish(self) -> None:
        snap = self.get_state()
        for cb in list(self._state_cbs):
            try:
                cb(snap)
            except Exception:
                log.exception("State listener failed")

    def _emit_error(self, msg: str) -> None:
        if self._error_cb:
            self._error_cb(msg)
