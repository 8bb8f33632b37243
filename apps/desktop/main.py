from __future__ import annotations

import argparse
import logging
import signal
import sys
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from packages.shared.config import AppConfig
from packages.shared.paths import default_diagnostic_log_path, ensure_app_dirs
from packages.shared.store import ConfigStore
from packages.core.logging_ import setup_logging
from packages.core.monitor.diagnostics import DiagnosticLog
from packages.core.monitor.fullscreen_probe import AXFullscreenProber
from packages.core.monitor.process_watcher import make_process_watcher
from packages.core.monitor.reconciler import ReconciliationEngine
from packages.core.monitor.triggers import TriggerStore
from packages.core.monitor.workspace import Workspace, make_workspace
from packages.core.policy.gamepolicyctl import GamePolicyCtl
from packages.core.uninstall import open_accessibility_settings, remove_app_data

log = logging.getLogger(__name__)


@dataclass
class Services:
    store: ConfigStore
    cfg: AppConfig
    triggers: TriggerStore
    diagnostics: DiagnosticLog
    workspace: Workspace
    controller: GamePolicyCtl
    engine: ReconciliationEngine

    def save(self) -> None:
        self.triggers.apply_to(self.cfg)
        self.store.save(self.cfg)

    def set_diagnostics(self, enabled: bool, path: Optional[str] = None) -> None:
        if path:
            self.cfg.debug_log_path = path
            self.diagnostics.set_path(Path(path))
        self.cfg.debug_logging_enabled = enabled
        self.diagnostics.set_enabled(enabled)
        self.store.save(self.cfg)


def build_services(store: Optional[ConfigStore] = None) -> Services:
    """Construct the process-wide collaborators once and wire them together."""
    store = store or ConfigStore()
    cfg = store.load()

    triggers = TriggerStore.from_config(cfg)
    diag_path = Path(cfg.debug_log_path) if cfg.debug_log_path else default_diagnostic_log_path()
    diagnostics = DiagnosticLog(diag_path, enabled=cfg.debug_logging_enabled)
    workspace = make_workspace()
    controller = GamePolicyCtl(timeout=cfg.command_timeout_seconds)
    engine = ReconciliationEngine(
        config=cfg.to_engine_config(),
        controller=controller,
        workspace=workspace,
        prober=AXFullscreenProber(workspace.main_screen_size, timeout=cfg.command_timeout_seconds),
        watcher=make_process_watcher(cfg.process_match_backend, cfg.command_timeout_seconds),
        triggers=triggers,
        diagnostics=diagnostics,
    )
    services = Services(store, cfg, triggers, diagnostics, workspace, controller, engine)
    triggers.on_change(lambda _snap: services.save())
    return services


# --- commands ---

def cmd_run(services: Services, args: argparse.Namespace) -> int:
    if args.headless:
        return _run_headless(services)

    from PySide6.QtWidgets import QApplication
    from .ui.tray import TrayIndicator

    app = QApplication(sys.argv)
    app.setQuitOnLastWindowClosed(False)
    tray = TrayIndicator(
        services.engine,
        refresh_ms=services.cfg.status_refresh_ms,
        diagnostics_enabled=services.cfg.debug_logging_enabled,
        on_toggle_diagnostics=services.set_diagnostics,
    )
    services.engine.start()

    def signal_handler(sig, frame):
        print("\nReceived interrupt signal (Ctrl+C), shutting down...")
        app.quit()

    if hasattr(signal, "SIGINT"):
        signal.signal(signal.SIGINT, signal_handler)

    code = app.exec()
    services.engine.stop(timeout=5.0)
    tray.tray.hide()
    services.diagnostics.close()
    return code


def _run_headless(services: Services) -> int:
    stop = threading.Event()

    def signal_handler(sig, frame):
        stop.set()

    signal.signal(signal.SIGINT, signal_handler)
    if hasattr(signal, "SIGTERM"):
        signal.signal(signal.SIGTERM, signal_handler)

    services.engine.on_error(lambda msg: log.error("Engine error: %s", msg))
    services.engine.start()
    log.info("Running headless; press Ctrl+C to stop")
    while not stop.is_set():
        services.workspace.pump(0.5)
    services.engine.stop(timeout=5.0)
    services.diagnostics.close()
    return 0


def cmd_sync(services: Services, args: argparse.Namespace) -> int:
    outcome = services.engine.sync_now()
    if outcome is None:
        print("Sync failed: unexpected error (see log)")
        return 1
    if outcome.decision == "DEFERRED":
        print("No frontmost application; Game Mode left unchanged")
        return 0
    print(f"{outcome.reason}: set {outcome.requested} -> {'ok' if outcome.succeeded else 'failed'}")
    return 0 if outcome.succeeded else 1


def cmd_status(services: Services, args: argparse.Namespace) -> int:
    status = services.controller.status()
    if not status.available:
        print("gamepolicyctl unavailable (install Xcode or the Command Line Tools)")
        return 1
    print(f"Game Mode: {status.mode}")
    print(f"Enablement policy: {status.assignment}")
    return 0


def cmd_set(services: Services, args: argparse.Namespace) -> int:
    if args.mode == "auto":
        ok = services.engine.set_automatic()
    else:
        ok = services.engine.set_enabled(args.mode == "on")
    print(f"set {args.mode} -> {'ok' if ok else 'failed'}")
    return 0 if ok else 1


def cmd_triggers(services: Services, args: argparse.Namespace) -> int:
    triggers = services.triggers
    action = args.trigger_action
    if action == "list":
        snap = triggers.snapshot()
        print("Trigger apps:")
        for app_id in sorted(snap.app_ids):
            print(f"  {app_id}")
            for name in snap.process_names_by_app.get(app_id, ()):
                print(f"    process: {name}")
        for app_id, names in snap.process_names_by_app.items():
            if app_id not in snap.app_ids:
                print(f"  ({app_id}, not selected)")
                for name in names:
                    print(f"    process: {name}")
        print("Watched processes:")
        for name in snap.orphan_process_names:
            print(f"  {name}")
        return 0
    if action == "add-app":
        changed = triggers.add_app(args.app_id)
    elif action == "remove-app":
        changed = triggers.remove_app(args.app_id)
    elif action == "add-process":
        if args.app:
            changed = triggers.add_process_name_for_app(args.name, args.app)
        else:
            changed = triggers.add_process_name(args.name)
    elif action == "remove-process":
        if args.app:
            changed = triggers.remove_process_name_for_app(args.name, args.app)
        else:
            changed = triggers.remove_process_name(args.name)
    else:
        return 2
    print("updated" if changed else "no change")
    return 0


def cmd_debug_log(services: Services, args: argparse.Namespace) -> int:
    services.set_diagnostics(args.state == "on", path=args.path)
    print(f"debug log {'enabled' if services.diagnostics.enabled else 'disabled'}: {services.diagnostics.path}")
    return 0


def cmd_checklist(services: Services, args: argparse.Namespace) -> int:
    available = services.controller.is_available()
    trusted = services.workspace.accessibility_trusted()
    print(f"[{'x' if available else ' '}] Xcode or Command Line Tools (required for Game Mode control)")
    print(f"[{'x' if trusted else ' '}] Accessibility (optional: fullscreen detection)")
    return 0 if available else 1


def cmd_uninstall(services: Services, args: argparse.Namespace) -> int:
    if not args.yes:
        print("This removes all settings and logs. Re-run with --yes to confirm.")
        return 1
    services.diagnostics.close()
    extra = [services.diagnostics.path, Path(services.store.path())]
    removed = remove_app_data(extra)
    for path in removed:
        print(f"removed {path}")
    if open_accessibility_settings():
        print("Remove Game Mode for All from Accessibility in System Settings.")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gamemode4all",
        description="Turn macOS Game Mode on for your games, including CrossOver titles.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug-level console logging")
    sub = parser.add_subparsers(dest="command")

    run = sub.add_parser("run", help="Run the reconciler with a menu-bar indicator (default)")
    run.add_argument("--headless", action="store_true", help="No menu-bar indicator")
    run.set_defaults(func=cmd_run)

    sub.add_parser("sync", help="Evaluate once for the frontmost app").set_defaults(func=cmd_sync)
    sub.add_parser("status", help="Show gamepolicyctl status").set_defaults(func=cmd_status)

    set_p = sub.add_parser("set", help="Set Game Mode manually")
    set_p.add_argument("mode", choices=["on", "off", "auto"])
    set_p.set_defaults(func=cmd_set)

    trig = sub.add_parser("triggers", help="Edit trigger apps and process names")
    trig_sub = trig.add_subparsers(dest="trigger_action", required=True)
    trig_sub.add_parser("list")
    for name in ("add-app", "remove-app"):
        p = trig_sub.add_parser(name)
        p.add_argument("app_id")
    for name in ("add-process", "remove-process"):
        p = trig_sub.add_parser(name)
        p.add_argument("name")
        p.add_argument("--app", help="Group the process under this app identifier")
    trig.set_defaults(func=cmd_triggers)

    dbg = sub.add_parser("debug-log", help="Enable or disable the decision trace")
    dbg.add_argument("state", choices=["on", "off"])
    dbg.add_argument("--path", help="Where to write the debug log")
    dbg.set_defaults(func=cmd_debug_log)

    sub.add_parser("checklist", help="Check setup requirements").set_defaults(func=cmd_checklist)

    uninstall = sub.add_parser("uninstall", help="Remove settings and logs")
    uninstall.add_argument("--yes", action="store_true")
    uninstall.set_defaults(func=cmd_uninstall)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if getattr(args, "func", None) is None:
        args = parser.parse_args([*(argv if argv is not None else sys.argv[1:]), "run"])

    ensure_app_dirs()
    setup_logging(verbose=args.verbose)

    services = build_services()
    return args.func(services, args)


if __name__ == "__main__":
    sys.exit(main())
