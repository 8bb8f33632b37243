import threading

from fakes import EngineHarness, FakeController, app, wait_until
from packages.core.monitor.diagnostics import DiagnosticLog
from packages.core.monitor.types import PolicyStatus


def test_no_frontmost_app_defers_without_writing(harness):
    harness.workspace.current = None
    outcome = harness.engine.evaluate("timer")

    assert outcome.decision == "DEFERRED"
    assert harness.controller.calls == []
    assert harness.engine.get_state().state == "UNKNOWN"


def test_frontmost_without_bundle_id_defers(harness):
    harness.workspace.current = app("")
    assert harness.engine.evaluate().decision == "DEFERRED"
    assert harness.controller.calls == []


def test_deferral_keeps_previous_state(harness):
    harness.workspace.current = app("com.apple.Safari")
    harness.engine.evaluate()
    assert harness.engine.get_state().state == "OFF"

    harness.workspace.current = None
    harness.engine.evaluate()
    assert harness.engine.get_state().state == "OFF"
    assert harness.controller.calls == ["auto"]


def test_non_trigger_sets_automatic(harness):
    harness.workspace.current = app("com.apple.Safari")
    outcome = harness.engine.evaluate()

    assert outcome.decision == "AUTOMATIC"
    assert harness.controller.calls == ["auto"]
    assert harness.prober.probed == []
    snap = harness.engine.get_state()
    assert snap.state == "OFF"
    assert snap.assignment == "AUTOMATIC"


def test_selected_fullscreen_app_enables(harness):
    harness.triggers.add_app("com.example.Game")
    harness.controller.calls.clear()
    harness.workspace.current = app("com.example.Game", pid=77)
    harness.prober.result = "FULLSCREEN"

    outcome = harness.engine.evaluate()
    assert outcome.decision == "ENABLE"
    assert harness.controller.calls == ["on"]
    assert harness.prober.probed[-1] == 77
    snap = harness.engine.get_state()
    assert snap.state == "ON"
    assert snap.assignment == "MANUAL"


def test_selected_windowed_app_goes_automatic(harness):
    harness.triggers.add_app("com.example.Game")
    harness.controller.calls.clear()
    harness.workspace.current = app("com.example.Game")
    harness.prober.result = "NOT_FULLSCREEN"

    assert harness.engine.evaluate().decision == "AUTOMATIC"
    assert harness.controller.calls == ["auto"]


def test_permission_denied_enables_trigger_app(harness):
    harness.triggers.add_app("com.example.Game")
    harness.controller.calls.clear()
    harness.workspace.current = app("com.example.Game")
    harness.prober.result = "PERMISSION_DENIED"

    assert harness.engine.evaluate().decision == "ENABLE"
    assert harness.controller.calls == ["on"]


def test_launcher_with_grouped_game_running_is_trigger(harness):
    harness.triggers.add_process_name_for_app("game.exe", "com.codeweavers.CrossOver")
    harness.controller.calls.clear()
    harness.workspace.current = app("com.codeweavers.CrossOver")
    harness.watcher.running = {"game.exe"}
    harness.prober.result = "FULLSCREEN"

    outcome = harness.engine.evaluate()
    assert outcome.decision == "ENABLE"
    assert "game.exe" in outcome.reason


def test_launcher_without_game_running_is_not_trigger(harness):
    harness.triggers.add_process_name_for_app("game.exe", "com.codeweavers.CrossOver")
    harness.controller.calls.clear()
    harness.workspace.current = app("com.codeweavers.CrossOver")
    harness.prober.result = "FULLSCREEN"

    assert harness.engine.evaluate().decision == "AUTOMATIC"
    assert harness.prober.probed == []


def test_running_watched_process_makes_any_frontmost_a_trigger(harness):
    harness.triggers.add_process_name("game.exe")
    harness.controller.calls.clear()
    harness.workspace.current = app("com.codeweavers.CrossOver", pid=12)
    harness.watcher.running = {"game.exe"}
    harness.prober.result = "FULLSCREEN"

    assert harness.engine.evaluate().decision == "ENABLE"
    assert harness.prober.probed == [12]


def test_failed_write_leaves_state_unchanged(harness):
    harness.workspace.current = app("com.apple.Safari")
    harness.controller.ok = False

    outcome = harness.engine.evaluate()
    assert outcome.succeeded is False
    snap = harness.engine.get_state()
    assert snap.state == "UNKNOWN"
    assert snap.assignment == "UNKNOWN"


def test_trigger_edit_requests_evaluation(harness):
    harness.workspace.current = app("com.example.Game")
    harness.prober.result = "FULLSCREEN"

    harness.triggers.add_app("com.example.Game")
    assert harness.controller.calls == ["on"]
    assert harness.engine.get_state().state == "ON"


def test_refresh_status_never_changes_engine_state(harness):
    harness.workspace.current = app("com.apple.Safari")
    harness.engine.evaluate()
    harness.controller.status_result = PolicyStatus(available=True, mode="TEMPORARY_ON", assignment="MANUAL")

    snap = harness.engine.refresh_status()
    assert snap.state == "OFF"
    assert snap.reported_state == "TEMPORARY_ON"
    assert snap.assignment == "MANUAL"
    assert snap.available


def test_unavailable_tool_reported_without_raising(harness):
    harness.controller.status_result = PolicyStatus(available=False)
    snap = harness.engine.refresh_status()
    assert not snap.available


def test_manual_override(harness):
    assert harness.engine.set_enabled(True)
    assert harness.engine.get_state().state == "ON"
    assert harness.engine.set_automatic()
    assert harness.controller.calls == ["on", "auto"]
    assert harness.controller.status_calls == 2


def test_state_listeners_receive_snapshots(harness):
    seen = []
    harness.engine.on_state_change(seen.append)
    harness.workspace.current = app("com.apple.Safari")
    harness.engine.evaluate()
    assert seen and seen[-1].state == "OFF"


def test_evaluation_error_is_reported(harness):
    errors = []
    harness.engine.on_error(errors.append)

    def boom():
        raise RuntimeError("workspace gone")
    harness.workspace.frontmost = boom

    assert harness.engine.sync_now() is None
    assert errors == ["workspace gone"]


def test_concurrent_evaluations_never_overlap_writes():
    h = EngineHarness(controller=FakeController(delay=0.05))
    h.workspace.current = app("com.apple.Safari")

    threads = [threading.Thread(target=h.engine.sync_now) for _ in range(3)]
    threads += [threading.Thread(target=h.engine.evaluate, args=("timer",)) for _ in range(3)]
    threads.append(threading.Thread(target=h.engine.set_automatic))
    for t in threads:
        t.start()
    for t in threads:
        t.join(5.0)

    assert len(h.controller.calls) == 7
    assert h.controller.max_active == 1


def test_loop_evaluates_on_start_and_timer(harness):
    harness.workspace.current = app("com.apple.Safari")
    harness.engine.start()
    assert harness.engine.is_running()
    assert wait_until(lambda: len(harness.controller.calls) >= 2)

    harness.engine.stop(timeout=2.0)
    assert not harness.engine.is_running()
    assert harness.workspace.unsubscribed


def test_launch_and_terminate_notifications_evaluate(tmp_path):
    path = tmp_path / "debug.log"
    diag = DiagnosticLog(path, enabled=True)
    h = EngineHarness(diagnostics=diag, interval=60.0)
    h.workspace.current = app("com.apple.Safari")

    def traced(reason):
        return path.exists() and f"check[{reason}]" in path.read_text(encoding="utf-8")

    h.engine.start()
    try:
        assert wait_until(lambda: len(h.controller.calls) == 1)
        assert traced("start")
        calls = 1

        h.workspace.callback("launched")
        assert wait_until(lambda: traced("app launched"))
        assert wait_until(lambda: len(h.controller.calls) == calls + 1)

        h.workspace.callback("terminated")
        assert wait_until(lambda: traced("app terminated"))
        assert wait_until(lambda: len(h.controller.calls) == calls + 2)
        assert "check[timer]" not in path.read_text(encoding="utf-8")
    finally:
        h.engine.stop(timeout=2.0)
        diag.close()


def test_decisions_are_traced(tmp_path):
    diag = DiagnosticLog(tmp_path / "debug.log", enabled=True)
    h = EngineHarness(diagnostics=diag)
    h.workspace.current = app("com.apple.Safari", name="Safari")

    h.engine.evaluate("timer")
    diag.close()

    text = (tmp_path / "debug.log").read_text(encoding="utf-8")
    assert "check[timer]: frontmost=Safari" in text
    assert "set auto -> success=True" in text
