import subprocess
from types import SimpleNamespace

import psutil

from packages.core.monitor import process_watcher
from packages.core.monitor.process_watcher import (
    ProcessWatcher,
    PsutilProcessWatcher,
    make_process_watcher,
)


def test_pgrep_exit_code_decides(monkeypatch):
    calls = []

    def run(cmd, **kwargs):
        calls.append(cmd)
        return SimpleNamespace(returncode=0 if cmd[-1] == "game.exe" else 1)

    monkeypatch.setattr(process_watcher.subprocess, "run", run)
    watcher = ProcessWatcher(pgrep="/usr/bin/pgrep")

    assert watcher.is_running("game.exe")
    assert not watcher.is_running("other.exe")
    assert calls[0] == ["/usr/bin/pgrep", "-f", "game.exe"]


def test_pgrep_failures_mean_not_running(monkeypatch):
    def timeout(cmd, **kwargs):
        raise subprocess.TimeoutExpired(cmd, 3.0)

    monkeypatch.setattr(process_watcher.subprocess, "run", timeout)
    assert not ProcessWatcher(pgrep="/usr/bin/pgrep").is_running("game.exe")

    def oserror(cmd, **kwargs):
        raise OSError("no pgrep")

    monkeypatch.setattr(process_watcher.subprocess, "run", oserror)
    assert not ProcessWatcher(pgrep="/usr/bin/pgrep").is_running("game.exe")


def test_empty_name_never_matches():
    assert not ProcessWatcher(pgrep="/usr/bin/pgrep").is_running("")
    assert not PsutilProcessWatcher().is_running("")


def _proc(name, cmdline):
    return SimpleNamespace(info={"name": name, "cmdline": cmdline})


def test_psutil_backend_matches_name_or_cmdline(monkeypatch):
    procs = [
        _proc("wine64-preloader", ["C:\\Games\\helldivers2.exe", "--fullscreen"]),
        _proc("Finder", None),
    ]
    monkeypatch.setattr(psutil, "process_iter", lambda attrs=None: iter(procs))
    watcher = PsutilProcessWatcher()

    assert watcher.is_running("helldivers2.exe")
    assert watcher.is_running("Finder")
    assert not watcher.is_running("eldenring.exe")


def test_factory_picks_backend():
    assert isinstance(make_process_watcher("psutil", 1.0), PsutilProcessWatcher)
    assert type(make_process_watcher("pgrep", 1.0)) is ProcessWatcher
