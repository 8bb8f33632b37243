import re
import threading
from datetime import datetime

from packages.core.monitor.diagnostics import DiagnosticLog

ISO_PREFIX = re.compile(r"^(\S+) (.*)$")


def _lines(path):
    return path.read_text(encoding="utf-8").splitlines()


def test_disabled_log_writes_nothing(tmp_path):
    path = tmp_path / "debug.log"
    diag = DiagnosticLog(path, enabled=False)
    diag.trace("check[timer]: nothing")
    diag.close()
    assert not path.exists()


def test_lines_are_timestamped_and_appended(tmp_path):
    path = tmp_path / "nested" / "debug.log"
    path.parent.mkdir()
    path.write_text("previous run\n", encoding="utf-8")

    diag = DiagnosticLog(path, enabled=True)
    diag.trace("first")
    diag.trace("second")
    diag.close()

    lines = _lines(path)
    assert lines[0] == "previous run"
    assert len(lines) == 3
    for line, expected in zip(lines[1:], ("first", "second")):
        stamp, message = ISO_PREFIX.match(line).groups()
        assert message == expected
        assert datetime.fromisoformat(stamp).tzinfo is not None


def test_toggle_and_relocate(tmp_path):
    first = tmp_path / "a.log"
    second = tmp_path / "b.log"
    diag = DiagnosticLog(first, enabled=True)
    diag.trace("one")
    diag.set_enabled(False)
    diag.trace("dropped")
    diag.set_path(second)
    diag.set_enabled(True)
    diag.trace("two")
    diag.close()

    assert [l.split(" ", 1)[1] for l in _lines(first)] == ["one"]
    assert [l.split(" ", 1)[1] for l in _lines(second)] == ["two"]
    assert diag.path == second


def test_concurrent_writers_produce_whole_lines(tmp_path):
    path = tmp_path / "debug.log"
    diag = DiagnosticLog(path, enabled=True)

    def worker(n):
        for i in range(50):
            diag.trace(f"worker{n} line{i}")

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    diag.close()

    lines = _lines(path)
    assert len(lines) == 200
    assert all(re.search(r" worker\d line\d+$", l) for l in lines)
