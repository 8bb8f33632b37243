import pytest

from fakes import EngineHarness


@pytest.fixture
def harness():
    h = EngineHarness()
    yield h
    h.engine.stop(timeout=2.0)


@pytest.fixture
def app_home(tmp_path, monkeypatch):
    """Point the application data directory at a temp dir."""
    home = tmp_path / "home"
    monkeypatch.setenv("GAMEMODE4ALL_HOME", str(home))
    return home
