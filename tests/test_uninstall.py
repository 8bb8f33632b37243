from packages.core.uninstall import remove_app_data
from packages.shared.paths import config_path, ensure_app_dirs, log_path


def test_removes_app_dir_and_external_debug_log(app_home, tmp_path):
    ensure_app_dirs()
    config_path().write_text("{}", encoding="utf-8")
    log_path().write_text("log", encoding="utf-8")
    external = tmp_path / "elsewhere" / "debug.log"
    external.parent.mkdir()
    external.write_text("trace", encoding="utf-8")

    removed = remove_app_data([external, tmp_path / "missing.log"])

    assert removed == [app_home, external]
    assert not app_home.exists()
    assert not external.exists()


def test_nothing_to_remove(app_home):
    assert remove_app_data() == []
