from __future__ import annotations

import logging
import shutil
import subprocess
import sys
from pathlib import Path
from typing import List, Optional

from packages.shared.paths import app_data_dir

log = logging.getLogger(__name__)

ACCESSIBILITY_SETTINGS_URL = "x-apple.systempreferences:com.apple.preference.security?Privacy_Accessibility"


def remove_app_data(extra_paths: Optional[List[Path]] = None) -> List[Path]:
    """
    Delete configuration, logs and the diagnostic log. Returns what was removed.

    Accessibility permission can't be revoked programmatically; the caller may
    open System Settings with open_accessibility_settings() afterwards.
    """
    removed: List[Path] = []
    for target in [app_data_dir(), *(extra_paths or [])]:
        target = Path(target)
        if not target.exists():
            continue
        if target.is_dir():
            shutil.rmtree(target)
        else:
            target.unlink()
        log.info("Removed %s", target)
        removed.append(target)
    return removed


def open_accessibility_settings() -> bool:
    if sys.platform != "darwin":
        return False
    try:
        subprocess.run(["open", ACCESSIBILITY_SETTINGS_URL], check=False, timeout=5.0)
    except (OSError, subprocess.TimeoutExpired) as e:
        log.warning("Could not open Accessibility settings: %s", e)
        return False
    return True
