from __future__ import annotations

from typing import Dict, List, Literal, Optional
from pydantic import BaseModel, Field

ProcessMatchBackend = Literal["pgrep", "psutil"]


class AppConfig(BaseModel):
    # Trigger set
    selected_app_ids: List[str] = Field(default_factory=list)
    process_names_to_watch: List[str] = Field(default_factory=list)
    process_names_by_app: Dict[str, List[str]] = Field(default_factory=dict)
    compat_launcher_ids: List[str] = Field(default_factory=lambda: ["com.codeweavers.CrossOver"])

    # Diagnostics
    debug_logging_enabled: bool = False
    debug_log_path: Optional[str] = None

    # Timing
    check_interval_seconds: float = 1.5
    check_tolerance_seconds: float = 0.3
    command_timeout_seconds: float = 3.0
    status_refresh_ms: int = 2000

    process_match_backend: ProcessMatchBackend = "pgrep"

    def to_engine_config(self) -> dict:
        return {
            "check_interval_seconds": self.check_interval_seconds,
            "check_tolerance_seconds": self.check_tolerance_seconds,
            "compat_launcher_ids": list(self.compat_launcher_ids),
        }
