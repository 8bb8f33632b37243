from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Optional, Tuple

GameModeState = Literal["UNKNOWN", "ON", "OFF", "TEMPORARY_ON"]
PolicyAssignment = Literal["UNKNOWN", "AUTOMATIC", "MANUAL"]
PolicySetting = Literal["on", "off", "auto"]
FullscreenProbeResult = Literal["FULLSCREEN", "NOT_FULLSCREEN", "PERMISSION_DENIED"]
Decision = Literal["DEFERRED", "ENABLE", "AUTOMATIC"]


@dataclass(frozen=True)
class FrontmostObservation:
    pid: int
    app_id: str
    name: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.name or self.app_id


@dataclass(frozen=True)
class WindowInfo:
    """One top-level window as reported by the accessibility API."""
    fullscreen_flag: Optional[bool] = None  # None when the app doesn't expose AXFullScreen
    size: Optional[Tuple[float, float]] = None


@dataclass(frozen=True)
class PolicyStatus:
    available: bool = False
    mode: GameModeState = "UNKNOWN"
    assignment: PolicyAssignment = "UNKNOWN"
    raw: str = ""


@dataclass(frozen=True)
class EvaluationOutcome:
    decision: Decision
    requested: Optional[PolicySetting] = None
    succeeded: Optional[bool] = None
    reason: str = ""


@dataclass
class EngineSnapshot:
    """State published to listeners (tray, CLI)."""
    status: Literal["STOPPED", "RUNNING"] = "STOPPED"
    state: GameModeState = "UNKNOWN"  # last value this engine confirmed
    reported_state: GameModeState = "UNKNOWN"  # last value gamepolicyctl status reported
    available: bool = False
    assignment: PolicyAssignment = "UNKNOWN"
    last_outcome: Optional[EvaluationOutcome] = None
    frontmost: Optional[FrontmostObservation] = None
