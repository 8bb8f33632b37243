from __future__ import annotations

from typing import Literal

from packages.core.monitor.types import EngineSnapshot, GameModeState

IndicatorLevel = Literal["on", "off", "unavailable"]


def display_state(snap: EngineSnapshot) -> GameModeState:
    """Prefer what gamepolicyctl last reported; fall back to the engine's own view."""
    if snap.reported_state != "UNKNOWN":
        return snap.reported_state
    return snap.state


def status_text(snap: EngineSnapshot) -> str:
    if not snap.available:
        return "Game Mode: Xcode required"
    state = display_state(snap)
    if state in ("ON", "TEMPORARY_ON"):
        return "Game Mode: On"
    if state == "OFF":
        return "Game Mode: Off"
    return "Game Mode: -"


def indicator_level(snap: EngineSnapshot) -> IndicatorLevel:
    if not snap.available:
        return "unavailable"
    return "on" if display_state(snap) in ("ON", "TEMPORARY_ON") else "off"
