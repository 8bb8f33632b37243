"""
Trigger applications and process names.

The flat process-name list is always a superset of the names grouped under
application identifiers; a group that becomes empty is dropped.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Callable, Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple

from packages.shared.config import AppConfig

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class TriggerSet:
    """Immutable snapshot read by a single evaluation."""
    app_ids: FrozenSet[str] = frozenset()
    process_names: Tuple[str, ...] = ()
    process_names_by_app: Mapping[str, Tuple[str, ...]] = field(
        default_factory=lambda: MappingProxyType({})
    )

    @property
    def grouped_process_names(self) -> Tuple[str, ...]:
        seen: List[str] = []
        for names in self.process_names_by_app.values():
            for n in names:
                if n not in seen:
                    seen.append(n)
        return tuple(seen)

    @property
    def orphan_process_names(self) -> Tuple[str, ...]:
        """Watched names not tied to any application."""
        grouped = set(self.grouped_process_names)
        return tuple(n for n in self.process_names if n not in grouped)


def _clean(name: str) -> str:
    return name.strip()


class TriggerStore:
    """Mutable owner of the trigger configuration; every edit notifies listeners."""

    def __init__(
        self,
        app_ids: Iterable[str] = (),
        process_names: Iterable[str] = (),
        process_names_by_app: Optional[Mapping[str, Iterable[str]]] = None,
    ) -> None:
        self._lock = threading.Lock()
        self._app_ids: List[str] = []
        self._names: List[str] = []
        self._by_app: Dict[str, List[str]] = {}
        self._listeners: List[Callable[[TriggerSet], None]] = []

        for a in app_ids:
            a = _clean(a)
            if a and a not in self._app_ids:
                self._app_ids.append(a)
        for n in process_names:
            n = _clean(n)
            if n and n not in self._names:
                self._names.append(n)
        for app_id, names in (process_names_by_app or {}).items():
            for n in names:
                self._add_grouped(n, app_id)

    @classmethod
    def from_config(cls, cfg: AppConfig) -> "TriggerStore":
        return cls(cfg.selected_app_ids, cfg.process_names_to_watch, cfg.process_names_by_app)

    def apply_to(self, cfg: AppConfig) -> None:
        snap = self.snapshot()
        cfg.selected_app_ids = sorted(snap.app_ids)
        cfg.process_names_to_watch = list(snap.process_names)
        cfg.process_names_by_app = {k: list(v) for k, v in snap.process_names_by_app.items()}

    def on_change(self, cb: Callable[[TriggerSet], None]) -> None:
        self._listeners.append(cb)

    def snapshot(self) -> TriggerSet:
        with self._lock:
            return TriggerSet(
                app_ids=frozenset(self._app_ids),
                process_names=tuple(self._names),
                process_names_by_app=MappingProxyType({k: tuple(v) for k, v in self._by_app.items()}),
            )

    def _changed(self) -> None:
        snap = self.snapshot()
        for cb in list(self._listeners):
            cb(snap)

    # --- applications ---

    def add_app(self, app_id: str) -> bool:
        app_id = _clean(app_id)
        with self._lock:
            if not app_id or app_id in self._app_ids:
                return False
            self._app_ids.append(app_id)
        log.info("Trigger app added: %s", app_id)
        self._changed()
        return True

    def remove_app(self, app_id: str) -> bool:
        with self._lock:
            if app_id not in self._app_ids:
                return False
            self._app_ids.remove(app_id)
        log.info("Trigger app removed: %s", app_id)
        self._changed()
        return True

    # --- process names ---

    def add_process_name(self, name: str) -> bool:
        name = _clean(name)
        with self._lock:
            if not name or name in self._names:
                return False
            self._names.append(name)
        log.info("Watched process added: %s", name)
        self._changed()
        return True

    def remove_process_name(self, name: str) -> bool:
        """Remove from the flat list and from every application group."""
        with self._lock:
            changed = name in self._names
            if changed:
                self._names.remove(name)
            for app_id in list(self._by_app):
                if name in self._by_app[app_id]:
                    changed = True
                    self._drop_grouped(name, app_id)
        if changed:
            log.info("Watched process removed: %s", name)
            self._changed()
        return changed

    def add_process_name_for_app(self, name: str, app_id: str) -> bool:
        with self._lock:
            added = self._add_grouped(name, app_id)
        if added:
            log.info("Watched process %s added under %s", _clean(name), app_id)
            self._changed()
        return added

    def remove_process_name_for_app(self, name: str, app_id: str) -> bool:
        with self._lock:
            if name not in self._by_app.get(app_id, ()):
                return False
            self._drop_grouped(name, app_id)
            still_grouped = any(name in names for names in self._by_app.values())
            if not still_grouped and name in self._names:
                self._names.remove(name)
        log.info("Watched process %s removed from %s", name, app_id)
        self._changed()
        return True

    # Callers hold self._lock.

    def _add_grouped(self, name: str, app_id: str) -> bool:
        name = _clean(name)
        if not name or not app_id:
            return False
        changed = False
        if name not in self._names:
            self._names.append(name)
            changed = True
        group = self._by_app.setdefault(app_id, [])
        if name not in group:
            group.append(name)
            changed = True
        return changed

    def _drop_grouped(self, name: str, app_id: str) -> None:
        group = [n for n in self._by_app.get(app_id, []) if n != name]
        if group:
            self._by_app[app_id] = group
        else:
            self._by_app.pop(app_id, None)
