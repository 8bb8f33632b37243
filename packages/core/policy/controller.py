from __future__ import annotations

from abc import ABC, abstractmethod

from packages.core.monitor.types import PolicySetting, PolicyStatus


class PolicyController(ABC):
    """Interface for querying and setting the system Game Mode policy."""

    @abstractmethod
    def status(self) -> PolicyStatus:
        """Query the current policy. Must not raise when the utility is missing."""
        ...

    @abstractmethod
    def set(self, mode: PolicySetting) -> bool:
        """Request a policy value. Returns True only when the utility confirmed it."""
        ...

    def is_available(self) -> bool:
        return self.status().available
