"""
Scan Host - Boundary between the scan coordinator and the platform.

Everything slow or privileged (permission dialogs, the radio, the driver's
result cache) sits behind ScanHost. Calls are expected to return quickly;
scan completion and permission grants arrive later through callbacks, and
those callbacks may fire on any thread.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Sequence

from ..domain.models import NetworkObservation
from .permissions import Capability

CompletionCallback = Callable[[bool], None]
GrantCallback = Callable[[set[Capability]], None]


class HostError(Exception):
    """Base class for host-side failures."""


class PermissionDenied(HostError):
    """The host refused to hand out scan results."""


class HostUnavailable(HostError):
    """Backend tooling or interface is missing."""


class ScanHost(ABC):
    """Platform services consumed by ScanCoordinator."""

    @property
    @abstractmethod
    def platform_version(self) -> int:
        """Version used to pick the required capability set."""

    @abstractmethod
    def held_capabilities(self) -> set[Capability]:
        ...

    @abstractmethod
    def request_capabilities(
        self,
        capabilities: Iterable[Capability],
        on_result: GrantCallback,
    ) -> None:
        """Start the grant flow; ``on_result`` receives the granted subset."""

    @abstractmethod
    def is_radio_enabled(self) -> bool:
        ...

    @abstractmethod
    def trigger_scan(self) -> bool:
        """Ask the radio to scan. False means the request was refused."""

    @abstractmethod
    def subscribe_scan_completion(self, callback: CompletionCallback) -> None:
        ...

    @abstractmethod
    def unsubscribe_scan_completion(self, callback: CompletionCallback) -> None:
        ...

    @abstractmethod
    def current_results(self) -> Sequence[NetworkObservation]:
        """
        Most recent result set the host holds.

        Raises:
            PermissionDenied: results are not readable with current grants
        """
