"""wifisignal Core - Scan state machine, permission gate, signal tiers and events."""

from .coordinator import ClassifiedNetwork, ScanCoordinator
from .events import Event, EventBus, EventType
from .host import HostError, HostUnavailable, PermissionDenied, ScanHost
from .notices import Notice, NoticeKind, Severity
from .permissions import (
    Capability,
    PermissionGate,
    is_sufficient,
    missing,
    required_capabilities,
)
from .retry import RetryPolicy
from .signal import SignalClassifier, SignalTier, classify, describe, signal_bars

__all__ = [
    # Coordinator
    "ClassifiedNetwork",
    "ScanCoordinator",
    "RetryPolicy",
    # Host boundary
    "HostError",
    "HostUnavailable",
    "PermissionDenied",
    "ScanHost",
    # Events
    "Event",
    "EventBus",
    "EventType",
    "Notice",
    "NoticeKind",
    "Severity",
    # Permissions
    "Capability",
    "PermissionGate",
    "is_sufficient",
    "missing",
    "required_capabilities",
    # Signal
    "SignalClassifier",
    "SignalTier",
    "classify",
    "describe",
    "signal_bars",
]
