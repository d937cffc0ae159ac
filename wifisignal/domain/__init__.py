"""wifisignal Domain Layer - Scan result models and scan state."""

from .models import HIDDEN_NETWORK_LABEL, NetworkObservation, ScanPhase, ScanState

__all__ = [
    "HIDDEN_NETWORK_LABEL",
    "NetworkObservation",
    "ScanPhase",
    "ScanState",
]
