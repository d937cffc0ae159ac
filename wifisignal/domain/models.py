"""wifisignal Domain Models - Pydantic models for scan results and scan state."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

HIDDEN_NETWORK_LABEL = "<Hidden Network>"

# Hidden APs often broadcast a run of NUL bytes, raw or as iw-style escapes
_NULL_SSID = re.compile(r"(?:\\x00|\x00)+")


class NetworkObservation(BaseModel):
    """One network seen by a single successful scan read."""

    model_config = ConfigDict(frozen=True)

    ssid: str = Field(default="", max_length=32)  # empty = hidden network
    rssi: int  # dBm
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))

    # Filled in by backends that know them
    bssid: str | None = Field(default=None, pattern=r"^([0-9A-Fa-f]{2}:){5}[0-9A-Fa-f]{2}$")
    frequency: int | None = None  # MHz
    channel: int | None = None

    @property
    def is_hidden(self) -> bool:
        """Check if SSID is hidden/empty."""
        return not self.ssid or _NULL_SSID.fullmatch(self.ssid) is not None

    @property
    def display_name(self) -> str:
        """SSID for display, with a placeholder for hidden networks."""
        return HIDDEN_NETWORK_LABEL if self.is_hidden else self.ssid


class ScanPhase(str, Enum):
    """Scan lifecycle phases."""

    IDLE = "idle"
    AWAITING_PERMISSION = "awaiting_permission"
    SCAN_REQUESTED = "scan_requested"
    AWAITING_COMPLETION = "awaiting_completion"
    RETRY_SCHEDULED = "retry_scheduled"
    DISPLAYING = "displaying"


@dataclass(frozen=True)
class ScanState:
    """Immutable snapshot of the coordinator state.

    ``networks`` carries the displayed list and is only populated in
    ``DISPLAYING``.
    """

    phase: ScanPhase = ScanPhase.IDLE
    networks: tuple[NetworkObservation, ...] = ()

    @classmethod
    def displaying(cls, networks: tuple[NetworkObservation, ...]) -> ScanState:
        return cls(ScanPhase.DISPLAYING, tuple(networks))

    def to_dict(self) -> dict:
        return {
            "phase": self.phase.value,
            "networks": len(self.networks),
        }
