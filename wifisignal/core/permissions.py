"""
Permission Gate - Capability requirements for Wi-Fi scanning.

Decides which capabilities a scan needs on a given host platform and which
of them are still missing. Pure queries only: the actual grant flow lives on
the host side.

Requirements:
- Fine and coarse location (scan results reveal location)
- Wi-Fi state read and change (read results, trigger scans)
- Nearby Wi-Fi devices, only from NEARBY_DEVICES_MIN_VERSION upwards
"""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum

# First platform version that gates scanning behind nearby-devices
NEARBY_DEVICES_MIN_VERSION = 33


class Capability(str, Enum):
    """Permissions a scanning client may or may not hold."""

    FINE_LOCATION = "fine_location"
    COARSE_LOCATION = "coarse_location"
    NEARBY_WIFI_DEVICES = "nearby_wifi_devices"
    WIFI_STATE_READ = "wifi_state_read"
    WIFI_STATE_CHANGE = "wifi_state_change"


BASE_CAPABILITIES: frozenset[Capability] = frozenset({
    Capability.FINE_LOCATION,
    Capability.COARSE_LOCATION,
    Capability.WIFI_STATE_READ,
    Capability.WIFI_STATE_CHANGE,
})


def required_capabilities(
    platform_version: int,
    nearby_devices_min_version: int = NEARBY_DEVICES_MIN_VERSION,
) -> frozenset[Capability]:
    """Capabilities a scan needs on ``platform_version``."""
    if platform_version >= nearby_devices_min_version:
        return BASE_CAPABILITIES | {Capability.NEARBY_WIFI_DEVICES}
    return BASE_CAPABILITIES


def missing(
    held: Iterable[Capability],
    platform_version: int,
    nearby_devices_min_version: int = NEARBY_DEVICES_MIN_VERSION,
) -> frozenset[Capability]:
    """Required capabilities not present in ``held``."""
    return required_capabilities(platform_version, nearby_devices_min_version) - frozenset(held)


def is_sufficient(
    held: Iterable[Capability],
    platform_version: int,
    nearby_devices_min_version: int = NEARBY_DEVICES_MIN_VERSION,
) -> bool:
    return not missing(held, platform_version, nearby_devices_min_version)


class PermissionGate:
    """Permission queries bound to a configured version threshold."""

    def __init__(self, nearby_devices_min_version: int = NEARBY_DEVICES_MIN_VERSION) -> None:
        self.nearby_devices_min_version = nearby_devices_min_version

    def required(self, platform_version: int) -> frozenset[Capability]:
        return required_capabilities(platform_version, self.nearby_devices_min_version)

    def missing(self, held: Iterable[Capability], platform_version: int) -> frozenset[Capability]:
        return missing(held, platform_version, self.nearby_devices_min_version)

    def is_sufficient(self, held: Iterable[Capability], platform_version: int) -> bool:
        return is_sufficient(held, platform_version, self.nearby_devices_min_version)

    def get_summary(self, held: Iterable[Capability], platform_version: int) -> dict:
        """Per-capability view for diagnostics."""
        held_set = frozenset(held)
        required = self.required(platform_version)
        return {
            "platform_version": platform_version,
            "capabilities": {
                cap.value: {
                    "required": cap in required,
                    "held": cap in held_set,
                }
                for cap in Capability
            },
            "missing": sorted(c.value for c in required - held_set),
            "sufficient": required <= held_set,
        }
