"""WiFi infrastructure - Scan hosts backing the coordinator."""

from __future__ import annotations

from typing import TYPE_CHECKING

from .iw_host import (
    IwScanHost,
    freq_to_channel,
    parse_event_line,
    parse_scan_dump,
    unescape_ssid,
)
from .simulated import SimulatedScanHost

if TYPE_CHECKING:
    from ...config import WifiSignalConfig
    from ...core.host import ScanHost


def create_host(cfg: WifiSignalConfig, simulate: bool | None = None) -> ScanHost:
    """Build the host selected by ``scan.backend`` (or forced by ``simulate``)."""
    from ...config import HostBackend

    backend = HostBackend.SIMULATED if simulate else cfg.scan.backend
    if backend == HostBackend.SIMULATED:
        return SimulatedScanHost.from_config(cfg.simulation)
    return IwScanHost(
        cfg.scan.interface,
        platform_version=cfg.permissions.platform_version or 0,
        command_timeout=cfg.scan.command_timeout_secs,
    )


__all__ = [
    "IwScanHost",
    "SimulatedScanHost",
    "create_host",
    "freq_to_channel",
    "parse_event_line",
    "parse_scan_dump",
    "unescape_ssid",
]
