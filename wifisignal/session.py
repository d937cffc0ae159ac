"""
Scan session runner - drives a coordinator until its list settles.

The CLI is the presentation layer here: it asks for a refresh, waits until
the coordinator shows a list (or stops on a user-facing condition) and then
renders whatever the coordinator holds.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from .config import WifiSignalConfig
from .core.coordinator import ClassifiedNetwork, ScanCoordinator
from .core.events import Event, EventBus, EventType
from .core.host import ScanHost
from .core.notices import Notice
from .core.permissions import PermissionGate
from .core.retry import RetryPolicy
from .core.signal import SignalClassifier
from .domain.models import ScanPhase

logger = logging.getLogger(__name__)


@dataclass
class SessionReport:
    phase: ScanPhase
    rows: list[ClassifiedNetwork]
    notices: list[Notice] = field(default_factory=list)
    stats: dict[str, int] = field(default_factory=dict)
    timed_out: bool = False


def build_coordinator(
    cfg: WifiSignalConfig,
    host: ScanHost,
    bus: EventBus | None = None,
) -> ScanCoordinator:
    """Wire a coordinator from configuration."""
    return ScanCoordinator(
        host,
        gate=PermissionGate(cfg.permissions.nearby_devices_min_version),
        classifier=SignalClassifier(
            min_rssi=cfg.signal.min_rssi,
            max_rssi=cfg.signal.max_rssi,
            floor_dbm=cfg.signal.floor_dbm,
            ceiling_dbm=cfg.signal.ceiling_dbm,
        ),
        retry=RetryPolicy.from_config(cfg.retry),
        bus=bus,
        platform_version=cfg.permissions.platform_version,
        completion_timeout=cfg.scan.completion_timeout_secs,
    )


def _settled(coordinator: ScanCoordinator) -> bool:
    phase = coordinator.phase
    if phase in (ScanPhase.DISPLAYING, ScanPhase.IDLE):
        return True
    return phase == ScanPhase.AWAITING_PERMISSION and not coordinator.permission_pending


async def run_session(
    cfg: WifiSignalConfig,
    host: ScanHost,
    *,
    refreshes: int = 1,
    timeout: float = 30.0,
    on_event: Callable[[Event], None] | None = None,
) -> SessionReport:
    """
    Run ``refreshes`` refresh cycles and report the final list.

    Each cycle waits at most ``timeout`` seconds for the coordinator to
    settle (DISPLAYING, IDLE, or a denied permission request).
    """
    bus = EventBus()
    notices: list[Notice] = []
    settled = asyncio.Event()

    async def _collect(event: Event) -> None:
        if event.type == EventType.SCAN_NOTICE:
            notices.append(event.data)
        if on_event is not None:
            on_event(event)

    bus.subscribe(_collect)
    await bus.start()

    coordinator = build_coordinator(cfg, host, bus)

    def _check(*_: object) -> None:
        if _settled(coordinator):
            settled.set()

    coordinator.on_state_changed(_check)
    coordinator.on_notice(_check)

    timed_out = False
    try:
        for cycle in range(max(refreshes, 1)):
            settled.clear()
            logger.debug("Refresh cycle %d", cycle + 1)
            coordinator.request_refresh()
            _check()
            try:
                await asyncio.wait_for(settled.wait(), timeout=timeout)
            except TimeoutError:
                logger.warning("Scan did not settle within %.1fs", timeout)
                timed_out = True
                break
            if coordinator.phase != ScanPhase.DISPLAYING:
                break
    finally:
        coordinator.close()
        close = getattr(host, "close", None)
        if callable(close):
            close()
        await bus.stop()

    return SessionReport(
        phase=coordinator.phase,
        rows=coordinator.current_list(),
        notices=notices,
        stats=coordinator.stats,
        timed_out=timed_out,
    )
