"""
Simulated Scan Host
===================

ScanHost with no hardware behind it. Used for demos (``wifisignal scan
--simulate``) and for exercising the coordinator end to end.

Behaves like a phone radio:
- scan completion and permission grants arrive on a timer thread
- the result cache survives failed scans
- a configurable number of triggers are refused (throttling) and a number
  of scans report failure before things start working
"""

from __future__ import annotations

import logging
import random
import threading
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from ...core.host import (
    CompletionCallback,
    GrantCallback,
    HostError,
    PermissionDenied,
    ScanHost,
)
from ...core.permissions import Capability
from ...domain.models import NetworkObservation
from .iw_host import freq_to_channel

if TYPE_CHECKING:
    from ...config import SimulationConfig

logger = logging.getLogger(__name__)


class SimulatedScanHost(ScanHost):
    """Fake radio with fixture networks and RSSI jitter."""

    def __init__(
        self,
        networks: Sequence[NetworkObservation] = (),
        *,
        platform_version: int = 34,
        held: Iterable[Capability] | None = None,
        grant_all: bool = True,
        radio_enabled: bool = True,
        completion_delay: float = 0.5,
        reject_triggers: int = 0,
        fail_completions: int = 0,
        rssi_jitter: int = 5,
        seed: int | None = None,
    ) -> None:
        self._networks = list(networks)
        self._platform_version = platform_version
        self._held: set[Capability] = set(Capability) if held is None else set(held)
        self._grant_all = grant_all
        self.radio_enabled = radio_enabled
        self.completion_delay = completion_delay
        self.reject_triggers = reject_triggers
        self.fail_completions = fail_completions
        self.rssi_jitter = rssi_jitter
        self.results_denied = False

        self._rng = random.Random(seed)
        self._lock = threading.Lock()
        self._callbacks: list[CompletionCallback] = []
        self._timers: list[threading.Timer] = []
        self._cache: tuple[NetworkObservation, ...] = ()
        self._stats = {
            "triggers": 0,
            "triggers_rejected": 0,
            "scans_completed": 0,
            "scans_failed": 0,
        }

    @classmethod
    def from_config(cls, cfg: SimulationConfig) -> SimulatedScanHost:
        networks = [
            NetworkObservation(
                ssid=n.ssid,
                rssi=n.rssi,
                bssid=n.bssid,
                frequency=n.frequency,
                channel=freq_to_channel(n.frequency) if n.frequency else None,
            )
            for n in cfg.networks
        ]
        held = None if cfg.held is None else [Capability(name) for name in cfg.held]
        return cls(
            networks,
            platform_version=cfg.platform_version,
            held=held,
            grant_all=cfg.grant_all,
            radio_enabled=cfg.radio_enabled,
            completion_delay=cfg.completion_delay_secs,
            reject_triggers=cfg.reject_triggers,
            fail_completions=cfg.fail_completions,
            rssi_jitter=cfg.rssi_jitter,
            seed=cfg.seed,
        )

    @property
    def platform_version(self) -> int:
        return self._platform_version

    @property
    def stats(self) -> dict[str, int]:
        return dict(self._stats)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._callbacks)

    # =========================================================================
    # Permissions
    # =========================================================================

    def held_capabilities(self) -> set[Capability]:
        with self._lock:
            return set(self._held)

    def revoke(self, *capabilities: Capability) -> None:
        with self._lock:
            self._held.difference_update(capabilities)

    def request_capabilities(
        self,
        capabilities: Iterable[Capability],
        on_result: GrantCallback,
    ) -> None:
        requested = set(capabilities)
        granted = requested if self._grant_all else set()
        if granted:
            with self._lock:
                self._held |= granted
        logger.debug("Simulated grant: %s", sorted(c.value for c in granted))
        self._later(0.0, on_result, granted)

    # =========================================================================
    # Radio
    # =========================================================================

    def is_radio_enabled(self) -> bool:
        return self.radio_enabled

    def trigger_scan(self) -> bool:
        self._stats["triggers"] += 1
        if self.reject_triggers > 0:
            self.reject_triggers -= 1
            self._stats["triggers_rejected"] += 1
            logger.debug("Simulated trigger rejected (throttled)")
            return False

        success = True
        if self.fail_completions > 0:
            self.fail_completions -= 1
            success = False
        self._later(self.completion_delay, self._complete, success)
        return True

    def subscribe_scan_completion(self, callback: CompletionCallback) -> None:
        with self._lock:
            self._callbacks.append(callback)

    def unsubscribe_scan_completion(self, callback: CompletionCallback) -> None:
        with self._lock:
            try:
                self._callbacks.remove(callback)
            except ValueError:
                raise HostError("callback was not subscribed") from None

    def current_results(self) -> Sequence[NetworkObservation]:
        if self.results_denied:
            raise PermissionDenied("location permission revoked")
        return self._cache

    def close(self) -> None:
        """Cancel outstanding timers."""
        with self._lock:
            timers, self._timers = self._timers, []
        for timer in timers:
            timer.cancel()

    # =========================================================================
    # Internals
    # =========================================================================

    def _complete(self, success: bool) -> None:
        if success:
            self._cache = self._snapshot()
            self._stats["scans_completed"] += 1
        else:
            self._stats["scans_failed"] += 1

        with self._lock:
            callbacks = list(self._callbacks)
        for callback in callbacks:
            try:
                callback(success)
            except Exception as e:
                logger.error("Completion callback error: %s", e)

    def _snapshot(self) -> tuple[NetworkObservation, ...]:
        now = datetime.now(UTC)
        results = []
        for net in self._networks:
            jitter = self._rng.randint(-self.rssi_jitter, self.rssi_jitter) if self.rssi_jitter else 0
            results.append(net.model_copy(update={
                "rssi": min(-30, max(-100, net.rssi + jitter)),
                "timestamp": now,
            }))
        return tuple(results)

    def _later(self, delay: float, fn, *args) -> None:
        timer = threading.Timer(delay, fn, args=args)
        timer.daemon = True
        with self._lock:
            self._timers = [t for t in self._timers if t.is_alive()]
            self._timers.append(timer)
        timer.start()
