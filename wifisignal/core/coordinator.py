"""
Scan Coordinator - Wi-Fi scan lifecycle state machine
======================================================

Owns the scan state for one session: permission checks, scan triggers,
completion handling, cached-result fallback and retries.

    IDLE --request--> AWAITING_PERMISSION            (capabilities missing)
    IDLE --request--> SCAN_REQUESTED                 (capabilities held)
    SCAN_REQUESTED --accepted--> AWAITING_COMPLETION
    SCAN_REQUESTED --rejected--> RETRY_SCHEDULED     (cached results shown)
    AWAITING_COMPLETION --success--> DISPLAYING
    AWAITING_COMPLETION --failure--> RETRY_SCHEDULED (cached results shown)
    RETRY_SCHEDULED --timer--> SCAN_REQUESTED

A user request is accepted in any state and cancels a pending retry first.

Threading:
    All transitions run on the event loop the coordinator was created on.
    Host callbacks (scan completion, permission grants) may fire on any
    thread; they are forwarded with call_soon_threadsafe and never touch
    state directly.

Usage:
    coordinator = ScanCoordinator(host, bus=bus)
    coordinator.on_state_changed(lambda state: print(state.phase))
    coordinator.start()
    ...
    for row in coordinator.current_list():
        print(row.observation.display_name, row.label)
    coordinator.close()
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable, Sequence
from typing import Any, NamedTuple

from ..domain.models import NetworkObservation, ScanPhase, ScanState
from .events import EventBus, EventType
from .host import HostError, PermissionDenied, ScanHost
from .notices import Notice, NoticeKind, Severity
from .permissions import Capability, PermissionGate
from .retry import RetryPolicy
from .signal import SignalClassifier, SignalTier

logger = logging.getLogger(__name__)

StateListener = Callable[[ScanState], None]
NoticeListener = Callable[[Notice], None]
ResultsListener = Callable[[Sequence[NetworkObservation]], None]


class ClassifiedNetwork(NamedTuple):
    """A list row: observation plus its derived tier and label."""

    observation: NetworkObservation
    tier: SignalTier
    label: str


class ScanCoordinator:
    """
    Single-session scan state machine.

    Args:
        host: Platform boundary
        gate: Permission rules (default threshold if omitted)
        classifier: RSSI tiering (default range if omitted)
        retry: Retry/backoff policy
        bus: Optional event bus that mirrors listener notifications
        loop: Control loop; defaults to the running loop
        platform_version: Override for host.platform_version
        completion_timeout: Seconds to wait for a completion notification
            before treating the scan as failed; None disables the watchdog
    """

    def __init__(
        self,
        host: ScanHost,
        *,
        gate: PermissionGate | None = None,
        classifier: SignalClassifier | None = None,
        retry: RetryPolicy | None = None,
        bus: EventBus | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
        platform_version: int | None = None,
        completion_timeout: float | None = None,
    ) -> None:
        self._host = host
        self._gate = gate or PermissionGate()
        self._classifier = classifier or SignalClassifier()
        self._retry = retry or RetryPolicy()
        self._bus = bus
        self._loop = loop or asyncio.get_running_loop()
        self._platform_version = platform_version
        self._completion_timeout = completion_timeout

        self._state = ScanState()
        self._networks: tuple[NetworkObservation, ...] = ()
        self._retry_handle: asyncio.TimerHandle | None = None
        self._watchdog_handle: asyncio.TimerHandle | None = None
        self._retry_attempts = 0
        self._subscribed = False
        self._grant_pending = False
        self._closed = False

        self._state_listeners: list[StateListener] = []
        self._notice_listeners: list[NoticeListener] = []
        self._results_listeners: list[ResultsListener] = []
        self._stats = {
            "scans_triggered": 0,
            "triggers_rejected": 0,
            "completions": 0,
            "completion_failures": 0,
            "retries_scheduled": 0,
            "retries_cancelled": 0,
            "permission_requests": 0,
        }

    # =========================================================================
    # Public API
    # =========================================================================

    @property
    def state(self) -> ScanState:
        return self._state

    @property
    def phase(self) -> ScanPhase:
        return self._state.phase

    @property
    def networks(self) -> tuple[NetworkObservation, ...]:
        return self._networks

    @property
    def platform_version(self) -> int:
        if self._platform_version is not None:
            return self._platform_version
        return self._host.platform_version

    @property
    def retry_pending(self) -> bool:
        return self._retry_handle is not None

    @property
    def permission_pending(self) -> bool:
        """True while a capability request awaits its grant result."""
        return self._grant_pending

    @property
    def is_subscribed(self) -> bool:
        return self._subscribed

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def stats(self) -> dict[str, int]:
        return dict(self._stats)

    def on_state_changed(self, listener: StateListener) -> None:
        self._state_listeners.append(listener)

    def on_notice(self, listener: NoticeListener) -> None:
        self._notice_listeners.append(listener)

    def on_results_changed(self, listener: ResultsListener) -> None:
        self._results_listeners.append(listener)

    def current_list(self) -> list[ClassifiedNetwork]:
        """Stored networks, classified, strongest first."""
        rows = [
            ClassifiedNetwork(obs, *self._classifier.classify(obs.rssi))
            for obs in self._networks
        ]
        rows.sort(key=lambda r: (r.tier, r.observation.rssi), reverse=True)
        return rows

    def start(self) -> None:
        """Initial request for a session."""
        self.request_refresh()

    def request_refresh(self) -> None:
        """User-initiated refresh. Must be called on the control loop."""
        if self._closed:
            logger.warning("Refresh requested on a closed coordinator")
            return

        if self._cancel_retry():
            self._stats["retries_cancelled"] += 1
            logger.debug("Pending retry cancelled by refresh")
        self._cancel_watchdog()
        self._retry_attempts = 0

        held = self._host.held_capabilities()
        missing = self._gate.missing(held, self.platform_version)
        if missing:
            self._request_permissions(missing)
            return

        self._initialize()

    def close(self) -> None:
        """Release the completion subscription and timers. Idempotent."""
        self._cancel_retry()
        self._cancel_watchdog()

        if self._subscribed:
            self._subscribed = False
            try:
                self._host.unsubscribe_scan_completion(self._on_host_completion)
                logger.debug("Unsubscribed from scan completion")
            except HostError as e:
                logger.error("Error unsubscribing from scan completion: %s", e)

        if not self._closed:
            self._closed = True
            self._emit(EventType.SESSION_CLOSED, self.get_status())
            logger.info("Scan coordinator closed")

    def get_status(self) -> dict[str, Any]:
        return {
            "phase": self.phase.value,
            "networks": len(self._networks),
            "retry_pending": self.retry_pending,
            "retry_attempts": self._retry_attempts,
            "subscribed": self._subscribed,
            "closed": self._closed,
            **self._stats,
        }

    # =========================================================================
    # Host callbacks (any thread)
    # =========================================================================

    def _on_host_completion(self, success: bool) -> None:
        self._marshal(self._handle_completion, bool(success))

    def _on_grant_result(self, granted: Iterable[Capability]) -> None:
        self._marshal(self._handle_grant_result, frozenset(granted))

    def _marshal(self, fn: Callable[..., None], *args: Any) -> None:
        try:
            self._loop.call_soon_threadsafe(fn, *args)
        except RuntimeError:
            logger.warning("Control loop closed, dropping %s", fn.__name__)

    # =========================================================================
    # Transitions (control loop only)
    # =========================================================================

    def _request_permissions(
        self,
        capabilities: Iterable[Capability],
        notify: bool = True,
    ) -> None:
        caps = frozenset(capabilities)
        names = sorted(c.value for c in caps)
        logger.info("Requesting capabilities: %s", names)
        # Set first: state listeners read permission_pending
        self._grant_pending = True
        self._set_state(ScanState(ScanPhase.AWAITING_PERMISSION))
        self._stats["permission_requests"] += 1
        if notify:
            self._raise_notice(
                NoticeKind.PERMISSION_MISSING,
                "Location permission is required for Wi-Fi scanning",
            )
        self._emit(EventType.PERMISSION_REQUESTED, names)
        self._host.request_capabilities(caps, self._on_grant_result)

    def _handle_grant_result(self, granted: frozenset[Capability]) -> None:
        if self._closed:
            return
        self._grant_pending = False
        if self.phase != ScanPhase.AWAITING_PERMISSION:
            logger.debug("Ignoring grant result in phase %s", self.phase.value)
            return

        held = set(self._host.held_capabilities()) | granted
        missing = self._gate.missing(held, self.platform_version)
        if missing:
            logger.info("Some permissions were denied: %s", sorted(c.value for c in missing))
            self._raise_notice(
                NoticeKind.PERMISSION_MISSING,
                "Location permission was denied, Wi-Fi scanning is unavailable",
            )
            return

        logger.info("All permissions granted")
        self._initialize()

    def _initialize(self) -> None:
        """Radio check, completion subscription, first trigger."""
        try:
            radio_on = self._host.is_radio_enabled()
        except HostError as e:
            logger.error("Radio state unavailable: %s", e)
            radio_on = False

        if not radio_on:
            logger.info("Wi-Fi radio is disabled")
            self._raise_notice(NoticeKind.RADIO_DISABLED, "Please enable Wi-Fi in settings")
            self._set_state(ScanState(ScanPhase.IDLE))
            return

        if not self._subscribed:
            try:
                self._host.subscribe_scan_completion(self._on_host_completion)
            except HostError as e:
                logger.error("Cannot subscribe to scan completion: %s", e)
                self._raise_notice(NoticeKind.RADIO_DISABLED, f"Wi-Fi unavailable: {e}")
                self._set_state(ScanState(ScanPhase.IDLE))
                return
            self._subscribed = True
            logger.debug("Subscribed to scan completion")

        self._start_scan()

    def _start_scan(self) -> None:
        self._cancel_retry()

        held = self._host.held_capabilities()
        missing = self._gate.missing(held, self.platform_version)
        if missing:
            logger.info("Missing required permissions")
            self._request_permissions(missing)
            return

        self._set_state(ScanState(ScanPhase.SCAN_REQUESTED))
        try:
            accepted = self._host.trigger_scan()
        except HostError as e:
            logger.error("Error starting Wi-Fi scan: %s", e)
            accepted = False

        self._stats["scans_triggered"] += 1
        logger.debug("Scan trigger accepted: %s", accepted)

        if accepted:
            self._set_state(ScanState(ScanPhase.AWAITING_COMPLETION))
            self._arm_watchdog()
        else:
            self._stats["triggers_rejected"] += 1
            logger.info("Scan trigger rejected, falling back to cached results")
            self._recover(NoticeKind.SCAN_TRIGGER_REJECTED)

    def _handle_completion(self, success: bool) -> None:
        if self._closed:
            return
        logger.debug("Scan completion received. Success: %s", success)

        phase = self.phase
        if phase == ScanPhase.AWAITING_PERMISSION:
            logger.debug("Ignoring completion while awaiting permission")
            return

        if phase == ScanPhase.AWAITING_COMPLETION:
            self._cancel_watchdog()
        elif success:
            # Scan started by another client of the radio
            logger.debug("Unsolicited scan results in phase %s", phase.value)
            self._cancel_retry()
        else:
            logger.debug("Ignoring failure notification in phase %s", phase.value)
            return

        if not success:
            self._stats["completion_failures"] += 1
            logger.info("Scan failed, scheduling retry")
            self._recover(NoticeKind.COMPLETION_FAILURE)
            return

        self._stats["completions"] += 1
        try:
            results = self._read_results()
        except PermissionDenied as e:
            logger.warning("Cannot access scan results: %s", e)
            self._access_denied()
            return
        except HostError as e:
            logger.error("Reading scan results failed: %s", e)
            self._recover(NoticeKind.COMPLETION_FAILURE)
            return

        logger.info("Scan successful. Found %d networks", len(results))
        for obs in results:
            logger.debug("Network found: %s, Signal: %d dBm", obs.display_name, obs.rssi)

        self._retry_attempts = 0
        self._replace_results(results)
        self._set_state(ScanState.displaying(self._networks))
        if not results:
            self._raise_notice(NoticeKind.EMPTY_RESULT_SET, "No Wi-Fi networks found")

    def _recover(self, kind: NoticeKind) -> None:
        """Show whatever the host has cached, then retry once."""
        try:
            cached = self._read_results()
        except PermissionDenied as e:
            logger.warning("Cannot access cached results: %s", e)
            self._access_denied()
            return
        except HostError as e:
            logger.warning("Reading cached results failed: %s", e)
            cached = None

        if cached is not None:
            logger.info("Using cached results. Found %d networks", len(cached))
            self._replace_results(cached)

        if cached:
            self._raise_notice(kind, "Showing cached results.", Severity.INFO)
        else:
            self._raise_notice(kind, "Wi-Fi scan failed and no cached results are available")

        self._schedule_retry()

    def _access_denied(self) -> None:
        """Permission revoked mid-scan: keep the list, re-enter the grant flow."""
        self._cancel_retry()
        self._cancel_watchdog()
        self._raise_notice(
            NoticeKind.RESULTS_ACCESS_DENIED,
            "Permission required to access Wi-Fi scan results",
        )
        held = self._host.held_capabilities()
        missing = self._gate.missing(held, self.platform_version)
        self._request_permissions(missing or self._gate.required(self.platform_version), notify=False)

    def _schedule_retry(self) -> None:
        attempt = self._retry_attempts + 1
        if not self._retry.allows(attempt):
            logger.warning("Scan retries exhausted after %d attempts", self._retry_attempts)
            self._raise_notice(
                NoticeKind.RETRIES_EXHAUSTED,
                "Wi-Fi scan keeps failing, pull to refresh to try again",
            )
            self._set_state(ScanState.displaying(self._networks))
            return

        self._retry_attempts = attempt
        delay = self._retry.delay_for(attempt)
        self._cancel_retry()
        self._retry_handle = self._loop.call_later(delay, self._on_retry_timer)
        self._stats["retries_scheduled"] += 1
        logger.debug("Retry %d scheduled in %.2fs", attempt, delay)
        self._set_state(ScanState(ScanPhase.RETRY_SCHEDULED))

    def _on_retry_timer(self) -> None:
        self._retry_handle = None
        if self._closed or self.phase != ScanPhase.RETRY_SCHEDULED:
            return
        logger.debug("Retry timer fired")
        self._start_scan()

    def _arm_watchdog(self) -> None:
        self._cancel_watchdog()
        if self._completion_timeout is None:
            return
        self._watchdog_handle = self._loop.call_later(
            self._completion_timeout, self._on_completion_timeout
        )

    def _on_completion_timeout(self) -> None:
        self._watchdog_handle = None
        if self._closed or self.phase != ScanPhase.AWAITING_COMPLETION:
            return
        logger.warning("No scan completion after %.1fs", self._completion_timeout)
        self._handle_completion(False)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _read_results(self) -> tuple[NetworkObservation, ...]:
        held = self._host.held_capabilities()
        if not self._gate.is_sufficient(held, self.platform_version):
            raise PermissionDenied("required capabilities no longer held")
        return tuple(self._host.current_results())

    def _replace_results(self, results: tuple[NetworkObservation, ...]) -> None:
        self._networks = results
        for listener in list(self._results_listeners):
            try:
                listener(results)
            except Exception as e:
                logger.error("Results listener error: %s", e)
        self._emit(EventType.RESULTS_UPDATED, self.current_list())

    def _cancel_retry(self) -> bool:
        if self._retry_handle is None:
            return False
        self._retry_handle.cancel()
        self._retry_handle = None
        return True

    def _cancel_watchdog(self) -> None:
        if self._watchdog_handle is not None:
            self._watchdog_handle.cancel()
            self._watchdog_handle = None

    def _set_state(self, state: ScanState) -> None:
        if state == self._state:
            return
        logger.debug("State %s -> %s", self._state.phase.value, state.phase.value)
        self._state = state
        for listener in list(self._state_listeners):
            try:
                listener(state)
            except Exception as e:
                logger.error("State listener error: %s", e)
        self._emit(EventType.SCAN_STATE_CHANGED, state)

    def _raise_notice(
        self,
        kind: NoticeKind,
        message: str,
        severity: Severity | None = None,
    ) -> None:
        notice = Notice(kind, message, severity)
        log = logger.error if notice.is_error else logger.info
        log("%s: %s", kind.name, message)
        for listener in list(self._notice_listeners):
            try:
                listener(notice)
            except Exception as e:
                logger.error("Notice listener error: %s", e)
        self._emit(EventType.SCAN_NOTICE, notice)

    def _emit(self, event_type: EventType, data: Any) -> None:
        if self._bus is not None:
            self._bus.emit(event_type, data)
