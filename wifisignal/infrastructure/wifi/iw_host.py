"""
iw Scan Host - Linux nl80211 backend
=====================================

ScanHost built on the ``iw`` command line tool.

- trigger:     iw dev <iface> scan trigger       (returns at once)
- completion:  iw event                          (reader thread)
- results:     iw dev <iface> scan dump          (kernel's BSS cache)
- radio state: /sys/class/net/<iface>/phy80211/rfkill*

Triggering a scan needs CAP_NET_ADMIN; without it the host reports
WIFI_STATE_CHANGE as not held and cannot grant it.

Usage:
    host = IwScanHost("wlan0")
    coordinator = ScanCoordinator(host)
"""

from __future__ import annotations

import logging
import os
import re
import subprocess
import threading
from collections.abc import Iterable, Sequence
from pathlib import Path

from ...core.host import (
    CompletionCallback,
    GrantCallback,
    HostError,
    HostUnavailable,
    PermissionDenied,
    ScanHost,
)
from ...core.permissions import Capability
from ...domain.models import NetworkObservation

logger = logging.getLogger(__name__)

_EVENT_RE = re.compile(r"^(?P<iface>\S+) \(phy #\d+\): scan (?P<what>finished|aborted)")
_SSID_ESCAPE_RE = re.compile(r"\\x([0-9a-fA-F]{2})")


class IwScanHost(ScanHost):
    """ScanHost backed by ``iw`` and sysfs."""

    def __init__(
        self,
        interface: str = "wlan0",
        *,
        platform_version: int = 0,
        command_timeout: float = 5.0,
        sysfs_root: Path = Path("/sys"),
    ) -> None:
        self.interface = interface
        self._platform_version = platform_version
        self.command_timeout = command_timeout
        self.sysfs_root = sysfs_root

        self._lock = threading.Lock()
        self._callbacks: list[CompletionCallback] = []
        self._event_proc: subprocess.Popen | None = None
        self._event_thread: threading.Thread | None = None

    @property
    def platform_version(self) -> int:
        return self._platform_version

    # =========================================================================
    # Permissions
    # =========================================================================

    def held_capabilities(self) -> set[Capability]:
        # Dumping the BSS cache is unprivileged; triggering is not
        held = set(Capability) - {Capability.WIFI_STATE_CHANGE}
        if self._is_privileged():
            held.add(Capability.WIFI_STATE_CHANGE)
        return held

    def request_capabilities(
        self,
        capabilities: Iterable[Capability],
        on_result: GrantCallback,
    ) -> None:
        wanted = sorted(c.value for c in capabilities)
        logger.warning(
            "Cannot grant %s at runtime - run as root or grant CAP_NET_ADMIN",
            wanted,
        )
        on_result(set())

    @staticmethod
    def _is_privileged() -> bool:
        return hasattr(os, "geteuid") and os.geteuid() == 0

    # =========================================================================
    # Radio
    # =========================================================================

    def is_radio_enabled(self) -> bool:
        iface_dir = self.sysfs_root / "class" / "net" / self.interface
        if not iface_dir.exists():
            logger.warning("Interface %s not found", self.interface)
            return False

        for rfkill in (iface_dir / "phy80211").glob("rfkill*"):
            for switch in ("soft", "hard"):
                try:
                    if (rfkill / switch).read_text().strip() == "1":
                        logger.debug("%s blocked by %s rfkill", self.interface, switch)
                        return False
                except OSError as e:
                    logger.debug("rfkill read failed: %s", e)

        operstate = iface_dir / "operstate"
        try:
            # "down" means administratively off; "dormant"/"up" are fine
            if operstate.read_text().strip() == "down":
                flags = int((iface_dir / "flags").read_text().strip(), 16)
                if not flags & 0x1:  # IFF_UP
                    return False
        except (OSError, ValueError):
            pass
        return True

    def trigger_scan(self) -> bool:
        proc = self._run("dev", self.interface, "scan", "trigger")
        if proc.returncode == 0:
            return True

        error_msg = proc.stderr.strip()
        # Device busy is common while a previous scan is still running
        if "busy" in error_msg.lower() or "(-16)" in error_msg:
            logger.debug("Scan trigger refused: device busy")
        else:
            logger.warning("Scan trigger failed: %s", error_msg)
        return False

    def current_results(self) -> Sequence[NetworkObservation]:
        proc = self._run("dev", self.interface, "scan", "dump")
        if proc.returncode != 0:
            error_msg = proc.stderr.strip()
            if "not permitted" in error_msg.lower() or "(-1)" in error_msg:
                raise PermissionDenied(error_msg or "scan dump not permitted")
            raise HostError(f"scan dump failed: {error_msg}")
        return parse_scan_dump(proc.stdout)

    # =========================================================================
    # Completion events
    # =========================================================================

    def subscribe_scan_completion(self, callback: CompletionCallback) -> None:
        with self._lock:
            self._callbacks.append(callback)
            start = self._event_proc is None
        if start:
            try:
                self._start_event_reader()
            except HostUnavailable:
                with self._lock:
                    self._callbacks.remove(callback)
                raise

    def unsubscribe_scan_completion(self, callback: CompletionCallback) -> None:
        with self._lock:
            try:
                self._callbacks.remove(callback)
            except ValueError:
                raise HostError("callback was not subscribed") from None
            stop = not self._callbacks
        if stop:
            self._stop_event_reader()

    def close(self) -> None:
        with self._lock:
            self._callbacks.clear()
        self._stop_event_reader()

    def _start_event_reader(self) -> None:
        try:
            proc = subprocess.Popen(
                ["iw", "event"],
                stdout=subprocess.PIPE,
                stderr=subprocess.DEVNULL,
                text=True,
            )
        except FileNotFoundError as e:
            raise HostUnavailable("iw command not found - install iw package") from e

        thread = threading.Thread(
            target=self._read_events,
            args=(proc,),
            name=f"iw-event-{self.interface}",
            daemon=True,
        )
        with self._lock:
            self._event_proc = proc
            self._event_thread = thread
        thread.start()
        logger.debug("iw event reader started for %s", self.interface)

    def _stop_event_reader(self) -> None:
        with self._lock:
            proc, self._event_proc = self._event_proc, None
            thread, self._event_thread = self._event_thread, None
        if proc is None:
            return
        proc.terminate()
        try:
            proc.wait(timeout=self.command_timeout)
        except subprocess.TimeoutExpired:
            proc.kill()
            proc.wait()
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=self.command_timeout)
        if proc.stdout is not None:
            proc.stdout.close()
        logger.debug("iw event reader stopped for %s", self.interface)

    def _read_events(self, proc: subprocess.Popen) -> None:
        if proc.stdout is None:
            logger.error("iw event started without a stdout pipe")
            return
        try:
            for line in proc.stdout:
                success = parse_event_line(line, self.interface)
                if success is not None:
                    self._dispatch(success)
        except (OSError, ValueError) as e:
            # Pipe closed under us by _stop_event_reader
            logger.debug("iw event stream closed: %s", e)

    def _dispatch(self, success: bool) -> None:
        with self._lock:
            callbacks = list(self._callbacks)
        for callback in callbacks:
            try:
                callback(success)
            except Exception as e:
                logger.error("Completion callback error: %s", e)

    def _run(self, *args: str) -> subprocess.CompletedProcess:
        try:
            return subprocess.run(
                ["iw", *args],
                capture_output=True,
                text=True,
                timeout=self.command_timeout,
                check=False,
            )
        except FileNotFoundError as e:
            raise HostUnavailable("iw command not found - install iw package") from e
        except subprocess.TimeoutExpired as e:
            raise HostError(f"iw {' '.join(args)} timed out") from e


def parse_event_line(line: str, interface: str) -> bool | None:
    """Map an ``iw event`` line to a completion flag, None if irrelevant."""
    match = _EVENT_RE.match(line.strip())
    if not match or match.group("iface") != interface:
        return None
    return match.group("what") == "finished"


def unescape_ssid(raw: str) -> str:
    """
    Decode an SSID as printed by iw.

    iw writes non-printable bytes (and edge spaces, backslashes) as ``\\xNN``.
    An SSID made only of NUL bytes is a hidden network and decodes to "".
    """
    data = bytearray()
    pos = 0
    for match in _SSID_ESCAPE_RE.finditer(raw):
        data += raw[pos:match.start()].encode("utf-8")
        data.append(int(match.group(1), 16))
        pos = match.end()
    data += raw[pos:].encode("utf-8")

    if not data.strip(b"\x00"):
        return ""
    # At most 32 bytes on air, so at most 32 characters here
    return data.decode("utf-8", errors="replace")[:32]


def parse_scan_dump(output: str) -> list[NetworkObservation]:
    """Parse ``iw dev <iface> scan dump`` output into observations."""
    results: list[NetworkObservation] = []
    current: dict = {}

    for line in output.splitlines():
        line = line.strip()

        # New BSS
        if line.startswith("BSS "):
            if _complete(current):
                results.append(_make_observation(current))

            bssid_match = re.search(r"([0-9a-f:]{17})", line, re.I)
            current = {
                "bssid": bssid_match.group(1).upper() if bssid_match else None,
                "ssid": "",
                "frequency": None,
                "rssi": None,
            }

        elif line.startswith("SSID:"):
            current["ssid"] = unescape_ssid(line[5:].strip())

        elif line.startswith("freq:"):
            try:
                # freq can be "2447" or "2447.0" depending on iw version
                current["frequency"] = int(float(line[5:].strip()))
            except (ValueError, TypeError):
                pass

        elif line.startswith("signal:"):
            match = re.search(r"(-?\d+)", line)
            if match:
                current["rssi"] = int(match.group(1))

    # Last BSS
    if _complete(current):
        results.append(_make_observation(current))

    return results


def _complete(data: dict) -> bool:
    if not data.get("bssid"):
        return False
    if data.get("rssi") is None:
        logger.debug("Skipping %s: no signal reported", data["bssid"])
        return False
    return True


def _make_observation(data: dict) -> NetworkObservation:
    freq = data.get("frequency")
    return NetworkObservation(
        ssid=data.get("ssid", ""),
        rssi=data["rssi"],
        bssid=data.get("bssid"),
        frequency=freq,
        channel=freq_to_channel(freq) if freq else None,
    )


def freq_to_channel(freq: int) -> int:
    """Convert frequency (MHz) to channel number."""
    if 2412 <= freq <= 2484:
        if freq == 2484:
            return 14
        return (freq - 2407) // 5
    elif 5170 <= freq <= 5825:
        return (freq - 5000) // 5
    elif 5955 <= freq <= 7115:  # 6GHz
        return (freq - 5950) // 5
    return 0
