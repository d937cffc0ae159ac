"""Shared fixtures: a scriptable ScanHost double."""

from __future__ import annotations

import asyncio

import pytest

from wifisignal.core.host import HostError, ScanHost
from wifisignal.core.permissions import Capability
from wifisignal.domain.models import NetworkObservation


class FakeHost(ScanHost):
    """Records every call; completions and grants are delivered by the test."""

    def __init__(self) -> None:
        self.version = 34
        self.held: set[Capability] = set(Capability)
        self.radio = True
        self.trigger_responses: list[bool] = []  # popped per trigger; True when empty
        self.results: list[NetworkObservation] = []
        self.results_error: Exception | None = None

        self.trigger_calls = 0
        self.subscribe_calls = 0
        self.unsubscribe_calls = 0
        self.callbacks: list = []
        self.permission_requests: list = []

    @property
    def platform_version(self) -> int:
        return self.version

    def held_capabilities(self) -> set[Capability]:
        return set(self.held)

    def request_capabilities(self, capabilities, on_result) -> None:
        self.permission_requests.append((frozenset(capabilities), on_result))

    def is_radio_enabled(self) -> bool:
        return self.radio

    def trigger_scan(self) -> bool:
        self.trigger_calls += 1
        if self.trigger_responses:
            return self.trigger_responses.pop(0)
        return True

    def subscribe_scan_completion(self, callback) -> None:
        self.subscribe_calls += 1
        self.callbacks.append(callback)

    def unsubscribe_scan_completion(self, callback) -> None:
        if callback not in self.callbacks:
            raise HostError("not subscribed")
        self.unsubscribe_calls += 1
        self.callbacks.remove(callback)

    def current_results(self):
        if self.results_error is not None:
            raise self.results_error
        return list(self.results)

    # Test drivers

    def complete(self, success: bool = True) -> None:
        for callback in list(self.callbacks):
            callback(success)

    def grant(self, granted=None) -> None:
        capabilities, on_result = self.permission_requests[-1]
        granted = set(capabilities) if granted is None else set(granted)
        self.held |= granted
        on_result(granted)


def _make_networks(*rssi_values: int) -> list[NetworkObservation]:
    return [NetworkObservation(ssid=f"net{i}", rssi=rssi) for i, rssi in enumerate(rssi_values)]


async def _settle(rounds: int = 5) -> None:
    """Let call_soon_threadsafe callbacks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def host() -> FakeHost:
    return FakeHost()


@pytest.fixture
def make_networks():
    return _make_networks


@pytest.fixture
def settle():
    return _settle
