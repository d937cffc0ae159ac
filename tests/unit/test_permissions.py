"""Permission gate tests."""

from wifisignal.core.permissions import (
    BASE_CAPABILITIES,
    NEARBY_DEVICES_MIN_VERSION,
    Capability,
    PermissionGate,
    is_sufficient,
    missing,
    required_capabilities,
)


def test_threshold_is_33():
    assert NEARBY_DEVICES_MIN_VERSION == 33


def test_nearby_devices_only_from_threshold():
    below = required_capabilities(32)
    at = required_capabilities(33)
    assert Capability.NEARBY_WIFI_DEVICES not in below
    assert Capability.NEARBY_WIFI_DEVICES in at
    assert below < at
    assert at - below == {Capability.NEARBY_WIFI_DEVICES}
    assert required_capabilities(40) == at


def test_base_requirements_always_present():
    for version in (0, 21, 29, 33, 35):
        assert BASE_CAPABILITIES <= required_capabilities(version)


def test_required_is_pure():
    assert required_capabilities(34) == required_capabilities(34)


def test_missing():
    held = {Capability.FINE_LOCATION, Capability.COARSE_LOCATION}
    assert missing(held, 30) == {Capability.WIFI_STATE_READ, Capability.WIFI_STATE_CHANGE}
    assert Capability.NEARBY_WIFI_DEVICES in missing(held, 33)
    assert missing(set(Capability), 34) == frozenset()


def test_is_sufficient():
    assert is_sufficient(set(Capability), 34)
    assert is_sufficient(BASE_CAPABILITIES, 32)
    assert not is_sufficient(BASE_CAPABILITIES, 33)
    assert not is_sufficient(set(), 10)


def test_gate_custom_threshold():
    gate = PermissionGate(nearby_devices_min_version=30)
    assert Capability.NEARBY_WIFI_DEVICES in gate.required(31)
    assert not gate.is_sufficient(BASE_CAPABILITIES, 31)
    assert gate.missing(BASE_CAPABILITIES, 29) == frozenset()


def test_summary():
    gate = PermissionGate()
    summary = gate.get_summary({Capability.FINE_LOCATION}, 34)

    assert summary["platform_version"] == 34
    assert summary["sufficient"] is False
    assert summary["capabilities"]["fine_location"] == {"required": True, "held": True}
    assert summary["capabilities"]["nearby_wifi_devices"]["required"] is True
    assert summary["missing"] == sorted(summary["missing"])
    assert "fine_location" not in summary["missing"]
