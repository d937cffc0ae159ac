"""
Signal Classifier - RSSI to quality tier mapping.

Maps a raw dBm measurement onto a 5-level scale spread evenly between the
radio's minimum and maximum measurable RSSI:

    rssi <= min_rssi          -> VERY_POOR
    rssi >= max_rssi          -> EXCELLENT
    otherwise                 -> floor((rssi - min_rssi) * 4 / (max_rssi - min_rssi))

Anything that is not an integer dBm value inside the plausible window
(floor_dbm..ceiling_dbm) classifies as UNKNOWN.

Usage:
    tier, label = classify(-67)      # (SignalTier.FAIR, "Fair")
    describe(-67)                    # "Signal: Fair (-67 dBm)"
"""

from __future__ import annotations

from enum import IntEnum
from typing import Any

MIN_RSSI = -100
MAX_RSSI = -55
NUM_LEVELS = 5

# Readings outside this window are treated as driver garbage
FLOOR_DBM = -127
CEILING_DBM = 0


class SignalTier(IntEnum):
    """Ordered signal quality tiers. UNKNOWN sorts below every real tier."""

    UNKNOWN = -1
    VERY_POOR = 0
    POOR = 1
    FAIR = 2
    GOOD = 3
    EXCELLENT = 4

    @property
    def label(self) -> str:
        return _LABELS[self]


_LABELS = {
    SignalTier.UNKNOWN: "Unknown",
    SignalTier.VERY_POOR: "Very Poor",
    SignalTier.POOR: "Poor",
    SignalTier.FAIR: "Fair",
    SignalTier.GOOD: "Good",
    SignalTier.EXCELLENT: "Excellent",
}


class SignalClassifier:
    """
    Classifier bound to a specific RSSI range.

    The module-level ``classify`` uses the default range; construct one of
    these when a radio reports a different usable range.
    """

    def __init__(
        self,
        min_rssi: int = MIN_RSSI,
        max_rssi: int = MAX_RSSI,
        floor_dbm: int = FLOOR_DBM,
        ceiling_dbm: int = CEILING_DBM,
    ) -> None:
        if min_rssi >= max_rssi:
            raise ValueError("min_rssi must be below max_rssi")
        if not floor_dbm <= min_rssi or not max_rssi <= ceiling_dbm:
            raise ValueError("classification range must lie inside floor_dbm..ceiling_dbm")
        self.min_rssi = min_rssi
        self.max_rssi = max_rssi
        self.floor_dbm = floor_dbm
        self.ceiling_dbm = ceiling_dbm

    def level(self, measurement: Any) -> int | None:
        """Return the 0-4 level, or None when the measurement is unusable."""
        rssi = _parse_rssi(measurement)
        if rssi is None or not self.floor_dbm <= rssi <= self.ceiling_dbm:
            return None
        if rssi <= self.min_rssi:
            return 0
        if rssi >= self.max_rssi:
            return NUM_LEVELS - 1
        # Integer arithmetic keeps boundaries exact
        return (rssi - self.min_rssi) * (NUM_LEVELS - 1) // (self.max_rssi - self.min_rssi)

    def classify(self, measurement: Any) -> tuple[SignalTier, str]:
        level = self.level(measurement)
        tier = SignalTier.UNKNOWN if level is None else SignalTier(level)
        return tier, tier.label

    def describe(self, measurement: Any) -> str:
        """Row text for a list entry, e.g. ``Signal: Good (-60 dBm)``."""
        tier, label = self.classify(measurement)
        if tier is SignalTier.UNKNOWN:
            return f"Signal: {label}"
        return f"Signal: {label} ({_parse_rssi(measurement)} dBm)"

    def to_dict(self) -> dict[str, int]:
        return {
            "min_rssi": self.min_rssi,
            "max_rssi": self.max_rssi,
            "floor_dbm": self.floor_dbm,
            "ceiling_dbm": self.ceiling_dbm,
        }


def _parse_rssi(measurement: Any) -> int | None:
    """Coerce a measurement to int dBm; None if it cannot be read as one."""
    if isinstance(measurement, bool):
        return None
    if isinstance(measurement, int):
        return measurement
    if isinstance(measurement, float):
        return int(measurement) if measurement.is_integer() else None
    if isinstance(measurement, str):
        text = measurement.strip().removesuffix("dBm").strip()
        try:
            return int(text)
        except ValueError:
            return None
    return None


def signal_bars(tier: SignalTier) -> str:
    """Four-cell bar rendering of a tier."""
    if tier is SignalTier.UNKNOWN:
        return "░░░░"
    filled = int(tier)
    return "█" * filled + "░" * (4 - filled)


_default = SignalClassifier()


def classify(measurement: Any) -> tuple[SignalTier, str]:
    """Classify with the default -100..-55 dBm range."""
    return _default.classify(measurement)


def describe(measurement: Any) -> str:
    return _default.describe(measurement)
