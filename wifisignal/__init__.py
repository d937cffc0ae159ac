"""wifisignal - Wi-Fi network discovery with signal quality tiers."""

__version__ = "0.1.0"
