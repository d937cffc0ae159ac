from __future__ import annotations

import os
from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from .core.permissions import NEARBY_DEVICES_MIN_VERSION
from .core.signal import CEILING_DBM, FLOOR_DBM, MAX_RSSI, MIN_RSSI

CONFIG_ENV = "WIFISIGNAL_CONFIG"


class HostBackend(str, Enum):
    IW = "iw"
    SIMULATED = "simulated"


class LogLevel(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


class LoggingConfig(BaseModel):
    level: LogLevel = Field(LogLevel.INFO)
    format: str = Field("%(asctime)s | %(name)s | %(levelname)s | %(message)s")
    datefmt: str = Field("%Y-%m-%d %H:%M:%S")

    @field_validator("level", mode="before")
    @classmethod
    def _upper_level(cls, value: Any) -> Any:
        return value.upper() if isinstance(value, str) else value


class SignalConfig(BaseModel):
    """RSSI range mapped onto the five tiers."""
    min_rssi: int = Field(MIN_RSSI, ge=-127, le=0)
    max_rssi: int = Field(MAX_RSSI, ge=-127, le=0)
    floor_dbm: int = Field(FLOOR_DBM, ge=-200, le=0)
    ceiling_dbm: int = Field(CEILING_DBM, ge=-127, le=30)

    @model_validator(mode="after")
    def _check_range(self) -> SignalConfig:
        if self.min_rssi >= self.max_rssi:
            raise ValueError("signal.min_rssi must be below signal.max_rssi")
        if self.floor_dbm > self.min_rssi or self.ceiling_dbm < self.max_rssi:
            raise ValueError("signal range must lie inside floor_dbm..ceiling_dbm")
        return self


class PermissionsConfig(BaseModel):
    nearby_devices_min_version: int = Field(NEARBY_DEVICES_MIN_VERSION, ge=0)
    # Overrides what the host reports; None = ask the host
    platform_version: int | None = Field(None, ge=0)


class RetryConfig(BaseModel):
    """Retry policy after a rejected trigger or failed scan."""
    max_attempts: int = Field(3, ge=0, le=100)   # consecutive retries; 0 = never retry
    initial_delay_secs: float = Field(1.0, gt=0)
    max_delay_secs: float = Field(30.0, gt=0)
    jitter_frac: float = Field(0.0, ge=0.0, le=0.5)

    @field_validator("max_delay_secs")
    @classmethod
    def _cap_not_less_than_initial(cls, value: float, info: Any) -> float:
        initial = info.data.get("initial_delay_secs", 1.0)
        if value < initial:
            raise ValueError("max_delay_secs must be >= initial_delay_secs")
        return value


class ScanConfig(BaseModel):
    backend: HostBackend = Field(HostBackend.IW)
    interface: str = Field("wlan0")
    completion_timeout_secs: float = Field(15.0, gt=0)
    command_timeout_secs: float = Field(5.0, gt=0)

    @field_validator("interface")
    @classmethod
    def _validate_interface(cls, value: str) -> str:
        if not value or any(c.isspace() for c in value) or "/" in value:
            raise ValueError("interface must be a valid interface name")
        return value


class SimulatedNetwork(BaseModel):
    ssid: str = Field("", max_length=32)
    rssi: int = Field(..., ge=-127, le=0)
    bssid: str | None = None
    frequency: int | None = None


class SimulationConfig(BaseModel):
    """Settings for the simulated host backend."""
    platform_version: int = Field(34, ge=0)
    radio_enabled: bool = Field(True)
    grant_all: bool = Field(True)
    held: list[str] | None = Field(None)  # None = everything
    completion_delay_secs: float = Field(0.5, ge=0)
    reject_triggers: int = Field(0, ge=0)
    fail_completions: int = Field(0, ge=0)
    rssi_jitter: int = Field(5, ge=0, le=20)
    seed: int | None = None
    networks: list[SimulatedNetwork] = Field(default_factory=lambda: [
        SimulatedNetwork(ssid="HomeNetwork", rssi=-48, bssid="AA:BB:CC:DD:EE:01", frequency=2412),
        SimulatedNetwork(ssid="Office-5G", rssi=-63, bssid="AA:BB:CC:DD:EE:02", frequency=5180),
        SimulatedNetwork(ssid="CoffeeShop", rssi=-74, bssid="AA:BB:CC:DD:EE:03", frequency=2437),
        SimulatedNetwork(ssid="", rssi=-86, bssid="AA:BB:CC:DD:EE:04", frequency=2462),
    ])


class WifiSignalConfig(BaseModel):
    scan: ScanConfig = Field(default_factory=ScanConfig)
    signal: SignalConfig = Field(default_factory=SignalConfig)
    permissions: PermissionsConfig = Field(default_factory=PermissionsConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    simulation: SimulationConfig = Field(default_factory=SimulationConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_config(path: Path) -> WifiSignalConfig:
    with Path(path).expanduser().open("r", encoding="utf-8") as fp:
        raw = yaml.safe_load(fp) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"config root must be a mapping, got {type(raw).__name__}")
    try:
        return WifiSignalConfig.model_validate(raw)
    except ValidationError as exc:  # pragma: no cover - formatting
        raise ValueError(str(exc)) from exc


def resolve_config_path(cli_path: Path | None) -> Path:
    """Resolve config path by priority: CLI, env, /etc/wifisignal, repo configs."""
    candidates: list[Path] = []
    if cli_path:
        p = Path(cli_path).expanduser()
        if p.exists():
            return p.resolve()
        candidates.append(p)
    env = os.environ.get(CONFIG_ENV)
    if env:
        p = Path(env).expanduser()
        if p.exists():
            return p.resolve()
        candidates.append(p)
    for p in [Path("/etc/wifisignal/wifisignal.yml"), Path("configs/wifisignal.yml")]:
        if p.exists():
            return p.resolve()
        candidates.append(p)
    # Fallback to first candidate even if not exists to surface errors consistently
    return candidates[0] if candidates else Path("configs/wifisignal.yml").resolve()


def load_or_default(cli_path: Path | None) -> tuple[WifiSignalConfig, Path | None]:
    """Load the resolved config, or defaults when no file exists."""
    resolved = resolve_config_path(cli_path)
    if not resolved.exists():
        return WifiSignalConfig(), None
    return load_config(resolved), resolved
