from __future__ import annotations

import asyncio
import importlib.metadata as md
import json
import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .config import WifiSignalConfig, load_config, load_or_default, resolve_config_path
from .core.notices import Severity
from .core.permissions import Capability, PermissionGate
from .core.signal import SignalClassifier, signal_bars
from .infrastructure.wifi import create_host
from .session import SessionReport, run_session

app = typer.Typer(no_args_is_help=True, add_completion=False, help="wifisignal CLI")
console = Console()

_SEVERITY_STYLE = {
    Severity.INFO: "cyan",
    Severity.WARNING: "yellow",
    Severity.ERROR: "red",
}

_TIER_STYLE = ["red", "red", "yellow", "green", "bold green"]


def _setup_logging(cfg: WifiSignalConfig, verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else cfg.logging.level.value,
        format=cfg.logging.format,
        datefmt=cfg.logging.datefmt,
        force=True,
    )


def _load(config: Path | None) -> WifiSignalConfig:
    if config is not None and not Path(config).expanduser().exists():
        console.print(f"[red]Config not found:[/red] {config}")
        raise typer.Exit(code=1)
    try:
        cfg, _ = load_or_default(config)
    except ValueError as exc:
        console.print(f"[red]Config validation failed:[/red] {escape(str(exc))}")
        raise typer.Exit(code=1) from exc
    return cfg


@app.command()
def version() -> None:
    """Print version information."""
    try:
        console.print(f"wifisignal {md.version('wifisignal')}")
    except md.PackageNotFoundError:
        from . import __version__
        console.print(f"wifisignal {__version__}")


@app.command(name="config-validate")
def config_validate(path: Path = typer.Argument(Path("configs/wifisignal.yml"))) -> None:
    """Validate and show resolved configuration."""
    resolved = resolve_config_path(path)
    console.print(f"Using config: {resolved}")
    try:
        cfg = load_config(resolved)
    except (OSError, ValueError) as exc:
        console.print(f"Config validation failed: {escape(str(exc))}")
        raise typer.Exit(code=1) from exc
    console.print("Config OK.")
    console.print(f"- backend: {cfg.scan.backend.value} ({cfg.scan.interface})")
    console.print(f"- signal range: {cfg.signal.min_rssi}..{cfg.signal.max_rssi} dBm")
    console.print(f"- retries: {cfg.retry.max_attempts} (initial {cfg.retry.initial_delay_secs}s)")


@app.command(name="config-which")
def config_which(path: Path = typer.Option(Path("configs/wifisignal.yml"), "--config", "-c")) -> None:
    """Print resolved config path by priority rules."""
    console.print(str(resolve_config_path(path)))


@app.command(context_settings={"ignore_unknown_options": True})
def classify(
    measurements: list[str] = typer.Argument(..., help="RSSI values in dBm"),
    config: Path | None = typer.Option(None, "--config", "-c"),
) -> None:
    """Classify RSSI readings into signal tiers."""
    cfg = _load(config)
    classifier = SignalClassifier(
        min_rssi=cfg.signal.min_rssi,
        max_rssi=cfg.signal.max_rssi,
        floor_dbm=cfg.signal.floor_dbm,
        ceiling_dbm=cfg.signal.ceiling_dbm,
    )
    for raw in measurements:
        tier, _label = classifier.classify(raw)
        console.print(f"{raw:>8}  {signal_bars(tier)}  {classifier.describe(raw)}")


@app.command()
def capabilities(
    platform_version: int = typer.Option(..., "--platform-version", "-p"),
    held: list[str] = typer.Option([], "--held", help="Capability held (repeatable)"),
    config: Path | None = typer.Option(None, "--config", "-c"),
    as_json: bool = typer.Option(False, "--json"),
) -> None:
    """Show required and missing capabilities for a platform version."""
    cfg = _load(config)
    try:
        held_caps = {Capability(name) for name in held}
    except ValueError as exc:
        valid = ", ".join(c.value for c in Capability)
        console.print(f"[red]Unknown capability.[/red] Valid: {valid}")
        raise typer.Exit(code=2) from exc

    gate = PermissionGate(cfg.permissions.nearby_devices_min_version)
    summary = gate.get_summary(held_caps, platform_version)
    if as_json:
        console.print_json(json.dumps(summary))
        return

    table = Table(title=f"Capabilities (platform {platform_version})")
    table.add_column("Capability")
    table.add_column("Required")
    table.add_column("Held")
    for name, info in summary["capabilities"].items():
        table.add_row(name, "yes" if info["required"] else "-", "yes" if info["held"] else "no")
    console.print(table)
    if summary["sufficient"]:
        console.print("[green]Scanning allowed[/green]")
    else:
        console.print(f"[yellow]Missing:[/yellow] {', '.join(summary['missing'])}")


def _render(report: SessionReport) -> None:
    for notice in report.notices:
        style = _SEVERITY_STYLE.get(notice.severity, "white")
        console.print(f"[{style}]{escape(notice.message)}[/{style}]")

    table = Table(title=f"Wi-Fi networks ({report.phase.value})")
    table.add_column("SSID")
    table.add_column("BSSID")
    table.add_column("Ch", justify="right")
    table.add_column("Signal")
    table.add_column("dBm", justify="right")
    for row in report.rows:
        obs = row.observation
        style = _TIER_STYLE[row.tier] if row.tier >= 0 else "dim"
        table.add_row(
            escape(obs.display_name),
            obs.bssid or "-",
            str(obs.channel) if obs.channel else "-",
            f"[{style}]{signal_bars(row.tier)} {row.label}[/{style}]",
            str(obs.rssi),
        )
    console.print(table)


@app.command()
def scan(
    config: Path | None = typer.Option(None, "--config", "-c"),
    simulate: bool = typer.Option(False, "--simulate", help="Use the simulated radio"),
    interface: str | None = typer.Option(None, "--interface", "-i"),
    refreshes: int = typer.Option(1, "--refreshes", "-n", min=1, max=100),
    timeout: float = typer.Option(30.0, "--timeout", min=0.1),
    as_json: bool = typer.Option(False, "--json"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Scan for nearby networks and show their signal quality."""
    cfg = _load(config)
    if interface:
        cfg.scan.interface = interface
    _setup_logging(cfg, verbose)

    host = create_host(cfg, simulate=simulate or None)
    report = asyncio.run(run_session(cfg, host, refreshes=refreshes, timeout=timeout))

    if as_json:
        console.print_json(json.dumps({
            "phase": report.phase.value,
            "timed_out": report.timed_out,
            "notices": [n.to_dict() for n in report.notices],
            "networks": [
                {
                    "ssid": row.observation.display_name,
                    "bssid": row.observation.bssid,
                    "rssi": row.observation.rssi,
                    "tier": row.tier.name,
                    "label": row.label,
                }
                for row in report.rows
            ],
            "stats": report.stats,
        }))
    else:
        _render(report)

    if report.timed_out:
        raise typer.Exit(code=3)
    if any(n.is_error for n in report.notices) and not report.rows:
        raise typer.Exit(code=1)


def launch() -> None:
    """Entry point when executed as a module/script."""
    cli()


cli = typer.main.get_command(app)

__all__ = ["app", "cli"]

if __name__ == "__main__":
    launch()
