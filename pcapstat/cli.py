"""Command line interface for pcapstat."""

from __future__ import annotations

import json
import os
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

import click

from pcapstat.analysis import DEFAULT_TOP_PEERS, AnalysisResult, Analyzer
from pcapstat.errors import AnalysisError
from pcapstat.geo import locate_peers, open_locator
from pcapstat.logging_utils import configure_logging, get_logger
from pcapstat.viz import generate_report

ARTIFACTS_DIRNAME = "artifacts"
SESSION_PREFIX = "session"

ENV_WORKERS = "PCAPSTAT_WORKERS"
ENV_GEOIP_DB = "PCAPSTAT_GEOIP_DB"
ENV_TOP_PEERS = "PCAPSTAT_TOP_PEERS"

LOGGER = get_logger(__name__)


@click.group()
@click.option(
    "--verbose",
    is_flag=True,
    default=False,
    help="Enable debug logging output.",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """Per-host traffic statistics from packet captures."""

    configure_logging(verbose)
    ctx.obj = {"verbose": verbose}


def _create_session_dir(prefix: str = SESSION_PREFIX) -> Path:
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    session_dir = Path.cwd() / ARTIFACTS_DIRNAME / f"{prefix}_{timestamp}"
    session_dir.mkdir(parents=True, exist_ok=True)
    LOGGER.debug("Created session directory at %s", session_dir)
    return session_dir


def _resolve_config(value, env_var: str, default, cast):
    if value is not None:
        return value
    raw = os.getenv(env_var)
    if raw is None or raw == "":
        return default
    try:
        return cast(raw)
    except (ValueError, TypeError):
        LOGGER.warning("Invalid value for %s=%r; falling back to %s", env_var, raw, default)
        return default


def _run_analysis(input_path: Path, target_ip: str, workers: Optional[int], honor_link_type: bool) -> AnalysisResult:
    content = input_path.read_bytes()
    LOGGER.info("Analyzing %s (%s bytes) for target %s", input_path, len(content), target_ip)
    analyzer = Analyzer(workers=workers, honor_interface_link_type=honor_link_type)
    try:
        return analyzer.analyze(content, target_ip)
    except AnalysisError as exc:
        raise click.ClickException(f"Analysis failed: {exc}") from exc


def build_response(result: AnalysisResult, geoip_db: Optional[Path], top: int) -> Dict[str, Any]:
    """Assemble the graph data and geolocated peers into one JSON-ready mapping."""

    locator = open_locator(geoip_db)
    if locator is None:
        locations, map_error = locate_peers(result.sent_ip, None, limit=top)
    else:
        with locator:
            locations, map_error = locate_peers(result.sent_ip, locator, limit=top)

    response: Dict[str, Any] = {
        "graphObjects": result.to_dict(),
        "locations": [location.to_dict() for location in locations],
    }
    if map_error:
        response["mapError"] = map_error
    return response


@cli.command("analyze")
@click.option("--in", "input_path", type=click.Path(exists=True, dir_okay=False, path_type=Path), required=True, help="PCAP/PCAPNG input path")
@click.option("--ip", "target_ip", required=True, help="Target IPv4/IPv6 address to account traffic for")
@click.option("--out", "output_path", type=click.Path(dir_okay=False, path_type=Path), default=None, help="Write JSON to this file instead of stdout")
@click.option(
    "--workers",
    type=click.IntRange(min=1),
    default=None,
    help=f"Worker threads (default: one per CPU; env {ENV_WORKERS})",
)
@click.option(
    "--honor-link-type",
    is_flag=True,
    default=False,
    help="Decode pcapng frames with their interface link type instead of assuming Ethernet.",
)
@click.option(
    "--geoip-db",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help=f"GeoLite2-City.mmdb used to locate the top peers (env {ENV_GEOIP_DB})",
)
@click.option(
    "--top",
    type=click.IntRange(min=1),
    default=None,
    help=f"Number of peers to geolocate (default {DEFAULT_TOP_PEERS}; env {ENV_TOP_PEERS})",
)
def analyze_command(
    input_path: Path,
    target_ip: str,
    output_path: Path | None,
    workers: int | None,
    honor_link_type: bool,
    geoip_db: Path | None,
    top: int | None,
) -> None:
    """Count packets and bytes the target sent and received."""

    workers_value = _resolve_config(workers, ENV_WORKERS, None, int)
    geoip_value = _resolve_config(geoip_db, ENV_GEOIP_DB, None, Path)
    top_value = _resolve_config(top, ENV_TOP_PEERS, DEFAULT_TOP_PEERS, int)

    result = _run_analysis(input_path, target_ip, workers_value, honor_link_type)
    payload = json.dumps(build_response(result, geoip_value, top_value), indent=2)

    if output_path is None:
        click.echo(payload)
        return

    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(payload + "\n", encoding="utf-8")
    click.echo(
        f"Sent {result.sent_packets} packets to {len(result.sent_ip)} peers, "
        f"received {result.received_packets} packets from {len(result.received_ip)} peers"
    )
    click.echo(f"Wrote analysis to {output_path}")


@cli.command("report")
@click.option("--in", "input_path", type=click.Path(exists=True, dir_okay=False, path_type=Path), required=True, help="PCAP/PCAPNG input path")
@click.option("--ip", "target_ip", required=True, help="Target IPv4/IPv6 address to account traffic for")
@click.option("--out-dir", "output_dir", type=click.Path(file_okay=False, path_type=Path), default=None, help="Directory for the HTML report (default: new session directory)")
@click.option(
    "--top",
    type=click.IntRange(min=1),
    default=None,
    help=f"Number of peers per direction to chart (default {DEFAULT_TOP_PEERS}; env {ENV_TOP_PEERS})",
)
@click.option(
    "--honor-link-type",
    is_flag=True,
    default=False,
    help="Decode pcapng frames with their interface link type instead of assuming Ethernet.",
)
def report_command(
    input_path: Path,
    target_ip: str,
    output_dir: Path | None,
    top: int | None,
    honor_link_type: bool,
) -> None:
    """Render timeline and top-peer charts for the target."""

    top_value = _resolve_config(top, ENV_TOP_PEERS, DEFAULT_TOP_PEERS, int)
    workers_value = _resolve_config(None, ENV_WORKERS, None, int)
    result = _run_analysis(input_path, target_ip, workers_value, honor_link_type)

    target_dir = output_dir if output_dir is not None else _create_session_dir()
    report_path = generate_report(result, target_dir, limit=top_value, title=f"pcapstat: {target_ip}")
    click.echo(f"Report written to {report_path}")
    LOGGER.info("Rendered report for %s from %s to %s", target_ip, input_path, report_path)


if __name__ == "__main__":
    cli()
