"""
Watchtower CLI - Monitor the health of a cluster and alert on failures.

Usage:
    watchtower --url http://127.0.0.1:8899 --interval 60
    watchtower --validator-identity <PUBKEY> --no-duplicate-notifications
    watchtower --monitor-active-stake --once
"""

from __future__ import annotations

import logging
import signal
import sys
from typing import Any, Dict, Optional

import click
import yaml
from pydantic import ValidationError

from watchtower import __version__
from watchtower.config import WatchtowerConfig, is_valid_identity, load_cli_config, validate_url
from watchtower.constants import DEFAULT_INTERVAL_S
from watchtower.logger import configure_logging

logger = logging.getLogger("watchtower.cli")


def _validate_url_option(ctx, param, value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    try:
        return validate_url(value)
    except ValueError as e:
        raise click.BadParameter(str(e))


def _validate_identities(ctx, param, value: tuple) -> tuple:
    for identity in value:
        if not is_valid_identity(identity):
            raise click.BadParameter(f"{identity} is not a valid validator identity pubkey")
    return value


@click.command()
@click.version_option(version=__version__, prog_name="watchtower")
@click.option(
    "--config",
    "-C",
    "config_file",
    type=click.Path(dir_okay=False),
    help="Configuration file to use",
)
@click.option(
    "--url",
    "json_rpc_url",
    metavar="URL",
    callback=_validate_url_option,
    help="JSON RPC URL for the cluster",
)
@click.option(
    "--interval",
    type=click.IntRange(min=1),
    metavar="SECONDS",
    help=f"Wait interval seconds between checking the cluster [default: {DEFAULT_INTERVAL_S}]",
)
@click.option(
    "--validator-identity",
    "validator_identities",
    multiple=True,
    metavar="PUBKEY",
    callback=_validate_identities,
    help="Monitor a specific validator only instead of the entire cluster (repeatable)",
)
@click.option(
    "--no-duplicate-notifications",
    is_flag=True,
    help="Subsequent identical notifications will be suppressed",
)
@click.option(
    "--monitor-active-stake",
    is_flag=True,
    help="Alert when the current stake for the cluster drops below 80%",
)
@click.option(
    "--log-level",
    type=click.Choice(["debug", "info", "warning", "error"]),
    help="Logging level",
)
@click.option(
    "--log-format",
    type=click.Choice(["json", "text"]),
    help="Log output format",
)
@click.option("--once", is_flag=True, help="Run a single check cycle and exit")
def main(
    config_file: Optional[str],
    json_rpc_url: Optional[str],
    interval: Optional[int],
    validator_identities: tuple,
    no_duplicate_notifications: bool,
    monitor_active_stake: bool,
    log_level: Optional[str],
    log_format: Optional[str],
    once: bool,
):
    """Monitor the health of a cluster."""
    config = _build_config(
        config_file=config_file,
        json_rpc_url=json_rpc_url,
        interval=interval,
        validator_identities=validator_identities,
        no_duplicate_notifications=no_duplicate_notifications,
        monitor_active_stake=monitor_active_stake,
        log_level=log_level,
        log_format=log_format,
    )

    configure_logging(level=config.log_level, fmt=config.log_format)
    logger.info(f"RPC URL: {config.json_rpc_url}")
    if config.validator_identities:
        logger.info(f"Monitored validators: {config.validator_identities}")

    from watchtower.poller import build_poller
    from watchtower.rpc import ClusterRpcClient

    with ClusterRpcClient(config.json_rpc_url, timeout_seconds=config.rpc_timeout_seconds) as client:
        poller = build_poller(config, client)
        try:
            if once:
                outcome = poller.run_cycle()
                sys.exit(0 if outcome.ok else 1)

            def _handle_signal(signum, frame):
                logger.info(f"Received signal {signum}, shutting down")
                poller.stop()

            signal.signal(signal.SIGINT, _handle_signal)
            signal.signal(signal.SIGTERM, _handle_signal)
            poller.run()
        finally:
            poller.telemetry.shutdown()


def _build_config(
    config_file: Optional[str],
    json_rpc_url: Optional[str],
    interval: Optional[int],
    validator_identities: tuple,
    no_duplicate_notifications: bool,
    monitor_active_stake: bool,
    log_level: Optional[str],
    log_format: Optional[str],
) -> WatchtowerConfig:
    """Merge CLI flags over the YAML config file and environment."""
    try:
        overrides: Dict[str, Any] = load_cli_config(config_file)
    except (OSError, yaml.YAMLError) as e:
        raise click.ClickException(f"Unable to load config file {config_file}: {e}")

    if json_rpc_url:
        overrides["json_rpc_url"] = json_rpc_url
    if interval is not None:
        overrides["interval_seconds"] = interval
    if validator_identities:
        overrides["validator_identities"] = list(validator_identities)
    if no_duplicate_notifications:
        overrides["no_duplicate_notifications"] = True
    if monitor_active_stake:
        overrides["monitor_active_stake"] = True
    if log_level:
        overrides["log_level"] = log_level
    if log_format:
        overrides["log_format"] = log_format

    try:
        return WatchtowerConfig(**overrides)
    except ValidationError as e:
        raise click.ClickException(f"Invalid configuration: {e}")


if __name__ == "__main__":
    main()
