"""Command line entry point.

Provides the ``teamcity-exporter`` command, which loads the configuration,
sets up logging and serves the exporter with uvicorn.
"""

from __future__ import annotations

import logging

import typer
import uvicorn

from teamcity_exporter import __version__
from teamcity_exporter.adapters.logging import configure_logging
from teamcity_exporter.adapters.storage.ring_buffer import RingBufferLogStorage
from teamcity_exporter.app import create_app
from teamcity_exporter.config import ConfigError, load_config

logger = logging.getLogger(__name__)

app = typer.Typer(help="Prometheus exporter for TeamCity build statistics")


def parse_listen_address(address: str) -> tuple[str, int]:
    """Split ``host:port`` into its parts; an empty host listens everywhere."""
    host, sep, port = address.rpartition(":")
    if not sep or not port.isdigit():
        raise typer.BadParameter(f"expected HOST:PORT, got '{address}'")
    return host.strip("[]") or "0.0.0.0", int(port)


def _telemetry_path_callback(value: str) -> str:
    if not value.startswith("/"):
        raise typer.BadParameter(f"must start with '/', got '{value}'")
    return value


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"teamcity_exporter {__version__}")
        raise typer.Exit()


@app.command()
def serve(
    config: str = typer.Option("config.yaml", "--config", "-c", help="Path to configuration file"),
    listen_address: str = typer.Option(
        ":9107", "--listen-address", help="Address to listen on for web interface and telemetry"
    ),
    telemetry_path: str = typer.Option(
        "/metrics",
        "--telemetry-path",
        callback=_telemetry_path_callback,
        help="Path under which to expose metrics",
    ),
    log_level: str = typer.Option("INFO", "--log-level", help="Log level"),
    log_buffer_size: int = typer.Option(
        1000, "--log-buffer-size", help="Number of log records kept for /logs"
    ),
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Print version information",
    ),
) -> None:
    """Start the exporter."""
    log_storage = RingBufferLogStorage(max_size=log_buffer_size)
    configure_logging(log_level, log_storage)
    logger.info("Starting teamcity_exporter %s", __version__)

    try:
        exporter_config = load_config(config)
    except ConfigError as e:
        logger.error("%s", e)
        raise typer.Exit(code=1)

    host, port = parse_listen_address(listen_address)
    application = create_app(
        exporter_config, log_storage=log_storage, metrics_path=telemetry_path
    )
    logger.info("Listening on %s:%d", host, port)
    uvicorn.run(application, host=host, port=port, log_config=None)


def main() -> None:
    app()
