"""pv-exporter CLI.

This module provides the CLI commands:
- run: Serve the Scope plugin on its Unix socket with background refresh
- once: Run a single refresh cycle and print the resulting report

Options left unset fall back to PV_EXPORTER_* environment variables
through Settings.
"""

import asyncio
import logging
import shutil
import sys
from pathlib import Path

import httpx
import typer
import uvicorn

from pv_exporter.app import build_refresh_loop, create_app, create_report_builder
from pv_exporter.config import Settings
from pv_exporter.errors import IdentityLookupError
from pv_exporter.k8s_client import create_incluster_http
from pv_exporter.snapshot import SnapshotStore

app = typer.Typer(
    name="pv-exporter",
    help="Weave Scope plugin exporting OpenEBS PersistentVolume I/O metrics",
    no_args_is_help=True,
)


def prepare_socket(socket_path: Path) -> None:
    """
    Recreate the socket's parent directory with owner-only permissions.

    The directory is removed first so a stale socket from a previous run
    cannot block the bind.
    """
    shutil.rmtree(socket_path.parent, ignore_errors=True)
    socket_path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)


def cleanup_socket(socket_path: Path) -> None:
    """Remove the socket directory on exit."""
    shutil.rmtree(socket_path.parent, ignore_errors=True)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def load_settings(**overrides: object) -> Settings:
    """Build Settings from the environment, applying CLI options that were given."""
    return Settings(**{k: v for k, v in overrides.items() if v is not None})


@app.command("run")
def run(
    socket: Path = typer.Option(
        None, "--socket", help="Unix socket path Scope connects to"
    ),
    prometheus_url: str = typer.Option(
        None,
        "--prometheus",
        help="Prometheus/Cortex query API URL (e.g., http://prometheus:9090)",
    ),
    interval: float = typer.Option(
        None, "--interval", "-i", help="Refresh interval in seconds"
    ),
    log_level: str = typer.Option(None, "--log-level", help="Logging level"),
) -> None:
    """
    Serve the plugin report until interrupted.

    Environment variables:
        PV_EXPORTER_PROMETHEUS_URL: Query API URL
        PV_EXPORTER_SOCKET_PATH: Unix socket path
        PV_EXPORTER_REFRESH_INTERVAL_SECONDS: Refresh interval
        PV_EXPORTER_KUBERNETES_API_URL: API server (in-cluster if unset)
    """
    settings = load_settings(
        socket_path=str(socket) if socket else None,
        prometheus_url=prometheus_url,
        refresh_interval_seconds=interval,
        log_level=log_level,
    )
    configure_logging(settings.log_level)

    socket_path = Path(settings.socket_path)
    prepare_socket(socket_path)
    logging.getLogger(__name__).info(f"Listening on: unix://{socket_path}")

    try:
        uvicorn.run(
            create_app(settings),
            uds=str(socket_path),
            log_level=settings.log_level.lower(),
        )
    finally:
        cleanup_socket(socket_path)


@app.command("once")
def once(
    prometheus_url: str = typer.Option(
        None, "--prometheus", help="Prometheus/Cortex query API URL"
    ),
    log_level: str = typer.Option(None, "--log-level", help="Logging level"),
) -> None:
    """Run one refresh cycle and print the report JSON to stdout."""
    settings = load_settings(prometheus_url=prometheus_url, log_level=log_level)
    configure_logging(settings.log_level)

    async def _run() -> bytes:
        store = SnapshotStore()
        async with httpx.AsyncClient(
            base_url=settings.prometheus_url, timeout=settings.query_timeout_seconds
        ) as prom_http, create_incluster_http(
            api_url=settings.kubernetes_api_url,
            token=settings.kubernetes_token,
            timeout=settings.kubernetes_timeout_seconds,
        ) as k8s_http:
            refresh = build_refresh_loop(settings, store, prom_http, k8s_http)
            if await refresh.run_cycle() is None:
                raise typer.Exit(1)
        builder = create_report_builder(settings)
        return builder.render(builder.build(store.current_snapshot()))

    try:
        body = asyncio.run(_run())
    except IdentityLookupError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)
    sys.stdout.write(body.decode() + "\n")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
