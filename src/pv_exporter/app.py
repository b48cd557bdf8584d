"""FastAPI application serving the Scope plugin report."""

import asyncio
import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI
from fastapi.responses import PlainTextResponse, Response

from .aggregator import MetricsAggregator
from .config import Settings
from .errors import IdentityLookupError
from .identity import IdentityResolver
from .k8s_client import KubernetesClient, create_incluster_http
from .prom_client import PrometheusClient
from .refresh import RefreshLoop
from .report import PluginSpec, ReportBuilder
from .snapshot import SnapshotStore

logger = logging.getLogger(__name__)


def build_refresh_loop(
    settings: Settings,
    store: SnapshotStore,
    prom_http: httpx.AsyncClient,
    k8s_http: httpx.AsyncClient | None,
) -> RefreshLoop:
    """
    Wire the collection pipeline around pre-built HTTP clients.

    A None k8s_http leaves identity resolution failing every cycle, so empty
    reports are served until an API server is configured.
    """
    prom = PrometheusClient(http=prom_http, volume_label=settings.volume_label)
    return RefreshLoop(
        aggregator=MetricsAggregator(prom),
        resolver=IdentityResolver(KubernetesClient(http=k8s_http)),
        store=store,
        interval_seconds=settings.refresh_interval_seconds,
    )


def create_report_builder(settings: Settings) -> ReportBuilder:
    """Report builder carrying the configured plugin descriptor."""
    return ReportBuilder(
        plugin=PluginSpec(
            id=settings.plugin_id,
            label=settings.plugin_label,
            description=settings.plugin_description,
            interfaces=["reporter"],
            api_version="1",
        )
    )


def create_app(
    settings: Settings | None = None,
    store: SnapshotStore | None = None,
    builder: ReportBuilder | None = None,
    start_refresh: bool = True,
) -> FastAPI:
    """
    Create the plugin application.

    Args:
        settings: Configuration; read from the environment if None.
        store: Snapshot store shared with the refresh loop; a new one if None.
        builder: Report builder; built from settings if None.
        start_refresh: Start the background refresh loop in the lifespan.
            Disabled in tests that publish snapshots directly.
    """
    settings = settings or Settings()
    store = store or SnapshotStore()
    builder = builder or create_report_builder(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager for startup/shutdown."""
        if not start_refresh:
            yield
            return

        # Startup
        try:
            k8s_http = create_incluster_http(
                api_url=settings.kubernetes_api_url,
                token=settings.kubernetes_token,
                timeout=settings.kubernetes_timeout_seconds,
            )
        except IdentityLookupError as e:
            logger.error(f"Kubernetes API unavailable, reports will be empty: {e}")
            k8s_http = None
        prom_http = httpx.AsyncClient(
            base_url=settings.prometheus_url, timeout=settings.query_timeout_seconds
        )
        refresh = build_refresh_loop(settings, store, prom_http, k8s_http)
        app.state.refresh = refresh
        refresh_task = asyncio.create_task(refresh.run())

        yield

        # Shutdown
        refresh.stop()
        refresh_task.cancel()
        try:
            await refresh_task
        except asyncio.CancelledError:
            pass

        await prom_http.aclose()
        if k8s_http is not None:
            await k8s_http.aclose()

    app = FastAPI(
        title="pv-exporter",
        description="Weave Scope plugin reporting OpenEBS PersistentVolume I/O metrics",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.store = store
    app.state.builder = builder
    app.state.refresh = None

    @app.get("/report")
    def report() -> Response:
        """Report endpoint polled by Scope."""
        snapshot = store.current_snapshot()
        try:
            body = builder.render(builder.build(snapshot))
        except ValueError as e:
            # pydantic serialization errors are ValueErrors
            logger.error(f"Failed to serialize report: {e}")
            return PlainTextResponse(str(e), status_code=500)
        return Response(content=body, media_type="application/json")

    @app.get("/health")
    def health_check() -> dict:
        """Health check endpoint."""
        snapshot = store.current_snapshot()
        refresh = app.state.refresh
        return {
            "status": "healthy",
            "volumes": len(snapshot),
            "as_of": snapshot.as_of.isoformat(),
            "refresh": refresh.stats() if refresh is not None else None,
        }

    return app
