"""Environment-based configuration for the exporter."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """pv-exporter configuration.

    All settings can be overridden via environment variables with
    PV_EXPORTER_ prefix. For example:
        PV_EXPORTER_PROMETHEUS_URL=http://prometheus:9090
        PV_EXPORTER_REFRESH_INTERVAL_SECONDS=30
    """

    # Time-series backend (Prometheus query API, e.g. a Cortex agent)
    prometheus_url: str = "http://cortex-agent-service.maya-system.svc.cluster.local:80"
    volume_label: str = "openebs_pv"
    query_timeout_seconds: float = 10.0

    # Refresh loop
    refresh_interval_seconds: float = 2.0

    # Kubernetes API (None = in-cluster service account discovery)
    kubernetes_api_url: str | None = None
    kubernetes_token: str | None = None
    kubernetes_timeout_seconds: float = 10.0

    # Scope plugin endpoint
    socket_path: str = "/var/run/scope/plugins/openebs/openebs.sock"
    plugin_id: str = "openebs"
    plugin_label: str = "OpenEBS Plugin"
    plugin_description: str = "Adds graphs of metrics of OpenEBS PV"

    log_level: str = "INFO"

    model_config = {"env_prefix": "PV_EXPORTER_"}
