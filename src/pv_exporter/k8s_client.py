"""
Kubernetes API client for PersistentVolume identity lookup.

This module provides the KubernetesClient class for listing PersistentVolumes
through the Kubernetes REST API. Only the name and UID of each volume are
used; they are the join key between metric labels and report nodes.

KubernetesClient receives an injected httpx.AsyncClient with base_url set to
the API server. create_incluster_http() builds one from the pod's service
account token and CA bundle.

Kubernetes API Documentation:
- https://kubernetes.io/docs/reference/kubernetes-api/config-and-storage-resources/persistent-volume-v1/
"""

import os
from dataclasses import dataclass
from pathlib import Path

import httpx
from pydantic import ValidationError

from pv_exporter.errors import IdentityLookupError
from pv_exporter.responses import PersistentVolume, PersistentVolumeList

SERVICE_ACCOUNT_DIR = Path("/var/run/secrets/kubernetes.io/serviceaccount")


def create_incluster_http(
    api_url: str | None = None,
    token: str | None = None,
    timeout: float = 10.0,
    service_account_dir: Path = SERVICE_ACCOUNT_DIR,
) -> httpx.AsyncClient:
    """
    Build an httpx client for the Kubernetes API server.

    Args:
        api_url: Explicit API server URL. Defaults to
            https://$KUBERNETES_SERVICE_HOST:$KUBERNETES_SERVICE_PORT.
        token: Explicit bearer token. Defaults to the service account token.
        timeout: Request timeout in seconds.
        service_account_dir: Where the token and CA bundle are mounted.

    Returns:
        Configured httpx.AsyncClient.

    Raises:
        IdentityLookupError: If no API server address can be determined.
    """
    if api_url is None:
        host = os.environ.get("KUBERNETES_SERVICE_HOST")
        port = os.environ.get("KUBERNETES_SERVICE_PORT", "443")
        if not host:
            raise IdentityLookupError(
                "not running in a cluster (KUBERNETES_SERVICE_HOST unset) "
                "and no API URL configured"
            )
        # IPv6 service hosts need brackets in URLs
        if ":" in host:
            host = f"[{host}]"
        api_url = f"https://{host}:{port}"

    token_file = service_account_dir / "token"
    if token is None and token_file.exists():
        token = token_file.read_text().strip()

    ca_file = service_account_dir / "ca.crt"
    verify: str | bool = str(ca_file) if ca_file.exists() else True

    headers = {"Authorization": f"Bearer {token}"} if token else {}
    return httpx.AsyncClient(
        base_url=api_url, headers=headers, verify=verify, timeout=timeout
    )


@dataclass
class KubernetesClient:
    """
    Kubernetes API client with injected httpx client.

    Attributes:
        http: Pre-configured httpx.AsyncClient with base_url set to the API server,
            or None when no API server could be discovered. Every listing then
            fails with IdentityLookupError.

    Example:
        async with create_incluster_http() as http:
            client = KubernetesClient(http=http)
            for pv in await client.list_persistent_volumes():
                print(f"{pv.metadata.name}: {pv.metadata.uid}")
    """

    http: httpx.AsyncClient | None

    async def list_persistent_volumes(self) -> list[PersistentVolume]:
        """
        List all PersistentVolumes in the cluster.

        Calls GET /api/v1/persistentvolumes.

        Returns:
            List of PersistentVolume items.

        Raises:
            IdentityLookupError: On connection errors, HTTP errors or
                malformed response data.
        """
        if self.http is None:
            raise IdentityLookupError("no Kubernetes API server configured")

        try:
            response = await self.http.get("/api/v1/persistentvolumes")
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise IdentityLookupError(f"HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise IdentityLookupError(str(e) or e.__class__.__name__) from e

        try:
            data = PersistentVolumeList.model_validate(response.json())
        except ValidationError as e:
            raise IdentityLookupError(f"invalid PersistentVolumeList: {e.error_count()} errors") from e
        except ValueError as e:
            raise IdentityLookupError("invalid JSON") from e

        return data.items
