"""IdentityResolver - PersistentVolume name to UID mapping."""

import logging
from dataclasses import dataclass

from pv_exporter.errors import IdentityLookupError
from pv_exporter.k8s_client import KubernetesClient
from pv_exporter.types import VolumeIdentity

logger = logging.getLogger(__name__)


@dataclass
class IdentityResolver:
    """
    Builds the volume name -> UID mapping from a full PV listing.

    The Kubernetes API is the only source of UIDs; the resolver never
    carries an old mapping forward. A failed listing yields an empty
    mapping so no metrics are published under stale identities.

    Attributes:
        k8s: KubernetesClient used for the listing.
    """

    k8s: KubernetesClient

    async def resolve(self) -> VolumeIdentity:
        """
        List all PersistentVolumes and map name to UID.

        Returns:
            Mapping of volume name to UID; empty if the listing failed.
        """
        try:
            volumes = await self.k8s.list_persistent_volumes()
        except IdentityLookupError as e:
            logger.error(f"Identity lookup failed, dropping all volumes: {e}")
            return {}

        return {pv.metadata.name: pv.metadata.uid for pv in volumes}
