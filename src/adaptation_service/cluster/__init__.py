"""Cluster orchestration clients."""

from adaptation_service.cluster.base import ClusterClient, ClusterClientFactory
from adaptation_service.cluster.kubernetes_client import KubernetesClusterClient

__all__ = [
    "ClusterClient",
    "ClusterClientFactory",
    "KubernetesClusterClient",
]
