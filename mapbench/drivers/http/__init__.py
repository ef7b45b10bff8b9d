"""HTTP gateway driver and Kubernetes collaborators."""

from .http_driver import HttpDriver, FixedDiscovery
from .http_map import HttpMapClient, HttpMap
from .kubernetes import HelmProvisioner, KubernetesDiscovery

__all__ = [
    "HttpDriver",
    "FixedDiscovery",
    "HttpMapClient",
    "HttpMap",
    "HelmProvisioner",
    "KubernetesDiscovery",
]
