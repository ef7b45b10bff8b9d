"""Driver for map services reached through an HTTP gateway on Kubernetes."""

from typing import Optional

from ..base import AbstractDiscovery, AbstractDriver
from ...core.config import DriverConfig
from .http_map import HttpMapClient
from .kubernetes import HelmProvisioner, KubernetesDiscovery


class HttpDriver(AbstractDriver):
    """HTTP gateway driver.

    Settings (``driver.config``): ``namespace``, ``chart_repo``, ``helm``,
    ``kubectl``, ``helm_timeout``, ``request_timeout`` (seconds),
    ``connection_limit``, ``scheme`` and ``address``. A fixed ``address``
    skips cluster discovery, which is handy when the gateway is
    port-forwarded.
    """

    def __init__(self, driver_config: DriverConfig):
        super().__init__(driver_config)
        settings = self.config.config
        self.namespace: Optional[str] = settings.get("namespace")
        self.request_timeout = float(settings.get("request_timeout", 30.0))
        self.connection_limit = int(settings.get("connection_limit", 100))
        self.scheme = settings.get("scheme", "http")
        self.address: Optional[str] = settings.get("address")

    def create_provisioner(self) -> HelmProvisioner:
        settings = self.config.config
        return HelmProvisioner(
            namespace=self.namespace,
            chart_repo=settings.get("chart_repo"),
            helm_binary=settings.get("helm", "helm"),
            timeout=settings.get("helm_timeout")
        )

    def create_discovery(self) -> AbstractDiscovery:
        if self.address:
            return FixedDiscovery(self.address)
        return KubernetesDiscovery(
            namespace=self.namespace,
            kubectl_binary=self.config.config.get("kubectl", "kubectl")
        )

    async def connect(self, address: str) -> HttpMapClient:
        self.logger.debug(f"Connecting to map gateway at {address}")
        return HttpMapClient(
            address,
            request_timeout=self.request_timeout,
            scheme=self.scheme,
            connection_limit=self.connection_limit
        )


class FixedDiscovery(AbstractDiscovery):
    """Discovery that always answers with a configured address."""

    def __init__(self, address: str):
        self.address = address

    async def resolve_address(self, release: str) -> str:
        return self.address
