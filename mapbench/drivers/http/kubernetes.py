"""Cluster collaborators backed by the ``helm`` and ``kubectl`` command line tools."""

import asyncio
import json
from typing import Any, Dict, List, Optional

from ..base import AbstractDiscovery, AbstractProvisioner
from ...core.errors import ProvisioningError
from ...utils.logging import LoggerMixin

RELEASE_LABEL = "app.kubernetes.io/instance"


class CommandError(Exception):
    """A cluster command exited with a non-zero status."""

    def __init__(self, args: List[str], returncode: int, stderr: str):
        super().__init__(f"{' '.join(args)} exited with {returncode}: {stderr.strip()}")
        self.args_list = args
        self.returncode = returncode
        self.stderr = stderr


async def run_command(args: List[str]) -> str:
    """Run a command and return its stdout.

    Raises:
        CommandError: if the command fails
    """
    process = await asyncio.create_subprocess_exec(
        *args,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE
    )
    stdout, stderr = await process.communicate()
    if process.returncode != 0:
        raise CommandError(args, process.returncode, stderr.decode(errors='replace'))
    return stdout.decode()


def format_set_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class HelmProvisioner(AbstractProvisioner, LoggerMixin):
    """Installs releases with ``helm upgrade --install``, which is idempotent."""

    def __init__(
        self,
        namespace: Optional[str] = None,
        chart_repo: Optional[str] = None,
        helm_binary: str = "helm",
        timeout: Optional[str] = None
    ):
        super().__init__()
        self.namespace = namespace
        self.chart_repo = chart_repo
        self.helm_binary = helm_binary
        self.timeout = timeout

    def build_command(
        self,
        chart: str,
        release: str,
        values: Optional[Dict[str, Any]] = None,
        wait: bool = True
    ) -> List[str]:
        chart_ref = f"{self.chart_repo}/{chart}" if self.chart_repo else chart
        args = [self.helm_binary, "upgrade", "--install", release, chart_ref]
        if self.namespace:
            args += ["--namespace", self.namespace]
        if wait:
            args.append("--wait")
            if self.timeout:
                args += ["--timeout", self.timeout]
        for key, value in (values or {}).items():
            args += ["--set", f"{key}={format_set_value(value)}"]
        return args

    async def install(
        self,
        chart: str,
        release: str,
        values: Optional[Dict[str, Any]] = None,
        wait: bool = True
    ) -> None:
        args = self.build_command(chart, release, values, wait)
        self.logger.info(f"Installing release {release} from chart {chart}")
        try:
            await run_command(args)
        except (CommandError, OSError) as e:
            raise ProvisioningError(f"install of release '{release}' failed: {e}") from e


class KubernetesDiscovery(AbstractDiscovery, LoggerMixin):
    """Resolves a release to the cluster DNS address of its first service."""

    def __init__(self, namespace: Optional[str] = None, kubectl_binary: str = "kubectl"):
        super().__init__()
        self.namespace = namespace
        self.kubectl_binary = kubectl_binary

    def build_command(self, release: str) -> List[str]:
        args = [self.kubectl_binary, "get", "services", "-l", f"{RELEASE_LABEL}={release}", "-o", "json"]
        if self.namespace:
            args += ["--namespace", self.namespace]
        return args

    @staticmethod
    def parse_address(service_list: Dict[str, Any]) -> str:
        """Address of the first service in a ``kubectl -o json`` service list."""
        items = service_list.get("items") or []
        if not items:
            return ""
        service = items[0]
        metadata = service["metadata"]
        port = service["spec"]["ports"][0]["port"]
        return f"{metadata['name']}.{metadata['namespace']}.svc.cluster.local:{port}"

    async def resolve_address(self, release: str) -> str:
        output = await run_command(self.build_command(release))
        address = self.parse_address(json.loads(output))
        if address:
            self.logger.debug(f"Resolved {release} to {address}")
        return address
