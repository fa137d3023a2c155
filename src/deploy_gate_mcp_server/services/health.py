"""Post-deployment health checks."""

import logging
from pathlib import Path

import httpx

from .commands import CommandResult, CommandRunner

logger = logging.getLogger(__name__)


class HealthChecker:
    """Checks a deployed service through Ansible ad-hoc commands and HTTP."""

    def __init__(
        self,
        runner: CommandRunner,
        inventory: Path,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.runner = runner
        self.inventory = inventory
        self.timeout = httpx.Timeout(timeout)
        self._transport = transport

    def _ad_hoc(self, hostname: str, shell_command: str) -> list[str]:
        return ["ansible", hostname, "-i", str(self.inventory), "-m", "command", "-a", shell_command]

    async def service_status(self, hostname: str, service: str) -> CommandResult:
        """Query the service manager; exit code 0 means the unit is active."""
        return await self.runner.run(self._ad_hoc(hostname, f"systemctl is-active {service}"))

    async def recent_logs(self, hostname: str, service: str, lines: int = 50) -> CommandResult:
        """Fetch recent system log entries for the service."""
        return await self.runner.run(
            self._ad_hoc(hostname, f"journalctl -u {service} -n {lines} --no-pager")
        )

    @staticmethod
    def health_url(hostname: str, port: str, path: str) -> str:
        if not path.startswith("/"):
            path = "/" + path
        return f"http://{hostname}:{port}{path}"

    async def http_check(self, url: str) -> tuple[bool, str]:
        """
        GET the health endpoint once.

        Returns:
            Tuple of (healthy, detail); healthy iff the response is 2xx
        """
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.get(url)
        except httpx.HTTPError as e:
            logger.warning("Health check request to %s failed: %s", url, e)
            return False, f"GET {url} failed: {e}"

        healthy = response.is_success
        detail = f"GET {url} -> {response.status_code}"
        if not healthy:
            logger.warning("Health check failed: %s", detail)
        return healthy, detail
