"""Tests for health checks and Slack notifications."""

import json

import httpx
import pytest

from deploy_gate_mcp_server.models.schemas import NotificationPayload
from deploy_gate_mcp_server.services.health import HealthChecker
from deploy_gate_mcp_server.services.notifier import NotificationError, SlackNotifier


class TestHealthChecker:
    def test_health_url(self):
        """Test the URL is built from host, port and path."""
        assert HealthChecker.health_url("dev01", "7868", "/health") == "http://dev01:7868/health"
        assert HealthChecker.health_url("dev01", "80", "status") == "http://dev01:80/status"

    @pytest.mark.asyncio
    async def test_service_status_command(self, fake_runner, tmp_path):
        """Test systemd is queried through an Ansible ad-hoc command."""
        checker = HealthChecker(fake_runner, tmp_path / "inventory.ini")
        result = await checker.service_status("prod01", "webapp")

        assert result.success
        assert fake_runner.commands[0] == [
            "ansible", "prod01", "-i", str(tmp_path / "inventory.ini"),
            "-m", "command", "-a", "systemctl is-active webapp",
        ]

    @pytest.mark.asyncio
    async def test_recent_logs_command(self, fake_runner, tmp_path):
        """Test journalctl is asked for the configured number of lines."""
        checker = HealthChecker(fake_runner, tmp_path / "inventory.ini")
        await checker.recent_logs("prod01", "webapp", lines=20)

        assert fake_runner.commands[0][-1] == "journalctl -u webapp -n 20 --no-pager"

    @pytest.mark.asyncio
    async def test_http_check_success(self, fake_runner, tmp_path, make_transport):
        """Test a 2xx response is healthy."""
        requests = []
        checker = HealthChecker(fake_runner, tmp_path, transport=make_transport(204, requests))
        healthy, detail = await checker.http_check("http://dev01:7868/health")

        assert healthy
        assert detail == "GET http://dev01:7868/health -> 204"
        assert requests[0].method == "GET"

    @pytest.mark.asyncio
    async def test_http_check_error_status(self, fake_runner, tmp_path, make_transport):
        """Test a 5xx response is unhealthy."""
        checker = HealthChecker(fake_runner, tmp_path, transport=make_transport(500))
        healthy, _ = await checker.http_check("http://dev01:7868/health")
        assert not healthy

    @pytest.mark.asyncio
    async def test_http_check_connection_error(self, fake_runner, tmp_path):
        """Test a connection failure is unhealthy, not an exception."""
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        checker = HealthChecker(fake_runner, tmp_path, transport=httpx.MockTransport(handler))
        healthy, detail = await checker.http_check("http://dev01:7868/health")

        assert not healthy
        assert "connection refused" in detail


class TestSlackNotifier:
    def _payload(self, **overrides):
        values = dict(
            status="success",
            repository="acme/webapp",
            branch="main",
            commit="abc1234def",
            actor="dev1",
            environment="production",
            run_id="r1",
        )
        values.update(overrides)
        return NotificationPayload(**values)

    def test_slack_message(self):
        """Test the message carries a text summary plus all fields."""
        message = self._payload().to_slack_message()

        assert message["text"] == "Pipeline success for acme/webapp@main (abc1234) by dev1 -> production"
        assert message["commit"] == "abc1234def"
        assert message["actor"] == "dev1"

    def test_slack_message_without_environment(self):
        """Test runs without a deployment say so."""
        message = self._payload(environment=None, commit="").to_slack_message()
        assert message["text"].endswith("-> no deployment")
        assert "(unknown)" in message["text"]

    @pytest.mark.asyncio
    async def test_send(self, make_transport):
        """Test the payload is posted as JSON to the webhook."""
        requests = []
        notifier = SlackNotifier("https://hooks.slack.test/x", transport=make_transport(200, requests))
        await notifier.send(self._payload())

        assert str(requests[0].url) == "https://hooks.slack.test/x"
        assert json.loads(requests[0].content)["status"] == "success"

    @pytest.mark.asyncio
    async def test_send_failure(self, make_transport):
        """Test a rejected webhook call raises NotificationError."""
        notifier = SlackNotifier("https://hooks.slack.test/x", transport=make_transport(404))
        with pytest.raises(NotificationError):
            await notifier.send(self._payload())
