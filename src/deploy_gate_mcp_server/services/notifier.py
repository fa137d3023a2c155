"""Slack incoming-webhook notifications."""

import logging

import httpx

from ..models.schemas import NotificationPayload

logger = logging.getLogger(__name__)


class NotificationError(Exception):
    """Raised when the webhook rejects or cannot receive a notification."""
    pass


class SlackNotifier:
    """Simple async client for a Slack incoming webhook."""

    def __init__(self, webhook_url: str, transport: httpx.AsyncBaseTransport | None = None):
        self.webhook_url = webhook_url
        self.headers = {
            'Content-Type': 'application/json',
        }
        self.timeout = httpx.Timeout(connect=5.0, read=10.0, write=10.0, pool=5.0)
        self._transport = transport

    async def send(self, payload: NotificationPayload) -> None:
        """
        Post a pipeline status summary.

        Raises:
            NotificationError if the request fails or returns a non-2xx status
        """
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    self.webhook_url,
                    json=payload.to_slack_message(),
                    headers=self.headers,
                )
                response.raise_for_status()
        except httpx.HTTPError as e:
            raise NotificationError(f"Failed to post notification: {e}") from e
        logger.info("Posted %s notification for %s", payload.status, payload.branch)
