"""Outbound user notifications through the messaging gateway."""

from __future__ import annotations

import logging

import httpx

from rolecrew.core.exceptions import NotificationError
from rolecrew.models.pipeline import Channel

logger = logging.getLogger(__name__)


class GatewayNotifier:
    """INotifier posting ``{to, platform, text}`` to ``<gateway>/api/send``.

    The gateway resolves the user's phone/chat id from ``to``. Messages for
    the web channel are dropped: web users read status from the dashboard.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def notify(self, user_id: str, channel: str, text: str) -> None:
        if channel == Channel.WEB:
            return
        try:
            response = await self._client.post(
                "/api/send", json={"to": user_id, "platform": str(channel), "text": text},
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise NotificationError(f"Gateway send to {user_id} on {channel} failed: {exc}") from exc


class NullNotifier:
    """INotifier used when no gateway is configured."""

    async def notify(self, user_id: str, channel: str, text: str) -> None:
        logger.debug("No gateway configured; dropping %s message for %s", channel, user_id)
