"""Delivery webhook fired once a pipeline result is approved."""

from __future__ import annotations

from typing import Any

import httpx

from rolecrew.core.exceptions import DeliveryError


class WebhookDelivery:
    """IDeliveryHook POSTing the approved result to an automation endpoint."""

    def __init__(
        self,
        url: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = url
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    @property
    def enabled(self) -> bool:
        return bool(self._url)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def deliver(self, payload: dict[str, Any]) -> None:
        if not self._url:
            return
        try:
            response = await self._client.post(self._url, json=payload)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise DeliveryError(
                f"Delivery webhook failed for pipeline {payload.get('pipeline_id')}: {exc}"
            ) from exc


class NullDelivery:
    """IDeliveryHook used when no endpoint is configured."""

    @property
    def enabled(self) -> bool:
        return False

    async def deliver(self, payload: dict[str, Any]) -> None:
        return None
