"""Streaming completion adapter for an OpenAI-compatible LiteLLM proxy.

Used in uat/prod; the proxy routes to whichever model backs ``model``.
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator

import httpx

from rolecrew.core.exceptions import AdapterError
from rolecrew.models.pipeline import Persona

logger = logging.getLogger(__name__)


def build_messages(
    persona: Persona, prompt: str, history: list[dict[str, str]]
) -> list[dict[str, str]]:
    return [
        {"role": "system", "content": persona.system_prompt},
        *history,
        {"role": "user", "content": prompt},
    ]


class LiteLLMCompletionAdapter:
    """ICompletionAdapter streaming ``/chat/completions`` server-sent events."""

    def __init__(
        self,
        base_url: str,
        model: str,
        api_key: str = "",
        timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._model = model
        headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def stream(
        self, persona: Persona, prompt: str, history: list[dict[str, str]]
    ) -> AsyncIterator[str]:
        body = {
            "model": self._model,
            "messages": build_messages(persona, prompt, history),
            "temperature": persona.temperature,
            "max_tokens": persona.max_tokens,
            "stream": True,
            "metadata": {
                "persona": persona.name,
                "hitl_level": persona.hitl_level,
                "maturity_mode": persona.maturity_mode,
                "resonance_score": persona.resonance_score,
            },
        }
        try:
            async with self._client.stream("POST", "/chat/completions", json=body) as response:
                response.raise_for_status()
                async for line in response.aiter_lines():
                    if not line.startswith("data:"):
                        continue
                    data = line[len("data:"):].strip()
                    if data == "[DONE]":
                        return
                    fragment = _delta_content(data)
                    if fragment:
                        yield fragment
        except httpx.HTTPError as exc:
            logger.warning("Completion stream for %s failed: %s", persona.role_id, exc)
            raise AdapterError(f"{persona.role_id} stream failed: {exc}") from exc
        # stream closed without [DONE]
        raise AdapterError(f"{persona.role_id} stream ended before completion")


def _delta_content(data: str) -> str:
    try:
        chunk = json.loads(data)
    except json.JSONDecodeError:
        return ""
    choices = chunk.get("choices") or []
    if not choices:
        return ""
    return (choices[0].get("delta") or {}).get("content") or ""
