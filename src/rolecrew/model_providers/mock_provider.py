"""Mock completion adapter for local development and testing.

Streams canned responses in small fragments. No real LLM calls.
"""

from __future__ import annotations

from collections.abc import AsyncIterator

from rolecrew.models.pipeline import Persona


class MockCompletionAdapter:
    """ICompletionAdapter implementation with deterministic per-role output."""

    def __init__(self, default_response: str = "Mock LLM response", fragment_size: int = 16) -> None:
        self._default_response = default_response
        self._fragment_size = fragment_size
        self._scripts: dict[str, list[str]] = {}
        self._failures: dict[str, tuple[Exception, int]] = {}
        self.calls: list[tuple[str, str]] = []  # (role_id, prompt)

    def set_response(self, role_id: str, *responses: str) -> None:
        """Register responses for a role, used in order; the last one repeats."""
        self._scripts[role_id] = list(responses)

    def fail_on(self, role_id: str, error: Exception, after_fragments: int = 0) -> None:
        """Make the stream for ``role_id`` raise after some fragments."""
        self._failures[role_id] = (error, after_fragments)

    def _next_response(self, role_id: str) -> str:
        script = self._scripts.get(role_id)
        if not script:
            return self._default_response
        return script.pop(0) if len(script) > 1 else script[0]

    async def stream(
        self, persona: Persona, prompt: str, history: list[dict[str, str]]
    ) -> AsyncIterator[str]:
        self.calls.append((persona.role_id, prompt))
        response = self._next_response(persona.role_id)
        failure = self._failures.get(persona.role_id)
        size = self._fragment_size
        for n, start in enumerate(range(0, max(len(response), 1), size)):
            if failure is not None and n >= failure[1]:
                raise failure[0]
            yield response[start:start + size]
        if failure is not None:
            raise failure[0]
