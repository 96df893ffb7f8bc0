"""Shared test doubles: memory backends plus recording outbound adapters."""

from __future__ import annotations

from typing import Any

from rolecrew.core.exceptions import CacheError, DeliveryError, NotificationError, PersistenceError
from rolecrew.model_providers.mock_provider import MockCompletionAdapter
from rolecrew.persistence.memory_backend import (
    MemoryActivityLog,
    MemoryApprovalQueue,
    MemoryCacheBackend,
    MemoryRecordStore,
)

WORKSPACE = "ws-1"
USER = "user-1"
AGENT = "agent-1"
BIO_REQUEST = "Write a one-paragraph company bio"


class RecordingNotifier:
    """INotifier that remembers every message; can be told to fail."""

    def __init__(self, fail: bool = False) -> None:
        self.messages: list[tuple[str, str, str]] = []
        self._fail = fail

    async def notify(self, user_id: str, channel: str, text: str) -> None:
        if self._fail:
            raise NotificationError("gateway down")
        if channel == "web":
            return
        self.messages.append((user_id, str(channel), text))


class RecordingDelivery:
    """IDeliveryHook that remembers payloads; can be told to fail."""

    def __init__(self, fail: bool = False, enabled: bool = True) -> None:
        self.payloads: list[dict[str, Any]] = []
        self._fail = fail
        self._enabled = enabled

    @property
    def enabled(self) -> bool:
        return self._enabled

    async def deliver(self, payload: dict[str, Any]) -> None:
        self.payloads.append(payload)
        if self._fail:
            raise DeliveryError("webhook returned 502")


class FailingRecordStore(MemoryRecordStore):
    """MemoryRecordStore whose chosen operation raises PersistenceError."""

    def __init__(self, fail_on: str) -> None:
        super().__init__()
        self._fail_on = fail_on

    async def insert_project(self, record):
        if self._fail_on == "insert_project":
            raise PersistenceError("documents table unavailable")
        return await super().insert_project(record)

    async def upsert_task(self, record):
        if self._fail_on == "upsert_task":
            raise PersistenceError("documents table unavailable")
        await super().upsert_task(record)


class FlakyActivityLog(MemoryActivityLog):
    """MemoryActivityLog whose first append of ``action_type`` raises PersistenceError."""

    def __init__(self, action_type: str) -> None:
        super().__init__()
        self._action_type = action_type
        self.failures = 0

    async def append(self, entry):
        if entry.action_type == self._action_type and not self.failures:
            self.failures += 1
            raise PersistenceError("activity table throttled")
        return await super().append(entry)


class FailingApprovalQueue(MemoryApprovalQueue):
    """MemoryApprovalQueue whose enqueue always raises PersistenceError."""

    async def enqueue(self, request):
        raise PersistenceError("approval table unavailable")


class FailingCacheBackend(MemoryCacheBackend):
    """MemoryCacheBackend whose writes raise CacheError; reads still work."""

    async def setex(self, key: str, ttl: int, value: str) -> None:
        raise CacheError("redis down")

    async def delete(self, key: str) -> None:
        raise CacheError("redis down")


__all__ = [
    "AGENT",
    "BIO_REQUEST",
    "USER",
    "WORKSPACE",
    "FailingApprovalQueue",
    "FailingCacheBackend",
    "FailingRecordStore",
    "FlakyActivityLog",
    "MemoryActivityLog",
    "MemoryApprovalQueue",
    "MemoryCacheBackend",
    "MemoryRecordStore",
    "MockCompletionAdapter",
    "RecordingDelivery",
    "RecordingNotifier",
]
