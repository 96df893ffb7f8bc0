"""Unit tests for RedisCacheBackend using fakeredis."""

from __future__ import annotations

import json
from unittest.mock import patch

import fakeredis
import pytest
import redis

from rolecrew.core.exceptions import CacheError
from rolecrew.persistence.redis_backend import RedisCacheBackend


@pytest.fixture
def fake_server():
    return fakeredis.FakeServer()


@pytest.fixture
def backend(fake_server):
    with patch("redis.Redis", return_value=fakeredis.FakeRedis(server=fake_server, decode_responses=True)):
        return RedisCacheBackend(host="localhost", port=6379, db=0)


class TestGet:
    @pytest.mark.asyncio
    async def test_returns_none_on_miss(self, backend):
        assert await backend.get("nonexistent") is None

    @pytest.mark.asyncio
    async def test_returns_stored_value(self, backend):
        data = {"id": "pipe_1", "status": "approval"}
        await backend.setex("pipeline:pipe_1", 300, json.dumps(data))
        assert await backend.get("pipeline:pipe_1") == json.dumps(data)


class TestSetex:
    @pytest.mark.asyncio
    async def test_overwrites_existing_value(self, backend):
        await backend.setex("k", 60, "old")
        await backend.setex("k", 60, "new")
        assert await backend.get("k") == "new"

    @pytest.mark.asyncio
    async def test_keys_are_namespaced(self, backend, fake_server):
        await backend.setex("pipeline:pipe_1", 60, "{}")
        raw = fakeredis.FakeRedis(server=fake_server, decode_responses=True)
        assert raw.get("rolecrew:pipeline:pipe_1") == "{}"
        assert 0 < raw.ttl("rolecrew:pipeline:pipe_1") <= 60


class TestDelete:
    @pytest.mark.asyncio
    async def test_removes_existing_key(self, backend):
        await backend.setex("del_me", 60, "val")
        await backend.delete("del_me")
        assert await backend.get("del_me") is None

    @pytest.mark.asyncio
    async def test_noop_on_missing_key(self, backend):
        await backend.delete("never_existed")


class TestErrorWrapping:
    @pytest.mark.asyncio
    async def test_get_wraps_connection_error(self, backend):
        with patch.object(backend._client, "get", side_effect=redis.ConnectionError("down")):
            with pytest.raises(CacheError, match="GET"):
                await backend.get("k")

    @pytest.mark.asyncio
    async def test_setex_wraps_connection_error(self, backend):
        with patch.object(backend._client, "setex", side_effect=redis.ConnectionError("down")):
            with pytest.raises(CacheError, match="SETEX"):
                await backend.setex("k", 60, "v")

    @pytest.mark.asyncio
    async def test_programming_errors_are_not_wrapped(self, backend):
        with patch.object(backend._client, "delete", side_effect=AttributeError("no client")):
            with pytest.raises(AttributeError):
                await backend.delete("k")
