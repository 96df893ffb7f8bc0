"""Active-pipeline registry on top of the cache backend."""

from __future__ import annotations

import logging

from rolecrew.core.exceptions import CacheError
from rolecrew.core.protocols import ICacheBackend
from rolecrew.models.pipeline import Pipeline

logger = logging.getLogger(__name__)


class PipelineRegistry:
    """Keeps the latest snapshot of each pipeline under ``pipeline:{id}``.

    A second key, ``active:{user_id}:{workspace_id}``, points at the user's
    most recent pipeline that was still running when saved. Writes are best
    effort: the stores behind the ledger hold the durable state, so a cache
    outage is logged and never fails the caller.
    """

    def __init__(self, cache: ICacheBackend, ttl: int = 4 * 60 * 60) -> None:
        self._cache = cache
        self._ttl = ttl

    @staticmethod
    def _key(pipeline_id: str) -> str:
        return f"pipeline:{pipeline_id}"

    @staticmethod
    def _active_key(user_id: str, workspace_id: str) -> str:
        return f"active:{user_id}:{workspace_id}"

    async def save(self, pipeline: Pipeline) -> None:
        try:
            await self._cache.setex(self._key(pipeline.id), self._ttl, pipeline.model_dump_json())
            if not pipeline.is_frozen:
                await self._cache.setex(
                    self._active_key(pipeline.user_id, pipeline.workspace_id), self._ttl, pipeline.id,
                )
        except CacheError as exc:
            logger.warning("Could not cache pipeline %s: %s", pipeline.id, exc,
                           extra={"pipeline_id": pipeline.id})

    async def load(self, pipeline_id: str) -> Pipeline | None:
        raw = await self._cache.get(self._key(pipeline_id))
        return Pipeline.model_validate_json(raw) if raw else None

    async def active(self, user_id: str, workspace_id: str) -> Pipeline | None:
        """The user's pipeline in this workspace that has not yet stopped, if any."""
        pipeline_id = await self._cache.get(self._active_key(user_id, workspace_id))
        if not pipeline_id:
            return None
        pipeline = await self.load(pipeline_id)
        if pipeline is None or pipeline.is_frozen:
            return None
        return pipeline

    async def forget(self, pipeline_id: str) -> None:
        try:
            await self._cache.delete(self._key(pipeline_id))
        except CacheError as exc:
            logger.warning("Could not evict pipeline %s: %s", pipeline_id, exc)
