"""Pluggable persistence backends behind Protocol interfaces."""

from __future__ import annotations

from dataclasses import dataclass

from rolecrew.core.config import AppSettings
from rolecrew.core.protocols import IActivityLog, IApprovalQueue, ICacheBackend, IRecordStore
from rolecrew.persistence.dynamodb_backend import (
    DynamoDBActivityLog,
    DynamoDBApprovalQueue,
    DynamoDBRecordStore,
)
from rolecrew.persistence.memory_backend import (
    MemoryActivityLog,
    MemoryApprovalQueue,
    MemoryCacheBackend,
    MemoryRecordStore,
)
from rolecrew.persistence.redis_backend import RedisCacheBackend


@dataclass
class Persistence:
    """The collaborator stores one orchestrator instance writes to."""

    records: IRecordStore
    approvals: IApprovalQueue
    activity: IActivityLog
    cache: ICacheBackend


def create_persistence(settings: AppSettings | None = None) -> Persistence:
    """Create wired-up persistence backends from application settings.

    ``backend = "memory"`` gives dict-backed stores for local runs;
    ``backend = "aws"`` gives DynamoDB tables plus a Redis cache.
    """
    if settings is None:
        settings = AppSettings()

    if settings.backend == "memory":
        return Persistence(
            records=MemoryRecordStore(),
            approvals=MemoryApprovalQueue(),
            activity=MemoryActivityLog(),
            cache=MemoryCacheBackend(),
        )

    ddb = {
        "table_suffix": settings.dynamodb.table_suffix,
        "region": settings.dynamodb.region,
        "endpoint_url": settings.dynamodb.endpoint_url,
    }
    return Persistence(
        records=DynamoDBRecordStore(**ddb),
        approvals=DynamoDBApprovalQueue(**ddb),
        activity=DynamoDBActivityLog(**ddb),
        cache=RedisCacheBackend(
            host=settings.redis.host,
            port=settings.redis.port,
            db=settings.redis.db,
        ),
    )
