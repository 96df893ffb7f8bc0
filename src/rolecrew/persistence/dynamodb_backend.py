"""DynamoDB backends for the record store, approval queue and activity feed."""

from __future__ import annotations

import asyncio
import uuid
from decimal import Decimal
from typing import Any

import boto3
from boto3.dynamodb.conditions import Attr, Key
from botocore.exceptions import ClientError

from rolecrew.core.exceptions import PersistenceError
from rolecrew.models.pipeline import utc_now
from rolecrew.models.records import (
    ActivityEntry,
    ApprovalRequest,
    ApprovalStatus,
    ProjectRecord,
    TaskRecord,
)

DOCUMENTS_TABLE = "rolecrew-documents"
APPROVAL_QUEUE_TABLE = "rolecrew-approval-queue"
ACTIVITY_FEED_TABLE = "rolecrew-activity-feed"


def _to_dynamodb(obj: Any) -> Any:
    """Convert floats to Decimal for DynamoDB."""
    if isinstance(obj, float):
        return Decimal(str(obj))
    if isinstance(obj, dict):
        return {k: _to_dynamodb(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_to_dynamodb(i) for i in obj]
    return obj


def _decode_decimals(obj: Any) -> Any:
    """Convert Decimal values in a DynamoDB item back to int/float."""
    if isinstance(obj, Decimal):
        return int(obj) if obj == int(obj) else float(obj)
    if isinstance(obj, dict):
        return {k: _decode_decimals(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_decode_decimals(i) for i in obj]
    return obj


def _strip_keys(item: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in item.items() if k not in ("PK", "SK")}


def _update_expression(fields: dict[str, Any]) -> tuple[str, dict[str, str], dict[str, Any]]:
    """Build a SET expression; ``metadata`` keys are merged, not replaced."""
    clauses: list[str] = []
    names: dict[str, str] = {}
    values: dict[str, Any] = {}
    for i, (name, value) in enumerate(fields.items()):
        if name == "metadata":
            names["#meta"] = "metadata"
            for j, (meta_key, meta_value) in enumerate(value.items()):
                names[f"#m{j}"] = meta_key
                values[f":m{j}"] = _to_dynamodb(meta_value)
                clauses.append(f"#meta.#m{j} = :m{j}")
            continue
        names[f"#f{i}"] = name
        values[f":f{i}"] = _to_dynamodb(value)
        clauses.append(f"#f{i} = :f{i}")
    return "SET " + ", ".join(clauses), names, values


def _is_conditional_failure(exc: ClientError) -> bool:
    return exc.response.get("Error", {}).get("Code") == "ConditionalCheckFailedException"


class _DynamoDBBackend:
    """Shared table resolution and client wiring."""

    def __init__(self, table_suffix: str = "", region: str = "us-east-1",
                 endpoint_url: str | None = None) -> None:
        self._table_suffix = table_suffix
        self._region = region
        self._endpoint_url = endpoint_url
        kwargs: dict = {"region_name": region}
        if endpoint_url:
            kwargs["endpoint_url"] = endpoint_url
        self._ddb = boto3.resource("dynamodb", **kwargs)

    def _table(self, base: str):
        return self._ddb.Table(f"{base}{self._table_suffix}")


class DynamoDBRecordStore(_DynamoDBBackend):
    """Production IRecordStore.

    Layout: PK=PROJECT#{project_id}; SK=PROJECT for the project document and
    SK=TASK#{phase} for each task, so task writes are naturally idempotent.
    """

    async def insert_project(self, record: ProjectRecord) -> str:
        project_id = record.id or uuid.uuid4().hex
        item = {
            "PK": f"PROJECT#{project_id}", "SK": "PROJECT",
            **_to_dynamodb(record.model_dump(mode="json")), "id": project_id,
        }
        await asyncio.to_thread(self._put, item)
        return project_id

    async def upsert_task(self, record: TaskRecord) -> None:
        item = {
            "PK": f"PROJECT#{record.project_id}", "SK": f"TASK#{record.phase}",
            **_to_dynamodb(record.model_dump(mode="json")),
        }
        await asyncio.to_thread(self._put, item)

    async def update_task(
        self, workspace_id: str, project_id: str, phase: str, **fields: Any
    ) -> None:
        await asyncio.to_thread(
            self._update,
            {"PK": f"PROJECT#{project_id}", "SK": f"TASK#{phase}"},
            fields,
            workspace_id,
        )

    async def update_project(self, project_id: str, **fields: Any) -> None:
        await asyncio.to_thread(
            self._update, {"PK": f"PROJECT#{project_id}", "SK": "PROJECT"}, fields, None,
        )

    async def get_project(self, project_id: str) -> dict[str, Any] | None:
        return await asyncio.to_thread(self._get_project, project_id)

    async def list_tasks(self, project_id: str) -> list[dict[str, Any]]:
        return await asyncio.to_thread(self._list_tasks, project_id)

    def _put(self, item: dict[str, Any]) -> None:
        try:
            self._table(DOCUMENTS_TABLE).put_item(Item=item)
        except ClientError as exc:
            raise PersistenceError(f"DynamoDB put failed for {item['PK']}/{item['SK']}: {exc}") from exc

    def _update(self, key: dict[str, str], fields: dict[str, Any], workspace_id: str | None) -> None:
        expression, names, values = _update_expression(fields)
        kwargs: dict[str, Any] = {
            "Key": key,
            "UpdateExpression": expression,
            "ExpressionAttributeNames": names,
            "ExpressionAttributeValues": values,
        }
        if workspace_id is None:
            kwargs["ConditionExpression"] = "attribute_exists(PK)"
        else:
            names["#ws"] = "workspace_id"
            values[":ws"] = workspace_id
            kwargs["ConditionExpression"] = "attribute_exists(PK) AND #ws = :ws"
        try:
            self._table(DOCUMENTS_TABLE).update_item(**kwargs)
        except ClientError as exc:
            if _is_conditional_failure(exc):
                return  # no matching record: same as an update that filters to zero rows
            raise PersistenceError(f"DynamoDB update failed for {key['PK']}/{key['SK']}: {exc}") from exc

    def _get_project(self, project_id: str) -> dict[str, Any] | None:
        try:
            resp = self._table(DOCUMENTS_TABLE).get_item(
                Key={"PK": f"PROJECT#{project_id}", "SK": "PROJECT"},
            )
        except ClientError as exc:
            raise PersistenceError(f"DynamoDB get failed for project {project_id}: {exc}") from exc
        item = resp.get("Item")
        return _strip_keys(_decode_decimals(item)) if item else None

    def _list_tasks(self, project_id: str) -> list[dict[str, Any]]:
        try:
            resp = self._table(DOCUMENTS_TABLE).query(
                KeyConditionExpression=Key("PK").eq(f"PROJECT#{project_id}")
                & Key("SK").begins_with("TASK#"),
            )
        except ClientError as exc:
            raise PersistenceError(f"DynamoDB query failed for project {project_id}: {exc}") from exc
        return [_strip_keys(_decode_decimals(i)) for i in resp.get("Items", [])]


class DynamoDBApprovalQueue(_DynamoDBBackend):
    """Production IApprovalQueue. PK=WORKSPACE#{id}, SK=PIPELINE#{id}."""

    async def enqueue(self, request: ApprovalRequest) -> bool:
        return await asyncio.to_thread(self._enqueue, request)

    async def get(self, workspace_id: str, pipeline_id: str) -> ApprovalRequest | None:
        return await asyncio.to_thread(self._get, workspace_id, pipeline_id)

    async def resolve(
        self, workspace_id: str, pipeline_id: str, status: ApprovalStatus
    ) -> None:
        await asyncio.to_thread(self._resolve, workspace_id, pipeline_id, status)

    async def list_pending(self, workspace_id: str) -> list[ApprovalRequest]:
        return await asyncio.to_thread(self._list_pending, workspace_id)

    def _enqueue(self, request: ApprovalRequest) -> bool:
        item = {
            "PK": f"WORKSPACE#{request.workspace_id}",
            "SK": f"PIPELINE#{request.pipeline_id}",
            **_to_dynamodb(request.model_dump(mode="json")),
        }
        try:
            self._table(APPROVAL_QUEUE_TABLE).put_item(
                Item=item, ConditionExpression="attribute_not_exists(PK)",
            )
        except ClientError as exc:
            if _is_conditional_failure(exc):
                return False
            raise PersistenceError(
                f"Approval enqueue failed for pipeline {request.pipeline_id}: {exc}"
            ) from exc
        return True

    def _get(self, workspace_id: str, pipeline_id: str) -> ApprovalRequest | None:
        try:
            resp = self._table(APPROVAL_QUEUE_TABLE).get_item(
                Key={"PK": f"WORKSPACE#{workspace_id}", "SK": f"PIPELINE#{pipeline_id}"},
            )
        except ClientError as exc:
            raise PersistenceError(f"Approval lookup failed for pipeline {pipeline_id}: {exc}") from exc
        item = resp.get("Item")
        return ApprovalRequest.model_validate(_strip_keys(_decode_decimals(item))) if item else None

    def _resolve(self, workspace_id: str, pipeline_id: str, status: ApprovalStatus) -> None:
        try:
            self._table(APPROVAL_QUEUE_TABLE).update_item(
                Key={"PK": f"WORKSPACE#{workspace_id}", "SK": f"PIPELINE#{pipeline_id}"},
                UpdateExpression="SET #st = :st, resolved_at = :ts",
                ConditionExpression="attribute_exists(PK)",
                ExpressionAttributeNames={"#st": "status"},
                ExpressionAttributeValues={":st": str(status), ":ts": utc_now().isoformat()},
            )
        except ClientError as exc:
            if _is_conditional_failure(exc):
                return
            raise PersistenceError(f"Approval resolve failed for pipeline {pipeline_id}: {exc}") from exc

    def _list_pending(self, workspace_id: str) -> list[ApprovalRequest]:
        try:
            resp = self._table(APPROVAL_QUEUE_TABLE).query(
                KeyConditionExpression=Key("PK").eq(f"WORKSPACE#{workspace_id}"),
                FilterExpression=Attr("status").eq(str(ApprovalStatus.PENDING)),
            )
        except ClientError as exc:
            raise PersistenceError(f"Approval listing failed for workspace {workspace_id}: {exc}") from exc
        requests = [
            ApprovalRequest.model_validate(_strip_keys(_decode_decimals(i)))
            for i in resp.get("Items", [])
        ]
        return sorted(requests, key=lambda r: r.created_at)


class DynamoDBActivityLog(_DynamoDBBackend):
    """Production IActivityLog. PK=WORKSPACE#{id}, SK=EVENT#{event_key}."""

    async def append(self, entry: ActivityEntry) -> bool:
        return await asyncio.to_thread(self._append, entry)

    async def exists(self, workspace_id: str, event_key: str) -> bool:
        return await asyncio.to_thread(self._exists, workspace_id, event_key)

    async def list_entries(self, workspace_id: str) -> list[ActivityEntry]:
        return await asyncio.to_thread(self._list_entries, workspace_id)

    def _append(self, entry: ActivityEntry) -> bool:
        item = {
            "PK": f"WORKSPACE#{entry.workspace_id}",
            "SK": f"EVENT#{entry.event_key}",
            **_to_dynamodb(entry.model_dump(mode="json")),
        }
        try:
            self._table(ACTIVITY_FEED_TABLE).put_item(
                Item=item, ConditionExpression="attribute_not_exists(PK)",
            )
        except ClientError as exc:
            if _is_conditional_failure(exc):
                return False
            raise PersistenceError(f"Activity append failed for {entry.event_key}: {exc}") from exc
        return True

    def _exists(self, workspace_id: str, event_key: str) -> bool:
        try:
            resp = self._table(ACTIVITY_FEED_TABLE).get_item(
                Key={"PK": f"WORKSPACE#{workspace_id}", "SK": f"EVENT#{event_key}"},
                ProjectionExpression="PK",
            )
        except ClientError as exc:
            raise PersistenceError(f"Activity lookup failed for {event_key}: {exc}") from exc
        return "Item" in resp

    def _list_entries(self, workspace_id: str) -> list[ActivityEntry]:
        try:
            resp = self._table(ACTIVITY_FEED_TABLE).query(
                KeyConditionExpression=Key("PK").eq(f"WORKSPACE#{workspace_id}"),
            )
        except ClientError as exc:
            raise PersistenceError(f"Activity listing failed for workspace {workspace_id}: {exc}") from exc
        entries = [
            ActivityEntry.model_validate(_strip_keys(_decode_decimals(i)))
            for i in resp.get("Items", [])
        ]
        return sorted(entries, key=lambda e: e.created_at)
