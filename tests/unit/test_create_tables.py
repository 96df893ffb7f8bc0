"""Tests for the DynamoDB table creation script."""

from __future__ import annotations

import sys
from pathlib import Path

import boto3
import pytest
from moto import mock_aws

# Make scripts/ importable
sys.path.insert(0, str(Path(__file__).resolve().parent.parent.parent / "scripts"))

from create_tables import create_tables  # noqa: E402


@pytest.fixture
def ddb():
    with mock_aws():
        yield boto3.resource("dynamodb", region_name="us-east-1")


class TestCreateTables:
    def test_creates_all_three_tables(self, ddb):
        created = create_tables(ddb, suffix="-test")
        client = boto3.client("dynamodb", region_name="us-east-1")
        tables = client.list_tables()["TableNames"]
        assert sorted(tables) == sorted(created)
        assert "rolecrew-documents-test" in tables
        assert "rolecrew-approval-queue-test" in tables
        assert "rolecrew-activity-feed-test" in tables

    def test_idempotent_skips_existing(self, ddb):
        create_tables(ddb, suffix="-test")
        assert create_tables(ddb, suffix="-test") == []
        client = boto3.client("dynamodb", region_name="us-east-1")
        assert len(client.list_tables()["TableNames"]) == 3

    def test_pk_sk_key_schema(self, ddb):
        create_tables(ddb)
        schema = ddb.Table("rolecrew-documents").key_schema
        assert {k["AttributeName"]: k["KeyType"] for k in schema} == {"PK": "HASH", "SK": "RANGE"}
