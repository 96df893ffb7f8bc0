"""Application configuration using pydantic-settings with grouped env prefixes."""

from __future__ import annotations

from typing import Literal

from pydantic_settings import BaseSettings


class LLMConfig(BaseSettings):
    """Completion-service configuration."""

    model_config = {"env_prefix": "ROLECREW_LLM_"}

    provider: Literal["mock", "litellm"] = "mock"
    litellm_base_url: str = "http://litellm-proxy:4000/v1"
    model: str = "gemini-2.0-flash"
    api_key: str = ""
    request_timeout: float = 120.0


class PipelineConfig(BaseSettings):
    """Quality gate, revision loop and truncation limits."""

    model_config = {"env_prefix": "ROLECREW_PIPELINE_"}

    quality_threshold: int = 6
    default_quality_score: int = 7  # used when the reviewer gives no parseable score
    max_revisions: int = 2
    on_revisions_exhausted: Literal["accept", "fail"] = "accept"
    step_timeout_seconds: float = 600.0
    output_preview_chars: int = 500
    audit_excerpt_chars: int = 200
    approval_payload_chars: int = 5000


class DynamoDBConfig(BaseSettings):
    """DynamoDB configuration."""

    model_config = {"env_prefix": "ROLECREW_DYNAMO_"}

    table_suffix: str = ""  # "-dev", "-uat", or "" for prod
    region: str = "us-east-1"
    endpoint_url: str | None = None  # LocalStack override


class RedisConfig(BaseSettings):
    """Redis cache configuration."""

    model_config = {"env_prefix": "ROLECREW_REDIS_"}

    host: str = "localhost"
    port: int = 6379
    db: int = 0
    pipeline_ttl: int = 4 * 60 * 60


class GatewayConfig(BaseSettings):
    """Messaging gateway (WhatsApp/Telegram relay) configuration."""

    model_config = {"env_prefix": "ROLECREW_GATEWAY_"}

    base_url: str = ""  # empty disables outbound notifications
    api_key: str = ""
    timeout: float = 10.0


class DeliveryConfig(BaseSettings):
    """Delivery webhook configuration."""

    model_config = {"env_prefix": "ROLECREW_DELIVERY_"}

    webhook_url: str = ""  # empty skips delivery
    timeout: float = 30.0


class AppSettings(BaseSettings):
    """Root application settings aggregating all sub-configs."""

    model_config = {"env_prefix": "ROLECREW_"}

    environment: Literal["dev", "uat", "prod"] = "dev"
    log_level: str = "INFO"
    log_format: Literal["text", "json"] = "text"
    backend: Literal["memory", "aws"] = "memory"

    llm: LLMConfig = LLMConfig()
    pipeline: PipelineConfig = PipelineConfig()
    dynamodb: DynamoDBConfig = DynamoDBConfig()
    redis: RedisConfig = RedisConfig()
    gateway: GatewayConfig = GatewayConfig()
    delivery: DeliveryConfig = DeliveryConfig()
