"""Application configuration using pydantic-settings with grouped env prefixes."""

from __future__ import annotations

from typing import Literal

from pydantic import model_validator
from pydantic_settings import BaseSettings


class DynamoDBConfig(BaseSettings):
    """DynamoDB photo record store and event log configuration."""

    model_config = {"env_prefix": "PHOTOFLOW_DYNAMO_"}

    table_suffix: str = ""  # "-dev", "-uat", or "" for prod
    region: str = "us-east-1"
    endpoint_url: str | None = None  # LocalStack override


class RedisConfig(BaseSettings):
    """Redis cache and lock configuration."""

    model_config = {"env_prefix": "PHOTOFLOW_REDIS_"}

    host: str = "localhost"
    port: int = 6379
    db: int = 0


class SQSConfig(BaseSettings):
    """SQS job queue configuration."""

    model_config = {"env_prefix": "PHOTOFLOW_SQS_"}

    region: str = "us-east-1"
    endpoint_url: str | None = None  # LocalStack override
    queue_url: str = ""
    visibility_timeout: int = 60  # seconds
    wait_time_seconds: int = 5  # long poll, max 20


class CacheConfig(BaseSettings):
    """Read-through cache TTLs in seconds."""

    model_config = {"env_prefix": "PHOTOFLOW_CACHE_"}

    list_ttl: int = 30
    detail_ttl: int = 60


class ProcessingConfig(BaseSettings):
    """Simulated processing step."""

    model_config = {"env_prefix": "PHOTOFLOW_PROCESSING_"}

    min_delay_ms: int = 2000
    max_delay_ms: int = 5000
    success_rate: float = 0.9
    seed: int | None = None


class WorkerConfig(BaseSettings):
    """Worker pool configuration."""

    model_config = {"env_prefix": "PHOTOFLOW_WORKER_"}

    concurrency: int = 4
    lock_ttl_ms: int = 30000
    max_deliveries: int = 5
    contention_delay_seconds: float = 1.0
    error_backoff_seconds: float = 1.0


class AppSettings(BaseSettings):
    """Root application settings aggregating all sub-configs."""

    model_config = {"env_prefix": "PHOTOFLOW_"}

    environment: Literal["dev", "uat", "prod"] = "dev"
    log_level: str = "INFO"
    backend: Literal["memory", "aws"] = "memory"

    dynamodb: DynamoDBConfig = DynamoDBConfig()
    redis: RedisConfig = RedisConfig()
    sqs: SQSConfig = SQSConfig()
    cache: CacheConfig = CacheConfig()
    processing: ProcessingConfig = ProcessingConfig()
    worker: WorkerConfig = WorkerConfig()

    @model_validator(mode="after")
    def _check_timing(self) -> AppSettings:
        processing = self.processing
        if not 0.0 <= processing.success_rate <= 1.0:
            raise ValueError("processing.success_rate must be between 0 and 1")
        if processing.min_delay_ms > processing.max_delay_ms:
            raise ValueError("processing.min_delay_ms must not exceed max_delay_ms")
        if self.worker.lock_ttl_ms <= processing.max_delay_ms:
            raise ValueError("worker.lock_ttl_ms must be greater than processing.max_delay_ms")
        if self.sqs.visibility_timeout * 1000 < self.worker.lock_ttl_ms:
            raise ValueError("sqs.visibility_timeout must cover worker.lock_ttl_ms")
        return self
