from __future__ import annotations

from functools import lru_cache

import boto3
from botocore.config import Config

from ...settings import settings


@lru_cache(maxsize=1)
def botocore_config() -> Config:
    # botocore already retries in adaptive mode; ddb_call adds a narrow
    # app-layer retry on top for throttling only.
    return Config(
        retries={"max_attempts": 4, "mode": "adaptive"},
        connect_timeout=2,
        read_timeout=5,
    )


@lru_cache(maxsize=1)
def single_attempt_config() -> Config:
    # Exactly one HTTP attempt, no botocore retries. For writes that must
    # finish in bounded time (audit events).
    return Config(
        retries={"total_max_attempts": 1, "mode": "standard"},
        connect_timeout=2,
        read_timeout=3,
    )


@lru_cache(maxsize=4)
def dynamodb_resource(config: Config | None = None):
    return boto3.resource(
        "dynamodb",
        region_name=settings.aws_region,
        config=config or botocore_config(),
    )


def table_resource(table_name: str, *, config: Config | None = None):
    return dynamodb_resource(config).Table(table_name)
