from __future__ import annotations

from functools import lru_cache

import boto3
from botocore.config import Config

from ..settings import settings


@lru_cache(maxsize=1)
def botocore_config() -> Config:
    # Conservative timeouts; adaptive retries.
    return Config(
        retries={"max_attempts": 5, "mode": "adaptive"},
        connect_timeout=2,
        read_timeout=10,
        # Presigned URLs must carry SigV4 for SSE headers.
        signature_version="s3v4",
    )


@lru_cache(maxsize=1)
def s3_client():
    return boto3.client("s3", region_name=settings.aws_region, config=botocore_config())


@lru_cache(maxsize=1)
def sqs_client():
    return boto3.client("sqs", region_name=settings.aws_region, config=botocore_config())


@lru_cache(maxsize=1)
def sesv2_client():
    return boto3.client("sesv2", region_name=settings.aws_region, config=botocore_config())
