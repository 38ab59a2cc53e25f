"""aws_clients.py — Lazy-singleton AWS service clients (DynamoDB, CloudWatch Logs, ACM).

Clients are created on first use and cached for the lifetime of the Lambda
execution environment.
"""
from __future__ import annotations

from typing import Optional

import boto3
from botocore.config import Config

from movies_api.config import DYNAMODB_REGION

__all__ = [
    "_get_acm",
    "_get_ddb",
    "_get_logs",
]

# ---------------------------------------------------------------------------
# AWS client singletons
# ---------------------------------------------------------------------------

_ddb = None
_logs = None
_acm = None


def _get_ddb(region: Optional[str] = None):
    """Get (or create) the DynamoDB client singleton."""
    global _ddb
    if _ddb is None:
        _ddb = boto3.client(
            "dynamodb",
            region_name=region or DYNAMODB_REGION,
            config=Config(retries={"max_attempts": 3, "mode": "standard"}),
        )
    return _ddb


def _get_logs(region: Optional[str] = None):
    """Get (or create) the CloudWatch Logs client singleton."""
    global _logs
    if _logs is None:
        _logs = boto3.client(
            "logs",
            region_name=region or DYNAMODB_REGION,
            config=Config(retries={"max_attempts": 3, "mode": "standard"}),
        )
    return _logs


def _get_acm(region: Optional[str] = None):
    """Get (or create) the ACM client singleton."""
    global _acm
    if _acm is None:
        _acm = boto3.client(
            "acm",
            region_name=region or DYNAMODB_REGION,
            config=Config(retries={"max_attempts": 3, "mode": "standard"}),
        )
    return _acm
