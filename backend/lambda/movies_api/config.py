"""config.py — Central configuration: environment variables, constants, logging.

Values are read once at import time. Components never read them directly;
the Lambda entry point and the topology builder pass them explicitly.
"""
from __future__ import annotations

import logging
import os

__all__ = [
    "ACCESS_LOG_GROUP",
    "ACCESS_LOG_RETENTION_DAYS",
    "ACCESS_LOG_TO_CLOUDWATCH",
    "ACCOUNT_ID",
    "CUSTOM_DOMAIN_NAME",
    "DYNAMODB_REGION",
    "FUNCTION_NAME",
    "HANDLER_TIMEOUT_SECONDS",
    "HOSTED_ZONE_ID",
    "MIN_TLS_VERSION",
    "MOVIES_TABLE",
    "ROUTE_METHOD",
    "ROUTE_PATH",
    "SERVICE_NAME",
    "XRAY_CONTEXT_MISSING",
    "logger",
]

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

SERVICE_NAME = os.environ.get("SERVICE_NAME", "movies-api")
MOVIES_TABLE = os.environ.get("MOVIES_TABLE", "movies")
DYNAMODB_REGION = os.environ.get("DYNAMODB_REGION", os.environ.get("AWS_REGION", "us-west-2"))
ACCOUNT_ID = os.environ.get("ACCOUNT_ID", "000000000000")
FUNCTION_NAME = os.environ.get("AWS_LAMBDA_FUNCTION_NAME", "movies-api-put-movie")

ROUTE_METHOD = os.environ.get("ROUTE_METHOD", "POST").upper()
ROUTE_PATH = os.environ.get("ROUTE_PATH", "/movies")

HANDLER_TIMEOUT_SECONDS = float(os.environ.get("HANDLER_TIMEOUT_SECONDS", "10"))

ACCESS_LOG_GROUP = os.environ.get("ACCESS_LOG_GROUP", "/movies-api/access-logs")
ACCESS_LOG_RETENTION_DAYS = int(os.environ.get("ACCESS_LOG_RETENTION_DAYS", "7"))
ACCESS_LOG_TO_CLOUDWATCH = os.environ.get("ACCESS_LOG_TO_CLOUDWATCH", "false").lower() == "true"

CUSTOM_DOMAIN_NAME = os.environ.get("CUSTOM_DOMAIN_NAME", "movies.example.com")
HOSTED_ZONE_ID = os.environ.get("HOSTED_ZONE_ID", "")
MIN_TLS_VERSION = "TLS_1_2"

XRAY_CONTEXT_MISSING = os.environ.get("XRAY_CONTEXT_MISSING", "LOG_ERROR")

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logger = logging.getLogger()
logger.setLevel(logging.INFO)
