"""movies_api/lambda_function.py

Lambda entry point for the movies write path.

Routes (API Gateway HTTP API, payload format 2.0):
    POST /movies    — Create or overwrite a movie keyed by (year, title)

Any other method or path is rejected with 404 without invoking the handler.

Environment variables:
    MOVIES_TABLE               default: movies
    DYNAMODB_REGION            default: AWS_REGION or us-west-2
    HANDLER_TIMEOUT_SECONDS    default: 10
    ACCESS_LOG_GROUP           default: /movies-api/access-logs
    ACCESS_LOG_TO_CLOUDWATCH   default: false
    XRAY_CONTEXT_MISSING       default: LOG_ERROR
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, Optional

from movies_api.access_log import AccessLogPipeline, AccessLogSink, CloudWatchLogsSink, LoggerSink
from movies_api.aws_clients import _get_ddb, _get_logs
from movies_api.config import (
    ACCESS_LOG_GROUP,
    ACCESS_LOG_TO_CLOUDWATCH,
    ACCOUNT_ID,
    DYNAMODB_REGION,
    FUNCTION_NAME,
    HANDLER_TIMEOUT_SECONDS,
    MOVIES_TABLE,
    ROUTE_METHOD,
    ROUTE_PATH,
    logger,
)
from movies_api.contract import ExecutionContext
from movies_api.handler import put_movie
from movies_api.permissions import SecurityBoundary, log_group_arn, table_arn
from movies_api.router import RouteBinding, Router
from movies_api.schema import MovieTable

__all__ = ["build_router", "lambda_handler"]

_router: Optional[Router] = None


def _account_id(context: Any) -> str:
    """Account id from the invoked function ARN, falling back to config."""
    arn = str(getattr(context, "invoked_function_arn", "") or "")
    parts = arn.split(":")
    if len(parts) > 4 and parts[4]:
        return parts[4]
    return ACCOUNT_ID


def build_router(
    *,
    account_id: str,
    region: str = DYNAMODB_REGION,
    table_name: str = MOVIES_TABLE,
    ddb_client: Any = None,
    logs_client: Any = None,
    access_log_to_cloudwatch: bool = ACCESS_LOG_TO_CLOUDWATCH,
    timeout_seconds: float = HANDLER_TIMEOUT_SECONDS,
    extra_sinks: Iterable[AccessLogSink] = (),
) -> Router:
    """Wire boundary, storage, contract and logging into a router.

    The security boundary is built first; the storage and log clients the
    handler receives are scoped by it.
    """
    log_groups = [log_group_arn(region, account_id, f"/aws/lambda/{FUNCTION_NAME}")]
    if access_log_to_cloudwatch:
        log_groups.append(log_group_arn(region, account_id, ACCESS_LOG_GROUP))
    storage_arn = table_arn(region, account_id, table_name)
    boundary = SecurityBoundary.for_service(table=storage_arn, log_groups=log_groups)

    scoped_ddb = boundary.scoped_dynamodb(ddb_client or _get_ddb(region), region=region, account_id=account_id)
    context = ExecutionContext(
        table_name=table_name,
        table_arn=storage_arn,
        table=MovieTable(table_name, scoped_ddb),
        timeout_seconds=timeout_seconds,
    )

    sinks: list[AccessLogSink] = [LoggerSink()]
    if access_log_to_cloudwatch:
        scoped_logs = boundary.scoped_logs(logs_client or _get_logs(region), region=region, account_id=account_id)
        sinks.append(CloudWatchLogsSink(scoped_logs, ACCESS_LOG_GROUP, FUNCTION_NAME))
    sinks.extend(extra_sinks)

    return Router(RouteBinding(ROUTE_METHOD, ROUTE_PATH, put_movie), context, AccessLogPipeline(sinks))


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    global _router
    if _router is None:
        _router = build_router(account_id=_account_id(context))
        logger.info("[INFO] router ready route=%s table=%s", _router.binding.route_key, _router.context.table_arn)
    return _router.handle(event, context)
