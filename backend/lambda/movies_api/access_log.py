"""access_log.py — Access logging pipeline.

One AccessLogRecord per request attempt, matched or not, written once the
router holds a terminal status. Sinks are append-only; retention is owned by
the log group (``ACCESS_LOG_RETENTION_DAYS``). A failing sink is logged and
never changes the response returned to the client.
"""
from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from typing import Any, Iterable, List, Optional, Protocol

from botocore.exceptions import BotoCoreError, ClientError

from movies_api.config import logger
from movies_api.errors import AuthorizationDenied
from movies_api.serialization import _epoch_ms

__all__ = [
    "ACCESS_LOG_FORMAT",
    "AccessLogPipeline",
    "AccessLogRecord",
    "AccessLogSink",
    "CloudWatchLogsSink",
    "LoggerSink",
    "MemorySink",
]

# API Gateway stage access-log format; field names match AccessLogRecord.
ACCESS_LOG_FORMAT = json.dumps({
    "requestId": "$context.requestId",
    "sourceIp": "$context.identity.sourceIp",
    "requestTime": "$context.requestTime",
    "protocol": "$context.protocol",
    "httpMethod": "$context.httpMethod",
    "routeKey": "$context.routeKey",
    "status": "$context.status",
    "responseLength": "$context.responseLength",
    "integrationErrorMessage": "$context.integrationErrorMessage",
    "domainName": "$context.domainName",
    "integrationLatency": "$context.integrationLatency",
}, separators=(",", ":"))


@dataclass(frozen=True)
class AccessLogRecord:
    requestId: str
    sourceIp: str
    requestTime: str
    protocol: str
    httpMethod: str
    routeKey: str
    status: int
    responseLength: int
    integrationErrorMessage: str = ""
    domainName: str = ""
    integrationLatency: Optional[int] = None

    def to_json(self) -> str:
        return json.dumps(asdict(self), sort_keys=True, default=str)


class AccessLogSink(Protocol):
    def write(self, record: AccessLogRecord) -> None: ...


class LoggerSink:
    """Writes each record as one structured line to the function log."""

    def write(self, record: AccessLogRecord) -> None:
        logger.info("[ACCESS] %s", record.to_json())


class MemorySink:
    """Keeps records in process; used for local invocation."""

    def __init__(self) -> None:
        self.records: List[AccessLogRecord] = []

    def write(self, record: AccessLogRecord) -> None:
        self.records.append(record)


class CloudWatchLogsSink:
    """Appends records to a CloudWatch Logs group.

    ``client`` should be the boundary-scoped logs client so writes outside
    the granted log group are refused.
    """

    def __init__(self, client: Any, log_group: str, stream_name: str) -> None:
        self._client = client
        self.log_group = log_group
        self.stream_name = stream_name
        self._stream_ready = False

    def _ensure_stream(self) -> None:
        if self._stream_ready:
            return
        for create, kwargs in (
            (self._client.create_log_group, {"logGroupName": self.log_group}),
            (
                self._client.create_log_stream,
                {"logGroupName": self.log_group, "logStreamName": self.stream_name},
            ),
        ):
            try:
                create(**kwargs)
            except ClientError as exc:
                if exc.response.get("Error", {}).get("Code") != "ResourceAlreadyExistsException":
                    raise
        self._stream_ready = True

    def write(self, record: AccessLogRecord) -> None:
        self._ensure_stream()
        self._client.put_log_events(
            logGroupName=self.log_group,
            logStreamName=self.stream_name,
            logEvents=[{"timestamp": _epoch_ms(), "message": record.to_json()}],
        )


class AccessLogPipeline:
    def __init__(self, sinks: Iterable[AccessLogSink]) -> None:
        self._sinks = list(sinks)
        if not self._sinks:
            raise ValueError("Access log pipeline needs at least one sink")

    def emit(self, record: AccessLogRecord) -> None:
        for sink in self._sinks:
            try:
                sink.write(record)
            except (ClientError, BotoCoreError, AuthorizationDenied) as exc:
                logger.error(
                    "[ERROR] access log sink %s failed request_id=%s: %s",
                    type(sink).__name__,
                    record.requestId,
                    exc,
                )
            except Exception:
                logger.exception(
                    "[ERROR] access log sink %s raised request_id=%s",
                    type(sink).__name__,
                    record.requestId,
                )
