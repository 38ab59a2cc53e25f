"""Access log records, sinks and the fan-out pipeline."""

from __future__ import annotations

import json
import unittest
from unittest.mock import MagicMock

from botocore.exceptions import ClientError

from movies_api.access_log import (
    ACCESS_LOG_FORMAT,
    AccessLogPipeline,
    AccessLogRecord,
    CloudWatchLogsSink,
    MemorySink,
)
from movies_api.errors import AuthorizationDenied


def _record(**overrides) -> AccessLogRecord:
    fields = dict(
        requestId="req-1",
        sourceIp="203.0.113.9",
        requestTime="2026-10-15T12:00:00Z",
        protocol="HTTP/1.1",
        httpMethod="POST",
        routeKey="POST /movies",
        status=200,
        responseLength=42,
    )
    fields.update(overrides)
    return AccessLogRecord(**fields)


def _client_error(code: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, "CreateLogGroup")


class RecordTests(unittest.TestCase):
    def test_record_fields_match_stage_format(self) -> None:
        self.assertEqual(set(json.loads(_record().to_json())), set(json.loads(ACCESS_LOG_FORMAT)))

    def test_to_json_is_sorted_and_complete(self) -> None:
        payload = json.loads(_record(integrationLatency=12).to_json())
        self.assertEqual(payload["status"], 200)
        self.assertEqual(payload["integrationLatency"], 12)
        self.assertEqual(list(payload), sorted(payload))


class CloudWatchSinkTests(unittest.TestCase):
    def test_creates_group_and_stream_once(self) -> None:
        client = MagicMock()
        sink = CloudWatchLogsSink(client, "/movies-api/access-logs", "put-movie")

        sink.write(_record())
        sink.write(_record(requestId="req-2"))

        client.create_log_group.assert_called_once_with(logGroupName="/movies-api/access-logs")
        client.create_log_stream.assert_called_once_with(
            logGroupName="/movies-api/access-logs", logStreamName="put-movie"
        )
        self.assertEqual(client.put_log_events.call_count, 2)
        event = client.put_log_events.call_args.kwargs["logEvents"][0]
        self.assertEqual(json.loads(event["message"])["requestId"], "req-2")
        self.assertIsInstance(event["timestamp"], int)

    def test_existing_group_is_tolerated(self) -> None:
        client = MagicMock()
        client.create_log_group.side_effect = _client_error("ResourceAlreadyExistsException")
        client.create_log_stream.side_effect = _client_error("ResourceAlreadyExistsException")

        CloudWatchLogsSink(client, "/g", "s").write(_record())
        client.put_log_events.assert_called_once()

    def test_other_create_errors_raise(self) -> None:
        client = MagicMock()
        client.create_log_group.side_effect = _client_error("AccessDeniedException")
        with self.assertRaises(ClientError):
            CloudWatchLogsSink(client, "/g", "s").write(_record())
        client.put_log_events.assert_not_called()


class PipelineTests(unittest.TestCase):
    def test_needs_a_sink(self) -> None:
        with self.assertRaises(ValueError):
            AccessLogPipeline([])

    def test_fans_out_to_every_sink(self) -> None:
        a, b = MemorySink(), MemorySink()
        AccessLogPipeline([a, b]).emit(_record())
        self.assertEqual(len(a.records), 1)
        self.assertEqual(a.records, b.records)

    def test_sink_failures_do_not_propagate(self) -> None:
        broken = MagicMock()
        broken.write.side_effect = AuthorizationDenied("logs:PutLogEvents", "arn:aws:logs:x")
        kept = MemorySink()

        AccessLogPipeline([broken, kept]).emit(_record())
        self.assertEqual(len(kept.records), 1)

    def test_unexpected_sink_errors_do_not_propagate(self) -> None:
        broken = MagicMock()
        broken.write.side_effect = OSError("disk full")
        kept = MemorySink()

        with self.assertLogs(level="ERROR"):
            AccessLogPipeline([broken, kept]).emit(_record())
        self.assertEqual(len(kept.records), 1)


if __name__ == "__main__":
    unittest.main()
