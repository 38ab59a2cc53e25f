"""Shared pytest setup for movies_api and tools tests."""

from __future__ import annotations

import json
import os
import sys
from typing import Any, Dict, List, Tuple

import pytest

# Must be set before movies_api.config is imported.
os.environ.setdefault("AWS_DEFAULT_REGION", "us-west-2")
os.environ.setdefault("XRAY_CONTEXT_MISSING", "IGNORE_ERROR")
os.environ.setdefault("AWS_XRAY_CONTEXT_MISSING", "IGNORE_ERROR")

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "backend", "lambda"))


class FakeDynamoDB:
    """In-memory stand-in for the DynamoDB client calls the service makes."""

    def __init__(self) -> None:
        self.items: Dict[Tuple[str, str, str], Dict[str, Any]] = {}
        self.calls: List[Tuple[str, Dict[str, Any]]] = []

    @staticmethod
    def _key(table: str, key: Dict[str, Any]) -> Tuple[str, str, str]:
        return table, key["year"]["N"], key["title"]["S"]

    def put_item(self, **kwargs: Any) -> Dict[str, Any]:
        self.calls.append(("put_item", kwargs))
        item = kwargs["Item"]
        self.items[self._key(kwargs["TableName"], item)] = item
        return {}

    def get_item(self, **kwargs: Any) -> Dict[str, Any]:
        self.calls.append(("get_item", kwargs))
        item = self.items.get(self._key(kwargs["TableName"], kwargs["Key"]))
        return {"Item": item} if item else {}


@pytest.fixture
def fake_ddb() -> FakeDynamoDB:
    return FakeDynamoDB()


def api_event(
    *,
    method: str = "POST",
    path: str = "/movies",
    body: Any = None,
    headers: Dict[str, str] | None = None,
    request_id: str = "req-1",
) -> Dict[str, Any]:
    if body is not None and not isinstance(body, str):
        body = json.dumps(body)
    return {
        "version": "2.0",
        "rawPath": path,
        "headers": headers or {"host": "movies.example.com"},
        "requestContext": {
            "requestId": request_id,
            "http": {"method": method, "path": path, "protocol": "HTTP/1.1", "sourceIp": "203.0.113.9"},
        },
        "body": body,
        "isBase64Encoded": False,
    }


@pytest.fixture
def make_event():
    return api_event
