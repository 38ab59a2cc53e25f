"""http_utils.py — HTTP response building, body parsing, request field extraction.

Works on API Gateway HTTP API (payload format 2.0) events; falls back to the
REST (1.0) field names where they differ.
"""
from __future__ import annotations

import base64
import binascii
import json
import uuid
from typing import Any, Dict, Optional, Tuple

from movies_api.serialization import _json_default

__all__ = [
    "_error",
    "_headers",
    "_json_body",
    "_path_method",
    "_protocol",
    "_raw_body",
    "_request_id",
    "_response",
    "_source_ip",
]

# ---------------------------------------------------------------------------
# HTTP helpers
# ---------------------------------------------------------------------------


def _response(status_code: int, payload: Any) -> Dict[str, Any]:
    return {
        "statusCode": status_code,
        "headers": {"Content-Type": "application/json"},
        "body": json.dumps(payload, default=_json_default),
    }


def _error(
    status_code: int,
    message: str,
    *,
    details: Optional[Dict[str, Any]] = None,
    **extra: Any,
) -> Dict[str, Any]:
    code = str(extra.pop("code", "") or "").strip().upper()
    if not code:
        if status_code == 400:
            code = "INVALID_INPUT"
        elif status_code == 403:
            code = "FORBIDDEN"
        elif status_code == 404:
            code = "NOT_FOUND"
        else:
            code = "INTERNAL_ERROR"
    retryable = bool(extra.pop("retryable", status_code >= 500))
    details = {**extra, **dict(details or {})}
    body: Dict[str, Any] = {
        "success": False,
        "error": message,
        "error_envelope": {
            "code": code,
            "message": message,
            "retryable": retryable,
            "details": details,
        },
    }
    return _response(status_code, body)


def _raw_body(event: Dict[str, Any]) -> str:
    raw = event.get("body")
    if raw in (None, ""):
        return ""
    if event.get("isBase64Encoded"):
        try:
            raw = base64.b64decode(raw).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError) as exc:
            raise ValueError(f"Request body is not valid base64-encoded UTF-8: {exc}") from exc
    return raw


def _json_body(raw: str) -> Dict[str, Any]:
    """Parse a JSON object body. Raises ValueError on anything else."""
    if not raw:
        raise ValueError("Request body is required")
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON body: {exc}") from exc
    if not isinstance(parsed, dict):
        raise ValueError("JSON body must be an object")
    return parsed


def _path_method(event: Dict[str, Any]) -> Tuple[str, str]:
    method = (event.get("requestContext", {}).get("http", {}).get("method") or event.get("httpMethod") or "").upper()
    path = event.get("rawPath") or event.get("path") or "/"
    return method, path


def _headers(event: Dict[str, Any]) -> Dict[str, str]:
    """Header names are case-insensitive; normalize to lower case."""
    return {str(k).lower(): str(v) for k, v in (event.get("headers") or {}).items()}


def _source_ip(event: Dict[str, Any]) -> str:
    rc = event.get("requestContext") or {}
    return str(
        (rc.get("http") or {}).get("sourceIp")
        or (rc.get("identity") or {}).get("sourceIp")
        or ""
    )


def _protocol(event: Dict[str, Any]) -> str:
    rc = event.get("requestContext") or {}
    return str((rc.get("http") or {}).get("protocol") or rc.get("protocol") or "HTTP/1.1")


def _request_id(event: Dict[str, Any], context: Optional[Any] = None) -> str:
    rc = event.get("requestContext") or {}
    request_id = rc.get("requestId")
    if not request_id and context is not None:
        request_id = getattr(context, "aws_request_id", None)
    return str(request_id or uuid.uuid4())
