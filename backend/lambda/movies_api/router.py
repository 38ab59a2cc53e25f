"""router.py — Ingress router for the single movies route.

A request is matched against the one RouteBinding by exact method + path
equality. Unmatched requests are rejected with 404 before any compute
invocation. Every request, matched or not, produces exactly one access log
record carrying the status returned to the client.
"""
from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from movies_api.access_log import AccessLogPipeline, AccessLogRecord
from movies_api.config import logger
from movies_api.contract import ComputeHandler, ExecutionContext, RequestEnvelope, invoke
from movies_api.errors import AuthorizationDenied, MoviesApiError, RouteNotFound, ValidationError
from movies_api.http_utils import (
    _error,
    _headers,
    _path_method,
    _protocol,
    _raw_body,
    _request_id,
    _response,
    _source_ip,
)
from movies_api.serialization import _now_z

__all__ = ["RouteBinding", "Router", "UNMATCHED_ROUTE_KEY"]

# API Gateway logs "-" as the route key when no route matched.
UNMATCHED_ROUTE_KEY = "-"


@dataclass(frozen=True)
class RouteBinding:
    method: str
    path: str
    target: ComputeHandler

    def __post_init__(self) -> None:
        if not self.path.startswith("/"):
            raise ValueError(f"Route path must start with '/': {self.path!r}")
        object.__setattr__(self, "method", self.method.upper())

    @property
    def route_key(self) -> str:
        return f"{self.method} {self.path}"

    def matches(self, method: str, path: str) -> bool:
        return method == self.method and path == self.path


class Router:
    def __init__(
        self,
        binding: RouteBinding,
        context: ExecutionContext,
        access_log: AccessLogPipeline,
    ) -> None:
        self.binding = binding
        self.context = context
        self.access_log = access_log

    def handle(self, event: Dict[str, Any], lambda_context: Any = None) -> Dict[str, Any]:
        method, path = _path_method(event)
        headers = _headers(event)
        request_id = _request_id(event, lambda_context)
        logger.info("[INFO] route method=%s path=%s request_id=%s", method, path, request_id)

        route_key = UNMATCHED_ROUTE_KEY
        integration_error = ""
        latency_ms: Optional[int] = None

        if not self.binding.matches(method, path):
            err = RouteNotFound(method, path)
            resp = _error(err.status_code, err.message, code=err.code)
        else:
            route_key = self.binding.route_key
            try:
                body = _raw_body(event)
            except ValueError as exc:
                err = ValidationError(str(exc))
                resp = _error(err.status_code, err.message, code=err.code)
            else:
                envelope = RequestEnvelope(
                    method=method,
                    path=path,
                    headers=headers,
                    body=body,
                    source_ip=_source_ip(event),
                    request_id=request_id,
                )
                started = time.monotonic()
                resp, integration_error = self._dispatch(envelope)
                latency_ms = int((time.monotonic() - started) * 1000)

        rc = event.get("requestContext") or {}
        self.access_log.emit(AccessLogRecord(
            requestId=request_id,
            sourceIp=_source_ip(event),
            requestTime=_now_z(),
            protocol=_protocol(event),
            httpMethod=method,
            routeKey=route_key,
            status=int(resp["statusCode"]),
            responseLength=len(resp["body"].encode("utf-8")),
            integrationErrorMessage=integration_error,
            domainName=str(rc.get("domainName") or headers.get("host") or ""),
            integrationLatency=latency_ms,
        ))
        return resp

    def _dispatch(self, envelope: RequestEnvelope) -> Tuple[Dict[str, Any], str]:
        """Invoke the bound target; returns (response, integration error message)."""
        try:
            result = invoke(self.binding.target, envelope, self.context)
        except AuthorizationDenied as exc:
            logger.error("[ERROR] authorization denied request_id=%s: %s", envelope.request_id, exc.message)
            return _error(exc.status_code, "Integration failure", code="INTEGRATION_ERROR"), exc.message
        except MoviesApiError as exc:
            return _error(exc.status_code, exc.message, code=exc.code, details=exc.details), exc.message
        except Exception as exc:
            logger.exception("[ERROR] compute handler fault request_id=%s", envelope.request_id)
            return (
                _error(502, "Integration failure", code="INTEGRATION_ERROR"),
                f"{type(exc).__name__}: {exc}",
            )

        if result.succeeded:
            return _response(result.status_code, result.body if result.body is not None else {"success": True}), ""

        err = result.to_error()
        return (
            _error(err.status_code, err.message, code=err.code, details=err.details),
            err.message if err.integration_error else "",
        )
