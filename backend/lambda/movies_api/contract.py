"""contract.py — Compute contract between the ingress router and a handler.

A handler is any callable ``(RequestEnvelope, ExecutionContext) ->
HandlerResult``. It is stateless: everything it may touch arrives in the
execution context, which carries the storage identity and a table handle
scoped by the security boundary. Credentials never come from the request.

``invoke`` runs a handler inside an X-Ray subsegment and bounds it by the
context's timeout. On timeout the invocation is abandoned (not rolled back)
and surfaces as ``IntegrationTimeout``.
"""
from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Type

from movies_api.config import logger
from movies_api.errors import (
    IntegrationTimeout,
    InternalError,
    MoviesApiError,
    StorageError,
    ValidationError,
)
from movies_api.schema import MovieTable
from movies_api.tracing import traced_span

__all__ = [
    "ComputeHandler",
    "ExecutionContext",
    "FAILURE_KINDS",
    "HandlerResult",
    "RequestEnvelope",
    "invoke",
]

FAILURE_KINDS: Dict[str, Type[MoviesApiError]] = {
    "validation": ValidationError,
    "storage": StorageError,
    "internal": InternalError,
}


@dataclass(frozen=True)
class RequestEnvelope:
    method: str
    path: str
    headers: Dict[str, str]
    body: str
    source_ip: str
    request_id: str


@dataclass(frozen=True)
class ExecutionContext:
    table_name: str
    table_arn: str
    table: MovieTable
    timeout_seconds: float


@dataclass(frozen=True)
class HandlerResult:
    status_code: int = 200
    body: Any = None
    failure: Optional[str] = None
    message: str = ""
    details: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, body: Any = None, status_code: int = 200) -> "HandlerResult":
        return cls(status_code=status_code, body=body)

    @classmethod
    def fail(cls, kind: str, message: str, **details: Any) -> "HandlerResult":
        if kind not in FAILURE_KINDS:
            raise ValueError(f"Unknown failure kind '{kind}'")
        error_cls = FAILURE_KINDS[kind]
        return cls(status_code=error_cls.status_code, failure=kind, message=message, details=details)

    @classmethod
    def from_error(cls, exc: MoviesApiError) -> "HandlerResult":
        for kind, error_cls in FAILURE_KINDS.items():
            if isinstance(exc, error_cls):
                return cls.fail(kind, exc.message, **exc.details)
        raise exc

    @property
    def succeeded(self) -> bool:
        return self.failure is None

    def to_error(self) -> MoviesApiError:
        if self.failure is None:
            raise ValueError("Successful result has no error")
        return FAILURE_KINDS[self.failure](self.message, details=self.details)


ComputeHandler = Callable[[RequestEnvelope, ExecutionContext], HandlerResult]


def _run(handler: ComputeHandler, envelope: RequestEnvelope, context: ExecutionContext) -> HandlerResult:
    try:
        result = handler(envelope, context)
    except (ValidationError, StorageError, InternalError) as exc:
        return HandlerResult.from_error(exc)
    if not isinstance(result, HandlerResult):
        raise InternalError(f"Handler returned {type(result).__name__}, expected HandlerResult")
    return result


def invoke(handler: ComputeHandler, envelope: RequestEnvelope, context: ExecutionContext) -> HandlerResult:
    """Run ``handler`` bounded by ``context.timeout_seconds``.

    Typed failures come back as a failed ``HandlerResult``. Anything else the
    handler raises (including ``AuthorizationDenied``) propagates, as does
    ``IntegrationTimeout``.
    """
    started = time.monotonic()
    with traced_span(
        "compute.invoke",
        annotations={"request_id": envelope.request_id, "table": context.table_name},
    ) as span:
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="compute")
        future = executor.submit(_run, handler, envelope, context)
        try:
            result = future.result(timeout=context.timeout_seconds)
        except FutureTimeout:
            logger.error(
                "[ERROR] compute handler exceeded %.3fs request_id=%s",
                context.timeout_seconds,
                envelope.request_id,
            )
            raise IntegrationTimeout(
                f"Handler did not complete within {context.timeout_seconds:g}s",
                details={"timeout_seconds": context.timeout_seconds},
            )
        finally:
            # The abandoned worker, if any, finishes on its own.
            executor.shutdown(wait=False)

        if span is not None:
            span.put_metadata("status_code", result.status_code)
            if not result.succeeded:
                span.put_annotation("failure", result.failure)

    logger.info(
        "[INFO] compute completed request_id=%s status=%s latency_ms=%d",
        envelope.request_id,
        result.status_code,
        int((time.monotonic() - started) * 1000),
    )
    return result
