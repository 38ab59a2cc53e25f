"""tracing.py — X-Ray tracing for compute invocations.

The recorder is configured once per execution environment and botocore is
patched so DynamoDB and CloudWatch Logs calls appear as downstream
subsegments. Outside Lambda (tests, local invocation) there is no parent
segment; ``XRAY_CONTEXT_MISSING`` decides whether that is logged or ignored.
"""
from __future__ import annotations

import contextlib
import traceback
from typing import Any, Dict, Iterator, Optional

from aws_xray_sdk.core import patch, xray_recorder

from movies_api.config import SERVICE_NAME, XRAY_CONTEXT_MISSING, logger

__all__ = ["configure_tracing", "traced_span"]

_configured = False


def configure_tracing(context_missing: Optional[str] = None) -> None:
    global _configured
    if _configured:
        return
    xray_recorder.configure(
        service=SERVICE_NAME,
        context_missing=context_missing or XRAY_CONTEXT_MISSING,
    )
    patch(("botocore",))
    _configured = True


@contextlib.contextmanager
def traced_span(name: str, *, annotations: Optional[Dict[str, Any]] = None) -> Iterator[Any]:
    """Wrap a block in an X-Ray subsegment.

    Exceptions are recorded on the subsegment and re-raised. Yields None when
    there is no active trace.
    """
    configure_tracing()
    subsegment = xray_recorder.begin_subsegment(name)
    try:
        if subsegment is not None:
            for key, value in (annotations or {}).items():
                subsegment.put_annotation(key, value)
        yield subsegment
    except Exception as exc:
        if subsegment is not None:
            subsegment.add_exception(exc, traceback.extract_stack())
        raise
    finally:
        if subsegment is not None:
            try:
                xray_recorder.end_subsegment()
            except Exception as exc:
                logger.warning("[TRACE] failed to close subsegment %s: %s", name, exc)