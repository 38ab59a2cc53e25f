"""handler.py — ``put_movie``: the write command behind ``POST /movies``.

Parses the request body into a CatalogEntry and upserts it. Retrying the same
payload is safe; it rewrites the same key with the same item.
"""
from __future__ import annotations

from movies_api.config import logger
from movies_api.contract import ExecutionContext, HandlerResult, RequestEnvelope
from movies_api.http_utils import _json_body
from movies_api.schema import CatalogEntry
from movies_api.tracing import traced_span

__all__ = ["put_movie"]


def put_movie(envelope: RequestEnvelope, context: ExecutionContext) -> HandlerResult:
    try:
        payload = _json_body(envelope.body)
    except ValueError as exc:
        return HandlerResult.fail("validation", str(exc))

    entry = CatalogEntry.from_payload(payload)
    with traced_span("movies.upsert", annotations={"year": entry.year, "title": entry.title}):
        context.table.upsert(entry)

    logger.info(
        "[INFO] put_movie request_id=%s year=%s title=%s",
        envelope.request_id,
        entry.year,
        entry.title,
    )
    return HandlerResult.ok({"success": True, "message": "Successfully inserted data!", "movie": entry.to_item()})
