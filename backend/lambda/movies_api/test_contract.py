"""Compute contract: result typing, failure mapping and the timeout bound."""

from __future__ import annotations

import threading

import pytest

from movies_api.contract import ExecutionContext, HandlerResult, RequestEnvelope, invoke
from movies_api.errors import (
    IntegrationTimeout,
    InternalError,
    StorageError,
    ValidationError,
)
from movies_api.handler import put_movie
from movies_api.schema import MovieTable


def _envelope(body: str = "") -> RequestEnvelope:
    return RequestEnvelope(
        method="POST",
        path="/movies",
        headers={},
        body=body,
        source_ip="203.0.113.9",
        request_id="req-1",
    )


def _context(client, timeout: float = 2.0) -> ExecutionContext:
    return ExecutionContext(
        table_name="movies",
        table_arn="arn:aws:dynamodb:us-west-2:123456789012:table/movies",
        table=MovieTable("movies", client),
        timeout_seconds=timeout,
    )


def test_fail_uses_status_of_failure_kind():
    assert HandlerResult.fail("validation", "bad").status_code == 400
    assert HandlerResult.fail("storage", "down").status_code == 502
    assert HandlerResult.fail("internal", "boom").status_code == 500
    with pytest.raises(ValueError):
        HandlerResult.fail("teapot", "nope")


def test_to_error_round_trips_kind_and_details():
    err = HandlerResult.fail("storage", "down", aws_error_code="Throttled").to_error()
    assert isinstance(err, StorageError)
    assert err.details == {"aws_error_code": "Throttled"}
    with pytest.raises(ValueError):
        HandlerResult.ok().to_error()


def test_invoke_returns_handler_result(fake_ddb):
    result = invoke(lambda env, ctx: HandlerResult.ok({"echo": env.request_id}), _envelope(), _context(fake_ddb))
    assert result.succeeded
    assert result.body == {"echo": "req-1"}


def test_raised_typed_errors_become_failed_results(fake_ddb):
    def handler(env, ctx):
        raise ValidationError("year is required", details={"field": "year"})

    result = invoke(handler, _envelope(), _context(fake_ddb))
    assert result.failure == "validation"
    assert result.details == {"field": "year"}


def test_wrong_return_type_is_internal_error(fake_ddb):
    with pytest.raises(InternalError):
        invoke(lambda env, ctx: {"statusCode": 200}, _envelope(), _context(fake_ddb))


def test_unhandled_fault_propagates(fake_ddb):
    def handler(env, ctx):
        raise RuntimeError("kaboom")

    with pytest.raises(RuntimeError):
        invoke(handler, _envelope(), _context(fake_ddb))


def test_timeout_abandons_invocation(fake_ddb):
    release = threading.Event()

    def slow(env, ctx):
        release.wait(5)
        return HandlerResult.ok()

    try:
        with pytest.raises(IntegrationTimeout) as err:
            invoke(slow, _envelope(), _context(fake_ddb, timeout=0.05))
        assert err.value.status_code == 504
        assert err.value.details["timeout_seconds"] == 0.05
    finally:
        release.set()


def test_put_movie_writes_through_context_table(fake_ddb):
    result = invoke(put_movie, _envelope('{"year": 1999, "title": "The Matrix"}'), _context(fake_ddb))
    assert result.succeeded
    assert result.body["movie"] == {"year": 1999, "title": "The Matrix"}
    assert ("movies", "1999", "The Matrix") in fake_ddb.items


@pytest.mark.parametrize("body", ["", "not json", "[1, 2]", '{"title": "No Year"}'])
def test_put_movie_rejects_bad_bodies(fake_ddb, body):
    result = invoke(put_movie, _envelope(body), _context(fake_ddb))
    assert result.failure == "validation"
    assert fake_ddb.items == {}
