#!/usr/bin/env python3
"""Invoke the movies API locally with a synthetic API Gateway v2 event.

The request goes through the same path as production: TLS/host check at the
domain binding, then the router, the compute contract and the table. Point
``--endpoint-url`` at DynamoDB Local to avoid touching a real table.

Usage:
    python3 tools/invoke_local.py --year 1999 --title "The Matrix" --attr rating=8.7 \\
        --endpoint-url http://localhost:8000
    python3 tools/invoke_local.py --method GET --path /movies
"""

from __future__ import annotations

import argparse
import json
import logging
import pathlib
import sys
import uuid
from typing import Any, Dict, List, Optional

import boto3

REPO_ROOT = pathlib.Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT / "backend" / "lambda"))

from movies_api import config  # noqa: E402
from movies_api.access_log import MemorySink  # noqa: E402
from movies_api.domain import CERT_ISSUED, Certificate, DomainBinding, EndpointTarget, TransportTerminator  # noqa: E402
from movies_api.errors import TransportError  # noqa: E402
from movies_api.lambda_function import build_router  # noqa: E402


def _attr(raw: str) -> tuple:
    key, sep, value = raw.partition("=")
    if not sep or not key:
        raise argparse.ArgumentTypeError(f"expected key=value, got {raw!r}")
    try:
        return key, json.loads(value)
    except json.JSONDecodeError:
        return key, value


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--method", default=config.ROUTE_METHOD)
    parser.add_argument("--path", default=config.ROUTE_PATH)
    parser.add_argument("--year")
    parser.add_argument("--title")
    parser.add_argument("--attr", action="append", type=_attr, default=[],
                        help="Extra movie attribute as key=value (value parsed as JSON when possible)")
    parser.add_argument("--body", help="Raw request body; overrides --year/--title/--attr")
    parser.add_argument("--host", default=config.CUSTOM_DOMAIN_NAME)
    parser.add_argument("--tls-version", default="TLSv1.2")
    parser.add_argument("--table", default=config.MOVIES_TABLE)
    parser.add_argument("--region", default=config.DYNAMODB_REGION)
    parser.add_argument("--account-id", default=config.ACCOUNT_ID)
    parser.add_argument("--endpoint-url", help="DynamoDB endpoint, e.g. DynamoDB Local")
    parser.add_argument("--timeout", type=float, default=config.HANDLER_TIMEOUT_SECONDS)
    return parser.parse_args(argv)


def _body(args: argparse.Namespace) -> Optional[str]:
    if args.body is not None:
        return args.body
    if args.year is None and args.title is None and not args.attr:
        return None
    payload: Dict[str, Any] = dict(args.attr)
    if args.year is not None:
        try:
            payload["year"] = json.loads(args.year)
        except json.JSONDecodeError:
            payload["year"] = args.year
    if args.title is not None:
        payload["title"] = args.title
    return json.dumps(payload)


def build_event(method: str, path: str, host: str, body: Optional[str]) -> Dict[str, Any]:
    return {
        "version": "2.0",
        "routeKey": "$default",
        "rawPath": path,
        "headers": {"host": host, "content-type": "application/json"},
        "requestContext": {
            "requestId": str(uuid.uuid4()),
            "domainName": host,
            "http": {"method": method.upper(), "path": path, "protocol": "HTTP/1.1", "sourceIp": "127.0.0.1"},
        },
        "body": body,
        "isBase64Encoded": False,
    }


def main(argv: Optional[List[str]] = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(level=logging.INFO, stream=sys.stderr)

    ddb = boto3.client("dynamodb", region_name=args.region, endpoint_url=args.endpoint_url)
    records = MemorySink()
    router = build_router(
        account_id=args.account_id,
        region=args.region,
        table_name=args.table,
        ddb_client=ddb,
        access_log_to_cloudwatch=False,
        timeout_seconds=args.timeout,
        extra_sinks=[records],
    )

    binding = DomainBinding(config.CUSTOM_DOMAIN_NAME, Certificate(config.CUSTOM_DOMAIN_NAME, status=CERT_ISSUED))
    binding.activate(EndpointTarget(dns_name="localhost", hosted_zone_id="LOCAL"))
    terminator = TransportTerminator(binding, router)

    event = build_event(args.method, args.path, args.host, _body(args))
    try:
        resp = terminator.handle(event, tls_version=args.tls_version)
    except TransportError as exc:
        print(f"[ERROR] transport rejected request: {exc.message}", file=sys.stderr)
        return 2

    print(json.dumps({
        "response": {**resp, "body": json.loads(resp["body"])},
        "access_log": [json.loads(r.to_json()) for r in records.records],
    }, indent=2))
    return 0 if resp["statusCode"] < 400 else 1


if __name__ == "__main__":
    raise SystemExit(main())
