#!/usr/bin/env python3
"""Render the movies API CloudFormation template.

Builds the service topology (table, execution role, function, HTTP API,
access log group, certificate, custom domain, DNS alias), validates its
initialization order, and writes the template as JSON.

Usage:
    python3 tools/render_stack_template.py --domain movies.example.com > movies-api.json
    python3 tools/render_stack_template.py --print-order
"""

from __future__ import annotations

import argparse
import json
import pathlib
import sys
from typing import List, Optional

REPO_ROOT = pathlib.Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT / "backend" / "lambda"))

from movies_api.errors import TopologyError  # noqa: E402
from movies_api.topology import ServiceTopology, TopologySettings  # noqa: E402


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    defaults = TopologySettings()
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--service-name", default=defaults.service_name)
    parser.add_argument("--table", default=defaults.table_name, help="DynamoDB table name")
    parser.add_argument("--function-name", default=defaults.function_name)
    parser.add_argument("--domain", default=defaults.domain_name, help="Custom hostname served over TLS")
    parser.add_argument("--hosted-zone-id", default=defaults.hosted_zone_id)
    parser.add_argument("--timeout", type=float, default=defaults.handler_timeout_seconds,
                        help="Compute contract timeout in seconds")
    parser.add_argument("--log-retention-days", type=int, default=defaults.access_log_retention_days)
    parser.add_argument("--output", "-o", help="Write to this file instead of stdout")
    parser.add_argument("--print-order", action="store_true",
                        help="Print the initialization order instead of the template")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = _parse_args(argv)
    settings = TopologySettings(
        service_name=args.service_name,
        table_name=args.table,
        function_name=args.function_name,
        domain_name=args.domain,
        hosted_zone_id=args.hosted_zone_id,
        handler_timeout_seconds=args.timeout,
        access_log_retention_days=args.log_retention_days,
    )
    try:
        topology = ServiceTopology(settings)
    except TopologyError as exc:
        print(f"[ERROR] {exc.message}", file=sys.stderr)
        return 1

    if args.print_order:
        for idx, logical_id in enumerate(topology.initialization_order(), start=1):
            print(f"{idx:>2}. {logical_id}")
        return 0

    rendered = json.dumps(topology.to_cloudformation(), indent=2, sort_keys=False)
    if args.output:
        pathlib.Path(args.output).write_text(rendered + "\n", encoding="utf-8")
        print(f"[OK] wrote {args.output} ({len(topology.components)} resources)")
    else:
        print(rendered)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
