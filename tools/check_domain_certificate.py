#!/usr/bin/env python3
"""Check the ACM certificate behind the movies API custom domain.

Finds the certificate issued for the domain (or uses --certificate-arn),
optionally waits for DNS validation to finish, and reports whether the
domain binding could activate. With --target-dns/--target-zone-id it also
prints the Route 53 alias record the binding would publish.

Usage:
    python3 tools/check_domain_certificate.py --domain movies.example.com
    python3 tools/check_domain_certificate.py --domain movies.example.com --wait \\
        --target-dns d-abc123.execute-api.us-west-2.amazonaws.com --target-zone-id Z2OJLYMUO9EFXC
"""

from __future__ import annotations

import argparse
import json
import pathlib
import sys
from typing import Any, List, Optional

REPO_ROOT = pathlib.Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT / "backend" / "lambda"))

from movies_api import config  # noqa: E402
from movies_api.aws_clients import _get_acm  # noqa: E402
from movies_api.domain import Certificate, DomainBinding, EndpointTarget, wait_for_certificate  # noqa: E402
from movies_api.errors import TopologyError  # noqa: E402


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--domain", default=config.CUSTOM_DOMAIN_NAME)
    parser.add_argument("--certificate-arn", help="Skip the lookup and check this certificate")
    parser.add_argument("--region", default=config.DYNAMODB_REGION)
    parser.add_argument("--wait", action="store_true", help="Block until the certificate is validated")
    parser.add_argument("--delay", type=int, default=30, help="Seconds between waiter polls")
    parser.add_argument("--max-attempts", type=int, default=40)
    parser.add_argument("--target-dns", help="Regional domain name of the API endpoint")
    parser.add_argument("--target-zone-id", help="Hosted zone id of the API endpoint")
    return parser.parse_args(argv)


def find_certificate_arn(acm: Any, domain: str) -> str:
    """ARN of the newest certificate whose primary name is ``domain``."""
    wanted = domain.strip().lower().rstrip(".")
    paginator = acm.get_paginator("list_certificates")
    for page in paginator.paginate(CertificateStatuses=["PENDING_VALIDATION", "ISSUED"]):
        for summary in page.get("CertificateSummaryList", []):
            if str(summary.get("DomainName", "")).lower().rstrip(".") == wanted:
                return summary["CertificateArn"]
    return ""


def main(argv: Optional[List[str]] = None) -> int:
    args = _parse_args(argv)
    acm = _get_acm(args.region)

    arn = args.certificate_arn or find_certificate_arn(acm, args.domain)
    if not arn:
        print(f"[ERROR] no certificate found for {args.domain}", file=sys.stderr)
        return 1

    try:
        binding = DomainBinding(args.domain, Certificate(domain_name=args.domain, arn=arn))
        if args.wait:
            wait_for_certificate(binding, acm, delay_seconds=args.delay, max_attempts=args.max_attempts)
        else:
            binding.refresh_certificate(acm)
    except TopologyError as exc:
        print(f"[ERROR] {exc.message}", file=sys.stderr)
        return 1

    report = {
        "domain": binding.hostname,
        "certificate_arn": arn,
        "status": binding.certificate.status,
        "security_policy": binding.security_policy,
        "can_activate": binding.certificate.validated,
    }
    if binding.certificate.validated and args.target_dns and args.target_zone_id:
        binding.activate(EndpointTarget(dns_name=args.target_dns, hosted_zone_id=args.target_zone_id))
        report["alias_record"] = binding.alias_record()

    print(json.dumps(report, indent=2, sort_keys=True))
    return 0 if binding.certificate.validated else 1


if __name__ == "__main__":
    raise SystemExit(main())
