"""domain.py — Custom domain and TLS termination in front of the router.

A DomainBinding ties one hostname to the router's ``$default`` stage. It is
only active once its certificate, issued for exactly that hostname, has been
validated and an endpoint target is attached. DNS for the hostname is an
alias to the endpoint target's regional domain name, never a static address.

TransportTerminator rejects traffic before it reaches the router when the
binding is inactive, the Host does not match, or the TLS version is below the
binding's security policy.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from botocore.exceptions import WaiterError

from movies_api.config import MIN_TLS_VERSION, logger
from movies_api.errors import TopologyError, TransportError
from movies_api.http_utils import _headers
from movies_api.router import Router

__all__ = [
    "CERT_ISSUED",
    "CERT_PENDING",
    "Certificate",
    "DEFAULT_STAGE",
    "DomainBinding",
    "EndpointTarget",
    "TransportTerminator",
    "wait_for_certificate",
]

CERT_PENDING = "PENDING_VALIDATION"
CERT_ISSUED = "ISSUED"
DEFAULT_STAGE = "$default"

# API Gateway security policy -> lowest TLS protocol version it accepts.
_SECURITY_POLICIES = {"TLS_1_2": (1, 2)}
_TLS_VERSIONS = {
    "TLSv1": (1, 0),
    "TLSv1.0": (1, 0),
    "TLSv1.1": (1, 1),
    "TLSv1.2": (1, 2),
    "TLSv1.3": (1, 3),
}


def _normalize_host(host: str) -> str:
    return host.strip().lower().rstrip(".").split(":", 1)[0]


@dataclass
class Certificate:
    domain_name: str
    status: str = CERT_PENDING
    arn: str = ""

    @property
    def validated(self) -> bool:
        return self.status == CERT_ISSUED


@dataclass(frozen=True)
class EndpointTarget:
    """Regional endpoint the hostname aliases to."""

    dns_name: str
    hosted_zone_id: str


class DomainBinding:
    def __init__(
        self,
        hostname: str,
        certificate: Certificate,
        *,
        stage: str = DEFAULT_STAGE,
        security_policy: str = MIN_TLS_VERSION,
    ) -> None:
        self.hostname = _normalize_host(hostname)
        if not self.hostname:
            raise TopologyError("Domain binding needs a hostname")
        if _normalize_host(certificate.domain_name) != self.hostname:
            raise TopologyError(
                f"Certificate domain {certificate.domain_name!r} does not match hostname {self.hostname!r}"
            )
        if security_policy not in _SECURITY_POLICIES:
            raise TopologyError(f"Unsupported security policy {security_policy!r}; minimum is TLS_1_2")
        self.certificate = certificate
        self.stage = stage
        self.security_policy = security_policy
        self._target: Optional[EndpointTarget] = None

    @property
    def active(self) -> bool:
        return self.certificate.validated and self._target is not None

    @property
    def target(self) -> Optional[EndpointTarget]:
        return self._target

    def activate(self, target: EndpointTarget) -> None:
        if not self.certificate.validated:
            raise TopologyError(
                f"Certificate for {self.hostname} is {self.certificate.status}; binding cannot activate"
            )
        self._target = target
        logger.info("[INFO] domain binding active host=%s target=%s", self.hostname, target.dns_name)

    def alias_record(self) -> Dict[str, Any]:
        """Route 53 A-alias record set pointing the hostname at the endpoint."""
        if self._target is None:
            raise TopologyError(f"Domain binding for {self.hostname} has no endpoint target")
        return {
            "Name": f"{self.hostname}.",
            "Type": "A",
            "AliasTarget": {
                "DNSName": self._target.dns_name,
                "HostedZoneId": self._target.hosted_zone_id,
                "EvaluateTargetHealth": False,
            },
        }

    def accepts_tls(self, tls_version: str) -> bool:
        version = _TLS_VERSIONS.get(tls_version)
        return version is not None and version >= _SECURITY_POLICIES[self.security_policy]

    def refresh_certificate(self, acm_client: Any) -> Certificate:
        """Pull the certificate's current status from ACM."""
        if not self.certificate.arn:
            raise TopologyError(f"Certificate for {self.hostname} has no ARN to refresh")
        detail = acm_client.describe_certificate(CertificateArn=self.certificate.arn).get("Certificate") or {}
        issued_for = _normalize_host(str(detail.get("DomainName") or ""))
        if issued_for != self.hostname:
            raise TopologyError(f"ACM certificate is for {issued_for!r}, binding serves {self.hostname!r}")
        self.certificate.status = str(detail.get("Status") or CERT_PENDING)
        return self.certificate


def wait_for_certificate(
    binding: DomainBinding,
    acm_client: Any,
    *,
    delay_seconds: int = 30,
    max_attempts: int = 40,
) -> Certificate:
    """Block until ACM reports the binding's certificate as validated."""
    waiter = acm_client.get_waiter("certificate_validated")
    try:
        waiter.wait(
            CertificateArn=binding.certificate.arn,
            WaiterConfig={"Delay": delay_seconds, "MaxAttempts": max_attempts},
        )
    except WaiterError as exc:
        raise TopologyError(f"Certificate for {binding.hostname} did not validate: {exc}") from exc
    return binding.refresh_certificate(acm_client)


class TransportTerminator:
    """TLS termination for the bound hostname; forwards to the router."""

    def __init__(self, binding: DomainBinding, router: Router) -> None:
        self.binding = binding
        self.router = router

    def handle(self, event: Dict[str, Any], lambda_context: Any = None, *, tls_version: str) -> Dict[str, Any]:
        headers = _headers(event)
        host = _normalize_host(headers.get("host") or (event.get("requestContext") or {}).get("domainName") or "")
        if not self.binding.active:
            raise TransportError(f"{self.binding.hostname} is not serving: certificate {self.binding.certificate.status}")
        if host != self.binding.hostname:
            raise TransportError(f"Host {host!r} is not bound to this endpoint")
        if not self.binding.accepts_tls(tls_version):
            raise TransportError(f"{tls_version} is below the {self.binding.security_policy} policy")

        rc = dict(event.get("requestContext") or {})
        rc["domainName"] = self.binding.hostname
        rc["stage"] = self.binding.stage
        return self.router.handle({**event, "requestContext": rc}, lambda_context)
