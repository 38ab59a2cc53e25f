"""Custom domain binding and TLS termination."""

from __future__ import annotations

import json
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import WaiterError

from movies_api.access_log import MemorySink
from movies_api.domain import (
    CERT_ISSUED,
    CERT_PENDING,
    Certificate,
    DomainBinding,
    EndpointTarget,
    TransportTerminator,
    wait_for_certificate,
)
from movies_api.errors import TopologyError, TransportError
from movies_api.lambda_function import build_router

HOST = "movies.example.com"
TARGET = EndpointTarget(dns_name="d-abc123.execute-api.us-west-2.amazonaws.com", hosted_zone_id="Z2OJLYMUO9EFXC")


def _active_binding() -> DomainBinding:
    binding = DomainBinding(HOST, Certificate(HOST, status=CERT_ISSUED))
    binding.activate(TARGET)
    return binding


@pytest.fixture
def sink():
    return MemorySink()


@pytest.fixture
def terminator(fake_ddb, sink):
    router = build_router(
        account_id="123456789012",
        region="us-west-2",
        table_name="movies",
        ddb_client=fake_ddb,
        access_log_to_cloudwatch=False,
        extra_sinks=[sink],
    )
    return TransportTerminator(_active_binding(), router)


def test_certificate_must_cover_hostname():
    with pytest.raises(TopologyError):
        DomainBinding(HOST, Certificate("www.example.com"))
    with pytest.raises(TopologyError):
        DomainBinding("", Certificate(""))


def test_only_tls12_policy_supported():
    with pytest.raises(TopologyError):
        DomainBinding(HOST, Certificate(HOST), security_policy="TLS_1_0")


def test_hostname_normalized():
    binding = DomainBinding("Movies.Example.com.", Certificate(HOST))
    assert binding.hostname == HOST


def test_pending_certificate_cannot_activate():
    binding = DomainBinding(HOST, Certificate(HOST, status=CERT_PENDING))
    with pytest.raises(TopologyError):
        binding.activate(TARGET)
    assert not binding.active
    with pytest.raises(TopologyError):
        binding.alias_record()


def test_alias_record_targets_regional_endpoint():
    record = _active_binding().alias_record()
    assert record["Name"] == "movies.example.com."
    assert record["Type"] == "A"
    assert record["AliasTarget"] == {
        "DNSName": TARGET.dns_name,
        "HostedZoneId": TARGET.hosted_zone_id,
        "EvaluateTargetHealth": False,
    }
    assert "ResourceRecords" not in record


@pytest.mark.parametrize("version,accepted", [
    ("TLSv1", False), ("TLSv1.1", False), ("TLSv1.2", True), ("TLSv1.3", True), ("SSLv3", False),
])
def test_tls_floor(version, accepted):
    assert _active_binding().accepts_tls(version) is accepted


def test_refresh_certificate_from_acm():
    binding = DomainBinding(HOST, Certificate(HOST, arn="arn:aws:acm:us-west-2:123456789012:certificate/abc"))
    acm = MagicMock()
    acm.describe_certificate.return_value = {"Certificate": {"DomainName": HOST, "Status": "ISSUED"}}

    assert binding.refresh_certificate(acm).validated
    acm.describe_certificate.assert_called_once_with(CertificateArn=binding.certificate.arn)


def test_refresh_rejects_certificate_for_other_host():
    binding = DomainBinding(HOST, Certificate(HOST, arn="arn:aws:acm:us-west-2:123456789012:certificate/abc"))
    acm = MagicMock()
    acm.describe_certificate.return_value = {"Certificate": {"DomainName": "other.example.com", "Status": "ISSUED"}}
    with pytest.raises(TopologyError):
        binding.refresh_certificate(acm)


def test_wait_for_certificate_uses_waiter():
    binding = DomainBinding(HOST, Certificate(HOST, arn="arn:aws:acm:us-west-2:123456789012:certificate/abc"))
    acm = MagicMock()
    acm.describe_certificate.return_value = {"Certificate": {"DomainName": HOST, "Status": "ISSUED"}}

    cert = wait_for_certificate(binding, acm, delay_seconds=1, max_attempts=2)

    acm.get_waiter.assert_called_once_with("certificate_validated")
    acm.get_waiter.return_value.wait.assert_called_once_with(
        CertificateArn=binding.certificate.arn, WaiterConfig={"Delay": 1, "MaxAttempts": 2}
    )
    assert cert.status == CERT_ISSUED


def test_wait_for_certificate_failure_is_topology_error():
    binding = DomainBinding(HOST, Certificate(HOST, arn="arn:aws:acm:us-west-2:123456789012:certificate/abc"))
    acm = MagicMock()
    acm.get_waiter.return_value.wait.side_effect = WaiterError(
        name="CertificateValidated", reason="Max attempts exceeded", last_response={}
    )
    with pytest.raises(TopologyError):
        wait_for_certificate(binding, acm)
    assert not binding.certificate.validated


def test_terminator_forwards_with_domain_and_stage(terminator, sink, make_event):
    resp = terminator.handle(make_event(body={"year": 1999, "title": "The Matrix"}), tls_version="TLSv1.2")

    assert resp["statusCode"] == 200
    assert json.loads(resp["body"])["success"] is True
    assert sink.records[0].domainName == HOST


def test_terminator_rejects_old_tls_before_router(terminator, fake_ddb, sink, make_event):
    with pytest.raises(TransportError) as err:
        terminator.handle(make_event(body={"year": 1999, "title": "The Matrix"}), tls_version="TLSv1.1")
    assert err.value.status_code == 421
    assert fake_ddb.calls == []
    assert sink.records == []


def test_terminator_rejects_unbound_host(terminator, make_event):
    with pytest.raises(TransportError):
        terminator.handle(make_event(headers={"host": "evil.example.net"}), tls_version="TLSv1.3")


def test_inactive_binding_serves_nothing(fake_ddb, make_event):
    router = build_router(account_id="123456789012", ddb_client=fake_ddb, access_log_to_cloudwatch=False)
    pending = TransportTerminator(DomainBinding(HOST, Certificate(HOST)), router)
    with pytest.raises(TransportError):
        pending.handle(make_event(body={"year": 1999, "title": "The Matrix"}), tls_version="TLSv1.2")
    assert fake_ddb.calls == []
