import importlib.util
import json
import pathlib
import sys
from unittest.mock import MagicMock


MODULE_PATH = pathlib.Path(__file__).with_name("check_domain_certificate.py")
SPEC = importlib.util.spec_from_file_location("movies_check_domain_certificate_unit", MODULE_PATH)
check_domain_certificate = importlib.util.module_from_spec(SPEC)
assert SPEC and SPEC.loader
sys.modules[SPEC.name] = check_domain_certificate
SPEC.loader.exec_module(check_domain_certificate)

CERT_ARN = "arn:aws:acm:us-west-2:123456789012:certificate/abc"


def _acm(status="ISSUED", domain="movies.example.com"):
    acm = MagicMock()
    acm.get_paginator.return_value.paginate.return_value = [
        {"CertificateSummaryList": [
            {"DomainName": "other.example.com", "CertificateArn": "arn:aws:acm:us-west-2:123456789012:certificate/zzz"},
            {"DomainName": domain, "CertificateArn": CERT_ARN},
        ]},
    ]
    acm.describe_certificate.return_value = {"Certificate": {"DomainName": domain, "Status": status}}
    return acm


def test_find_certificate_by_domain():
    assert check_domain_certificate.find_certificate_arn(_acm(), "Movies.Example.com.") == CERT_ARN
    assert check_domain_certificate.find_certificate_arn(_acm(), "nope.example.com") == ""


def test_issued_certificate_reports_alias(monkeypatch, capsys):
    monkeypatch.setattr(check_domain_certificate, "_get_acm", lambda region=None: _acm())

    rc = check_domain_certificate.main([
        "--domain", "movies.example.com",
        "--target-dns", "d-abc123.execute-api.us-west-2.amazonaws.com",
        "--target-zone-id", "Z2OJLYMUO9EFXC",
    ])

    assert rc == 0
    report = json.loads(capsys.readouterr().out)
    assert report["can_activate"] is True
    assert report["security_policy"] == "TLS_1_2"
    assert report["alias_record"]["AliasTarget"]["DNSName"] == "d-abc123.execute-api.us-west-2.amazonaws.com"


def test_pending_certificate_cannot_activate(monkeypatch, capsys):
    monkeypatch.setattr(check_domain_certificate, "_get_acm", lambda region=None: _acm(status="PENDING_VALIDATION"))

    rc = check_domain_certificate.main(["--domain", "movies.example.com", "--target-dns", "d", "--target-zone-id", "Z"])

    assert rc == 1
    report = json.loads(capsys.readouterr().out)
    assert report["can_activate"] is False
    assert "alias_record" not in report


def test_wait_uses_certificate_validated_waiter(monkeypatch, capsys):
    acm = _acm()
    monkeypatch.setattr(check_domain_certificate, "_get_acm", lambda region=None: acm)

    rc = check_domain_certificate.main(["--certificate-arn", CERT_ARN, "--wait", "--delay", "1", "--max-attempts", "3"])

    assert rc == 0
    acm.get_waiter.assert_called_once_with("certificate_validated")
    acm.get_paginator.assert_not_called()


def test_missing_certificate(monkeypatch, capsys):
    monkeypatch.setattr(check_domain_certificate, "_get_acm", lambda region=None: _acm(domain="x.example.com"))

    rc = check_domain_certificate.main(["--domain", "movies.example.com"])

    assert rc == 1
    assert "no certificate found" in capsys.readouterr().err
