import importlib.util
import json
import pathlib
import sys


MODULE_PATH = pathlib.Path(__file__).with_name("render_stack_template.py")
SPEC = importlib.util.spec_from_file_location("movies_render_stack_template_unit", MODULE_PATH)
render_stack_template = importlib.util.module_from_spec(SPEC)
assert SPEC and SPEC.loader
sys.modules[SPEC.name] = render_stack_template
SPEC.loader.exec_module(render_stack_template)


def test_writes_template_file(tmp_path, capsys):
    out = tmp_path / "movies-api.json"
    rc = render_stack_template.main(["--domain", "films.example.org", "--table", "films", "-o", str(out)])

    assert rc == 0
    assert "[OK]" in capsys.readouterr().out
    template = json.loads(out.read_text(encoding="utf-8"))
    assert template["Resources"]["MoviesTable"]["Properties"]["TableName"] == "films"
    assert template["Resources"]["ApiDomainName"]["Properties"]["DomainName"] == "films.example.org"


def test_prints_initialization_order(capsys):
    rc = render_stack_template.main(["--print-order"])

    assert rc == 0
    lines = capsys.readouterr().out.splitlines()
    ids = [line.split(". ", 1)[1] for line in lines]
    assert ids.index("AccessLogGroup") < ids.index("DefaultStage")
    assert ids.index("ApiCertificate") < ids.index("ApiDomainName") < ids.index("DnsRecord")


def test_invalid_domain_reports_error(capsys):
    rc = render_stack_template.main(["--domain", ""])

    assert rc == 1
    assert "[ERROR]" in capsys.readouterr().err
