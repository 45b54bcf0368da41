import json

from typer.testing import CliRunner

from princess_scheduler.cli import app


runner = CliRunner()


def test_cli_lint_success():
    r = runner.invoke(app, ["lint", "examples/basic-catalog.yaml"])
    assert r.exit_code == 0
    assert "OK: lint passed" in r.stdout


def test_cli_lint_unsorted_catalog():
    r = runner.invoke(app, ["lint", "examples/unsorted-catalog.yaml"])
    assert r.exit_code == 2
    assert "L_DEPENDENCY_AFTER_DEPENDENT" in (r.stdout + r.stderr)


def test_cli_lint_json_with_overrides(tmp_path):
    p = tmp_path / "pins.yaml"
    p.write_text("S42:\n  date: 2025-01-03\n", encoding="utf-8")
    r = runner.invoke(
        app,
        ["lint", "examples/basic-catalog.yaml", "--overrides", str(p), "--format", "json"],
    )
    assert r.exit_code == 2
    payload = json.loads(r.stdout)
    assert payload["ok"] is False
    assert [(e["code"], e["source"]) for e in payload["errors"]] == [("L_OVERRIDE_UNKNOWN_STAGE", "lint")]


def test_cli_lint_reports_validation_errors_too():
    r = runner.invoke(app, ["lint", "examples/invalid-cycle.yaml", "--format", "json"])
    assert r.exit_code == 2
    payload = json.loads(r.stdout)
    sources = {e["code"]: e["source"] for e in payload["errors"]}
    assert sources["E_CYCLE_DETECTED"] == "validate"
