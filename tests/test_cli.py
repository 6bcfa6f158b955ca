"""Smoke tests for CLI."""

import json

from click.testing import CliRunner

from geomist.cli.main import cli


def test_cli_info():
    runner = CliRunner()
    result = runner.invoke(cli, ["info"])
    assert result.exit_code == 0
    assert "GEO MIST Version" in result.output
    assert "maxTemp=29.0" in result.output


def test_cli_config():
    runner = CliRunner()
    result = runner.invoke(cli, ["config"])  # prints JSON
    assert result.exit_code == 0
    assert "environment" in result.output
    assert json.loads(result.output)["hub"]["snapshot_alerts"] == 20


def test_cli_config_from_yaml(tmp_path):
    cfg = tmp_path / "geomist.yaml"
    cfg.write_text("environment: staging\napi_port: 4000\nthresholds:\n  max_temp: 35\n")
    runner = CliRunner()
    result = runner.invoke(cli, ["--config", str(cfg), "config"])
    assert result.exit_code == 0
    data = json.loads(result.output)
    assert data["environment"] == "staging"
    assert data["api_port"] == 4000
    assert data["thresholds"]["max_temp"] == 35


def test_cli_simulate():
    runner = CliRunner()
    result = runner.invoke(cli, ["simulate", "-s", "GMS-001", "-s", "GMS-002", "-n", "2"])
    assert result.exit_code == 0
    lines = [json.loads(line) for line in result.output.strip().splitlines()]
    assert [r["sensorId"] for r in lines] == ["GMS-001", "GMS-002"] * 2


def test_cli_evaluate(tmp_path):
    reading = tmp_path / "reading.json"
    reading.write_text(json.dumps({"sensorId": "GMS-004", "temperature": 25, "moisture": 35, "humidity": 60}))
    runner = CliRunner()
    result = runner.invoke(cli, ["evaluate", str(reading), "--name", "Lettuce Row"])
    assert result.exit_code == 0
    alerts = json.loads(result.output)
    assert len(alerts) == 1
    assert alerts[0]["type"] == "warning"
    assert "Lettuce Row" in alerts[0]["message"]


def test_cli_config_from_env(tmp_path, monkeypatch):
    cfg = tmp_path / "geomist.yaml"
    cfg.write_text("environment: production\n")
    monkeypatch.setenv("GEOMIST_CONFIG", str(cfg))
    runner = CliRunner()
    result = runner.invoke(cli, ["config"])
    assert result.exit_code == 0
    assert json.loads(result.output)["environment"] == "production"
