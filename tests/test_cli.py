from __future__ import annotations

import json
import sys
from pathlib import Path

import pytest
import typer
from loguru import logger
from typer.testing import CliRunner

from compote.cli.__main__ import app, parse_vars

runner = CliRunner()


@pytest.fixture(autouse=True)
def restore_logging(tmp_path: Path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    yield
    logger.remove()
    logger.add(sys.stderr)


def write_document(path: Path) -> Path:
    path.write_text(
        json.dumps(
            {
                "statements": [
                    {
                        "type": "section",
                        "name": "app",
                        "entries": [
                            {"key": "env", "value": {"type": "string", "value": "var.env"}},
                            {
                                "key": "token",
                                "value": {"type": "marked", "expr": {"type": "string", "value": "t0k"}},
                            },
                        ],
                    }
                ]
            }
        )
    )
    return path


def test_build_prints_snapshot(tmp_path: Path):
    doc = write_document(tmp_path / "main.json")
    result = runner.invoke(app, ["build", str(doc), "--var", "env=prod"])
    assert result.exit_code == 0, result.output
    out = json.loads(result.output)
    assert out["data"] == {"app": {"env": "prod", "token": "***"}}
    assert out["metadata"]["input_files"] == [str(doc)]


def test_build_show_secrets(tmp_path: Path):
    doc = write_document(tmp_path / "main.json")
    result = runner.invoke(app, ["build", str(doc), "--var", "env=dev", "--show-secrets"])
    assert result.exit_code == 0, result.output
    assert json.loads(result.output)["data"]["app"]["token"] == "t0k"


def test_build_uses_config_file(tmp_path: Path):
    doc = write_document(tmp_path / "main.json")
    (tmp_path / "compote.yaml").write_text("vars:\n  env: from-config\n")
    result = runner.invoke(app, ["build", str(doc)])
    assert result.exit_code == 0, result.output
    assert json.loads(result.output)["data"]["app"]["env"] == "from-config"


def test_build_error_exits_with_diagnostic(tmp_path: Path):
    doc = tmp_path / "main.json"
    doc.write_text(
        json.dumps(
            {
                "filename": "main.csl",
                "statements": [
                    {
                        "type": "section",
                        "name": "db",
                        "value": {
                            "type": "reference",
                            "alias": "nope",
                            "path": ["host"],
                            "source_span": {"start_line": 4, "start_col": 6},
                        },
                    }
                ],
            }
        )
    )
    result = runner.invoke(app, ["build", str(doc)])
    assert result.exit_code == 1
    assert "main.csl:4:6: error: provider not registered" in result.output


def test_providers_lists_types():
    result = runner.invoke(app, ["providers"])
    assert result.exit_code == 0
    assert json.loads(result.output) == ["yaml"]


def test_parse_vars():
    assert parse_vars(["env=prod", "aws.region=eu", "aws.zone=a"]) == {
        "env": "prod",
        "aws": {"region": "eu", "zone": "a"},
    }
    with pytest.raises(typer.BadParameter):
        parse_vars(["novalue"])
