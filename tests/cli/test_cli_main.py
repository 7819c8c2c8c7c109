"""Tests for the llmp command."""

from __future__ import annotations

import pytest
from click.testing import CliRunner

from llmp.frontends.cli import main as cli_main

CONFIG_YAML = """\
model_list:
  - model_name: claude-x
    litellm_params:
      model: anthropic/claude-3-opus
      api_base: https://api.anthropic.com
"""


@pytest.fixture
def served(monkeypatch):
    """Replace the server loop and logging setup; record the config served."""
    seen = []

    async def fake_serve_forever(config):
        seen.append(config)

    monkeypatch.setattr(cli_main, "serve_forever", fake_serve_forever)
    monkeypatch.setattr(cli_main, "configure_logging", lambda: None)
    return seen


class TestCli:
    def test_takes_one_optional_argument(self):
        params = [p for p in cli_main.cli.params if p.name != "help"]
        assert [p.name for p in params] == ["config"]
        assert params[0].default == "config.yaml"
        assert params[0].required is False

    def test_explicit_config_path(self, served, tmp_path):
        path = tmp_path / "proxy.yaml"
        path.write_text(CONFIG_YAML)

        result = CliRunner().invoke(cli_main.cli, [str(path)])

        assert result.exit_code == 0, result.output
        assert len(served) == 1
        assert served[0].routes.resolve("claude-x") is not None

    def test_default_config_path(self, served, tmp_path, monkeypatch):
        (tmp_path / "config.yaml").write_text(CONFIG_YAML)
        monkeypatch.chdir(tmp_path)

        result = CliRunner().invoke(cli_main.cli, [])

        assert result.exit_code == 0, result.output
        assert len(served[0].routes) == 1

    def test_missing_config_exits_nonzero(self, served, tmp_path):
        result = CliRunner().invoke(cli_main.cli, [str(tmp_path / "missing.yaml")])

        assert result.exit_code == 1
        assert "Failed to load config" in result.output
        assert served == []

    def test_malformed_config_exits_nonzero(self, served, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("model_list: {not: [closed")

        result = CliRunner().invoke(cli_main.cli, [str(path)])

        assert result.exit_code == 1
        assert served == []
