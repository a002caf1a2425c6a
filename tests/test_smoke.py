"""Basic smoke tests for configuration, wiring and the CLI."""
from __future__ import annotations

from typer.testing import CliRunner

from ooh_terminal.cli.commands import app
from ooh_terminal.settings.config import DEFAULT_FRESHNESS_WINDOWS, Config
from ooh_terminal.workflows.context import build_context
from ooh_terminal.workflows.graph import RefreshWorkflow


def _isolated_env(monkeypatch, tmp_path):
    monkeypatch.setenv("DATABASE_PATH", str(tmp_path / "smoke.db"))
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.delenv("POE_API_KEY", raising=False)
    monkeypatch.setenv("COLUMNS", "240")


def test_config_from_env(monkeypatch, tmp_path):
    _isolated_env(monkeypatch, tmp_path)
    monkeypatch.setenv("TTL_NEWS", "60")
    monkeypatch.setenv("RETRY_MAX", "5")
    monkeypatch.setenv("LLM_WEB_SEARCH", "false")
    cfg = Config.from_env()
    assert cfg.database_path.parent.exists()
    assert cfg.freshness_windows["news"] == 60
    assert cfg.freshness_windows["ratings"] == DEFAULT_FRESHNESS_WINDOWS["ratings"]
    assert cfg.retry_max == 5
    assert cfg.llm_web_search is False
    assert cfg.llm_api_key is None


def test_context_without_key_runs_client_less(monkeypatch, tmp_path):
    _isolated_env(monkeypatch, tmp_path)
    context = build_context(Config.from_env())
    assert context.gemini is None
    assert context.cell.current.companies


def test_workflow_stages(monkeypatch, tmp_path):
    _isolated_env(monkeypatch, tmp_path)
    workflow = RefreshWorkflow(build_context(Config.from_env()))
    stages = workflow.describe_stages()
    assert [s.split(":")[0] for s in stages] == ["fetch", "parse", "merge", "persist"]


def test_cli_plan_status_and_companies(monkeypatch, tmp_path):
    _isolated_env(monkeypatch, tmp_path)
    runner = CliRunner()

    result = runner.invoke(app, ["plan"])
    assert result.exit_code == 0, result.output
    assert "fetch" in result.output

    result = runner.invoke(app, ["status"])
    assert result.exit_code == 0, result.output
    assert "financials" in result.output

    result = runner.invoke(app, ["companies"])
    assert result.exit_code == 0, result.output
    assert "LAMR" in result.output


def test_cli_refresh_without_key_reports_failure(monkeypatch, tmp_path):
    _isolated_env(monkeypatch, tmp_path)
    result = CliRunner().invoke(app, ["refresh", "calendar"])
    assert result.exit_code == 0, result.output
    assert "refresh failed" in result.output


def test_cli_add_reports_failed_refresh_for_tracked_company(monkeypatch, tmp_path):
    _isolated_env(monkeypatch, tmp_path)
    result = CliRunner().invoke(app, ["add", "LAMR"])
    assert result.exit_code == 1
    assert "Could not refresh LAMR" in result.output
    assert "Tracking" not in result.output


def test_cli_rejects_unknown_category(monkeypatch, tmp_path):
    _isolated_env(monkeypatch, tmp_path)
    result = CliRunner().invoke(app, ["refresh", "weather"])
    assert result.exit_code != 0
