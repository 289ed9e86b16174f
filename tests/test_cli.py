from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest
from typer.testing import CliRunner

from regression_lab.cli import app
from regression_lab.config import CredentialStore
from regression_lab.models import ModelChoice, Provider

runner = CliRunner()

GEMINI_KEY = "AIzaXXXXXXXXXXXXXXXXXXXX"
DEEPSEEK_KEY = "sk-abcdefghijklmnopqrstu"


class _Response:
    def __init__(self, status_code: int, payload: Any = None, text: str = "") -> None:
        self.status_code = status_code
        self.ok = 200 <= status_code < 300
        self._payload = payload
        self.text = text

    def json(self) -> Any:
        return self._payload


@pytest.fixture
def cli_store(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> CredentialStore:
    store_path = tmp_path / "store" / "credentials.yaml"
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("REGRESSION_LAB_STORE", str(store_path))
    return CredentialStore(store_path)


def test_dataset_command_lists_points(cli_store: CredentialStore) -> None:
    result = runner.invoke(app, ["dataset"])
    assert result.exit_code == 0
    assert "n = 20" in result.stdout
    assert "verbose:" in result.stdout


def test_metrics_command_uses_initial_parameters(cli_store: CredentialStore) -> None:
    result = runner.invoke(app, ["metrics", "--no-verbose"])
    assert result.exit_code == 0
    assert "0.5000x + 30.0000" in result.stdout
    assert "Pearson r" in result.stdout
    assert "verbose:" not in result.stdout


def test_metrics_command_clamps_to_slider_bounds(cli_store: CredentialStore) -> None:
    result = runner.invoke(app, ["metrics", "--slope", "5", "--intercept", "7"])
    assert result.exit_code == 0
    assert "clamped" in result.stdout
    assert "2.0000x + 7.0000" in result.stdout


def test_metrics_command_rejects_non_finite(cli_store: CredentialStore) -> None:
    result = runner.invoke(app, ["metrics", "--slope", "nan"])
    assert result.exit_code == 2


def test_metrics_command_bad_config_exits_3(cli_store: CredentialStore, tmp_path: Path) -> None:
    result = runner.invoke(app, ["metrics", "--config", str(tmp_path / "missing.yaml")])
    assert result.exit_code == 3
    assert "does not exist" in result.stdout


def test_fit_command(cli_store: CredentialStore) -> None:
    result = runner.invoke(app, ["fit"])
    assert result.exit_code == 0
    assert "Least-squares fit." in result.stdout
    assert "slope=0.8" in result.stdout


def test_residuals_command(cli_store: CredentialStore) -> None:
    result = runner.invoke(app, ["residuals", "--auto-fit", "--no-verbose"])
    assert result.exit_code == 0
    assert "Residuals for" in result.stdout
    assert "64.0" in result.stdout


def test_configure_rejects_bad_key(cli_store: CredentialStore) -> None:
    result = runner.invoke(app, ["configure", "--provider", "gemini", "--api-key", "short"])
    assert result.exit_code == 2
    assert cli_store.load() is None


def test_configure_status_and_clear(cli_store: CredentialStore) -> None:
    result = runner.invoke(
        app, ["configure", "--provider", "deepseek", "--api-key", DEEPSEEK_KEY]
    )
    assert result.exit_code == 0
    stored = cli_store.load()
    assert stored is not None
    assert stored.provider == Provider.DEEPSEEK
    assert stored.model == ModelChoice.DEEPSEEK_CHAT

    status = runner.invoke(app, ["status"])
    assert status.exit_code == 0
    assert "DeepSeek READY" in status.stdout
    assert DEEPSEEK_KEY not in status.stdout

    cleared = runner.invoke(app, ["clear-config"])
    assert cleared.exit_code == 0
    assert cli_store.load() is None
    assert "not configured" in runner.invoke(app, ["status"]).stdout


def test_configure_rejects_model_from_other_provider(cli_store: CredentialStore) -> None:
    result = runner.invoke(
        app,
        ["configure", "--provider", "gemini", "--model", "deepseek-chat", "--api-key", GEMINI_KEY],
    )
    assert result.exit_code == 3


def test_analyze_without_key_exits_4(cli_store: CredentialStore) -> None:
    result = runner.invoke(app, ["analyze", "--no-verbose"])
    assert result.exit_code == 4
    assert "API key invalid or expired" in result.stdout


def test_analyze_with_stored_key(
    cli_store: CredentialStore, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    cli_store.save(GEMINI_KEY, Provider.GEMINI, ModelChoice.GEMINI_3_FLASH)
    captured: dict[str, Any] = {}

    def _fake_post(url: str, **kwargs: Any) -> _Response:
        captured["url"] = url
        captured["json"] = kwargs["json"]
        return _Response(
            200, {"candidates": [{"content": {"parts": [{"text": "Strong positive fit."}]}}]}
        )

    monkeypatch.setattr("regression_lab.providers.requests.post", _fake_post)
    trace_file = tmp_path / "trace.json"
    result = runner.invoke(app, ["analyze", "--auto-fit", "--trace-file", str(trace_file)])

    assert result.exit_code == 0
    assert "Strong positive fit." in result.stdout
    assert "gemini-3-flash-preview:generateContent" in captured["url"]
    prompt = captured["json"]["contents"][0]["parts"][0]["text"]
    assert "n = 20" in prompt
    actions = [event["action"] for event in json.loads(trace_file.read_text(encoding="utf-8"))]
    assert actions == ["parameters_set", "request_start", "request_complete"]


def test_analyze_credential_failure_clears_store(
    cli_store: CredentialStore, monkeypatch: pytest.MonkeyPatch
) -> None:
    cli_store.save(DEEPSEEK_KEY, Provider.DEEPSEEK, ModelChoice.DEEPSEEK_REASONER)
    monkeypatch.setattr(
        "regression_lab.providers.requests.post",
        lambda *_args, **_kwargs: _Response(401, text="Authentication Fails"),
    )
    result = runner.invoke(app, ["analyze", "--no-verbose"])
    assert result.exit_code == 4
    assert "API key invalid or expired" in result.stdout
    assert cli_store.load() is None


def test_analyze_quota_failure_keeps_store(
    cli_store: CredentialStore, monkeypatch: pytest.MonkeyPatch
) -> None:
    cli_store.save(DEEPSEEK_KEY, Provider.DEEPSEEK, ModelChoice.DEEPSEEK_CHAT)
    monkeypatch.setattr(
        "regression_lab.providers.requests.post",
        lambda *_args, **_kwargs: _Response(429, text="Rate limit reached"),
    )
    result = runner.invoke(app, ["analyze", "--no-verbose"])
    assert result.exit_code == 4
    assert "API quota exhausted" in result.stdout
    assert cli_store.load() is not None


def test_analyze_explicit_key_overrides_store(
    cli_store: CredentialStore, monkeypatch: pytest.MonkeyPatch
) -> None:
    seen: dict[str, Any] = {}

    def _fake_post(url: str, **kwargs: Any) -> _Response:
        seen["headers"] = kwargs["headers"]
        return _Response(200, {"choices": [{"message": {"content": "ok"}}]})

    monkeypatch.setattr("regression_lab.providers.requests.post", _fake_post)
    result = runner.invoke(
        app,
        ["analyze", "--provider", "deepseek", "--api-key", DEEPSEEK_KEY, "--no-verbose"],
    )
    assert result.exit_code == 0
    assert seen["headers"]["Authorization"] == f"Bearer {DEEPSEEK_KEY}"


def test_learn_lists_and_shows_topics(cli_store: CredentialStore) -> None:
    listing = runner.invoke(app, ["learn"])
    assert listing.exit_code == 0
    assert "Ordinary least squares" in listing.stdout

    topic = runner.invoke(app, ["learn", "ols"])
    assert topic.exit_code == 0
    assert "squared" in topic.stdout

    by_number = runner.invoke(app, ["learn", "4"])
    assert "Correlation and its limits" in by_number.stdout

    missing = runner.invoke(app, ["learn", "9"])
    assert missing.exit_code == 2


def test_analyze_other_provider_without_key_keeps_store(cli_store: CredentialStore) -> None:
    cli_store.save(GEMINI_KEY, Provider.GEMINI, ModelChoice.GEMINI_3_PRO)
    result = runner.invoke(app, ["analyze", "--provider", "deepseek", "--no-verbose"])
    assert result.exit_code == 4
    assert "API key invalid or expired" in result.stdout
    assert "Stored configuration cleared" not in result.stdout
    assert cli_store.load() is not None


def test_analyze_malformed_override_key_keeps_store(cli_store: CredentialStore) -> None:
    cli_store.save(GEMINI_KEY, Provider.GEMINI, ModelChoice.GEMINI_3_PRO)
    result = runner.invoke(app, ["analyze", "--api-key", "AIza-typo", "--no-verbose"])
    assert result.exit_code == 4
    assert cli_store.load() is not None


def test_analyze_writes_csv_trace(
    cli_store: CredentialStore, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    cli_store.save(DEEPSEEK_KEY, Provider.DEEPSEEK, ModelChoice.DEEPSEEK_CHAT)
    monkeypatch.setattr(
        "regression_lab.providers.requests.post",
        lambda *_args, **_kwargs: _Response(200, {"choices": [{"message": {"content": "ok"}}]}),
    )
    trace_file = tmp_path / "trace.log"
    result = runner.invoke(
        app,
        ["analyze", "--slope", "0.8", "--trace-file", str(trace_file), "--trace-format", "csv"],
    )
    assert result.exit_code == 0
    assert "Trace summary" in result.stdout
    lines = trace_file.read_text(encoding="utf-8").splitlines()
    assert lines[0].startswith("seq,timestamp,event_type")
    assert len(lines) == 4


def test_fit_and_dataset_read_config(cli_store: CredentialStore, tmp_path: Path) -> None:
    config_path = tmp_path / "lab.yaml"
    config_path.write_text("initial_slope: 0.9\ninitial_intercept: 5.0\n", encoding="utf-8")

    dataset = runner.invoke(app, ["dataset", "--config", str(config_path)])
    assert dataset.exit_code == 0
    assert "0.9000x + 5.0000" in dataset.stdout

    fit = runner.invoke(app, ["fit", "--config", str(config_path)])
    assert fit.exit_code == 0
    assert "compared with the initial line" in fit.stdout

    missing = runner.invoke(app, ["fit", "--config", str(tmp_path / "nope.yaml")])
    assert missing.exit_code == 3
