from __future__ import annotations

from datetime import datetime

from regression_lab.dataset import GALTON_DATASET
from regression_lab.metrics import compute_metrics
from regression_lab.models import FitParameters, ModelChoice, Provider
from regression_lab.prompts import DEEPSEEK_SYSTEM_PROMPT, build_analysis_prompt, format_report


def test_build_analysis_prompt_embeds_fit_and_metrics() -> None:
    params = FitParameters(slope=0.88431, intercept=8.0349)
    metrics = compute_metrics(GALTON_DATASET, params)
    prompt = build_analysis_prompt(params, metrics, GALTON_DATASET, Provider.GEMINI)
    assert "y_hat = 0.8843x + 8.0349" in prompt
    assert "n = 20" in prompt
    assert f"{GALTON_DATASET.x_mean:.2f} in" in prompt
    assert f"{metrics.r_squared:.4f}" in prompt
    assert f"{metrics.standard_error:.4f}" in prompt
    assert "Answer as Gemini" in prompt
    assert "Regression to the mean" in prompt


def test_prompt_style_depends_on_provider() -> None:
    params = FitParameters(slope=0.5, intercept=30.0)
    metrics = compute_metrics(GALTON_DATASET, params)
    prompt = build_analysis_prompt(params, metrics, GALTON_DATASET, Provider.DEEPSEEK)
    assert "Answer as DeepSeek" in prompt
    assert "statistician" in DEEPSEEK_SYSTEM_PROMPT


def test_format_report_wraps_content() -> None:
    report = format_report(
        "Body text.",
        Provider.DEEPSEEK,
        ModelChoice.DEEPSEEK_CHAT,
        generated_at=datetime(2026, 1, 2, 3, 4, 5),
    )
    assert report.startswith("# AI Regression Analysis Report")
    assert "**Provider**: DeepSeek" in report
    assert "**Model**: deepseek-chat" in report
    assert "2026-01-02 03:04:05" in report
    assert "\nBody text.\n" in report
