"""Prompt templates for report requests."""

from __future__ import annotations

from datetime import datetime

from regression_lab.models import Dataset, FitParameters, Metrics, ModelChoice, Provider

DEEPSEEK_SYSTEM_PROMPT = (
    "You are a leading statistician and data modeling expert writing professional "
    "analysis reports for an interactive regression analysis lab."
)

PROVIDER_DISPLAY_NAMES: dict[Provider, str] = {
    Provider.GEMINI: "Google Gemini",
    Provider.DEEPSEEK: "DeepSeek",
}

_PROVIDER_STYLE: dict[Provider, str] = {
    Provider.GEMINI: "Answer as Gemini: professional, clear and easy to follow.",
    Provider.DEEPSEEK: "Answer as DeepSeek: deep, rigorous and mathematical.",
}


def build_analysis_prompt(
    params: FitParameters,
    metrics: Metrics,
    dataset: Dataset,
    provider: Provider,
) -> str:
    """Build the report request for the current line and its metrics."""
    return f"""
# Regression Analysis Expert Report

## Dataset background
I am analyzing Francis Galton's heredity data (1886), which records the heights of
928 parent/child pairs and is where the "regression" phenomenon was first described.

## Current regression model
- **Equation**: y_hat = {params.slope:.4f}x + {params.intercept:.4f}
- **Sample size**: n = {dataset.n}
- **Mean parent height**: {dataset.x_mean:.2f} in
- **Mean child height**: {dataset.y_mean:.2f} in

## Fit metrics
1. **Goodness of fit (R^2)**: {metrics.r_squared:.4f}
2. **Mean squared error (MSE)**: {metrics.mse:.4f}
3. **Root mean squared error (RMSE)**: {metrics.rmse:.4f}
4. **Mean absolute error (MAE)**: {metrics.mae:.4f}
5. **Pearson correlation (r)**: {metrics.pearson_r:.4f}
6. **Standard error of the estimate**: {metrics.standard_error:.4f}

## What to cover
{_PROVIDER_STYLE[provider]}

### 1. Model quality
- Assess the current fit from the metrics above.
- Explain what R^2 and the correlation coefficient mean in practice.

### 2. Regression to the mean
- Interpret the slope {params.slope:.4f}.
- Explain the statistical principle behind "regression toward the mean".

### 3. Tuning advice
- Should the parameters change? In which direction?
- Suggestions for improving the model.

### 4. Expert insight
- Limitations of this model.
- Modern statistical methods that improve on it.

Use precise academic language while staying approachable for beginners.
""".strip()


def format_report(
    content: str,
    provider: Provider,
    model: ModelChoice,
    generated_at: datetime | None = None,
) -> str:
    """Wrap provider text in the report header and footer."""
    stamp = (generated_at or datetime.now()).strftime("%Y-%m-%d %H:%M:%S")
    provider_name = PROVIDER_DISPLAY_NAMES[provider]
    return f"""# AI Regression Analysis Report

**Provider**: {provider_name}
**Model**: {model.value}
**Generated**: {stamp}

---

{content}

---

*Generated by {provider_name} {model.value}. For reference and learning only.*"""
