"""Fit quality metrics for a line against a dataset."""

from __future__ import annotations

import math

from regression_lab.models import Dataset, FitParameters, Metrics, Residual


def compute_metrics(dataset: Dataset, params: FitParameters) -> Metrics:
    """Compute MSE, RMSE, MAE, R^2, Pearson r and standard error of the estimate.

    All sums are accumulated in one pass after the y mean. Degenerate inputs
    never produce NaN:

    - constant y gives ``r_squared == 0`` and ``pearson_r == 0``
    - constant x gives ``pearson_r == 0``
    - ``n <= 2`` gives ``standard_error == 0``
    """
    n = dataset.n
    mean_y = dataset.y_mean

    sse = sae = sst = 0.0
    sum_x = sum_y = sum_x2 = sum_y2 = sum_xy = 0.0
    for point in dataset.points:
        error = point.y - params.predict(point.x)
        sse += error**2
        sae += abs(error)
        sst += (point.y - mean_y) ** 2
        sum_x += point.x
        sum_y += point.y
        sum_x2 += point.x * point.x
        sum_y2 += point.y * point.y
        sum_xy += point.x * point.y

    # Constant columns are detected on the values, raw sums can leave rounding noise.
    if dataset.y_is_constant:
        sst = 0.0

    mse = sse / n
    r_squared = 0.0 if sst == 0 else 1 - sse / sst
    standard_error = math.sqrt(sse / (n - 2)) if n > 2 else 0.0

    return Metrics(
        mse=mse,
        rmse=math.sqrt(mse),
        mae=sae / n,
        r_squared=r_squared,
        pearson_r=_pearson_r(dataset, n, sum_x, sum_y, sum_x2, sum_y2, sum_xy),
        standard_error=standard_error,
    )


def compute_residuals(dataset: Dataset, params: FitParameters) -> list[Residual]:
    """Per-point prediction and residual (observed minus predicted)."""
    residuals: list[Residual] = []
    for point in dataset.points:
        prediction = params.predict(point.x)
        residuals.append(
            Residual(x=point.x, y=point.y, prediction=prediction, residual=point.y - prediction)
        )
    return residuals


def _pearson_r(
    dataset: Dataset,
    n: int,
    sum_x: float,
    sum_y: float,
    sum_x2: float,
    sum_y2: float,
    sum_xy: float,
) -> float:
    if dataset.x_is_constant or dataset.y_is_constant:
        return 0.0
    spread_x = n * sum_x2 - sum_x * sum_x
    spread_y = n * sum_y2 - sum_y * sum_y
    if spread_x <= 0 or spread_y <= 0:
        return 0.0
    denominator = math.sqrt(spread_x * spread_y)
    if denominator == 0:
        return 0.0
    r = (n * sum_xy - sum_x * sum_y) / denominator
    return max(-1.0, min(1.0, r))
