"""Closed-form ordinary least squares fit."""

from __future__ import annotations

from regression_lab.exceptions import InvalidInputError
from regression_lab.models import Dataset, FitParameters


def fit_least_squares(dataset: Dataset) -> FitParameters:
    """Return the slope and intercept minimizing the sum of squared residuals.

    Requires non-zero variance in x (``n * sum(x^2) != sum(x)^2``). A dataset
    whose x values are all identical has no defined slope and raises
    ``InvalidInputError`` rather than returning NaN or infinity.
    """
    if dataset.x_is_constant:
        raise InvalidInputError(
            f"Cannot fit a line: all {dataset.n} x values are identical (zero variance in x)."
        )

    n = dataset.n
    sum_x = sum_y = sum_xy = sum_x2 = 0.0
    for point in dataset.points:
        sum_x += point.x
        sum_y += point.y
        sum_xy += point.x * point.y
        sum_x2 += point.x * point.x

    denominator = n * sum_x2 - sum_x * sum_x
    if denominator <= 0:
        raise InvalidInputError(
            f"Cannot fit a line: degenerate x spread (n*sum(x^2) - sum(x)^2 = {denominator})."
        )

    slope = (n * sum_xy - sum_x * sum_y) / denominator
    intercept = (sum_y - slope * sum_x) / n
    return FitParameters(slope=slope, intercept=intercept)
