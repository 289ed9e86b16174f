from __future__ import annotations

import math

import pytest
from pydantic import ValidationError

from regression_lab.dataset import GALTON_DATASET, INITIAL_PARAMS
from regression_lab.exceptions import InvalidInputError
from regression_lab.models import Dataset, FitParameters, ParameterBounds


def test_dataset_rejects_empty_sequence() -> None:
    with pytest.raises(InvalidInputError, match="n >= 1"):
        Dataset.from_pairs([])


def test_dataset_is_immutable(perfect_line: Dataset) -> None:
    with pytest.raises(ValidationError):
        perfect_line.points = ()  # type: ignore[misc]


def test_dataset_summary_properties(perfect_line: Dataset) -> None:
    assert perfect_line.n == 3
    assert perfect_line.xs == [1.0, 2.0, 3.0]
    assert perfect_line.x_mean == 2.0
    assert perfect_line.y_mean == 4.0
    assert not perfect_line.x_is_constant
    assert not perfect_line.y_is_constant


def test_galton_dataset_shape() -> None:
    assert GALTON_DATASET.n == 20
    assert GALTON_DATASET.points[0].x == 64.0
    assert GALTON_DATASET.points[-1].y == 72.0
    assert INITIAL_PARAMS == FitParameters(slope=0.5, intercept=30.0)


def test_fit_parameters_reject_non_finite() -> None:
    with pytest.raises(InvalidInputError):
        FitParameters(slope=math.nan, intercept=0.0)
    with pytest.raises(InvalidInputError):
        FitParameters(slope=1.0, intercept=math.inf)


def test_fit_parameters_predict() -> None:
    assert FitParameters(slope=2.0, intercept=1.0).predict(3.0) == 7.0


def test_parameter_bounds_clamp_to_slider_ranges() -> None:
    bounds = ParameterBounds()
    clamped = bounds.clamp(FitParameters(slope=-3.0, intercept=250.0))
    assert clamped == FitParameters(slope=0.0, intercept=100.0)
    inside = FitParameters(slope=0.9, intercept=7.5)
    assert bounds.clamp(inside) == inside


def test_parameter_bounds_must_be_ordered() -> None:
    with pytest.raises(ValidationError):
        ParameterBounds(slope_min=3.0, slope_max=2.0)
