"""Reference dataset: Galton parent/child heights (simplified sample)."""

from __future__ import annotations

from regression_lab.models import Dataset, FitParameters

# (mid-parent height, adult child height), inches.
GALTON_PAIRS: tuple[tuple[float, float], ...] = (
    (64.0, 63.0),
    (64.5, 66.0),
    (65.0, 65.0),
    (65.5, 65.5),
    (66.0, 67.0),
    (66.5, 66.5),
    (67.0, 68.0),
    (67.5, 67.0),
    (68.0, 69.5),
    (68.5, 68.5),
    (69.0, 69.0),
    (69.5, 70.0),
    (70.0, 69.5),
    (70.5, 70.5),
    (71.0, 72.0),
    (71.5, 71.0),
    (72.0, 71.0),
    (72.5, 72.5),
    (73.0, 73.0),
    (74.0, 72.0),
)

GALTON_DATASET = Dataset.from_pairs(
    GALTON_PAIRS,
    name="Galton heights (1886, simplified sample)",
    x_label="parent height (in)",
    y_label="child height (in)",
)

INITIAL_PARAMS = FitParameters(slope=0.5, intercept=30.0)
