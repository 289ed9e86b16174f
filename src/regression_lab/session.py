"""Interaction state: the single live fit and its metrics."""

from __future__ import annotations

from collections.abc import Callable

from regression_lab.dataset import GALTON_DATASET, INITIAL_PARAMS
from regression_lab.metrics import compute_metrics, compute_residuals
from regression_lab.models import Dataset, FitParameters, Metrics, Residual
from regression_lab.solver import fit_least_squares
from regression_lab.tracing import RunTraceCollector

Listener = Callable[[FitParameters, Metrics], None]


class RegressionSession:
    """Owns the current fit parameters and recomputes metrics on every change.

    Every mutation recomputes metrics synchronously before returning, so
    ``get_metrics()`` always matches the last ``set_parameters()`` call.
    """

    def __init__(
        self,
        dataset: Dataset = GALTON_DATASET,
        initial: FitParameters = INITIAL_PARAMS,
        trace: RunTraceCollector | None = None,
    ) -> None:
        self._dataset = dataset
        self._initial = initial
        self._trace = trace
        self._listeners: list[Listener] = []
        self._params = initial
        self._metrics = compute_metrics(dataset, initial)

    @property
    def dataset(self) -> Dataset:
        return self._dataset

    @property
    def parameters(self) -> FitParameters:
        return self._params

    def get_metrics(self) -> Metrics:
        """Metrics for the current parameters."""
        return self._metrics

    def set_parameters(self, params: FitParameters, source: str = "manual") -> Metrics:
        """Replace the current parameters and recompute all metrics."""
        metrics = compute_metrics(self._dataset, params)
        self._params = params
        self._metrics = metrics
        if self._trace is not None:
            self._trace.record_parameters(params, metrics, source)
        for listener in list(self._listeners):
            listener(params, metrics)
        return metrics

    def adjust(self, slope: float | None = None, intercept: float | None = None) -> Metrics:
        """Replace one or both components, keeping the other as is."""
        current = self._params
        return self.set_parameters(
            FitParameters(
                slope=current.slope if slope is None else slope,
                intercept=current.intercept if intercept is None else intercept,
            )
        )

    def auto_fit(self) -> FitParameters:
        """Apply the least-squares solution as a full parameter replacement."""
        params = fit_least_squares(self._dataset)
        self.set_parameters(params, source="auto_fit")
        return params

    def reset(self) -> Metrics:
        return self.set_parameters(self._initial, source="reset")

    def residuals(self) -> list[Residual]:
        return compute_residuals(self._dataset, self._params)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a callback run after each recompute; returns an unsubscribe handle."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe
