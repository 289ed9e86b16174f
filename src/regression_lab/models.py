"""Core typed models."""

from __future__ import annotations

import math
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from regression_lab.exceptions import InvalidInputError


class Provider(StrEnum):
    """Remote text-generation providers."""

    GEMINI = "gemini"
    DEEPSEEK = "deepseek"


class ModelChoice(StrEnum):
    """Model selectors offered to the user."""

    GEMINI_3_PRO = "gemini-3-pro"
    GEMINI_3_FLASH = "gemini-3-flash"
    DEEPSEEK_CHAT = "deepseek-chat"
    DEEPSEEK_REASONER = "deepseek-reasoner"


class DataPoint(BaseModel):
    """One (x, y) observation."""

    model_config = ConfigDict(frozen=True)

    x: float
    y: float


class Dataset(BaseModel):
    """Fixed, ordered, non-empty sequence of observations."""

    model_config = ConfigDict(frozen=True)

    name: str = "dataset"
    x_label: str = "x"
    y_label: str = "y"
    points: tuple[DataPoint, ...]

    @field_validator("points")
    @classmethod
    def ensure_not_empty(cls, value: tuple[DataPoint, ...]) -> tuple[DataPoint, ...]:
        """Datasets must hold at least one observation."""
        if not value:
            raise InvalidInputError("Dataset must contain at least one point (n >= 1).")
        return value

    @classmethod
    def from_pairs(
        cls,
        pairs: list[tuple[float, float]] | tuple[tuple[float, float], ...],
        **kwargs: str,
    ) -> Dataset:
        """Build a dataset from raw (x, y) pairs."""
        return cls(points=tuple(DataPoint(x=x, y=y) for x, y in pairs), **kwargs)

    @property
    def n(self) -> int:
        return len(self.points)

    @property
    def xs(self) -> list[float]:
        return [point.x for point in self.points]

    @property
    def ys(self) -> list[float]:
        return [point.y for point in self.points]

    @property
    def x_mean(self) -> float:
        return sum(self.xs) / self.n

    @property
    def y_mean(self) -> float:
        return sum(self.ys) / self.n

    @property
    def x_is_constant(self) -> bool:
        first = self.points[0].x
        return all(point.x == first for point in self.points)

    @property
    def y_is_constant(self) -> bool:
        first = self.points[0].y
        return all(point.y == first for point in self.points)


class FitParameters(BaseModel):
    """Line parameters for y_hat = slope * x + intercept."""

    model_config = ConfigDict(frozen=True)

    slope: float
    intercept: float

    @model_validator(mode="after")
    def ensure_finite(self) -> FitParameters:
        """Reject NaN and infinite parameters."""
        if not (math.isfinite(self.slope) and math.isfinite(self.intercept)):
            raise InvalidInputError(
                f"Fit parameters must be finite (slope={self.slope}, intercept={self.intercept})."
            )
        return self

    def predict(self, x: float) -> float:
        return self.slope * x + self.intercept


class Metrics(BaseModel):
    """Fit quality metrics for one (dataset, parameters) pair."""

    model_config = ConfigDict(frozen=True)

    mse: float
    rmse: float
    mae: float
    r_squared: float
    pearson_r: float
    standard_error: float


class Residual(BaseModel):
    """Observed value, prediction and residual for a single point."""

    model_config = ConfigDict(frozen=True)

    x: float
    y: float
    prediction: float
    residual: float


class ParameterBounds(BaseModel):
    """Slider ranges applied by the interaction layer."""

    slope_min: float = 0.0
    slope_max: float = 2.0
    intercept_min: float = 0.0
    intercept_max: float = 100.0

    @model_validator(mode="after")
    def ensure_ordered(self) -> ParameterBounds:
        """Lower bounds may not exceed upper bounds."""
        if self.slope_min > self.slope_max or self.intercept_min > self.intercept_max:
            raise ValueError("Parameter bounds must satisfy min <= max.")
        return self

    def clamp(self, params: FitParameters) -> FitParameters:
        slope = min(max(params.slope, self.slope_min), self.slope_max)
        intercept = min(max(params.intercept, self.intercept_min), self.intercept_max)
        return FitParameters(slope=slope, intercept=intercept)


class StoredCredentials(BaseModel):
    """Credential triple persisted between sessions."""

    api_key: str
    provider: Provider
    model: ModelChoice


class ReportOutcome(BaseModel):
    """Result of one report request: either report text or a classified error."""

    provider: Provider
    model: ModelChoice
    generation: int = 0
    report: str | None = None
    error_category: str | None = None
    error_label: str | None = None
    error_message: str = ""
    stale: bool = False
    store_cleared: bool = False

    @property
    def ok(self) -> bool:
        return self.report is not None


class AppConfig(BaseModel):
    """Runtime configuration."""

    provider: Provider = Provider.GEMINI
    model: ModelChoice = ModelChoice.GEMINI_3_PRO
    api_key: str | None = None
    temperature: float = 0.3
    top_p: float = 0.9
    max_output_tokens: int = 2000
    request_timeout_s: int = 60
    https_proxy: str | None = None
    ssl_cert_file: str | None = None
    store_path: str = "~/.regression-lab/credentials.yaml"
    initial_slope: float = 0.5
    initial_intercept: float = 30.0
    bounds: ParameterBounds = Field(default_factory=ParameterBounds)
