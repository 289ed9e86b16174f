"""Short explanations shown alongside the interactive fit."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Topic:
    key: str
    title: str
    content: str


TOPICS: tuple[Topic, ...] = (
    Topic(
        key="regression",
        title="The core idea of regression",
        content=(
            "Regression analysis studies how one variable relates to another. Francis Galton "
            "noticed that children of unusually tall or short parents tend to be closer to the "
            "population average. This 'regression toward the mean' is the basis of statistical "
            "prediction: explaining and predicting an unknown variable from a known one."
        ),
    ),
    Topic(
        key="ols",
        title="Ordinary least squares (OLS)",
        content=(
            "Least squares finds the best-fitting function by minimizing the sum of squared "
            "residuals, the differences between observed and predicted values. In simple linear "
            "regression the slope and intercept are chosen so that the squared vertical "
            "distances from every point to the line sum to the smallest possible value."
        ),
    ),
    Topic(
        key="derivation",
        title="The derivation in brief",
        content=(
            "Take the sum of squared errors L as the objective. Setting the partial "
            "derivatives of L with respect to the slope w and intercept b to zero gives two "
            "linear equations. Solving them yields the exact optimal w and b, one of the most "
            "basic closed-form solutions in data modeling."
        ),
    ),
    Topic(
        key="limits",
        title="Correlation and its limits",
        content=(
            "A regression line shows a mathematical association between variables, not "
            "causation. Correlation describes values moving together. Applying a regression "
            "model needs domain knowledge to judge whether it has real explanatory power, "
            "especially with small or restricted samples."
        ),
    ),
)


def find_topic(key: str) -> Topic | None:
    """Look up a topic by key or 1-based position."""
    normalized = key.strip().lower()
    if normalized.isdigit():
        index = int(normalized) - 1
        return TOPICS[index] if 0 <= index < len(TOPICS) else None
    for topic in TOPICS:
        if topic.key == normalized:
            return topic
    return None
