"""Project-specific exceptions."""

from __future__ import annotations


class RegressionLabError(Exception):
    """Base exception for the project."""


class InvalidInputError(RegressionLabError):
    """Raised when a dataset or parameter pair violates a precondition."""


class MissingRuntimeConfigError(RegressionLabError):
    """Raised when required runtime configuration is missing or invalid."""


class ProviderRequestError(RegressionLabError):
    """Raised when a provider call fails in transport or returns a non-2xx status."""


class NoContentError(ProviderRequestError):
    """Raised when a provider response envelope carries no text."""


class ReportError(RegressionLabError):
    """Classified report failure surfaced to the user as a category plus message."""

    category = "unclassified"
    label = "Analysis failed"

    def __init__(self, message: str, provider: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.provider = provider


class CredentialError(ReportError):
    """API key missing, malformed, invalid or expired."""

    category = "credential"
    label = "API key invalid or expired"


class QuotaError(ReportError):
    """Provider rate limit or quota exhausted."""

    category = "quota"
    label = "API quota exhausted"


class NetworkError(ReportError):
    """Provider could not be reached."""

    category = "network"
    label = "Network connection failed"


class UnclassifiedError(ReportError):
    """Any failure the message heuristics do not recognize."""
