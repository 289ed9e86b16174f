"""Report requests: prompt, provider call, and error classification."""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime

from regression_lab.config import CredentialStore
from regression_lab.exceptions import (
    CredentialError,
    NetworkError,
    QuotaError,
    ReportError,
    UnclassifiedError,
)
from regression_lab.models import (
    AppConfig,
    Dataset,
    FitParameters,
    Metrics,
    ModelChoice,
    Provider,
    ReportOutcome,
)
from regression_lab.prompts import PROVIDER_DISPLAY_NAMES, build_analysis_prompt, format_report
from regression_lab.providers import (
    ProviderClient,
    build_client,
    key_format_hint,
    provider_models,
    validate_api_key,
)
from regression_lab.tracing import RunTraceCollector

ClientFactory = Callable[[Provider, str, AppConfig], ProviderClient]

# Matched in order against the lowercased message. Providers do not expose a
# structured error contract, so this is best-effort text matching: a 5xx body
# that happens to contain "invalid" is reported as a credential error.
_CREDENTIAL_MARKERS = ("401", "unauthorized", "api key", "invalid")
_QUOTA_MARKERS = ("429", "rate limit", "quota")
_NETWORK_MARKERS = ("network", "fetch")


def classify_error(exc: BaseException, provider: str | None = None) -> ReportError:
    """Map any failure to CredentialError, QuotaError, NetworkError or UnclassifiedError."""
    if isinstance(exc, ReportError):
        return exc
    message = str(exc) or type(exc).__name__
    lowered = message.lower()
    if any(marker in lowered for marker in _CREDENTIAL_MARKERS):
        return CredentialError(message, provider=provider)
    if any(marker in lowered for marker in _QUOTA_MARKERS):
        return QuotaError(message, provider=provider)
    if any(marker in lowered for marker in _NETWORK_MARKERS):
        return NetworkError(message, provider=provider)
    return UnclassifiedError(message, provider=provider)


class ReportOrchestrator:
    """Builds report requests and relays the result or classified error.

    Results never touch the session's parameters or metrics. ``submit`` runs
    requests on one worker thread; only the most recent submission is current,
    and earlier ones complete with ``stale=True``.
    """

    def __init__(
        self,
        config: AppConfig | None = None,
        store: CredentialStore | None = None,
        trace: RunTraceCollector | None = None,
        client_factory: ClientFactory = build_client,
        log: Callable[[str], None] | None = None,
    ) -> None:
        self._config = config or AppConfig()
        self._store = store
        self._trace = trace
        self._client_factory = client_factory
        self._log = log or (lambda _message: None)
        self._generation = 0
        self._lock = threading.Lock()
        self._executor: ThreadPoolExecutor | None = None

    @property
    def latest_generation(self) -> int:
        with self._lock:
            return self._generation

    def analyze(
        self,
        params: FitParameters,
        metrics: Metrics,
        dataset: Dataset,
        model: ModelChoice | None = None,
        credential: str | None = None,
        provider: Provider | None = None,
    ) -> ReportOutcome:
        """Request a report and block until the outcome is available."""
        generation = self._next_generation()
        return self._run(generation, params, metrics, dataset, model, credential, provider)

    def submit(
        self,
        params: FitParameters,
        metrics: Metrics,
        dataset: Dataset,
        model: ModelChoice | None = None,
        credential: str | None = None,
        provider: Provider | None = None,
    ) -> Future[ReportOutcome]:
        """Request a report in the background; a newer submission supersedes this one."""
        generation = self._next_generation()
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=1)
            executor = self._executor
        return executor.submit(
            self._run, generation, params, metrics, dataset, model, credential, provider
        )

    def close(self) -> None:
        with self._lock:
            executor = self._executor
            self._executor = None
        if executor is not None:
            executor.shutdown(wait=True)

    def _next_generation(self) -> int:
        with self._lock:
            self._generation += 1
            return self._generation

    def _run(
        self,
        generation: int,
        params: FitParameters,
        metrics: Metrics,
        dataset: Dataset,
        model: ModelChoice | None,
        credential: str | None,
        provider: Provider | None,
    ) -> ReportOutcome:
        provider = provider or self._config.provider
        model = self._resolve_model(provider, model or self._config.model)
        label = f"{PROVIDER_DISPLAY_NAMES[provider]} {model.value}"
        self._trace_request("request_start", provider, model, status="start")
        started_at = time.perf_counter()
        try:
            api_key = self._check_credential(provider, credential)
        except CredentialError as exc:
            # Nothing was sent, so the stored key has not been rejected.
            return self._failed(generation, provider, model, label, exc, started_at)

        try:
            client = self._client_factory(provider, api_key, self._config)
            self._log(f"{label}: sending analysis request (n={dataset.n}).")
            content = client.generate(
                build_analysis_prompt(params, metrics, dataset, provider),
                model,
            )
        except Exception as exc:  # noqa: BLE001 - every failure is delivered as a classified value
            error = classify_error(exc, provider=provider.value)
            cleared = isinstance(error, CredentialError) and self._forget_rejected_key(
                provider, api_key
            )
            return self._failed(
                generation, provider, model, label, error, started_at, store_cleared=cleared
            )

        elapsed = time.perf_counter() - started_at
        self._log(f"{label}: report received in {elapsed:.1f}s.")
        self._trace_request(
            "request_complete",
            provider,
            model,
            duration_ms=int(elapsed * 1000),
            details={"chars": len(content)},
        )
        return ReportOutcome(
            provider=provider,
            model=model,
            generation=generation,
            report=format_report(content, provider, model, generated_at=datetime.now()),
            stale=self._is_stale(generation),
        )

    def _failed(
        self,
        generation: int,
        provider: Provider,
        model: ModelChoice,
        label: str,
        error: ReportError,
        started_at: float,
        store_cleared: bool = False,
    ) -> ReportOutcome:
        elapsed = time.perf_counter() - started_at
        self._log(f"{label}: request failed ({error.category}: {error.message})")
        self._trace_request(
            "request_complete",
            provider,
            model,
            status="error",
            duration_ms=int(elapsed * 1000),
            details={"category": error.category, "error": error.message},
        )
        return ReportOutcome(
            provider=provider,
            model=model,
            generation=generation,
            error_category=error.category,
            error_label=error.label,
            error_message=error.message,
            stale=self._is_stale(generation),
            store_cleared=store_cleared,
        )

    def _forget_rejected_key(self, provider: Provider, api_key: str) -> bool:
        """Clear the store when the provider rejected the key it holds."""
        if self._store is None:
            return False
        stored = self._store.load()
        if stored is None or stored.provider != provider or stored.api_key != api_key:
            return False
        self._store.clear()
        self._log("Stored credentials cleared after credential error.")
        return True

    def _resolve_model(self, provider: Provider, model: ModelChoice) -> ModelChoice:
        offered = provider_models(provider)
        if model in offered:
            return model
        self._log(
            f"Model '{model.value}' is not offered by {provider.value}; using '{offered[0].value}'."
        )
        return offered[0]

    @staticmethod
    def _check_credential(provider: Provider, credential: str | None) -> str:
        if not credential or not credential.strip():
            raise CredentialError(
                "No API key provided. Configure one before requesting an analysis.",
                provider=provider.value,
            )
        if not validate_api_key(credential, provider):
            raise CredentialError(
                f"{PROVIDER_DISPLAY_NAMES[provider]} API key format is invalid: "
                f"{key_format_hint(provider)}.",
                provider=provider.value,
            )
        return credential.strip()

    def _is_stale(self, generation: int) -> bool:
        return generation != self.latest_generation

    def _trace_request(
        self,
        action: str,
        provider: Provider,
        model: ModelChoice,
        status: str = "ok",
        duration_ms: int | None = None,
        details: dict[str, object] | None = None,
    ) -> None:
        if self._trace is not None:
            self._trace.record_request(
                action,
                provider=provider,
                model=model,
                status=status,
                duration_ms=duration_ms,
                details=details,
            )
