"""Trace of parameter changes and report requests for one lab session."""

from __future__ import annotations

import csv
import json
import threading
from collections.abc import Callable
from datetime import UTC, datetime
from enum import StrEnum
from pathlib import Path
from typing import Any

from regression_lab.models import FitParameters, Metrics, ModelChoice, Provider

TraceSink = Callable[[dict[str, Any]], None]

SESSION_EVENT = "session"
REPORT_EVENT = "llm_call"


class TraceFormat(StrEnum):
    JSON = "json"
    CSV = "csv"


class RunTraceCollector:
    """Thread-safe event log shared by the session and the report orchestrator.

    Report requests may finish on a worker thread, so every event is numbered
    under a lock and handed to the live sink outside of it.
    """

    COLUMNS = (
        "seq",
        "timestamp",
        "event_type",
        "component",
        "action",
        "status",
        "provider",
        "model",
        "duration_ms",
        "details",
    )

    def __init__(self) -> None:
        self._events: list[dict[str, Any]] = []
        self._lock = threading.Lock()
        self._live_sink: TraceSink | None = None

    def set_live_sink(self, sink: TraceSink | None) -> None:
        with self._lock:
            self._live_sink = sink

    def record_parameters(self, params: FitParameters, metrics: Metrics, source: str) -> None:
        """Record a parameter replacement together with the fit it produced."""
        self._append(
            event_type=SESSION_EVENT,
            component="session",
            action="parameters_set",
            status="ok",
            details={
                "source": source,
                "slope": params.slope,
                "intercept": params.intercept,
                "r_squared": metrics.r_squared,
                "rmse": metrics.rmse,
            },
        )

    def record_request(
        self,
        action: str,
        *,
        provider: Provider,
        model: ModelChoice,
        status: str = "ok",
        duration_ms: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Record one step of a report request (``request_start`` or ``request_complete``)."""
        self._append(
            event_type=REPORT_EVENT,
            component="report",
            action=action,
            status=status,
            provider=provider.value,
            model=model.value,
            duration_ms=duration_ms,
            details=details,
        )

    def events(self) -> list[dict[str, Any]]:
        with self._lock:
            return list(self._events)

    def summary(self) -> dict[str, int]:
        """Counts of parameter changes, finished requests and failed requests."""
        events = self.events()
        completed = [
            event
            for event in events
            if event["event_type"] == REPORT_EVENT and event["action"] == "request_complete"
        ]
        return {
            "parameter_changes": sum(event["event_type"] == SESSION_EVENT for event in events),
            "requests": len(completed),
            "failed_requests": sum(event["status"] == "error" for event in completed),
        }

    def write(self, path: Path, fmt: TraceFormat | None = None) -> TraceFormat:
        """Write all events; the format defaults to the file suffix (``.csv`` or JSON)."""
        chosen = fmt or (TraceFormat.CSV if path.suffix.lower() == ".csv" else TraceFormat.JSON)
        path.parent.mkdir(parents=True, exist_ok=True)
        events = self.events()
        if chosen is TraceFormat.CSV:
            with path.open("w", newline="", encoding="utf-8") as file_obj:
                writer = csv.DictWriter(file_obj, fieldnames=self.COLUMNS)
                writer.writeheader()
                writer.writerows(events)
        else:
            path.write_text(json.dumps(events, indent=2) + "\n", encoding="utf-8")
        return chosen

    def _append(
        self,
        *,
        event_type: str,
        component: str,
        action: str,
        status: str,
        provider: str = "",
        model: str = "",
        duration_ms: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        with self._lock:
            event = {
                "seq": len(self._events) + 1,
                "timestamp": datetime.now(UTC).isoformat(),
                "event_type": event_type,
                "component": component,
                "action": action,
                "status": status,
                "provider": provider,
                "model": model,
                "duration_ms": "" if duration_ms is None else duration_ms,
                "details": json.dumps(details, sort_keys=True, default=str) if details else "",
            }
            self._events.append(event)
            sink = self._live_sink
        if sink is None:
            return
        try:
            sink(dict(event))
        except Exception:  # noqa: BLE001 - a broken sink must not break the session
            pass
