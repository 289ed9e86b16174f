"""CLI entrypoint for the regression lab."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Any

import typer
from rich.console import Console
from rich.markdown import Markdown
from rich.markup import escape
from rich.table import Table

from regression_lab.config import CredentialStore, load_config
from regression_lab.exceptions import (
    CredentialError,
    InvalidInputError,
    MissingRuntimeConfigError,
)
from regression_lab.knowledge import TOPICS, find_topic
from regression_lab.models import (
    AppConfig,
    FitParameters,
    Metrics,
    ModelChoice,
    Provider,
    StoredCredentials,
)
from regression_lab.prompts import PROVIDER_DISPLAY_NAMES
from regression_lab.providers import key_format_hint, provider_models
from regression_lab.report import ReportOrchestrator
from regression_lab.session import RegressionSession
from regression_lab.tracing import RunTraceCollector, TraceFormat

app = typer.Typer(help="Interactive linear regression lab with optional AI fit reports.")
console = Console()

ConfigOption = Annotated[Path | None, typer.Option(help="Optional YAML config path.")]
VerboseOption = Annotated[
    bool,
    typer.Option("--verbose/--no-verbose", help="Enable detailed logs. Enabled by default."),
]
SlopeOption = Annotated[
    float | None, typer.Option(help="Line slope. Defaults to the configured initial slope.")
]
InterceptOption = Annotated[
    float | None,
    typer.Option(help="Line intercept. Defaults to the configured initial intercept."),
]


def _vprint(enabled: bool, message: str) -> None:
    """Print verbose progress messages."""
    if enabled:
        console.print(f"[cyan]verbose:[/cyan] {escape(message)}")


def _configure_trace_streaming(trace: RunTraceCollector, enabled: bool) -> None:
    """Enable live trace-event printing in verbose mode."""
    if not enabled:
        trace.set_live_sink(None)
        return

    def _sink(event: dict[str, Any]) -> None:
        parts = [
            f"trace[{event.get('seq', '?')}]",
            f"{event.get('event_type', '')}",
            f"{event.get('component', '')}.{event.get('action', '')}",
            f"status={event.get('status', '')}",
        ]
        if event.get("provider"):
            parts.append(f"provider={event['provider']}")
        if event.get("model"):
            parts.append(f"model={event['model']}")
        if event.get("duration_ms") != "":
            parts.append(f"duration_ms={event.get('duration_ms')}")
        details = _truncate_details(str(event.get("details", "")))
        if details:
            parts.append(f"details={details}")
        _vprint(True, " ".join(parts))

    trace.set_live_sink(_sink)


def _truncate_details(text: str, max_len: int = 240) -> str:
    value = text.strip()
    if len(value) <= max_len:
        return value
    return f"{value[: max_len - 3]}..."


def _load_runtime_config(config: Path | None, verbose: bool) -> AppConfig:
    _vprint(verbose, "Loading runtime configuration (YAML + environment).")
    try:
        return load_config(config_path=config)
    except MissingRuntimeConfigError as exc:
        console.print(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(code=3) from exc


def _build_session(
    runtime_config: AppConfig,
    slope: float | None,
    intercept: float | None,
    verbose: bool,
    trace: RunTraceCollector | None = None,
) -> RegressionSession:
    """Create a session and apply manual parameters through the slider bounds."""
    try:
        initial = FitParameters(
            slope=runtime_config.initial_slope,
            intercept=runtime_config.initial_intercept,
        )
        session = RegressionSession(initial=initial, trace=trace)
        if slope is None and intercept is None:
            return session
        requested = FitParameters(
            slope=initial.slope if slope is None else slope,
            intercept=initial.intercept if intercept is None else intercept,
        )
    except InvalidInputError as exc:
        console.print(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(code=2) from exc

    clamped = runtime_config.bounds.clamp(requested)
    if clamped != requested:
        _vprint(
            verbose,
            f"Parameters clamped to slider bounds: slope {requested.slope} -> {clamped.slope}, "
            f"intercept {requested.intercept} -> {clamped.intercept}.",
        )
    session.set_parameters(clamped)
    return session


def _auto_fit(session: RegressionSession, verbose: bool) -> FitParameters:
    _vprint(verbose, f"Running least-squares fit over {session.dataset.n} points.")
    try:
        return session.auto_fit()
    except InvalidInputError as exc:
        console.print(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(code=2) from exc


def _metrics_table(params: FitParameters, metrics: Metrics) -> Table:
    table = Table(title=f"y_hat = {params.slope:.4f}x + {params.intercept:.4f}")
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    rows = [
        ("Mean squared error (MSE)", metrics.mse),
        ("Root mean squared error (RMSE)", metrics.rmse),
        ("Mean absolute error (MAE)", metrics.mae),
        ("R^2", metrics.r_squared),
        ("Pearson r", metrics.pearson_r),
        ("Standard error", metrics.standard_error),
    ]
    for label, value in rows:
        table.add_row(label, f"{value:.4f}")
    return table


@app.command("dataset")
def dataset_cmd(config: ConfigOption = None, verbose: VerboseOption = True) -> None:
    """Show the reference dataset."""
    runtime_config = _load_runtime_config(config, verbose)
    session = _build_session(runtime_config, None, None, verbose)
    dataset = session.dataset
    _vprint(verbose, f"Dataset '{dataset.name}' has {dataset.n} points.")
    table = Table(title=dataset.name)
    table.add_column("#", justify="right")
    table.add_column(dataset.x_label, justify="right")
    table.add_column(dataset.y_label, justify="right")
    for index, point in enumerate(dataset.points, start=1):
        table.add_row(str(index), f"{point.x:.1f}", f"{point.y:.1f}")
    console.print(table)
    console.print(
        f"n = {dataset.n}, mean x = {dataset.x_mean:.2f}, mean y = {dataset.y_mean:.2f}"
    )
    initial = session.parameters
    console.print(f"Initial line: y_hat = {initial.slope:.4f}x + {initial.intercept:.4f}")


@app.command("metrics")
def metrics_cmd(
    slope: SlopeOption = None,
    intercept: InterceptOption = None,
    config: ConfigOption = None,
    verbose: VerboseOption = True,
) -> None:
    """Compute fit metrics for a manually chosen line."""
    runtime_config = _load_runtime_config(config, verbose)
    session = _build_session(runtime_config, slope, intercept, verbose)
    console.print(_metrics_table(session.parameters, session.get_metrics()))


@app.command("fit")
def fit_cmd(config: ConfigOption = None, verbose: VerboseOption = True) -> None:
    """Run the least-squares auto-fit and show its metrics."""
    runtime_config = _load_runtime_config(config, verbose)
    session = _build_session(runtime_config, None, None, verbose)
    before = session.get_metrics()
    params = _auto_fit(session, verbose)
    after = session.get_metrics()
    _vprint(
        verbose,
        f"R^2 {before.r_squared:.4f} -> {after.r_squared:.4f} compared with the initial line.",
    )
    console.print(
        f"[green]Least-squares fit.[/green] slope={params.slope:.6f} "
        f"intercept={params.intercept:.6f}"
    )
    console.print(_metrics_table(params, after))


@app.command("residuals")
def residuals_cmd(
    slope: SlopeOption = None,
    intercept: InterceptOption = None,
    auto_fit: Annotated[
        bool, typer.Option("--auto-fit", help="Use the least-squares line.")
    ] = False,
    config: ConfigOption = None,
    verbose: VerboseOption = True,
) -> None:
    """Show prediction and residual for every point."""
    runtime_config = _load_runtime_config(config, verbose)
    session = _build_session(runtime_config, slope, intercept, verbose)
    if auto_fit:
        _auto_fit(session, verbose)
    params = session.parameters
    table = Table(title=f"Residuals for y_hat = {params.slope:.4f}x + {params.intercept:.4f}")
    for column in ("x", "y", "prediction", "residual"):
        table.add_column(column, justify="right")
    for row in session.residuals():
        table.add_row(
            f"{row.x:.1f}", f"{row.y:.1f}", f"{row.prediction:.3f}", f"{row.residual:+.3f}"
        )
    console.print(table)


@app.command("configure")
def configure_cmd(
    provider: Annotated[Provider, typer.Option(help="AI provider.")] = Provider.GEMINI,
    model: Annotated[
        ModelChoice | None,
        typer.Option(help="Model selector. Defaults to the provider's first model."),
    ] = None,
    api_key: Annotated[
        str, typer.Option(prompt=True, hide_input=True, help="Provider API key.")
    ] = "",
    config: ConfigOption = None,
    verbose: VerboseOption = True,
) -> None:
    """Check the API key format and store provider, model and key locally."""
    runtime_config = _load_runtime_config(config, verbose)
    store = CredentialStore(runtime_config.store_path)
    chosen_model = model or provider_models(provider)[0]
    _vprint(verbose, f"Validating {provider.value} key format.")
    try:
        store.save(api_key, provider, chosen_model)
    except CredentialError as exc:
        console.print(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(code=2) from exc
    except MissingRuntimeConfigError as exc:
        console.print(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(code=3) from exc
    _vprint(verbose, f"Credentials written to {store.path}.")
    console.print(
        f"[green]{PROVIDER_DISPLAY_NAMES[provider]} API key configured.[/green] "
        f"Model: {chosen_model.value}"
    )


@app.command("clear-config")
def clear_config_cmd(config: ConfigOption = None, verbose: VerboseOption = True) -> None:
    """Remove the stored API key, provider and model."""
    runtime_config = _load_runtime_config(config, verbose)
    store = CredentialStore(runtime_config.store_path)
    store.clear()
    console.print(f"[green]Stored AI configuration cleared.[/green] {store.path}")


@app.command("status")
def status_cmd(config: ConfigOption = None, verbose: VerboseOption = True) -> None:
    """Show whether AI analysis is configured."""
    runtime_config = _load_runtime_config(config, verbose)
    store = CredentialStore(runtime_config.store_path)
    _vprint(verbose, f"Credential store: {store.path}")
    stored = store.load()
    if stored is None:
        console.print("[yellow]AI analysis not configured.[/yellow] Run 'configure' first.")
        return
    console.print(
        f"[green]{PROVIDER_DISPLAY_NAMES[stored.provider]} READY[/green] "
        f"model={stored.model.value}"
    )


@app.command("analyze")
def analyze_cmd(
    slope: SlopeOption = None,
    intercept: InterceptOption = None,
    auto_fit: Annotated[
        bool, typer.Option("--auto-fit", help="Analyze the least-squares line.")
    ] = False,
    provider: Annotated[
        Provider | None, typer.Option(help="Provider override for this request.")
    ] = None,
    model: Annotated[
        ModelChoice | None, typer.Option(help="Model override for this request.")
    ] = None,
    api_key: Annotated[
        str | None, typer.Option(help="API key override for this request.")
    ] = None,
    trace_file: Annotated[
        Path | None, typer.Option(help="Write the session and request trace to this path.")
    ] = None,
    trace_format: Annotated[
        TraceFormat | None,
        typer.Option(help="Trace file format. Defaults to the file suffix (.csv or JSON)."),
    ] = None,
    config: ConfigOption = None,
    verbose: VerboseOption = True,
) -> None:
    """Ask the configured AI provider to interpret the current fit."""
    runtime_config = _load_runtime_config(config, verbose)
    store = CredentialStore(runtime_config.store_path)
    stored = store.load()
    target_provider, target_model, credential = _resolve_report_target(
        runtime_config, stored, provider, model, api_key
    )
    _vprint(
        verbose,
        f"Report target: {target_provider.value} / {target_model.value} "
        f"(key {'set' if credential else 'missing'}).",
    )

    trace = RunTraceCollector()
    _configure_trace_streaming(trace, verbose)
    session = _build_session(runtime_config, slope, intercept, verbose, trace=trace)
    if auto_fit:
        _auto_fit(session, verbose)

    orchestrator = ReportOrchestrator(
        config=runtime_config,
        store=store,
        trace=trace,
        log=lambda message: _vprint(verbose, message),
    )
    outcome = orchestrator.analyze(
        session.parameters,
        session.get_metrics(),
        session.dataset,
        model=target_model,
        credential=credential,
        provider=target_provider,
    )
    if trace_file is not None:
        written = trace.write(trace_file, trace_format)
        _vprint(verbose, f"Trace written ({written.value}): {trace_file}")
    _vprint(verbose, f"Trace summary: {trace.summary()}")

    if outcome.report is None:
        console.print(
            f"[red]{escape(outcome.error_label or 'Analysis failed')}:[/red] "
            f"{escape(outcome.error_message)}"
        )
        if outcome.store_cleared:
            console.print("Stored configuration cleared because the provider rejected the key.")
        if outcome.error_category == "credential":
            console.print(
                f"Run 'configure' with a key that {key_format_hint(target_provider)}."
            )
        raise typer.Exit(code=4)
    console.print(Markdown(outcome.report))


@app.command("learn")
def learn_cmd(
    topic: Annotated[
        str | None, typer.Argument(help="Topic key or number. Lists all topics if omitted.")
    ] = None,
    verbose: VerboseOption = True,
) -> None:
    """Read the short regression knowledge base."""
    _vprint(verbose, f"Knowledge base has {len(TOPICS)} topics.")
    if topic is None:
        for index, item in enumerate(TOPICS, start=1):
            console.print(f"{index}. [bold]{item.title}[/bold] ({item.key})")
        return
    found = find_topic(topic)
    if found is None:
        console.print(f"[red]Unknown topic '{escape(topic)}'.[/red]")
        raise typer.Exit(code=2)
    console.print(f"[bold]{found.title}[/bold]")
    console.print(found.content)


def _resolve_report_target(
    runtime_config: AppConfig,
    stored: StoredCredentials | None,
    provider: Provider | None,
    model: ModelChoice | None,
    api_key: str | None,
) -> tuple[Provider, ModelChoice, str | None]:
    """Pick provider, model and key: explicit options, then stored values, then config."""
    if provider is not None:
        target_provider = provider
    elif stored is not None:
        target_provider = stored.provider
    else:
        target_provider = runtime_config.provider

    stored_matches = stored is not None and stored.provider == target_provider
    offered = provider_models(target_provider)
    if model is not None:
        target_model = model
    elif stored_matches and stored is not None:
        target_model = stored.model
    elif runtime_config.model in offered:
        target_model = runtime_config.model
    else:
        target_model = offered[0]

    if api_key:
        credential: str | None = api_key
    elif stored_matches and stored is not None:
        credential = stored.api_key
    else:
        credential = runtime_config.api_key
    return target_provider, target_model, credential


def main() -> None:
    """Script entrypoint."""
    app()


if __name__ == "__main__":
    main()
