"""
IndexSense CLI - MongoDB index provisioning and query advisor.

Usage:
    indexsense catalog
    indexsense provision --uri mongodb://localhost:27017 --database travel
    indexsense usage --unused-only
    indexsense classify slow_queries.json
    indexsense recommend --filter '{"status": "confirmed"}' --sort '{"createdAt": -1}'
    indexsense snapshot --json
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Annotated, Any, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from indexsense import __version__
from indexsense.advisor.esr import recommend_index
from indexsense.advisor.monitor import running_micros
from indexsense.catalog.models import IndexCatalog
from indexsense.config import Config, get_config
from indexsense.engine import AdvisoryService, resolve_catalog
from indexsense.exceptions import IndexSenseError
from indexsense.models import ErrorKind, ProvisioningStatus, Severity, SlowQueryRecord
from indexsense.output.renderers import (
    SAMPLING_NOTE,
    OutputFormat,
    format_bytes,
    outcomes_to_json,
    recommendations_to_json,
    recommendations_to_markdown,
    snapshot_to_json,
    usage_to_json,
    usage_to_markdown,
)

app = typer.Typer(
    name="indexsense",
    help="MongoDB index provisioning and query advisor",
    no_args_is_help=True,
)

console = Console()
error_console = Console(stderr=True)

UriOption = Annotated[
    Optional[str],
    typer.Option("--uri", help="MongoDB connection string", envvar="INDEXSENSE_MONGO_URI"),
]
DatabaseOption = Annotated[
    Optional[str],
    typer.Option("--database", "-d", help="Database name", envvar="INDEXSENSE_DATABASE"),
]
CatalogOption = Annotated[
    Optional[Path],
    typer.Option("--catalog", "-c", help="Catalog file (JSON/YAML) instead of the built-in one"),
]
JsonOption = Annotated[
    bool,
    typer.Option("--json", "-j", help="Output results as JSON"),
]

_STATUS_STYLES = {
    ProvisioningStatus.CREATED: "green",
    ProvisioningStatus.ALREADY_EXISTS: "dim",
    ProvisioningStatus.FAILED: "red bold",
}


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"IndexSense version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Log store calls and decisions."),
    ] = False,
) -> None:
    """IndexSense - MongoDB index provisioning and query advisor."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=error_console, show_path=False)],
        force=True,
    )


def _fail(error: IndexSenseError) -> typer.Exit:
    error_console.print(f"[red]Error:[/red] {error.message}")
    return typer.Exit(code=1)


def _effective_config(uri: str | None, database: str | None) -> Config:
    config = get_config()
    overrides: dict[str, Any] = {}
    if uri:
        overrides["mongo_uri"] = uri
    if database:
        overrides["database"] = database
    return config.model_copy(update=overrides) if overrides else config


def _open_service(
    uri: str | None,
    database: str | None,
    catalog: Path | None,
) -> AdvisoryService:
    """Connected service; tests replace this to inject an in-memory store."""
    return AdvisoryService.from_config(_effective_config(uri, database), catalog_path=catalog)


def _parse_json_option(value: str | None, option: str) -> dict[str, Any]:
    if not value:
        return {}
    try:
        data = json.loads(value)
    except json.JSONDecodeError as e:
        error_console.print(f"[red]Error:[/red] {option} is not valid JSON: {e}")
        raise typer.Exit(code=2)
    if not isinstance(data, dict):
        error_console.print(f"[red]Error:[/red] {option} must be a JSON object")
        raise typer.Exit(code=2)
    return data


# =============================================================================
# Catalog
# =============================================================================


def _print_catalog(catalog: IndexCatalog) -> None:
    table = Table(title=f"Index catalog {catalog.version}")
    table.add_column("Collection", style="cyan")
    table.add_column("Key pattern")
    table.add_column("Options")
    for collection, specs in catalog:
        for spec in specs:
            options = spec.options.model_dump(by_alias=True, exclude_none=True)
            table.add_row(
                collection,
                spec.describe(),
                ", ".join(f"{k}={v}" for k, v in options.items()),
            )
    console.print(table)
    console.print(
        f"[dim]{len(catalog)} indexes over {len(catalog.collection_names)} collections[/dim]"
    )


@app.command()
def catalog(
    catalog_file: CatalogOption = None,
    json_output: JsonOption = False,
) -> None:
    """Show the index catalog."""
    try:
        resolved = resolve_catalog(get_config(), catalog_file)
    except IndexSenseError as e:
        raise _fail(e)

    if json_output:
        console.print_json(json.dumps(resolved.to_dict()))
        return
    _print_catalog(resolved)


@app.command()
def plan(
    uri: UriOption = None,
    database: DatabaseOption = None,
    catalog_file: CatalogOption = None,
) -> None:
    """Show which catalog indexes exist and which are missing (read-only)."""
    try:
        with _open_service(uri, database, catalog_file) as service:
            planned = service.plan()
    except IndexSenseError as e:
        raise _fail(e)

    table = Table()
    table.add_column("Collection", style="cyan")
    table.add_column("Key pattern")
    table.add_column("State")
    missing = 0
    for item in planned:
        if item.exists:
            state = f"[dim]exists ({item.index_name})[/dim]"
        elif item.error:
            state = f"[yellow]unknown: {item.error}[/yellow]"
            missing += 1
        else:
            state = "[green]to create[/green]"
            missing += 1
        table.add_row(item.spec.collection, item.spec.describe(), state)
    console.print(table)
    console.print(f"[bold]{missing}[/bold] of {len(planned)} indexes to create")


# =============================================================================
# Provisioning
# =============================================================================


@app.command()
def provision(
    uri: UriOption = None,
    database: DatabaseOption = None,
    catalog_file: CatalogOption = None,
    json_output: JsonOption = False,
) -> None:
    """
    Create every catalog index that does not exist yet.

    Safe to re-run: existing equivalent indexes are left alone. Exits with
    code 1 when any index failed.

    Examples:

        $ indexsense provision --uri mongodb://localhost:27017 -d travel
        $ indexsense provision --catalog indexes.yaml --json
    """
    try:
        with _open_service(uri, database, catalog_file) as service:
            outcomes = service.provision_all()
    except IndexSenseError as e:
        raise _fail(e)

    failed = [o for o in outcomes if o.failed]

    if json_output:
        console.print_json(outcomes_to_json(outcomes))
    else:
        table = Table()
        table.add_column("Collection", style="cyan")
        table.add_column("Key pattern")
        table.add_column("Status")
        table.add_column("Detail")
        for outcome in outcomes:
            style = _STATUS_STYLES[outcome.status]
            detail = outcome.index_name or ""
            if outcome.failed:
                kind = outcome.error_kind.value if outcome.error_kind else "error"
                detail = f"{kind}: {outcome.error}"
            table.add_row(
                outcome.spec.collection,
                outcome.spec.describe(),
                f"[{style}]{outcome.status.value}[/{style}]",
                detail,
            )
        console.print(table)
        created = sum(1 for o in outcomes if o.status == ProvisioningStatus.CREATED)
        console.print(
            f"[bold]{created}[/bold] created, "
            f"[bold]{len(outcomes) - created - len(failed)}[/bold] already existed, "
            f"[bold red]{len(failed)}[/bold red] failed"
        )

    for outcome in failed:
        if outcome.error_kind == ErrorKind.CONFLICTING_DEFINITION:
            error_console.print(
                f"[red]Conflicting definition[/red] on {outcome.spec.collection} "
                f"{outcome.spec.describe()}: resolve by hand, the live index was not touched"
            )

    if failed:
        raise typer.Exit(code=1)


# =============================================================================
# Usage
# =============================================================================


@app.command()
def usage(
    uri: UriOption = None,
    database: DatabaseOption = None,
    catalog_file: CatalogOption = None,
    unused_only: Annotated[
        bool,
        typer.Option("--unused-only", help="Only list indexes with no recorded access"),
    ] = False,
    output_format: Annotated[
        OutputFormat,
        typer.Option("--format", "-f", help="Output format"),
    ] = OutputFormat.TEXT,
) -> None:
    """Report index access counters and sizes for every live collection."""
    try:
        with _open_service(uri, database, catalog_file) as service:
            reports = service.analyze()
    except IndexSenseError as e:
        raise _fail(e)

    if output_format == OutputFormat.JSON:
        console.print_json(usage_to_json(reports))
        return
    if output_format == OutputFormat.MARKDOWN:
        console.print(usage_to_markdown(reports), markup=False)
        return

    table = Table()
    table.add_column("Collection", style="cyan")
    table.add_column("Index")
    table.add_column("Accesses", justify="right")
    table.add_column("Used")
    table.add_column("Size", justify="right")
    table.add_column("Declared")

    for name, report in reports.items():
        if not report.stats_available:
            style = "yellow" if report.error_kind and report.error_kind.is_informational else "red"
            table.add_row(name, f"[{style}]statistics unavailable: {report.error}[/{style}]", "", "", "", "")
            continue
        indexes = report.unused_indexes() if unused_only else list(report.indexes)
        for idx in indexes:
            declared = "" if idx.declared is None else ("yes" if idx.declared else "[yellow]no[/yellow]")
            table.add_row(
                name,
                idx.name,
                f"{idx.access_count:,}",
                "yes" if idx.used else "[yellow]no[/yellow]",
                format_bytes(idx.size_bytes),
                declared,
            )

    console.print(table)
    console.print(f"[dim]{SAMPLING_NOTE}[/dim]")


# =============================================================================
# Slow queries
# =============================================================================


def _load_records(path: Path, profile: bool) -> list[SlowQueryRecord]:
    try:
        data = json.loads(path.read_text())
    except (OSError, json.JSONDecodeError) as e:
        error_console.print(f"[red]Error:[/red] cannot read {path}: {e}")
        raise typer.Exit(code=2)
    if not isinstance(data, list):
        error_console.print(f"[red]Error:[/red] {path} must contain a JSON list")
        raise typer.Exit(code=2)
    try:
        if profile:
            return [SlowQueryRecord.from_profile_entry(entry) for entry in data]
        return [SlowQueryRecord.model_validate(entry) for entry in data]
    except (ValueError, TypeError, AttributeError) as e:
        error_console.print(f"[red]Error:[/red] invalid slow query record in {path}: {e}")
        raise typer.Exit(code=2)


@app.command()
def classify(
    records_file: Annotated[
        Path,
        typer.Argument(
            help="JSON list of slow query records",
            exists=True,
            readable=True,
            resolve_path=True,
        ),
    ],
    profile: Annotated[
        bool,
        typer.Option("--profile", help="Input is a dump of system.profile documents"),
    ] = False,
    output_format: Annotated[
        OutputFormat,
        typer.Option("--format", "-f", help="Output format"),
    ] = OutputFormat.TEXT,
) -> None:
    """
    Classify slow queries and suggest ESR-ordered compound indexes.

    Records look like:
    {"collection": "bookings", "filter": {...}, "sort": {...}, "durationMs": 1200}
    """
    records = _load_records(records_file, profile)
    try:
        recommendations = AdvisoryService(probe=None).classify(records)
    except IndexSenseError as e:
        raise _fail(e)

    if output_format == OutputFormat.JSON:
        console.print_json(recommendations_to_json(recommendations))
        return
    if output_format == OutputFormat.MARKDOWN:
        console.print(recommendations_to_markdown(recommendations), markup=False)
        return

    if not recommendations:
        console.print(Panel(
            f"[green]No slow queries[/green] among {len(records)} record(s).",
            title="IndexSense",
            border_style="green",
        ))
        return

    for r in recommendations:
        style = "red bold" if r.severity == Severity.HIGH else "yellow"
        console.print(f"[{style}][{r.severity.value.upper()}][/{style}] {r.collection}: {r.issue}")
        console.print(f"   {r.rationale}", markup=False)
    console.print(f"\n[dim]{len(recommendations)} advisory(ies) from {len(records)} record(s)[/dim]")


@app.command()
def recommend(
    filter_json: Annotated[
        Optional[str],
        typer.Option("--filter", help="Query filter as JSON"),
    ] = None,
    sort_json: Annotated[
        Optional[str],
        typer.Option("--sort", help="Sort specification as JSON"),
    ] = None,
    collection: Annotated[
        str,
        typer.Option("--collection", help="Collection name for the shell command"),
    ] = "collection",
) -> None:
    """Print the ESR key order for one query shape."""
    suggestion = recommend_index(
        _parse_json_option(filter_json, "--filter"),
        _parse_json_option(sort_json, "--sort"),
    )
    if suggestion.is_empty:
        console.print("No actionable recommendation: nothing to index in this query shape.")
        return
    for position, key in enumerate(suggestion.fields, 1):
        console.print(f"{position}. {key.name}: {key.direction}  [dim]({key.phase.value})[/dim]")
    console.print(suggestion.shell_command(collection), markup=False)


# =============================================================================
# Snapshot
# =============================================================================


@app.command()
def snapshot(
    uri: UriOption = None,
    database: DatabaseOption = None,
    json_output: JsonOption = False,
) -> None:
    """Sample in-flight operations, database sizes, connections and memory."""
    try:
        with _open_service(uri, database, None) as service:
            snap = service.snapshot()
            threshold = service.config.slow_op_threshold_ms
    except IndexSenseError as e:
        raise _fail(e)

    if json_output:
        console.print_json(snapshot_to_json(snap))
        return

    table = Table(show_header=False)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("In-flight operations", str(snap.in_flight_op_count))
    table.add_row(f"Slow in-flight (>{threshold}ms)", str(len(snap.slow_in_flight_ops)))
    table.add_row("Collections", str(snap.collections))
    table.add_row("Objects", f"{snap.objects:,}")
    table.add_row("Avg object size", format_bytes(snap.avg_object_size))
    table.add_row("Data size", format_bytes(snap.data_bytes))
    table.add_row("Storage size", format_bytes(snap.storage_bytes))
    table.add_row("Indexes", str(snap.index_count))
    table.add_row("Index size", format_bytes(snap.index_bytes))
    table.add_row(
        "Connections",
        f"{snap.connections.get('current', '?')} current / {snap.connections.get('available', '?')} available",
    )
    table.add_row("Resident memory", f"{snap.memory.get('resident', '?')} MB")
    table.add_row("Uptime", f"{snap.uptime_seconds:,.0f}s")
    console.print(table)

    for op in snap.slow_in_flight_ops:
        console.print(
            f"[yellow]slow op[/yellow] {op.get('opid')} {op.get('op')} {op.get('ns')} "
            f"{running_micros(op) / 1000:.0f}ms"
        )


if __name__ == "__main__":
    app()
