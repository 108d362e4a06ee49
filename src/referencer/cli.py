"""Command-line interface for the import reference resolver."""

import uuid
from pathlib import Path

import structlog
import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .config import load_config
from .core.document import ReferenceDocument, resolve_references
from .core.kinds import EntityKind
from .core.resolver import ImportReferencer
from .dependency.graph import KindGraph
from .observability import LogContext, configure_logging
from .store.sqlite import SQLiteStore
from .utils.exceptions import ReferencerError

app = typer.Typer(
    name="referencer",
    help="Import reference resolver - map names and UUIDs to database IDs",
    add_completion=False,
)

console = Console()
logger = structlog.get_logger(__name__)


@app.command("init-db")
def init_db(
    db_path: Path = typer.Argument(..., help="SQLite database to create"),
) -> None:
    """
    Create the configuration schema in a SQLite database.

    Examples:
        referencer init-db data/monitoring.db
    """
    try:
        with SQLiteStore(db_path, create=True):
            pass
    except ReferencerError as e:
        console.print(f"\n[red]ERROR: Schema creation failed:[/red] {e}")
        raise typer.Exit(code=1) from e

    console.print(f"[green]OK:[/green] Schema created in {db_path}")


@app.command()
def resolve(
    document_file: Path = typer.Argument(..., help="YAML reference document", exists=True),
    db_path: Path | None = typer.Option(None, "--db", help="SQLite database (overrides config)"),
    config_file: Path | None = typer.Option(None, "--config", "-c", help="Configuration file"),
    log_level: str | None = typer.Option(
        None,
        "--log-level",
        help="Log verbosity: TRACE, DEBUG, VERBOSE, INFO, WARNING, ERROR",
    ),
    json_logs: bool = typer.Option(False, "--json-logs", help="Emit JSON log lines"),
    missing_only: bool = typer.Option(
        False, "--missing-only", help="Only list references that do not exist yet"
    ),
) -> None:
    """
    Resolve every reference of a document against a database.

    Registers each section, looks every entry up and prints whether it
    already exists. One query is issued per entity kind.

    Examples:
        referencer resolve refs.yaml --db data/monitoring.db
        referencer resolve refs.yaml --config prod.yaml --missing-only
    """
    try:
        config = load_config(config_file)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"\n[red]ERROR: Configuration error:[/red] {e}")
        raise typer.Exit(code=1) from e

    configure_logging(
        level=log_level or config.logging.level,
        json_logs=json_logs or config.logging.format == "json",
        log_file=config.logging.file,
    )

    store_path = db_path or Path(config.store.path)
    if not store_path.exists():
        console.print(f"\n[red]ERROR: Database not found:[/red] {store_path}")
        raise typer.Exit(code=1)

    try:
        document = ReferenceDocument.from_file(document_file)

        with LogContext(import_id=str(uuid.uuid4())[:8]):
            with SQLiteStore(store_path, timeout=config.store.timeout, create=False) as store:
                referencer = ImportReferencer(store, config=config.resolver)
                results = resolve_references(referencer, document)
    except ReferencerError as e:
        console.print(f"\n[bold red]ERROR:[/bold red] {e}")
        raise typer.Exit(code=1) from e

    table = Table(title=f"References in {document_file.name}")
    table.add_column("Kind", style="cyan")
    table.add_column("Reference")
    table.add_column("Database ID", justify="right")

    for result in results:
        if missing_only and result.found:
            continue
        db_id = result.db_id if result.found else "[yellow]not found[/yellow]"
        table.add_row(result.kind.value, escape(result.reference), db_id)

    console.print(table)

    found = sum(1 for result in results if result.found)
    missing = len(results) - found
    console.print(f"\n  Found: [green]{found}[/green]  Missing: [yellow]{missing}[/yellow]")

    stats = referencer.stats.as_dict()
    batches = Table(title="Batch queries")
    batches.add_column("Kind", style="cyan")
    batches.add_column("Batches", justify="right")
    batches.add_column("Queries", justify="right", style="green")
    batches.add_column("Hits", justify="right")
    batches.add_column("Misses", justify="right", style="yellow")
    for kind, count in sorted(stats["batches"].items()):
        batches.add_row(
            kind,
            str(count),
            str(stats["queries"].get(kind, 0)),
            str(stats["hits"].get(kind, 0)),
            str(stats["misses"].get(kind, 0)),
        )
    console.print("\n", batches)

    logger.info(
        "References resolved",
        references=len(results),
        found=found,
        hit_rate=round(referencer.stats.hit_rate(), 3),
        stats=stats,
    )


@app.command("show-order")
def show_order(
    kinds: list[str] | None = typer.Argument(None, help="Kinds to order (default: all)"),
    dot: Path | None = typer.Option(None, "--dot", help="Also write the graph as a DOT file"),
) -> None:
    """
    Print the order in which entity kinds are resolved.

    Examples:
        referencer show-order
        referencer show-order host_prototype --dot kinds.dot
    """
    graph = KindGraph()

    try:
        selected = [EntityKind.parse(kind) for kind in kinds] if kinds else None
        order = graph.topological_sort(selected)
    except ReferencerError as e:
        console.print(f"\n[red]ERROR:[/red] {e}")
        raise typer.Exit(code=1) from e

    for position, kind in enumerate(order, start=1):
        deps = ", ".join(sorted(k.value for k in graph.nodes[kind].dependencies))
        suffix = f"  <- {deps}" if deps else ""
        console.print(f"  {position:2d}. [cyan]{kind.value}[/cyan]{suffix}")

    if dot:
        dot.parent.mkdir(parents=True, exist_ok=True)
        dot.write_text(graph.to_dot())
        console.print(f"\n[green]OK:[/green] Graph written to {dot}")


if __name__ == "__main__":
    app()
