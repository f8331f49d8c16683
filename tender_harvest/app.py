"""Typer CLI entrypoint for tender_harvest."""

from __future__ import annotations

import json
import signal
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional, Sequence

import typer
from rich import box
from rich.console import Console
from rich.table import Table

from .config import ConfigRepository, SourceConfig
from .engine import (
    Deduplicator,
    RunLogEntry,
    SQLiteRecordStore,
    TenderReadPath,
    WorkerPool,
)
from .engine.adapters import SourceAdapter, resolve_adapter
from .engine.notifier import build_notifier
from .errors import StorageError, UnknownSourceError
from .infra import BaseCache, SQLiteManager, build_cache
from .logging_conf import available_source_logs, configure_logging, log_path, tail_log
from .orchestrator import IngestionPipeline
from .scheduler import IngestionScheduler, JobSnapshot, JobStatus

app = typer.Typer(
    help="Tender harvest: scheduled ingestion of tender notices",
    no_args_is_help=True,
    rich_markup_mode=None,
)
source_app = typer.Typer(name="source", help="Source management commands", no_args_is_help=True)
cache_app = typer.Typer(name="cache", help="Cache maintenance commands", no_args_is_help=True)
log_app = typer.Typer(name="log", help="Log viewing commands", no_args_is_help=True)

console = Console()


@dataclass
class AppState:
    repository: ConfigRepository
    scheduler: IngestionScheduler
    read_path: TenderReadPath
    store: SQLiteRecordStore
    cache: BaseCache
    storage: SQLiteManager


def _build_adapters(sources: Iterable[SourceConfig]) -> dict[str, SourceAdapter]:
    logger = configure_logging().bind(component="app")
    adapters: dict[str, SourceAdapter] = {}
    for source in sources:
        try:
            adapters[source.source_id] = resolve_adapter(source)
        except (ImportError, ValueError) as exc:
            # The pipeline reports the missing adapter as a fetch failure on each run.
            logger.error("adapter_unavailable", source=source.source_id, error=str(exc))
    return adapters


def build_state(verbose: bool) -> AppState:
    configure_logging(verbose=verbose)
    repository = ConfigRepository()
    global_config = repository.load_global_config()
    sources = repository.list_sources()

    storage = SQLiteManager()
    store = SQLiteRecordStore(storage, repository.database_path())
    cache = build_cache(global_config.cache)
    read_path = TenderReadPath(
        cache,
        store,
        sources,
        ttl_seconds=global_config.cache.ttl_seconds,
        key_prefix=global_config.cache.key_prefix,
    )
    pipeline = IngestionPipeline(
        adapters=_build_adapters(source for source in sources if source.enabled),
        deduplicator=Deduplicator(store, chunk_size=global_config.storage.chunk_size),
        read_path=read_path,
        notifier=build_notifier(global_config.notifier),
    )
    scheduler = IngestionScheduler(
        sources,
        pipeline,
        global_config.scheduler,
        worker_pool=WorkerPool(global_config.scheduler.max_workers),
        run_log=store.record_run,
    )
    return AppState(
        repository=repository,
        scheduler=scheduler,
        read_path=read_path,
        store=store,
        cache=cache,
        storage=storage,
    )


def _get_state(ctx: typer.Context) -> AppState:
    state = ctx.obj
    if state is None:
        state = build_state(verbose=False)
        ctx.obj = state
    return state


def _format_time(value: datetime | None) -> str:
    if value is None:
        return "-"
    return value.astimezone().strftime("%Y-%m-%d %H:%M:%S")


_STATUS_STYLES = {
    JobStatus.IDLE: "green",
    JobStatus.RUNNING: "cyan",
    JobStatus.ERROR: "red",
}


def _render_status_table(snapshots: Sequence[JobSnapshot]) -> Table:
    table = Table(title=f"Ingestion jobs · {len(snapshots)} enabled", box=box.SIMPLE_HEAD)
    table.add_column("Source", style="cyan", no_wrap=True)
    table.add_column("Priority", justify="right")
    table.add_column("Every (min)", justify="right")
    table.add_column("Status")
    table.add_column("Last run", style="dim")
    table.add_column("Next run", style="green")
    table.add_column("OK", justify="right")
    table.add_column("Errors", justify="right")
    table.add_column("Last error", overflow="fold")
    for snap in snapshots:
        style = _STATUS_STYLES.get(snap.status, "")
        table.add_row(
            snap.source_id,
            str(snap.priority),
            f"{snap.interval_minutes:g}",
            f"[{style}]{snap.status.value}[/{style}]" if style else snap.status.value,
            _format_time(snap.last_run),
            _format_time(snap.next_run),
            str(snap.success_count),
            str(snap.error_count),
            snap.last_error or "",
        )
    return table


def _render_sources_table(sources: Sequence[SourceConfig]) -> Table:
    table = Table(title=f"Sources · {len(sources)} configured", box=box.SIMPLE_HEAD)
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Name")
    table.add_column("Adapter", style="magenta")
    table.add_column("Priority", justify="right")
    table.add_column("Every (min)", justify="right")
    table.add_column("Enabled")
    for source in sources:
        table.add_row(
            source.source_id,
            source.name,
            source.adapter,
            str(source.priority),
            f"{source.scrape_interval_minutes:g}",
            "yes" if source.enabled else "[yellow]no[/yellow]",
        )
    return table


def _render_runs_table(source_id: str, runs: Sequence[RunLogEntry]) -> Table:
    table = Table(title=f"{source_id} · last {len(runs)} runs", box=box.SIMPLE_HEAD)
    table.add_column("Started", style="dim")
    table.add_column("Finished", style="dim")
    table.add_column("Status")
    table.add_column("Fetched", justify="right")
    table.add_column("New", justify="right")
    table.add_column("Error", overflow="fold")
    for run in runs:
        table.add_row(
            _format_time(run.started_at),
            _format_time(run.finished_at),
            "[green]success[/green]" if run.status == "success" else f"[red]{run.status}[/red]",
            "-" if run.fetched is None else str(run.fetched),
            "-" if run.new is None else str(run.new),
            run.error or "",
        )
    return table


def _require_sources(state: AppState) -> None:
    if not state.scheduler.sources:
        console.print(
            "No sources configured; run `tender-harvest source init` to install the defaults.",
            style="yellow",
        )
        raise typer.Exit(code=0)


app.add_typer(source_app, name="source", help="List, install and run sources")
app.add_typer(cache_app, name="cache", help="Inspect or clear cached tender snapshots")
app.add_typer(log_app, name="log", help="View log files")


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging."),
) -> None:
    ctx.obj = build_state(verbose)


@app.command("serve", help="Run the scheduler until interrupted.")
def serve(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    _require_sources(state)
    stop_event = threading.Event()

    def _handle_signal(signum, frame) -> None:  # noqa: ARG001
        stop_event.set()

    signal.signal(signal.SIGTERM, _handle_signal)
    state.scheduler.start()
    console.print(
        f"Scheduler started with {len(state.scheduler.status_all())} jobs; press Ctrl+C to stop.",
        style="green",
    )
    try:
        while not stop_event.wait(1.0):
            pass
    except KeyboardInterrupt:
        pass
    finally:
        console.print("Stopping scheduler, waiting for in-flight runs...", style="dim")
        state.scheduler.close(wait=True)
        state.cache.close()
        state.storage.close_all()


@app.command("status", help="Show the state of every ingestion job.")
def status(
    ctx: typer.Context,
    as_json: bool = typer.Option(False, "--json", help="Print machine-readable JSON."),
) -> None:
    state = _get_state(ctx)
    snapshots = list(state.scheduler.status_all().values())
    if as_json:
        typer.echo(json.dumps([snap.as_dict() for snap in snapshots], indent=2))
        return
    _require_sources(state)
    console.print(_render_status_table(snapshots))


@app.command("tenders", help="Show the tenders currently served for a source.")
def tenders(
    ctx: typer.Context,
    source_id: str = typer.Argument(..., help="Source identifier."),
    as_json: bool = typer.Option(False, "--json", help="Print the raw read result."),
    limit: int = typer.Option(20, "--limit", min=1, help="Rows to display."),
) -> None:
    state = _get_state(ctx)
    result = state.read_path.read(source_id)
    if as_json:
        typer.echo(json.dumps(result.to_dict(), ensure_ascii=False, indent=2))
        if not result.success:
            raise typer.Exit(code=1)
        return
    if not result.success:
        console.print(f"{source_id}: {result.error}", style="red")
        raise typer.Exit(code=1)
    origin = "cache" if result.cached else (result.fallback or "store")
    table = Table(
        title=f"{source_id} · {result.total} tenders ({origin}, {result.new_count} new)",
        box=box.SIMPLE_HEAD,
    )
    table.add_column("Name", overflow="fold")
    table.add_column("Posted", style="green")
    table.add_column("Closing", style="yellow")
    table.add_column("Links", justify="right")
    for record in result.data[:limit]:
        table.add_row(
            record.name,
            record.posted_date,
            record.closing_date or "-",
            str(len(record.download_links)),
        )
    console.print(table)


@source_app.command("list", help="List configured sources.")
def source_list(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    sources = state.repository.list_sources()
    if not sources:
        console.print(
            "No sources configured; run `tender-harvest source init` to install the defaults.",
            style="yellow",
        )
        raise typer.Exit(code=0)
    console.print(_render_sources_table(sources))


@source_app.command("init", help="Install the built-in source table.")
def source_init(
    ctx: typer.Context,
    force: bool = typer.Option(False, "--force", help="Overwrite existing source files."),
) -> None:
    state = _get_state(ctx)
    written = state.repository.install_default_sources(overwrite=force)
    if not written:
        console.print("All default sources already exist; use --force to overwrite.", style="dim")
        return
    for path in written:
        console.print(f"wrote {path}", style="green")


@source_app.command("run", help="Run one source now, outside its schedule.")
def source_run(
    ctx: typer.Context,
    source_id: str = typer.Argument(..., help="Source identifier."),
) -> None:
    state = _get_state(ctx)
    try:
        state.scheduler.status_of(source_id)
    except UnknownSourceError:
        console.print(f"Unknown or disabled source `{source_id}`.", style="red")
        raise typer.Exit(code=1)
    accepted = state.scheduler.run_one(source_id, wait=True)
    snap = state.scheduler.status_of(source_id)
    state.scheduler.close()
    if not accepted:
        console.print(f"`{source_id}` is already running.", style="yellow")
        raise typer.Exit(code=1)
    if snap.status is JobStatus.ERROR:
        console.print(f"{source_id}: failed ({snap.last_error})", style="red")
        raise typer.Exit(code=1)
    console.print(
        f"{source_id}: fetched {snap.last_fetched}, new {snap.last_new}",
        style="green",
    )


@source_app.command("run-all", help="Run every enabled source concurrently.")
def source_run_all(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    _require_sources(state)
    state.scheduler.run_all()
    snapshots = list(state.scheduler.status_all().values())
    state.scheduler.close()
    console.print(_render_status_table(snapshots))
    failed = [snap.source_id for snap in snapshots if snap.status is JobStatus.ERROR]
    if failed:
        console.print(f"{len(failed)} source(s) failed: {', '.join(failed)}", style="red")
        raise typer.Exit(code=1)


@source_app.command("history", help="Show recent runs of a source.")
def source_history(
    ctx: typer.Context,
    source_id: str = typer.Argument(..., help="Source identifier."),
    limit: int = typer.Option(20, "--limit", min=1, help="Number of runs to show."),
) -> None:
    state = _get_state(ctx)
    try:
        runs = state.store.recent_runs(source_id, limit=limit)
    except StorageError as exc:
        console.print(f"Run history unavailable: {exc}", style="red")
        raise typer.Exit(code=1) from exc
    if not runs:
        console.print("No runs recorded yet.", style="dim")
        return
    console.print(_render_runs_table(source_id, runs))


@cache_app.command("clear", help="Drop the cached snapshot of a source.")
def cache_clear(
    ctx: typer.Context,
    source_id: str = typer.Argument(..., help="Source identifier."),
) -> None:
    state = _get_state(ctx)
    if source_id not in state.read_path.sources:
        console.print(f"Unknown source `{source_id}`.", style="red")
        raise typer.Exit(code=1)
    if not state.read_path.invalidate(source_id):
        console.print(f"Failed to clear cache for `{source_id}`.", style="red")
        raise typer.Exit(code=1)
    console.print(f"Cache cleared for `{source_id}`.", style="green")


@log_app.command("list", help="List per-source log files.")
def log_list() -> None:
    logs = list(available_source_logs())
    if not logs:
        console.print("No source logs yet.", style="dim")
        return
    table = Table(title="Log files", box=box.SIMPLE_HEAD)
    table.add_column("File", style="green")
    for path in logs:
        table.add_row(path.name)
    console.print(table)


@log_app.command("show", help="Show the tail of a log file.")
def log_show(
    source_id: Optional[str] = typer.Option(
        None, "--source", help="Source identifier; the global log when omitted."
    ),
    tail: int = typer.Option(100, "--tail", min=1, help="Number of lines to show."),
) -> None:
    lines = tail_log(log_path(source_id), tail)
    if not lines:
        console.print("No log lines yet.", style="dim")
        return
    header = f"{source_id or 'harvest'} log · last {len(lines)} lines"
    console.print(header, style="cyan")
    console.print("".join(lines), markup=False, highlight=False)


def cli() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover
    cli()
