"""restorectl CLI: headless client for the restore server.

Unified entry point for submitting restores, following job output,
cancelling jobs, and managing naming rules and settings.

Usage:
    restorectl restore /backups/shop_2023.dump -d 0 -f   Submit and follow
    restorectl job watch 42                              Follow a running job
    restorectl job abort 42                              Cancel a job
    restorectl parse tables query.sql                    Extract schema.table names
    restorectl pattern add '/backup_(\\w+)_' '$1'         Add a naming rule
"""

import asyncio
import json
import logging
import re
import sys
from pathlib import Path
from typing import Optional

import typer
from pydantic import ValidationError
from rich.console import Console, RenderableType
from rich.markup import escape

from restorectl.cli.config import RestoreCtlConfig, load_config
from restorectl.cli.factory import get_client, get_monitor, get_settings_store
from restorectl.cli.output import (
    format_destinations,
    format_job_handle,
    format_job_table,
    format_patterns,
)
from restorectl.cli.protocol import JobStatus
from restorectl.errors import DomainError, PatternError, format_error, format_error_summary
from restorectl.services.job_monitor import JobHandle
from restorectl.services.name_inference import (
    CaseMode,
    NameInferenceEngine,
    NamePattern,
)
from restorectl.services.object_extractor import (
    extract_schemas,
    extract_tables,
    format_object_list,
)
from restorectl.services.restore_request import (
    DatabaseMode,
    RestoreRequestBuilder,
    RestoreType,
    convert_slashes,
)
from restorectl.services.settings_store import export_settings, import_settings
from restorectl.utils.logging_setup import configure_logging

_log = logging.getLogger(__name__)

app = typer.Typer(
    name="restorectl",
    help="Submit and follow PostgreSQL restore jobs",
    no_args_is_help=True,
)
job_app = typer.Typer(help="Follow, list and cancel restore jobs")
parse_app = typer.Typer(help="Extract restore objects from pasted SQL")
pattern_app = typer.Typer(help="Manage database-name inference rules")
settings_app = typer.Typer(help="Preferred destination and settings exchange")
config_app = typer.Typer(help="Configuration management")

app.add_typer(job_app, name="job")
app.add_typer(parse_app, name="parse")
app.add_typer(pattern_app, name="pattern")
app.add_typer(settings_app, name="settings")
app.add_typer(config_app, name="config")

console = Console()
err_console = Console(stderr=True)

# --- Global state ---
_config_path: str | None = None
_server_url: str | None = None
_verbose: bool = False


@app.callback()
def main(
    config: Optional[str] = typer.Option(
        None, "--config", help="Path to restorectl.yaml config file"
    ),
    server: Optional[str] = typer.Option(
        None, "--server", help="Restore server URL (overrides config)"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    """restorectl: PostgreSQL restore client."""
    global _config_path, _server_url, _verbose
    _config_path = config
    _server_url = server
    _verbose = verbose


def _load_config() -> RestoreCtlConfig:
    """Load config and wire logging; exit 1 on a bad or missing file."""
    try:
        cfg = load_config(config_path=_config_path)
    except FileNotFoundError as e:
        console.print(f"[red]Config file not found:[/red] {e}")
        raise typer.Exit(1)
    except ValidationError as e:
        console.print(f"[red]Config validation failed:[/red] {e}")
        raise typer.Exit(1)
    configure_logging(cfg.logging, verbose=_verbose)
    return cfg


def _fail(error: DomainError) -> None:
    """Print a domain error with its remediation and exit 1."""
    console.print(f"[red]Error:[/red] {escape(format_error(error))}")
    raise typer.Exit(1)


def _fail_all(errors: list[DomainError]) -> None:
    """Print every collected error, duplicates collapsed, and exit 1."""
    console.print(f"[red]Error:[/red] {escape(format_error_summary(errors))}")
    raise typer.Exit(1)


def _show(output: RenderableType) -> None:
    """Print formatter output; strings are written verbatim."""
    if isinstance(output, str):
        console.print(output, markup=False, highlight=False, soft_wrap=True)
    else:
        console.print(output)


def _read_text(file: Optional[Path]) -> str:
    """Read a file argument, or stdin when it is omitted or '-'."""
    if file is None or str(file) == "-":
        return sys.stdin.read()
    try:
        return file.read_text(encoding="utf-8")
    except OSError as e:
        console.print(f"[red]Cannot read {file}:[/red] {e}")
        raise typer.Exit(1)


# --- Version ---


@app.command()
def version():
    """Show restorectl version."""
    from importlib.metadata import PackageNotFoundError, version as pkg_version
    try:
        v = pkg_version("restorectl")
    except PackageNotFoundError:
        v = "unknown"
    console.print(f"[bold]restorectl[/bold] v{v}")


# --- Config commands ---


@config_app.command("show")
def config_show():
    """Display resolved configuration."""
    cfg = _load_config()
    store = get_settings_store(cfg)

    console.print("[bold]Server:[/bold]")
    console.print(f"  url: {_server_url or cfg.server.url}")
    console.print(f"  timeout: {cfg.server.timeout}s")

    console.print("\n[bold]Monitor:[/bold]")
    console.print(f"  poll_interval: {cfg.monitor.poll_interval}s")
    console.print(f"  max_output_length: {cfg.monitor.max_output_length}")
    console.print(f"  truncate_output: {cfg.monitor.truncate_output}")

    console.print("\n[bold]Settings:[/bold]")
    console.print(f"  path: {store.path}")

    console.print("\n[bold]Logging:[/bold]")
    console.print(f"  level: {cfg.logging.level}")
    console.print(f"  format: {cfg.logging.format}")
    if cfg.logging.file:
        console.print(f"  file: {cfg.logging.file}")


@config_app.command("validate")
def config_validate(
    config: Optional[str] = typer.Option(None, "--config", help="Config file path"),
):
    """Validate a config file without contacting the server."""
    path = config or _config_path
    try:
        cfg = load_config(config_path=path)
        console.print("[green]Config is valid.[/green]")
        console.print(f"  Server: {cfg.server.url}")
        console.print(f"  Poll interval: {cfg.monitor.poll_interval}s")
    except FileNotFoundError as e:
        console.print(f"[red]Config file not found:[/red] {e}")
        raise typer.Exit(1)
    except (ValidationError, ValueError, TypeError) as e:
        console.print(f"[red]Config validation failed:[/red] {e}")
        raise typer.Exit(1)


# --- Job following ---


def _print_delta(handle: JobHandle, stdout_delta: str, stderr_delta: str) -> None:
    if stdout_delta:
        console.print(stdout_delta, end="", markup=False, highlight=False, soft_wrap=True)
    if stderr_delta:
        err_console.print(
            stderr_delta, end="", markup=False, highlight=False, soft_wrap=True, style="red",
        )


async def _follow_job(client, cfg: RestoreCtlConfig, job_id: int,
                      json_output: bool = False) -> JobHandle:
    """Poll ``job_id`` until it stops, streaming output unless JSON is requested.

    Interrupting the wait (Ctrl-C) asks the server to abort the job before
    the interruption propagates.
    """
    async with get_monitor(client, cfg) as monitor:
        if not json_output:
            monitor.add_listener(_print_delta)
        monitor.set_job(job_id)
        try:
            handle = await monitor.wait()
        except asyncio.CancelledError:
            if monitor.handle.can_abort:
                try:
                    await monitor.abort()
                except DomainError as e:
                    err_console.print(f"[red]Abort failed:[/red] {escape(format_error(e))}")
                else:
                    err_console.print(f"[yellow]Interrupted; abort requested for job {job_id}.[/yellow]")
            raise
    if not json_output:
        console.print()
    _show(format_job_handle(handle, as_json=json_output))
    return handle


def _exit_for(handle: JobHandle) -> None:
    if handle.status is not JobStatus.SUCCESS:
        raise typer.Exit(1)


@job_app.command("watch")
def job_watch(
    job_id: int = typer.Argument(help="Job ID to follow"),
    json_output: bool = typer.Option(False, "--json", help="Print final state as JSON"),
):
    """Follow job output until it finishes.

    Exit code is 0 only when the job finished with success.
    """
    cfg = _load_config()
    client = get_client(cfg, base_url=_server_url)

    async def _run() -> JobHandle:
        async with client:
            return await _follow_job(client, cfg, job_id, json_output=json_output)

    handle = asyncio.run(_run())
    _exit_for(handle)


@job_app.command("list")
def job_list(
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """List restore jobs known to the server."""
    cfg = _load_config()
    client = get_client(cfg, base_url=_server_url)

    async def _run():
        try:
            async with client:
                jobs = await client.list_jobs()
        except DomainError as e:
            _fail(e)
        _show(format_job_table(jobs, as_json=json_output))

    asyncio.run(_run())


@job_app.command("abort")
def job_abort(
    job_id: int = typer.Argument(help="Job ID to cancel"),
):
    """Ask the server to cancel a running job.

    The job reports Aborted once the server has actually stopped it;
    use 'restorectl job watch' to see the final state.
    """
    cfg = _load_config()
    client = get_client(cfg, base_url=_server_url)

    async def _run():
        try:
            async with client, get_monitor(client, cfg) as monitor:
                await monitor.abort(job_id)
        except DomainError as e:
            _fail(e)
        console.print(f"[yellow]Abort requested for job {job_id}.[/yellow]")

    asyncio.run(_run())


# --- Restore ---


@app.command("restore")
def restore(
    backup: str = typer.Argument(help="Backup file path or http(s) URL"),
    destination: Optional[int] = typer.Option(
        None, "--destination", "-d", help="Destination id (default: preferred destination)"
    ),
    database_name: Optional[str] = typer.Option(
        None, "--database-name", "-n", help="Target database (default: inferred from backup path)"
    ),
    database: DatabaseMode = typer.Option(
        DatabaseMode.CREATE, "--database", case_sensitive=False,
        help="Use an existing database, create it, or drop and re-create it",
    ),
    tables: Optional[str] = typer.Option(
        None, "--tables", help="Partial restore: schema.table names, comma or space separated"
    ),
    schemas: Optional[str] = typer.Option(
        None, "--schemas", help="Partial restore: schema names, comma or space separated"
    ),
    tables_from: Optional[Path] = typer.Option(
        None, "--tables-from", help="Partial restore of the tables referenced in a SQL file"
    ),
    schemas_from: Optional[Path] = typer.Option(
        None, "--schemas-from", help="Partial restore of the schemas referenced in a SQL file"
    ),
    restore_schema: bool = typer.Option(
        True, "--restore-schema/--no-restore-schema", help="Partial restore: include object definitions"
    ),
    restore_indexes: bool = typer.Option(
        True, "--restore-indexes/--no-restore-indexes", help="Partial restore: rebuild indexes"
    ),
    ignore_errors: bool = typer.Option(False, "--ignore-errors", help="Continue past restore errors"),
    flip_slashes: bool = typer.Option(
        False, "--convert-slashes", help="Flip / and \\ separators in the backup path"
    ),
    follow: bool = typer.Option(False, "--follow", "-f", help="Follow job output after submitting"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Print the request JSON without submitting"),
):
    """Submit a restore request."""
    sources = [v for v in (tables, schemas, tables_from, schemas_from) if v is not None]
    if len(sources) > 1:
        raise typer.BadParameter(
            "Use only one of --tables, --schemas, --tables-from, --schemas-from"
        )

    cfg = _load_config()
    store = get_settings_store(cfg)

    try:
        builder = RestoreRequestBuilder(
            destination=destination if destination is not None else store.get_preferred_destination(),
            backup=convert_slashes(backup) if flip_slashes else backup,
            database=database,
            restore_schema=restore_schema,
            restore_indexes=restore_indexes,
            ignore_errors=ignore_errors,
        )
        if database_name:
            builder.database_name = database_name
        else:
            builder.infer_database_name(NameInferenceEngine.from_store(store))

        if tables is not None or schemas is not None:
            builder.restore_type = RestoreType.PARTIAL
            builder.objects = tables if tables is not None else schemas
        elif tables_from is not None:
            builder.tables_from_text(_read_text(tables_from))
        elif schemas_from is not None:
            builder.schemas_from_text(_read_text(schemas_from))

        failures = builder.validate()
    except DomainError as e:
        _fail(e)
    if failures:
        _fail_all(failures)
    request = builder.build()

    payload = request.to_payload()
    if dry_run:
        console.print_json(json.dumps(payload))
        return

    client = get_client(cfg, base_url=_server_url)

    async def _run() -> JobHandle | None:
        async with client:
            try:
                job_id = await client.submit_restore(payload)
            except DomainError as e:
                _fail(e)
            console.print(
                f"[green]Restore of[/green] {escape(request.database_name)} "
                f"[green]submitted as job[/green] [cyan]{job_id}[/cyan]"
            )
            if not follow:
                return None
            return await _follow_job(client, cfg, job_id)

    handle = asyncio.run(_run())
    if handle is not None:
        _exit_for(handle)


@app.command("destinations")
def destinations(
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """List restore destinations offered by the server."""
    cfg = _load_config()
    store = get_settings_store(cfg)
    client = get_client(cfg, base_url=_server_url)

    async def _run():
        try:
            async with client:
                items = await client.list_destinations()
        except DomainError as e:
            _fail(e)
        _show(format_destinations(
            items, preferred=store.get_preferred_destination(), as_json=json_output,
        ))

    asyncio.run(_run())


@app.command("search")
def search(
    query: str = typer.Argument(help="Words to look for in backup names"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Search the server's backup catalogue."""
    cfg = _load_config()
    client = get_client(cfg, base_url=_server_url)

    async def _run():
        try:
            async with client:
                results = await client.search_backups(query)
        except DomainError as e:
            _fail(e)
        if json_output:
            console.print_json(json.dumps(results))
        elif not results:
            console.print("No backups found.")
        else:
            for item in results:
                console.print(escape(item))

    asyncio.run(_run())


# --- Parse commands ---


@parse_app.command("tables")
def parse_tables(
    file: Optional[Path] = typer.Argument(None, help="SQL file (default: stdin)"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Print the schema.table names referenced in SQL text."""
    names = extract_tables(_read_text(file))
    if json_output:
        console.print_json(json.dumps(sorted(names)))
    else:
        console.print(format_object_list(names), markup=False, highlight=False)


@parse_app.command("schemas")
def parse_schemas(
    file: Optional[Path] = typer.Argument(None, help="SQL file (default: stdin)"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Print the schema names referenced in SQL text."""
    names = extract_schemas(_read_text(file))
    if json_output:
        console.print_json(json.dumps(sorted(names)))
    else:
        console.print(format_object_list(names), markup=False, highlight=False)


# --- Pattern commands ---


@pattern_app.command("list")
def pattern_list(
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Show naming rules in precedence order."""
    store = get_settings_store(_load_config())
    try:
        patterns = store.get_name_patterns()
    except DomainError as e:
        _fail(e)
    _show(format_patterns(patterns, as_json=json_output))


@pattern_app.command("add")
def pattern_add(
    path_pattern: str = typer.Argument(help="Regular expression matched against the backup path"),
    template: str = typer.Argument(help="Database name template; $1, $2 ... insert capture groups"),
    case: CaseMode = typer.Option(
        CaseMode.NO_CHANGE, "--case", case_sensitive=False,
        help="Case applied to inserted groups",
    ),
    position: Optional[int] = typer.Option(
        None, "--position", "-p", help="Insert at this index (default: last)"
    ),
):
    """Add a naming rule."""
    try:
        re.compile(path_pattern)
    except re.error as e:
        _fail(PatternError(path_pattern, str(e)))

    store = get_settings_store(_load_config())
    try:
        patterns = store.get_name_patterns().insert(
            NamePattern(path_pattern=path_pattern, template=template, case_mode=case),
            position,
        )
        store.set_name_patterns(patterns)
    except DomainError as e:
        _fail(e)
    except IndexError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    _show(format_patterns(patterns))


def _update_patterns(index: int, operation: str) -> None:
    store = get_settings_store(_load_config())
    try:
        current = store.get_name_patterns()
        patterns = getattr(current, operation)(index)
    except DomainError as e:
        _fail(e)
    except IndexError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    store.set_name_patterns(patterns)
    _show(format_patterns(patterns))


@pattern_app.command("remove")
def pattern_remove(index: int = typer.Argument(help="Rule index")):
    """Delete a naming rule."""
    _update_patterns(index, "remove")


@pattern_app.command("up")
def pattern_up(index: int = typer.Argument(help="Rule index")):
    """Give a naming rule higher precedence."""
    _update_patterns(index, "move_up")


@pattern_app.command("down")
def pattern_down(index: int = typer.Argument(help="Rule index")):
    """Give a naming rule lower precedence."""
    _update_patterns(index, "move_down")


@pattern_app.command("infer")
def pattern_infer(
    backup: str = typer.Argument(help="Backup path or URL"),
):
    """Show the database name the rules infer for a backup path."""
    store = get_settings_store(_load_config())
    try:
        name = NameInferenceEngine.from_store(store).infer(backup)
    except DomainError as e:
        _fail(e)
    if name is None:
        console.print("[yellow]No pattern matched.[/yellow]")
        raise typer.Exit(1)
    console.print(name, markup=False, highlight=False)


# --- Settings commands ---


@settings_app.command("show")
def settings_show():
    """Show stored settings."""
    store = get_settings_store(_load_config())
    try:
        preferred = store.get_preferred_destination()
        patterns = store.get_name_patterns()
    except DomainError as e:
        _fail(e)
    console.print(f"[bold]Settings file:[/bold] {store.path}")
    console.print(f"[bold]Preferred destination:[/bold] {preferred if preferred is not None else 'not set'}")
    _show(format_patterns(patterns))


@settings_app.command("set-destination")
def settings_set_destination(
    index: Optional[int] = typer.Argument(None, help="Destination id; omit to clear"),
):
    """Store the destination used when --destination is omitted."""
    if index is not None and index < 0:
        raise typer.BadParameter("Destination id must be zero or positive")
    store = get_settings_store(_load_config())
    store.set_preferred_destination(index)
    if index is None:
        console.print("Preferred destination cleared.")
    else:
        console.print(f"Preferred destination set to {index}.")


@settings_app.command("export")
def settings_export():
    """Print settings as a single line for 'restorectl settings import'."""
    store = get_settings_store(_load_config())
    try:
        text = export_settings(store)
    except DomainError as e:
        _fail(e)
    console.print(text, markup=False, highlight=False, soft_wrap=True)


@settings_app.command("import")
def settings_import(
    text: Optional[str] = typer.Argument(None, help="Exported settings text (default: stdin)"),
):
    """Replace settings with exported text. Nothing changes if it is invalid."""
    if text is None or text == "-":
        text = sys.stdin.read()
    store = get_settings_store(_load_config())
    try:
        destination, patterns = import_settings(store, text.strip())
    except DomainError as e:
        _fail(e)
    console.print(
        f"[green]Imported[/green] destination {destination} and {len(patterns)} name pattern(s)."
    )


if __name__ == "__main__":
    app()
