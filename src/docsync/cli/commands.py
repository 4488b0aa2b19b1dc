"""CLI command implementations"""

import logging
from pathlib import Path
from typing import Annotated, Callable, Optional

import typer
from sqlmodel import Session, SQLModel

from docsync.config import Settings, load_config
from docsync.core import pipeline
from docsync.core.hierarchy import HierarchyBuilder
from docsync.core.models import ArtifactType, SyncOutcome
from docsync.core.worker import SyncJob
from docsync.crud.database import init_db, make_engine
from docsync.crud.journal import get_entries, get_run, list_runs
from docsync.errors import DocSyncError
from docsync.logs import configure_logging
from docsync.sources.markdown import MarkdownDocument
from docsync.sources.plan import TaskPlan


logger = logging.getLogger(__name__)


ProjectOpt = Annotated[Optional[int], typer.Option("--project", "-p", help="Target project id")]
ServerOpt = Annotated[Optional[str], typer.Option("--server", help="Artifact server URL")]
UserOpt = Annotated[Optional[str], typer.Option("--user", help="Login name")]
PasswordOpt = Annotated[Optional[str], typer.Option("--password", help="Password or API key")]


def _fail(msg: str, cause: Exception = None) -> None:
    """Print a user-friendly error to stderr and exit 1."""
    typer.echo(f"Error: {msg}", err=True)
    if cause:
        typer.echo(f"  {cause}", err=True)
    raise typer.Exit(1)


def _settings(overrides: dict = None) -> Settings:
    """Load config with standard CLI error handling and set up logging."""
    try:
        settings = load_config(overrides=overrides)
    except ValueError as e:
        _fail(str(e))
    configure_logging(settings.log_level, settings.log_file)
    return settings


def _connection_settings(project, server, user, password, **extra) -> Settings:
    settings = _settings(overrides={
        "project_id": project, "server_url": server, "username": user, "password": password, **extra,
    })
    if settings.username and not settings.password:
        settings.password = typer.prompt("Password", hide_input=True)
    return settings


def _run(operation: str, source: str, settings: Settings, action: Callable, target) -> SyncOutcome:
    """Connect, run action on the worker thread with a progress bar, and journal the run."""
    engine = make_engine(settings.db_url)
    init_db(engine)
    job = SyncJob()

    def work() -> SyncOutcome:
        with pipeline.connect(settings) as client:
            return action(client, settings, target, report=job.report, cancel=job.cancel)

    job.start(pipeline.run_journaled, engine, operation, source, settings, work)
    try:
        with typer.progressbar(length=0, label=operation.capitalize()) as bar:
            def on_progress(current: int, total: int) -> None:
                bar.length = max(total, 1)
                bar.update(current - bar.pos)

            try:
                return job.wait(on_progress)
            except KeyboardInterrupt:
                typer.echo("\nAborting after the current item...", err=True)
                job.abort()
                return job.wait(on_progress)
    except DocSyncError as e:
        _fail(str(e))
    except Exception as e:
        logger.exception("Unexpected failure during %s", operation)
        _fail(f"{operation} stopped unexpectedly.", e)
    finally:
        job.shutdown()


def export_cmd(
    path: Annotated[Path, typer.Argument(exists=True, dir_okay=False, readable=True, help="Markdown document to export")],
    project: ProjectOpt = None,
    artifact_type: Annotated[Optional[ArtifactType], typer.Option("--type", help="What boundaries become")] = None,
    server: ServerOpt = None,
    user: UserOpt = None,
    password: PasswordOpt = None,
    ):
    """Export a markdown document as requirements or test cases."""
    settings = _connection_settings(
        project, server, user, password, artifact_type=artifact_type.value if artifact_type else None,
    )
    try:
        document = MarkdownDocument.load(path, settings.parser_config)
    except (OSError, UnicodeDecodeError) as e:
        _fail(f"Cannot read {path}", e)
    outcome = _run("export", str(path), settings, pipeline.run_document_export, document)
    typer.echo(f"Exported {outcome.items_processed} item(s).")


def plan_export_cmd(
    path: Annotated[Path, typer.Argument(exists=True, dir_okay=False, readable=True, help="YAML task plan")],
    project: ProjectOpt = None,
    server: ServerOpt = None,
    user: UserOpt = None,
    password: PasswordOpt = None,
    ):
    """Export a task plan as requirements and tasks."""
    settings = _connection_settings(project, server, user, password)
    try:
        plan = TaskPlan.load(path)
    except (OSError, ValueError) as e:
        _fail(str(e))
    outcome = _run("plan-export", str(path), settings, pipeline.run_plan_export, plan)
    typer.echo(f"Exported {outcome.items_processed} item(s).")


def plan_import_cmd(
    path: Annotated[Path, typer.Argument(dir_okay=False, help="YAML task plan to create or update")],
    project: ProjectOpt = None,
    server: ServerOpt = None,
    user: UserOpt = None,
    password: PasswordOpt = None,
    ):
    """Import releases, requirements and tasks into a task plan."""
    settings = _connection_settings(project, server, user, password)
    try:
        plan = TaskPlan.load(path) if path.exists() else TaskPlan(path=path)
    except (OSError, ValueError) as e:
        _fail(str(e))
    outcome = _run("plan-import", str(path), settings, pipeline.run_plan_import, plan)
    typer.echo(f"Imported {outcome.items_processed} item(s) into {path}.")


def preview_cmd(
    path: Annotated[Path, typer.Argument(exists=True, dir_okay=False, readable=True, help="Markdown document")],
    artifact_type: Annotated[Optional[ArtifactType], typer.Option("--type", help="What boundaries become")] = None,
    ):
    """Show the artifacts a document would export, without contacting the server."""
    settings = _settings(overrides={"artifact_type": artifact_type.value if artifact_type else None})
    document = MarkdownDocument.load(path, settings.parser_config)
    builder = HierarchyBuilder(settings.styles, ArtifactType(settings.artifact_type))
    count = 0
    for artifact in builder.walk(document.regions):
        count += 1
        typer.echo(f"[{artifact.indent_offset:+d}] {artifact.role.value}: {artifact.name}")
        if artifact.markup:
            typer.echo(f"    {artifact.markup}")
        for n, step in enumerate(artifact.steps, start=1):
            typer.echo(f"    step {n}: {step.description} | {step.expected_result} | {step.sample_data}")
        for record in artifact.attachments:
            typer.echo(f"    attachment: {record.placeholder} ({len(record.data)} bytes)")
    for entry in builder.outcome.entries:
        typer.echo(f"  error: {entry.item}: {entry.message}", err=True)
    typer.echo(f"{count} artifact(s) found.")


def history_cmd(
    run_id: Annotated[Optional[int], typer.Option("--run", help="Show the error log of this run")] = None,
    limit: Annotated[int, typer.Option("--limit", min=1, help="Number of runs to list")] = 20,
    ):
    """List recent runs, or the per-item error log of one run."""
    settings = _settings()
    engine = make_engine(settings.db_url)
    init_db(engine)
    with Session(engine) as session:
        if run_id is not None:
            run = get_run(session, run_id)
            if run is None:
                _fail(f"No run with id {run_id}.")
            typer.echo(f"Run {run.id}: {run.operation} {run.source} -> {run.status.value} ({run.message or ''})")
            entries = get_entries(session, run_id)
            if not entries:
                typer.echo("No errors recorded.")
            for entry in entries:
                typer.echo(f"  {entry.item}: {entry.message}")
            return
        runs = list_runs(session, limit)
    if not runs:
        typer.echo("No runs recorded.")
        raise typer.Exit(0)
    for run in runs:
        typer.echo(
            f"{run.id:>4}  {run.started_at:%Y-%m-%d %H:%M:%S}  {run.operation:<11}  {run.status.value:<9}  "
            f"processed={run.items_processed} errors={run.error_count}  {run.source}"
        )


def init_cmd(
    reset: Annotated[bool, typer.Option("--reset", help="Drop and recreate all tables")] = False,
    ):
    """Initialize the run journal. Use --reset to clear existing history."""
    settings = _settings()
    engine = make_engine(settings.db_url)
    if reset:
        SQLModel.metadata.drop_all(engine)
        typer.echo("Existing data cleared.")
    init_db(engine)
    typer.echo(f"Database initialized at: {settings.db_url}")
