"""Run orchestration: setup checks, the three sync operations and the run journal"""

import logging
import threading
from typing import Callable, Optional

import httpx
from sqlmodel import Session

from docsync.config import Settings
from docsync.core.identity import IdentityManager
from docsync.core.models import ArtifactType, SyncOutcome
from docsync.core.schedule import PlanExportDriver, PlanImportDriver
from docsync.core.sync import DocumentSyncDriver, ProgressSink
from docsync.crud.journal import finish_run, start_run
from docsync.crud.models import RunStatus
from docsync.errors import (
    AUTH_FAILED, INVALID_URL, NO_SELECTION, PROJECT_FAILED,
    RemoteFault, SetupError, SyncAborted, SyncFailed, describe_fault,
)
from docsync.remote.base import ArtifactClient
from docsync.remote.http import HttpArtifactClient
from docsync.sources.markdown import MarkdownDocument
from docsync.sources.plan import TaskPlan


logger = logging.getLogger(__name__)


def validate_server_url(server_url: str) -> None:
    try:
        url = httpx.URL(server_url)
    except (httpx.InvalidURL, TypeError) as e:
        raise SetupError(INVALID_URL) from e
    if url.scheme not in ("http", "https") or not url.host:
        raise SetupError(INVALID_URL)


def connect(settings: Settings, factory: Optional[Callable[..., ArtifactClient]] = None) -> ArtifactClient:
    """Authenticated client bound to settings.project_id; any failure is a SetupError."""
    validate_server_url(settings.server_url)
    if settings.project_id is None:
        raise SetupError("No project id given. Use --project or set DOCSYNC_PROJECT_ID.")
    factory = factory or HttpArtifactClient
    client = factory(settings.server_url, timeout=settings.timeout)
    try:
        if not client.authenticate(settings.username, settings.password):
            raise SetupError(AUTH_FAILED)
        if not client.connect_to_project(settings.project_id):
            raise SetupError(PROJECT_FAILED.format(project_id=settings.project_id))
    except RemoteFault as e:
        client.close()
        raise SetupError(describe_fault(e)) from e
    except SetupError:
        client.close()
        raise
    logger.info("Connected to %s, project PR%s", settings.server_url, settings.project_id)
    return client


def run_document_export(
    client: ArtifactClient,
    settings: Settings,
    document: MarkdownDocument,
    report: Optional[ProgressSink] = None,
    cancel: Optional[threading.Event] = None,
    ) -> SyncOutcome:
    """Export a document; side channels are written back even when the run stops early."""
    if not document.regions:
        raise SetupError(NO_SELECTION)
    driver = DocumentSyncDriver(
        client, settings.styles, ArtifactType(settings.artifact_type),
        identity=IdentityManager(settings.token_prefix), report=report, cancel=cancel,
    )
    try:
        outcome = driver.run(document.regions)
    finally:
        document.save()
    if outcome.error_count:
        raise SyncFailed(outcome)
    return outcome


def run_plan_export(
    client: ArtifactClient,
    settings: Settings,
    plan: TaskPlan,
    report: Optional[ProgressSink] = None,
    cancel: Optional[threading.Event] = None,
    ) -> SyncOutcome:
    if not plan.tasks:
        raise SetupError(NO_SELECTION)
    driver = PlanExportDriver(client, IdentityManager(settings.token_prefix), report, cancel)
    try:
        outcome = driver.run(plan)
    finally:
        plan.save()
    if outcome.error_count:
        raise SyncFailed(outcome)
    return outcome


def run_plan_import(
    client: ArtifactClient,
    settings: Settings,
    plan: TaskPlan,
    report: Optional[ProgressSink] = None,
    cancel: Optional[threading.Event] = None,
    ) -> SyncOutcome:
    driver = PlanImportDriver(client, IdentityManager(settings.token_prefix), report, cancel)
    try:
        outcome = driver.run(plan)
    finally:
        plan.save()
    if outcome.error_count:
        raise SyncFailed(outcome, operation="Import")
    return outcome


def run_journaled(
    engine,
    operation: str,
    source: str,
    settings: Settings,
    work: Callable[[], SyncOutcome],
    ) -> SyncOutcome:
    """Run work() and record the run, its status and its per-item errors."""
    with Session(engine) as session:
        run = start_run(session, operation, source, settings.project_id, settings.artifact_type)
        session.commit()
        try:
            outcome = work()
        except SyncFailed as e:
            finish_run(session, run, RunStatus.failed, e.outcome, str(e))
            session.commit()
            raise
        except SyncAborted as e:
            finish_run(session, run, RunStatus.aborted, e.outcome, str(e))
            session.commit()
            raise
        except Exception as e:
            finish_run(session, run, RunStatus.error, None, str(e))
            session.commit()
            raise
        finish_run(session, run, RunStatus.completed, outcome, f"Processed {outcome.items_processed} item(s).")
        session.commit()
        return outcome
