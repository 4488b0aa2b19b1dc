"""Run journal persistence: start/finish runs, list history, read the error log"""

from datetime import datetime
from typing import Optional

from sqlmodel import Session, select

from docsync.core.models import SyncOutcome
from docsync.crud.models import RunStatus, SyncLogEntry, SyncRun


def start_run(
    session: Session,
    operation: str,
    source: str,
    project_id: Optional[int] = None,
    artifact_type: Optional[str] = None,
    ) -> SyncRun:
    """Add a running SyncRun. Flushes but does not commit."""
    run = SyncRun(operation=operation, source=source, project_id=project_id, artifact_type=artifact_type)
    session.add(run)
    session.flush()
    return run


def finish_run(
    session: Session,
    run: SyncRun,
    status: RunStatus,
    outcome: Optional[SyncOutcome] = None,
    message: Optional[str] = None,
    ) -> SyncRun:
    """Close a run and store its per-item errors. Flushes but does not commit."""
    run.status = status
    run.message = message
    run.finished_at = datetime.now()
    if outcome is not None:
        run.items_processed = outcome.items_processed
        run.error_count = outcome.error_count
        for entry in outcome.entries:
            session.add(SyncLogEntry(run_id=run.id, item=entry.item, message=entry.message, detail=entry.detail))
    session.add(run)
    session.flush()
    return run


def list_runs(session: Session, limit: int = 20) -> list[SyncRun]:
    """Most recent runs first."""
    stmt = select(SyncRun).order_by(SyncRun.id.desc()).limit(limit)
    return list(session.exec(stmt).all())


def get_run(session: Session, run_id: int) -> SyncRun | None:
    return session.get(SyncRun, run_id)


def get_entries(session: Session, run_id: int) -> list[SyncLogEntry]:
    """Error log of a run in recording order."""
    stmt = select(SyncLogEntry).where(SyncLogEntry.run_id == run_id).order_by(SyncLogEntry.id)
    return list(session.exec(stmt).all())
