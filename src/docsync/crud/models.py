"""Run journal tables: one row per sync run plus its per-item error log"""

from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import Column, DateTime, Text
from sqlmodel import Field, SQLModel


class RunStatus(str, Enum):
    running   = "running"
    completed = "completed"
    failed    = "failed"        # finished with per-item errors
    aborted   = "aborted"
    error     = "error"         # setup or unexpected failure


class SyncRun(SQLModel, table=True):
    """One invocation of export, plan-export or plan-import"""
    __tablename__ = "sync_runs"
    id: Optional[int] = Field(default=None, primary_key=True)
    operation: str = Field(..., index=True, nullable=False)
    source: str = Field(..., sa_column=Column(Text, nullable=False))
    project_id: Optional[int] = Field(default=None)
    artifact_type: Optional[str] = Field(default=None)
    status: RunStatus = Field(default=RunStatus.running, nullable=False)
    items_processed: int = Field(default=0, nullable=False)
    error_count: int = Field(default=0, nullable=False)
    message: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    started_at: datetime = Field(default_factory=datetime.now, sa_column=Column(DateTime(timezone=False), nullable=False))
    finished_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=False), nullable=True))


class SyncLogEntry(SQLModel, table=True):
    """A per-item failure recorded during a run (the export error log)"""
    __tablename__ = "sync_log_entries"
    id: Optional[int] = Field(default=None, primary_key=True)
    run_id: int = Field(..., foreign_key="sync_runs.id", index=True, nullable=False)
    item: str = Field(..., sa_column=Column(Text, nullable=False))
    message: str = Field(..., sa_column=Column(Text, nullable=False))
    detail: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    recorded_at: datetime = Field(default_factory=datetime.now, sa_column=Column(DateTime(timezone=False), nullable=False))
