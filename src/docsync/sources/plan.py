"""YAML task plans: the project-schedule host used by the task outline sync"""

import logging
from datetime import date, datetime, time
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from docsync.core.identity import format_stamp
from docsync.core.models import SideChannel


logger = logging.getLogger(__name__)

_FIELD_ORDER = [
    "name", "outline_level", "milestone", "notes", "start", "finish", "percent_complete",
    "work", "baseline_work", "actual_work", "remaining_work", "constraint_date", "constraint_type",
]


def _text_field(value: Any) -> str:
    """Side-channel text; YAML reads an unquoted stamp as a timestamp."""
    if isinstance(value, datetime):
        return format_stamp(value)
    return str(value or "")


class PlanTask(BaseModel):
    """One row of the outline. Work figures are in hours."""
    name:             str
    outline_level:    int = Field(default=1, ge=1)
    milestone:        bool = False
    notes:            str = ""
    start:            Optional[datetime] = None
    finish:           Optional[datetime] = None
    percent_complete: int = Field(default=0, ge=0, le=100)
    work:             Optional[float] = None
    baseline_work:    Optional[float] = None
    actual_work:      Optional[float] = None
    remaining_work:   Optional[float] = None
    constraint_date:  Optional[datetime] = None
    constraint_type:  Optional[str] = None
    channel:          SideChannel = Field(default_factory=SideChannel)   # text1 / text2
    summary:          bool = False                                       # derived from the outline

    @field_validator("start", "finish", "constraint_date", mode="before")
    @classmethod
    def _date_to_datetime(cls, value: Any) -> Any:
        if isinstance(value, date) and not isinstance(value, datetime):
            return datetime.combine(value, time())
        return value

    def label(self) -> str:
        return f"task '{self.name}' (level {self.outline_level})"


class TaskPlan:
    """An ordered task outline loaded from, and saved back to, a YAML file."""

    def __init__(self, tasks: Optional[list[PlanTask]] = None, path: Optional[Path] = None):
        self.tasks: list[PlanTask] = list(tasks or [])
        self.path = path
        self.refresh_summaries()

    @classmethod
    def load(cls, path: Path) -> "TaskPlan":
        path = Path(path)
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid task plan {path}: {e}") from e
        if not isinstance(data, dict):
            raise ValueError(f"Invalid task plan {path}: expected a mapping with a 'tasks' list")
        tasks = []
        for index, entry in enumerate(data.get("tasks") or [], start=1):
            if not isinstance(entry, dict):
                raise ValueError(f"Invalid task plan {path}: task {index} is not a mapping")
            record = dict(entry)
            record["channel"] = SideChannel(
                identity=_text_field(record.pop("text1", "")),
                stamp=_text_field(record.pop("text2", "")),
            )
            record.pop("summary", None)
            try:
                tasks.append(PlanTask.model_validate(record))
            except ValidationError as e:
                raise ValueError(f"Invalid task plan {path}: task {index}: {e}") from e
        return cls(tasks, path)

    def refresh_summaries(self) -> None:
        """A task is a summary when the task after it is nested deeper."""
        for task, following in zip(self.tasks, self.tasks[1:] + [None]):
            task.summary = following is not None and following.outline_level > task.outline_level

    def find(self, identity: str) -> Optional[PlanTask]:
        """Task whose identity field equals identity."""
        for task in self.tasks:
            if task.channel.identity == identity:
                return task
        return None

    def append(self, task: PlanTask) -> PlanTask:
        self.tasks.append(task)
        return task

    def to_data(self) -> dict[str, Any]:
        rows = []
        for task in self.tasks:
            row = {name: getattr(task, name) for name in _FIELD_ORDER}
            row = {k: v for k, v in row.items() if v is not None and v != ""}
            if task.channel.identity:
                row["text1"] = task.channel.identity
            if task.channel.stamp:
                row["text2"] = task.channel.stamp
            rows.append(row)
        return {"tasks": rows}

    def save(self, path: Optional[Path] = None) -> Path:
        target = Path(path or self.path)
        self.refresh_summaries()
        target.write_text(yaml.safe_dump(self.to_data(), sort_keys=False, allow_unicode=True), encoding="utf-8")
        logger.info("Wrote %d task(s) to %s", len(self.tasks), target)
        return target
