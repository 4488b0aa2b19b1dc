"""Task outline sync: plan tasks to requirements/tasks (export) and back (import)"""

import logging
from datetime import datetime
from typing import Optional

from docsync.core.classify import classify_task
from docsync.core.identity import IdentityToken
from docsync.core.models import ArtifactKind, Role, SyncOutcome
from docsync.core.sync import BaseDriver
from docsync.remote.base import RemoteRelease, RemoteRequirement, RemoteTask
from docsync.sources.plan import PlanTask, TaskPlan


logger = logging.getLogger(__name__)

REQUIREMENT_TYPE_FEATURE = 2
TASK_TYPE_PLANNED = 5
HOURS_PER_POINT = 8
CONSTRAINT_FINISH_NO_LATER_THAN = "FNLT"


def requirement_status(percent_complete: int) -> int:
    """Planned (2), In Progress (3) or Completed (4)."""
    if percent_complete <= 0:
        return 2
    return 4 if percent_complete >= 100 else 3


def task_status(percent_complete: int) -> int:
    """Not Started (1), In Progress (2) or Completed (3)."""
    if percent_complete <= 0:
        return 1
    return 3 if percent_complete >= 100 else 2


def to_minutes(hours: Optional[float]) -> Optional[int]:
    return None if hours is None else int(round(hours * 60))


def to_hours(minutes: Optional[int]) -> Optional[float]:
    return None if minutes is None else minutes / 60


def outline_level(indent_level: str) -> int:
    """Depth of a remote indent path made of three-character segments."""
    return max(1, len(indent_level or "") // 3)


def _start_key(task: RemoteTask) -> tuple[bool, float]:
    return (task.start_date is None, task.start_date.timestamp() if task.start_date else 0.0)


class PlanExportDriver(BaseDriver):
    """Pushes a task outline: summaries, milestones and top-level rows become requirements."""

    def run(self, plan: TaskPlan) -> SyncOutcome:
        plan.refresh_summaries()
        self.total = len(plan.tasks)
        self.notify()
        self._last_level = 1
        self._last_requirement_id: Optional[int] = None

        for task in plan.tasks:
            self.check_cancel()
            role = classify_task(task, self.identity)
            if role is Role.ignored:
                logger.info("Excluded from sync: %s", task.label())
            elif role is Role.release:
                logger.info("Skipping %s: owned by release %s", task.label(), task.channel.identity)
            elif role is Role.requirement:
                self.attempt(task.label(), self._export_requirement, task)
            else:
                self.attempt(task.label(), self._export_task, task)
            self.advance()
        return self.outcome

    def _export_requirement(self, task: PlanTask) -> None:
        token = self.identity.resolve(task.channel, ArtifactKind.requirement)
        if token is not None:
            remote = self.client.fetch_requirement(token.artifact_id)
            self.identity.propagate(task.channel, remote)
        else:
            remote = RemoteRequirement()
        remote.name = task.name
        remote.description = task.notes
        remote.status_id = requirement_status(task.percent_complete)
        remote.requirement_type_id = REQUIREMENT_TYPE_FEATURE
        remote.estimate_points = task.work / HOURS_PER_POINT if task.work else None

        if token is not None:
            requirement_id = token.artifact_id
            self.client.update_requirement(remote)
        else:
            offset = task.outline_level - self._last_level
            requirement_id = self.client.create_requirement(remote, offset).requirement_id
            logger.info("Created requirement RQ%s from %s", requirement_id, task.label())
        self._last_level = task.outline_level
        self._last_requirement_id = requirement_id

        refreshed = self.client.fetch_requirement(requirement_id)
        self.restamp(task.channel, ArtifactKind.requirement, requirement_id, refreshed.last_update_date)

    def _export_task(self, task: PlanTask) -> None:
        token = self.identity.resolve(task.channel, ArtifactKind.task)
        if token is not None:
            remote = self.client.fetch_task(token.artifact_id)
            self.identity.propagate(task.channel, remote)
        else:
            remote = RemoteTask()
        remote.name = task.name
        remote.description = task.notes
        remote.requirement_id = self._last_requirement_id
        remote.start_date = task.start
        remote.end_date = task.finish
        remote.task_status_id = task_status(task.percent_complete)
        remote.task_type_id = TASK_TYPE_PLANNED
        remote.estimated_effort = to_minutes(task.baseline_work if task.baseline_work else task.work)
        remote.actual_effort = to_minutes(task.actual_work)
        remote.remaining_effort = to_minutes(task.remaining_work)

        if token is not None:
            task_id = token.artifact_id
            self.client.update_task(remote)
        else:
            task_id = self.client.create_task(remote).task_id
            logger.info("Created task TK%s from %s", task_id, task.label())

        refreshed = self.client.fetch_task(task_id)
        self.restamp(task.channel, ArtifactKind.task, task_id, refreshed.last_update_date)


class PlanImportDriver(BaseDriver):
    """Pulls releases, requirements and their tasks into a task outline."""

    operation = "Import"

    def run(self, plan: TaskPlan) -> SyncOutcome:
        releases = self.client.fetch_releases()
        requirements = self.client.fetch_requirements()
        requirement_ids = {r.requirement_id for r in requirements}
        tasks = []
        for task in sorted(self.client.fetch_tasks(), key=_start_key):
            if task.requirement_id in requirement_ids:
                tasks.append(task)
            else:
                logger.info("Skipping task TK%s '%s': not under a requirement", task.task_id, task.name)
        self.total = len(releases) + len(requirements) + len(tasks)
        self.notify()
        release_ends = {r.release_id: r.end_date for r in releases}

        for release in releases:
            self.check_cancel()
            self.attempt(f"release RL{release.release_id} '{release.name}'", self._import_release, plan, release)
            self.advance()

        for requirement in requirements:
            self.check_cancel()
            self.attempt(f"requirement RQ{requirement.requirement_id} '{requirement.name}'",
                         self._import_requirement, plan, requirement, release_ends)
            self.advance()
            level = outline_level(requirement.indent_level) + 1
            for task in tasks:
                if task.requirement_id == requirement.requirement_id:
                    self._import_one_task(plan, task, level)

        plan.refresh_summaries()
        return self.outcome

    def _entry(self, plan: TaskPlan, kind: ArtifactKind, artifact_id: int, name: str) -> PlanTask:
        existing = plan.find(self.identity.encode(kind, artifact_id))
        return existing if existing is not None else plan.append(PlanTask(name=name))

    def _import_one_task(self, plan: TaskPlan, task: RemoteTask, level: int) -> None:
        self.check_cancel()
        self.attempt(f"task TK{task.task_id} '{task.name}'", self._import_task, plan, task, level)
        self.advance()

    def _import_release(self, plan: TaskPlan, release: RemoteRelease) -> None:
        entry = self._entry(plan, ArtifactKind.release, release.release_id, release.name)
        entry.name = release.name
        entry.notes = release.description
        entry.outline_level = outline_level(release.indent_level)
        entry.start = release.start_date
        entry.finish = release.end_date
        self.identity.stamp(entry.channel, IdentityToken(ArtifactKind.release, release.release_id, release.last_update_date))

    def _import_requirement(
        self, plan: TaskPlan, requirement: RemoteRequirement, release_ends: dict[int, Optional[datetime]],
        ) -> None:
        entry = self._entry(plan, ArtifactKind.requirement, requirement.requirement_id, requirement.name)
        entry.name = requirement.name
        entry.notes = requirement.description
        entry.outline_level = outline_level(requirement.indent_level)
        if requirement.release_id in release_ends:
            entry.constraint_date = release_ends[requirement.release_id]
            entry.constraint_type = CONSTRAINT_FINISH_NO_LATER_THAN
        entry.milestone = requirement.task_count == 0
        self.identity.stamp(entry.channel, IdentityToken(
            ArtifactKind.requirement, requirement.requirement_id, requirement.last_update_date,
        ))

    def _import_task(self, plan: TaskPlan, task: RemoteTask, level: int) -> None:
        entry = self._entry(plan, ArtifactKind.task, task.task_id, task.name)
        entry.name = task.name
        entry.notes = task.description
        entry.outline_level = level
        entry.start = task.start_date
        entry.finish = task.end_date
        entry.work = to_hours(task.estimated_effort)
        entry.baseline_work = to_hours(task.estimated_effort)
        entry.actual_work = to_hours(task.actual_effort)
        entry.remaining_work = to_hours(task.remaining_effort)
        self.identity.stamp(entry.channel, IdentityToken(ArtifactKind.task, task.task_id, task.last_update_date))
