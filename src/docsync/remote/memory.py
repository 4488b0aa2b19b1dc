"""In-memory artifact client: a complete fake of the remote service for tests and previews"""

import base64
import itertools
from datetime import datetime, timedelta
from typing import Optional

from docsync.core.models import ATTACHMENT_TYPE_IDS, ArtifactKind
from docsync.errors import RemoteFault
from docsync.remote.base import (
    AttachedArtifact, ArtifactClient, RemoteDocument, RemoteRelease, RemoteRequirement,
    RemoteTask, RemoteTestCase, RemoteTestFolder, RemoteTestStep,
)


EPOCH = datetime(2024, 1, 1, 9, 0, 0)


def _segment(n: int) -> str:
    """Three-letter indent segment: 1 -> AAA, 2 -> AAB, ..."""
    n -= 1
    letters = []
    for _ in range(3):
        n, r = divmod(n, 26)
        letters.append(chr(ord("A") + r))
    return "".join(reversed(letters))


class MemoryArtifactClient(ArtifactClient):
    """Stores artifacts in dicts and hands out copies, like a real service would.

    Every write advances a deterministic clock one second, so stamps are
    predictable. `calls` records each operation name; `received_stamps`
    records the last_update_date each update arrived with.
    """

    def __init__(
        self,
        users: Optional[dict[str, str]] = None,
        projects: Optional[set[int]] = None,
        web_url: str = "http://spira.test/Spira",
        ):
        self.users = dict(users if users is not None else {"admin": "secret"})
        self.projects = set(projects if projects is not None else {1})
        self.web_url = web_url
        self.project_id = None
        self.requirements: dict[int, RemoteRequirement] = {}
        self.tasks: dict[int, RemoteTask] = {}
        self.releases: dict[int, RemoteRelease] = {}
        self.folders: dict[int, RemoteTestFolder] = {}
        self.test_cases: dict[int, RemoteTestCase] = {}
        self.documents: dict[int, RemoteDocument] = {}
        self.calls: list[str] = []
        self.received_stamps: list[tuple[str, int, Optional[datetime]]] = []
        self._ids = {name: itertools.count(1) for name in ("RQ", "TK", "RL", "TF", "TC", "TS", "DC")}
        self._ticks = itertools.count(1)
        self._authenticated = False
        self._path: list[int] = []

    def _now(self) -> datetime:
        return EPOCH + timedelta(seconds=next(self._ticks))

    def _require_session(self) -> None:
        if not self._authenticated or self.project_id is None:
            raise RemoteFault(reason="Unauthorized", detail="Session is not connected to a project", status_code=401)

    def _get(self, store: dict, artifact_id: int, label: str):
        self._require_session()
        if artifact_id not in store:
            raise RemoteFault(reason="Not Found", detail=f"{label} {artifact_id} does not exist", status_code=404)
        return store[artifact_id].model_copy(deep=True)

    def _save(self, store: dict, artifact_id: int, model, label: str) -> None:
        if artifact_id not in store:
            raise RemoteFault(reason="Not Found", detail=f"{label} {artifact_id} does not exist", status_code=404)
        self.received_stamps.append((label, artifact_id, model.last_update_date))
        stored = model.model_copy(deep=True)
        stored.last_update_date = self._now()
        store[artifact_id] = stored

    # --- session ---

    def authenticate(self, user: str, secret: str) -> bool:
        self.calls.append("authenticate")
        self._authenticated = user in self.users and self.users[user] == secret
        return self._authenticated

    def connect_to_project(self, project_id: int) -> bool:
        self.calls.append("connect_to_project")
        if not self._authenticated or project_id not in self.projects:
            return False
        self.project_id = project_id
        return True

    def web_server_url(self) -> str:
        return self.web_url

    # --- requirements ---

    def _place(self, indent_offset: int) -> str:
        depth = max(1, len(self._path) + indent_offset)
        if depth <= len(self._path):
            del self._path[depth:]
            self._path[-1] += 1
        else:
            self._path.extend([1] * (depth - len(self._path)))
        return "".join(_segment(n) for n in self._path)

    def create_requirement(self, requirement: RemoteRequirement, indent_offset: int) -> RemoteRequirement:
        self._require_session()
        self.calls.append("create_requirement")
        stored = requirement.model_copy(deep=True)
        stored.requirement_id = next(self._ids["RQ"])
        stored.indent_level = self._place(indent_offset)
        stored.last_update_date = self._now()
        self.requirements[stored.requirement_id] = stored
        return stored.model_copy(deep=True)

    def update_requirement(self, requirement: RemoteRequirement) -> None:
        self._require_session()
        self.calls.append("update_requirement")
        self._save(self.requirements, requirement.requirement_id, requirement, "Requirement")

    def fetch_requirement(self, requirement_id: int) -> RemoteRequirement:
        self.calls.append("fetch_requirement")
        return self._get(self.requirements, requirement_id, "Requirement")

    def fetch_requirements(self) -> list[RemoteRequirement]:
        self._require_session()
        self.calls.append("fetch_requirements")
        items = sorted(self.requirements.values(), key=lambda r: r.indent_level)
        for item in items:
            item.task_count = sum(1 for t in self.tasks.values() if t.requirement_id == item.requirement_id)
        return [r.model_copy(deep=True) for r in items]

    # --- tasks and releases ---

    def create_task(self, task: RemoteTask) -> RemoteTask:
        self._require_session()
        self.calls.append("create_task")
        stored = task.model_copy(deep=True)
        stored.task_id = next(self._ids["TK"])
        stored.last_update_date = self._now()
        self.tasks[stored.task_id] = stored
        return stored.model_copy(deep=True)

    def update_task(self, task: RemoteTask) -> None:
        self._require_session()
        self.calls.append("update_task")
        self._save(self.tasks, task.task_id, task, "Task")

    def fetch_task(self, task_id: int) -> RemoteTask:
        self.calls.append("fetch_task")
        return self._get(self.tasks, task_id, "Task")

    def fetch_tasks(self) -> list[RemoteTask]:
        self._require_session()
        self.calls.append("fetch_tasks")
        return [t.model_copy(deep=True) for t in self.tasks.values()]

    def create_release(self, release: RemoteRelease) -> RemoteRelease:
        self._require_session()
        self.calls.append("create_release")
        stored = release.model_copy(deep=True)
        stored.release_id = next(self._ids["RL"])
        if not stored.indent_level:
            stored.indent_level = _segment(len(self.releases) + 1)
        stored.last_update_date = self._now()
        self.releases[stored.release_id] = stored
        return stored.model_copy(deep=True)

    def fetch_releases(self) -> list[RemoteRelease]:
        self._require_session()
        self.calls.append("fetch_releases")
        return [r.model_copy(deep=True) for r in sorted(self.releases.values(), key=lambda r: r.indent_level)]

    # --- test cases ---

    def create_test_folder(self, folder: RemoteTestFolder) -> RemoteTestFolder:
        self._require_session()
        self.calls.append("create_test_folder")
        stored = folder.model_copy(deep=True)
        stored.test_case_folder_id = next(self._ids["TF"])
        stored.last_update_date = self._now()
        self.folders[stored.test_case_folder_id] = stored
        return stored.model_copy(deep=True)

    def update_test_folder(self, folder: RemoteTestFolder) -> None:
        self._require_session()
        self.calls.append("update_test_folder")
        self._save(self.folders, folder.test_case_folder_id, folder, "Test folder")

    def fetch_test_folder(self, folder_id: int) -> RemoteTestFolder:
        self.calls.append("fetch_test_folder")
        return self._get(self.folders, folder_id, "Test folder")

    def create_test_case(self, test_case: RemoteTestCase) -> RemoteTestCase:
        self._require_session()
        self.calls.append("create_test_case")
        stored = test_case.model_copy(deep=True)
        stored.test_case_id = next(self._ids["TC"])
        stored.test_steps = []
        stored.last_update_date = self._now()
        self.test_cases[stored.test_case_id] = stored
        return stored.model_copy(deep=True)

    def update_test_case(self, test_case: RemoteTestCase) -> None:
        self._require_session()
        self.calls.append("update_test_case")
        self._save(self.test_cases, test_case.test_case_id, test_case, "Test case")

    def fetch_test_case(self, test_case_id: int) -> RemoteTestCase:
        self.calls.append("fetch_test_case")
        return self._get(self.test_cases, test_case_id, "Test case")

    def add_test_step(self, test_case_id: int, step: RemoteTestStep) -> RemoteTestStep:
        self._require_session()
        self.calls.append("add_test_step")
        test_case = self.test_cases.get(test_case_id)
        if test_case is None:
            raise RemoteFault(reason="Not Found", detail=f"Test case {test_case_id} does not exist", status_code=404)
        stored = step.model_copy(deep=True)
        stored.test_step_id = next(self._ids["TS"])
        stored.test_case_id = test_case_id
        if stored.position < 1 or stored.position > len(test_case.test_steps):
            test_case.test_steps.append(stored)
        else:
            test_case.test_steps.insert(stored.position - 1, stored)
        for position, item in enumerate(test_case.test_steps, start=1):
            item.position = position
        stored.last_update_date = self._now()
        return stored.model_copy(deep=True)

    def delete_test_step(self, test_case_id: int, test_step_id: int) -> None:
        self._require_session()
        self.calls.append("delete_test_step")
        test_case = self.test_cases[test_case_id]
        test_case.test_steps = [s for s in test_case.test_steps if s.test_step_id != test_step_id]

    # --- attachments ---

    def add_attachment(
        self, kind: ArtifactKind, artifact_id: int, data: bytes, filename: str, description: str = "",
        ) -> Optional[int]:
        self._require_session()
        self.calls.append("add_attachment")
        doc = RemoteDocument(
            attachment_id=next(self._ids["DC"]),
            filename_or_url=filename,
            description=description,
            binary_data=base64.b64encode(data).decode("ascii"),
            attached_artifacts=[AttachedArtifact(artifact_id=artifact_id, artifact_type_id=ATTACHMENT_TYPE_IDS[kind])],
        )
        self.documents[doc.attachment_id] = doc
        return doc.attachment_id

    def resolve_artifact_url(self, navigation_hint: int, project_id: int, attachment_id: int) -> str:
        self.calls.append("resolve_artifact_url")
        return f"~/{project_id}/Attachment/{attachment_id}.aspx"
