"""HTTP binding of the artifact client: JSON REST calls over httpx"""

import base64
import logging
from typing import Any, Optional, TypeVar

import httpx

from docsync.core.models import ATTACHMENT_TYPE_IDS, ArtifactKind
from docsync.errors import RemoteFault
from docsync.remote.base import (
    AttachedArtifact, ArtifactClient, RemoteDocument, RemoteModel, RemoteRelease, RemoteRequirement,
    RemoteTask, RemoteTestCase, RemoteTestFolder, RemoteTestStep,
)


logger = logging.getLogger(__name__)

SERVICE_PATH = "Services/v5_0/RestService.svc/"
PAGE_SIZE = 500

M = TypeVar("M", bound=RemoteModel)


def fault_from_response(response: httpx.Response) -> RemoteFault:
    """RemoteFault carrying the service's own message when the body has one."""
    detail: Optional[str] = None
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        detail = body.get("ExceptionMessage") or body.get("Detail") or body.get("Message")
    elif isinstance(body, str):
        detail = body
    elif response.text.strip():
        detail = response.text.strip()
    reason = response.reason_phrase or f"HTTP {response.status_code}"
    return RemoteFault(reason=reason, detail=detail, status_code=response.status_code)


class HttpArtifactClient(ArtifactClient):
    """Artifact client for {server_url}/Services/v5_0/RestService.svc.

    Credentials are sent as `username` / `api-key` query parameters on every
    call once authenticate() has accepted them.
    """

    def __init__(self, server_url: str, timeout: float = 30.0, transport: Optional[httpx.BaseTransport] = None):
        self.server_url = server_url.rstrip("/")
        self.project_id = None
        self._credentials: dict[str, str] = {}
        self._http = httpx.Client(
            base_url=f"{self.server_url}/{SERVICE_PATH}",
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    def close(self) -> None:
        self._http.close()

    def _request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: Optional[dict[str, Any]] = None,
        allow: tuple[int, ...] = (),
        ) -> httpx.Response:
        """Send one call; non-2xx responses outside `allow` raise RemoteFault."""
        query = {**self._credentials, **(params or {})}
        try:
            response = self._http.request(method, path, json=json, params=query)
        except httpx.HTTPError as e:
            raise RemoteFault(reason=f"{type(e).__name__}: {e}") from e
        logger.debug("%s %s -> %d", method, path, response.status_code)
        if response.status_code in allow:
            return response
        if response.is_error:
            raise fault_from_response(response)
        return response

    def _project(self, path: str) -> str:
        if self.project_id is None:
            raise RemoteFault(reason="Not connected", detail="No project has been connected")
        return f"projects/{self.project_id}/{path}"

    def _one(self, model: type[M], method: str, path: str, body: Optional[RemoteModel] = None) -> M:
        response = self._request(method, self._project(path), json=body.to_wire() if body else None)
        return model.model_validate(response.json())

    def _paged(self, model: type[M], method: str, path: str, body: Any = None) -> list[M]:
        items: list[M] = []
        start = 1
        while True:
            params = {"starting_row": start, "number_of_rows": PAGE_SIZE}
            page = self._request(method, self._project(path), json=body, params=params).json() or []
            items.extend(model.model_validate(item) for item in page)
            if len(page) < PAGE_SIZE:
                return items
            start += PAGE_SIZE

    # --- session ---

    def authenticate(self, user: str, secret: str) -> bool:
        self._credentials = {"username": user, "api-key": secret}
        response = self._request("GET", "projects", allow=(401, 403))
        if response.status_code in (401, 403):
            self._credentials = {}
            return False
        return True

    def connect_to_project(self, project_id: int) -> bool:
        response = self._request("GET", f"projects/{project_id}", allow=(401, 403, 404))
        if not response.is_success:
            return False
        self.project_id = project_id
        return True

    def web_server_url(self) -> str:
        return self.server_url

    # --- requirements ---

    def create_requirement(self, requirement: RemoteRequirement, indent_offset: int) -> RemoteRequirement:
        return self._one(RemoteRequirement, "POST", f"requirements/indent/{indent_offset}", requirement)

    def update_requirement(self, requirement: RemoteRequirement) -> None:
        self._request("PUT", self._project("requirements"), json=requirement.to_wire())

    def fetch_requirement(self, requirement_id: int) -> RemoteRequirement:
        return self._one(RemoteRequirement, "GET", f"requirements/{requirement_id}")

    def fetch_requirements(self) -> list[RemoteRequirement]:
        return self._paged(RemoteRequirement, "GET", "requirements")

    # --- tasks and releases ---

    def create_task(self, task: RemoteTask) -> RemoteTask:
        return self._one(RemoteTask, "POST", "tasks", task)

    def update_task(self, task: RemoteTask) -> None:
        self._request("PUT", self._project(f"tasks/{task.task_id}"), json=task.to_wire())

    def fetch_task(self, task_id: int) -> RemoteTask:
        return self._one(RemoteTask, "GET", f"tasks/{task_id}")

    def fetch_tasks(self) -> list[RemoteTask]:
        return self._paged(RemoteTask, "POST", "tasks/search", body=[])

    def create_release(self, release: RemoteRelease) -> RemoteRelease:
        return self._one(RemoteRelease, "POST", "releases", release)

    def fetch_releases(self) -> list[RemoteRelease]:
        response = self._request("GET", self._project("releases"))
        return [RemoteRelease.model_validate(item) for item in response.json() or []]

    # --- test cases ---

    def create_test_folder(self, folder: RemoteTestFolder) -> RemoteTestFolder:
        return self._one(RemoteTestFolder, "POST", "test-folders", folder)

    def update_test_folder(self, folder: RemoteTestFolder) -> None:
        self._request("PUT", self._project(f"test-folders/{folder.test_case_folder_id}"), json=folder.to_wire())

    def fetch_test_folder(self, folder_id: int) -> RemoteTestFolder:
        return self._one(RemoteTestFolder, "GET", f"test-folders/{folder_id}")

    def create_test_case(self, test_case: RemoteTestCase) -> RemoteTestCase:
        return self._one(RemoteTestCase, "POST", "test-cases", test_case)

    def update_test_case(self, test_case: RemoteTestCase) -> None:
        self._request("PUT", self._project("test-cases"), json=test_case.to_wire())

    def fetch_test_case(self, test_case_id: int) -> RemoteTestCase:
        return self._one(RemoteTestCase, "GET", f"test-cases/{test_case_id}")

    def add_test_step(self, test_case_id: int, step: RemoteTestStep) -> RemoteTestStep:
        return self._one(RemoteTestStep, "POST", f"test-cases/{test_case_id}/test-steps", step)

    def delete_test_step(self, test_case_id: int, test_step_id: int) -> None:
        self._request("DELETE", self._project(f"test-cases/{test_case_id}/test-steps/{test_step_id}"))

    # --- attachments ---

    def add_attachment(
        self, kind: ArtifactKind, artifact_id: int, data: bytes, filename: str, description: str = "",
        ) -> Optional[int]:
        document = RemoteDocument(
            filename_or_url=filename,
            description=description,
            binary_data=base64.b64encode(data).decode("ascii"),
            attached_artifacts=[AttachedArtifact(artifact_id=artifact_id, artifact_type_id=ATTACHMENT_TYPE_IDS[kind])],
        )
        return self._one(RemoteDocument, "POST", "documents/file", document).attachment_id

    def resolve_artifact_url(self, navigation_hint: int, project_id: int, attachment_id: int) -> str:
        path = f"projects/{project_id}/artifacts/{navigation_hint}/{attachment_id}/url"
        return str(self._request("GET", path).json())
