"""Remote artifact service: wire models and the abstract client the sync drivers use"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_pascal

from docsync.core.models import ArtifactKind


# Navigation hint that makes the service return an attachment's download URL.
ATTACHMENT_NAVIGATION_HINT = -14


class RemoteModel(BaseModel):
    """Payloads travel with PascalCase keys; Python code uses field names."""
    model_config = ConfigDict(alias_generator=to_pascal, populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class RemoteRequirement(RemoteModel):
    requirement_id:      Optional[int] = None
    name:                str = ""
    description:         str = ""
    status_id:           int = 1            # Requested
    requirement_type_id: Optional[int] = 2  # Feature
    indent_level:        str = ""
    release_id:          Optional[int] = None
    estimate_points:     Optional[float] = None
    task_count:          int = 0
    last_update_date:    Optional[datetime] = None


class RemoteTask(RemoteModel):
    task_id:          Optional[int] = None
    name:             str = ""
    description:      str = ""
    requirement_id:   Optional[int] = None
    release_id:       Optional[int] = None
    task_status_id:   int = 1               # Not Started
    task_type_id:     Optional[int] = None
    start_date:       Optional[datetime] = None
    end_date:         Optional[datetime] = None
    estimated_effort: Optional[int] = None  # minutes
    actual_effort:    Optional[int] = None
    remaining_effort: Optional[int] = None
    last_update_date: Optional[datetime] = None


class RemoteRelease(RemoteModel):
    release_id:       Optional[int] = None
    name:             str = ""
    description:      str = ""
    version_number:   str = ""
    indent_level:     str = ""
    start_date:       Optional[datetime] = None
    end_date:         Optional[datetime] = None
    last_update_date: Optional[datetime] = None


class RemoteTestFolder(RemoteModel):
    test_case_folder_id:        Optional[int] = None
    name:                       str = ""
    description:                str = ""
    parent_test_case_folder_id: Optional[int] = None
    last_update_date:           Optional[datetime] = None


class RemoteTestStep(RemoteModel):
    test_step_id:     Optional[int] = None
    test_case_id:     Optional[int] = None
    position:         int = -1              # -1: append
    description:      str = ""
    expected_result:  str = ""
    sample_data:      str = ""
    last_update_date: Optional[datetime] = None


class RemoteTestCase(RemoteModel):
    test_case_id:        Optional[int] = None
    name:                str = ""
    description:         str = ""
    test_case_status_id: int = 1            # Draft
    test_case_type_id:   Optional[int] = 3  # Functional
    test_case_folder_id: Optional[int] = None
    test_steps:          list[RemoteTestStep] = Field(default_factory=list)
    last_update_date:    Optional[datetime] = None


class AttachedArtifact(RemoteModel):
    artifact_id:      int
    artifact_type_id: int


class RemoteDocument(RemoteModel):
    attachment_id:      Optional[int] = None
    filename_or_url:    str = ""
    description:        str = ""
    binary_data:        Optional[str] = None   # base64
    attached_artifacts: list[AttachedArtifact] = Field(default_factory=list)


class ArtifactClient(ABC):
    """Request/response client for one project on the remote artifact service."""

    project_id: Optional[int] = None

    def __enter__(self):
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def close(self) -> None:
        """Release transport resources."""

    # --- session ---

    @abstractmethod
    def authenticate(self, user: str, secret: str) -> bool:
        raise NotImplementedError

    @abstractmethod
    def connect_to_project(self, project_id: int) -> bool:
        raise NotImplementedError

    @abstractmethod
    def web_server_url(self) -> str:
        """Base URL substituted for '~' in resolved attachment URLs."""
        raise NotImplementedError

    # --- requirements ---

    @abstractmethod
    def create_requirement(self, requirement: RemoteRequirement, indent_offset: int) -> RemoteRequirement:
        """Insert after the previously created requirement, indent_offset levels deeper (or shallower)."""
        raise NotImplementedError

    @abstractmethod
    def update_requirement(self, requirement: RemoteRequirement) -> None:
        raise NotImplementedError

    @abstractmethod
    def fetch_requirement(self, requirement_id: int) -> RemoteRequirement:
        raise NotImplementedError

    @abstractmethod
    def fetch_requirements(self) -> list[RemoteRequirement]:
        raise NotImplementedError

    # --- tasks and releases ---

    @abstractmethod
    def create_task(self, task: RemoteTask) -> RemoteTask:
        raise NotImplementedError

    @abstractmethod
    def update_task(self, task: RemoteTask) -> None:
        raise NotImplementedError

    @abstractmethod
    def fetch_task(self, task_id: int) -> RemoteTask:
        raise NotImplementedError

    @abstractmethod
    def fetch_tasks(self) -> list[RemoteTask]:
        raise NotImplementedError

    @abstractmethod
    def create_release(self, release: RemoteRelease) -> RemoteRelease:
        raise NotImplementedError

    @abstractmethod
    def fetch_releases(self) -> list[RemoteRelease]:
        raise NotImplementedError

    # --- test cases ---

    @abstractmethod
    def create_test_folder(self, folder: RemoteTestFolder) -> RemoteTestFolder:
        raise NotImplementedError

    @abstractmethod
    def update_test_folder(self, folder: RemoteTestFolder) -> None:
        raise NotImplementedError

    @abstractmethod
    def fetch_test_folder(self, folder_id: int) -> RemoteTestFolder:
        raise NotImplementedError

    @abstractmethod
    def create_test_case(self, test_case: RemoteTestCase) -> RemoteTestCase:
        raise NotImplementedError

    @abstractmethod
    def update_test_case(self, test_case: RemoteTestCase) -> None:
        """Persist the test case and the fields of the steps it carries."""
        raise NotImplementedError

    @abstractmethod
    def fetch_test_case(self, test_case_id: int) -> RemoteTestCase:
        raise NotImplementedError

    @abstractmethod
    def add_test_step(self, test_case_id: int, step: RemoteTestStep) -> RemoteTestStep:
        raise NotImplementedError

    @abstractmethod
    def delete_test_step(self, test_case_id: int, test_step_id: int) -> None:
        raise NotImplementedError

    # --- attachments ---

    @abstractmethod
    def add_attachment(
        self, kind: ArtifactKind, artifact_id: int, data: bytes, filename: str, description: str = "",
        ) -> Optional[int]:
        """Upload data attached to the artifact; returns the attachment id."""
        raise NotImplementedError

    @abstractmethod
    def resolve_artifact_url(self, navigation_hint: int, project_id: int, attachment_id: int) -> str:
        """URL for an artifact; may start with '~' for the web server root."""
        raise NotImplementedError
