"""Failure taxonomy: setup errors, remote faults, cancellation and aggregate run failures"""

from typing import Optional


INVALID_URL = "The Server URL entered is not a valid URL"
AUTH_FAILED = "Unable to authenticate with Server. Please check the username and password and try again."
PROJECT_FAILED = "Unable to connect to project PR{project_id}. Please check that the user is a member of the project."
NO_SELECTION = "No text in the document has been selected for export."


class DocSyncError(RuntimeError):
    """Base class for every failure raised by docsync."""


class SetupError(DocSyncError):
    """Fatal problem found before any item was processed (URL, login, project, empty source)."""


class RemoteFault(DocSyncError):
    """Structured fault returned by the remote artifact service.

    `detail` carries the service's own explanation when it sent one; `reason`
    is the generic status text. describe_fault() prefers the detail.
    """

    def __init__(self, reason: str = "", detail: Optional[str] = None, status_code: Optional[int] = None):
        self.reason = reason
        self.detail = detail
        self.status_code = status_code
        super().__init__(detail or reason or "Remote service fault")


class SyncAborted(DocSyncError):
    """The user cancelled the run; already committed items stay committed."""

    def __init__(self, message: str, outcome=None):
        self.outcome = outcome
        super().__init__(message)


class SyncFailed(DocSyncError):
    """A run finished with one or more per-item errors."""

    def __init__(self, outcome, operation: str = "Export"):
        self.outcome = outcome
        self.operation = operation
        super().__init__(
            f"{operation} failed with {outcome.error_count} errors. "
            f"Please check the {operation.lower()} error log to view the details."
        )


def describe_fault(exc: BaseException) -> str:
    """Most specific human-readable reason for exc: fault detail, then reason, then str()."""
    if isinstance(exc, RemoteFault):
        if exc.detail:
            return exc.detail
        if exc.reason:
            return exc.reason
    return str(exc) or type(exc).__name__
