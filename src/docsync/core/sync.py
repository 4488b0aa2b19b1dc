"""Sync driver for documents: pushes requirements, test folders and test cases"""

import logging
import threading
from contextlib import closing
from typing import Callable, Iterable, Optional

from docsync.config import StyleMapping
from docsync.core.hierarchy import HierarchyBuilder, count_boundaries
from docsync.core.identity import IdentityManager, IdentityToken
from docsync.core.markup import rewrite_placeholder
from docsync.core.models import (
    ArtifactKind, ArtifactType, AttachmentRecord, FormattingRegion, PendingArtifact, Role, SyncOutcome,
)
from docsync.errors import SyncAborted, describe_fault
from docsync.remote.base import (
    ATTACHMENT_NAVIGATION_HINT, ArtifactClient, RemoteRequirement, RemoteTestCase, RemoteTestFolder, RemoteTestStep,
)


logger = logging.getLogger(__name__)

ProgressSink = Callable[[int, int], None]


def apply_urls(text: str, urls: dict[str, str]) -> str:
    for placeholder, url in urls.items():
        text = rewrite_placeholder(text, placeholder, url)
    return text


class BaseDriver:
    """Progress, cancellation and per-item failure isolation shared by all drivers."""

    operation = "Export"

    def __init__(
        self,
        client: ArtifactClient,
        identity: Optional[IdentityManager] = None,
        report: Optional[ProgressSink] = None,
        cancel: Optional[threading.Event] = None,
        ):
        self.client = client
        self.identity = identity or IdentityManager()
        self.report = report
        self.cancel = cancel
        self.outcome = SyncOutcome()
        self.current = 0
        self.total = 0

    def check_cancel(self) -> None:
        if self.cancel is not None and self.cancel.is_set():
            raise SyncAborted(f"{self.operation} aborted by user.", outcome=self.outcome)

    def notify(self) -> None:
        if self.report is not None:
            self.report(self.current, self.total)

    def advance(self) -> None:
        self.current += 1
        self.notify()

    def attempt(self, item: str, action: Callable, *args) -> bool:
        """Run one item; failures are logged and counted, never raised."""
        try:
            action(*args)
        except SyncAborted:
            raise
        except Exception as e:
            logger.error("%s failed: %s", item, describe_fault(e))
            self.outcome.record_error(item, e)
            return False
        self.outcome.items_processed += 1
        return True

    def restamp(self, channel, kind: ArtifactKind, artifact_id: int, last_modified) -> None:
        if channel is not None:
            self.identity.stamp(channel, IdentityToken(kind, artifact_id, last_modified))

    def upload(self, records: Iterable[AttachmentRecord], kind: ArtifactKind, artifact_id: int) -> dict[str, str]:
        """Attach records to the artifact; returns placeholder -> real URL for each upload that got an id."""
        urls: dict[str, str] = {}
        base = self.client.web_server_url().rstrip("/")
        for record in records:
            attachment_id = self.client.add_attachment(kind, artifact_id, record.data, record.placeholder, record.alt_text)
            if not attachment_id:
                logger.warning("Attachment %s of %s%s was not stored", record.placeholder, kind.value, artifact_id)
                continue
            url = self.client.resolve_artifact_url(ATTACHMENT_NAVIGATION_HINT, self.client.project_id, attachment_id)
            urls[record.placeholder] = url.replace("~", base)
        return urls


class DocumentSyncDriver(BaseDriver):
    """Creates or updates one remote artifact per boundary region of a document."""

    def __init__(
        self,
        client: ArtifactClient,
        styles: StyleMapping,
        artifact_type: ArtifactType = ArtifactType.requirements,
        identity: Optional[IdentityManager] = None,
        report: Optional[ProgressSink] = None,
        cancel: Optional[threading.Event] = None,
        ):
        super().__init__(client, identity, report, cancel)
        self.styles = styles
        self.artifact_type = artifact_type
        self._folder_id: Optional[int] = None

    def run(self, regions: Iterable[FormattingRegion]) -> SyncOutcome:
        regions = list(regions)
        self.total = count_boundaries(regions, self.styles, self.artifact_type)
        self.notify()
        builder = HierarchyBuilder(self.styles, self.artifact_type, self.outcome, self.check_cancel)
        with closing(builder.walk(regions)) as artifacts:
            for artifact in artifacts:
                self.check_cancel()
                self.attempt(artifact.describe(), self.sync_artifact, artifact)
                self.advance()
        if self.current < self.total:
            self.current = self.total
            self.notify()
        return self.outcome

    def sync_artifact(self, artifact: PendingArtifact) -> None:
        if artifact.role is Role.requirement:
            self._sync_requirement(artifact)
        elif artifact.role is Role.test_folder:
            self._sync_test_folder(artifact)
        elif artifact.role is Role.test_case:
            self._sync_test_case(artifact)
        else:
            raise ValueError(f"Cannot sync a {artifact.role.value}")

    # --- requirements ---

    def _sync_requirement(self, artifact: PendingArtifact) -> None:
        token = self.identity.resolve(artifact.side_channel, ArtifactKind.requirement)
        if token is None:
            created = self.client.create_requirement(
                RemoteRequirement(name=artifact.name, description=artifact.markup), artifact.indent_offset,
            )
            requirement_id = created.requirement_id
            logger.info("Created requirement RQ%s '%s'", requirement_id, artifact.name)
        else:
            requirement_id = token.artifact_id
            remote = self.client.fetch_requirement(requirement_id)
            self.identity.propagate(artifact.side_channel, remote)
            remote.name = artifact.name
            remote.description = artifact.markup
            self.client.update_requirement(remote)
            logger.info("Updated requirement RQ%s '%s'", requirement_id, artifact.name)

        urls = self.upload(artifact.attachments, ArtifactKind.requirement, requirement_id)
        if urls:
            remote = self.client.fetch_requirement(requirement_id)
            remote.description = apply_urls(artifact.markup, urls)
            self.client.update_requirement(remote)

        refreshed = self.client.fetch_requirement(requirement_id)
        self.restamp(artifact.side_channel, ArtifactKind.requirement, requirement_id, refreshed.last_update_date)

    # --- test cases ---

    def _sync_test_folder(self, artifact: PendingArtifact) -> None:
        token = self.identity.resolve(artifact.side_channel, ArtifactKind.test_folder)
        if token is None:
            created = self.client.create_test_folder(RemoteTestFolder(name=artifact.name, description=artifact.markup))
            folder_id = created.test_case_folder_id
            logger.info("Created test folder TF%s '%s'", folder_id, artifact.name)
        else:
            folder_id = token.artifact_id
            remote = self.client.fetch_test_folder(folder_id)
            self.identity.propagate(artifact.side_channel, remote)
            remote.name = artifact.name
            remote.description = artifact.markup
            self.client.update_test_folder(remote)
        if artifact.attachments:
            logger.warning("Test folders cannot hold attachments; dropping %d image(s) of '%s'",
                           len(artifact.attachments), artifact.name)
        self._folder_id = folder_id

        refreshed = self.client.fetch_test_folder(folder_id)
        self.restamp(artifact.side_channel, ArtifactKind.test_folder, folder_id, refreshed.last_update_date)

    def _sync_test_case(self, artifact: PendingArtifact) -> None:
        token = self.identity.resolve(artifact.side_channel, ArtifactKind.test_case)
        step_ids: list[int] = []
        if token is None:
            created = self.client.create_test_case(RemoteTestCase(
                name=artifact.name,
                description=artifact.markup,
                test_case_folder_id=self._folder_id,
            ))
            test_case_id = created.test_case_id
            logger.info("Created test case TC%s '%s'", test_case_id, artifact.name)
        else:
            test_case_id = token.artifact_id
            remote = self.client.fetch_test_case(test_case_id)
            self.identity.propagate(artifact.side_channel, remote)
            remote.name = artifact.name
            remote.description = artifact.markup
            for step, record in zip(remote.test_steps, artifact.steps):
                step.description = record.description
                step.expected_result = record.expected_result
                step.sample_data = record.sample_data
                step_ids.append(step.test_step_id)
            self.client.update_test_case(remote)
            for stale in remote.test_steps[len(artifact.steps):]:
                self.client.delete_test_step(test_case_id, stale.test_step_id)

        for record in artifact.steps[len(step_ids):]:
            added = self.client.add_test_step(test_case_id, RemoteTestStep(
                description=record.description,
                expected_result=record.expected_result,
                sample_data=record.sample_data,
            ))
            step_ids.append(added.test_step_id)

        own = [a for a in artifact.attachments if not a.owned_by_step]
        urls = self.upload(own, ArtifactKind.test_case, test_case_id)
        step_urls: dict[int, dict[str, str]] = {}
        for index, step_id in enumerate(step_ids):
            records = [a for a in artifact.attachments if a.step_index == index]
            if records:
                step_urls[step_id] = self.upload(records, ArtifactKind.test_step, step_id)

        if urls or any(step_urls.values()):
            remote = self.client.fetch_test_case(test_case_id)
            remote.description = apply_urls(artifact.markup, urls)
            for step in remote.test_steps:
                mapping = step_urls.get(step.test_step_id)
                if mapping:
                    step.description = apply_urls(step.description, mapping)
                    step.expected_result = apply_urls(step.expected_result, mapping)
                    step.sample_data = apply_urls(step.sample_data, mapping)
            self.client.update_test_case(remote)

        refreshed = self.client.fetch_test_case(test_case_id)
        self.restamp(artifact.side_channel, ArtifactKind.test_case, test_case_id, refreshed.last_update_date)
