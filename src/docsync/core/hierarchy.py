"""Hierarchy builder: folds classified regions into a sequence of pending artifacts"""

import logging
from typing import Callable, Iterable, Iterator, Optional

from docsync.config import StyleMapping
from docsync.core.classify import boundary_level, boundary_role, classify
from docsync.core.markup import MarkupBuilder, xml_safe
from docsync.core.models import (
    BOUNDARY_ROLES, ArtifactType, FormattingRegion, PendingArtifact, Role, SyncOutcome, TableRegion,
)
from docsync.core.tables import append_table, extract_steps
from docsync.errors import SyncAborted, describe_fault


logger = logging.getLogger(__name__)


def count_boundaries(regions: Iterable[FormattingRegion], styles: StyleMapping, artifact_type: ArtifactType) -> int:
    """Upfront progress total: regions that will open an artifact."""
    return sum(1 for r in regions if classify(r, styles, artifact_type) in BOUNDARY_ROLES)


class HierarchyBuilder:
    """Walks regions in document order and yields finished PendingArtifacts.

    The builder is idle until the first boundary region. From then on every
    content region is folded into the current artifact until the next
    boundary (or the end of input) closes it. A region that fails to
    transcode is recorded on `outcome` and skipped; the artifact it belonged
    to is still produced.
    """

    def __init__(
        self,
        styles: StyleMapping,
        artifact_type: ArtifactType = ArtifactType.requirements,
        outcome: Optional[SyncOutcome] = None,
        check_cancel: Optional[Callable[[], None]] = None,
        ):
        self.styles = styles
        self.artifact_type = artifact_type
        self.outcome = outcome if outcome is not None else SyncOutcome()
        self._check_cancel = check_cancel
        self._markup = MarkupBuilder()
        self._current: Optional[PendingArtifact] = None
        self._indent = 0
        self._visited: list[TableRegion] = []

    def walk(self, regions: Iterable[FormattingRegion]) -> Iterator[PendingArtifact]:
        try:
            for region in regions:
                if self._check_cancel is not None:
                    self._check_cancel()
                try:
                    finished = self._feed(region)
                except SyncAborted:
                    raise
                except Exception as e:
                    item = region.source or "region"
                    logger.warning("Skipping %s: %s", item, describe_fault(e))
                    self.outcome.record_error(item, e)
                    continue
                if finished is not None:
                    yield finished
            last = self._close()
            if last is not None:
                yield last
        finally:
            self._clear_visits()

    def _feed(self, region: FormattingRegion) -> Optional[PendingArtifact]:
        """Consume one region; returns the artifact it closed, if any."""
        role = classify(region, self.styles, self.artifact_type)
        if role is Role.ignored:
            if boundary_role(region, self.styles, self.artifact_type) is None:
                return None
            logger.info("Excluded from sync: '%s' (%s)", xml_safe(region.text).strip(), region.source)
            return self._close()

        if role in BOUNDARY_ROLES:
            return self._start(region, role)

        if self._current is None:
            logger.debug("Dropping content before the first boundary (%s)", region.source)
            return None
        if role is Role.table:
            self._add_table(region.table)
        else:
            self._markup.add_region(region)
        return None

    def _start(self, region: FormattingRegion, role: Role) -> Optional[PendingArtifact]:
        finished = self._close()
        level = boundary_level(region, role, self.styles)
        offset, self._indent = level - self._indent, level
        self._current = PendingArtifact(
            role=role,
            name=xml_safe(region.text).strip(),
            indent_offset=offset,
            side_channel=region.side_channel,
            source=region.source,
        )
        return finished

    def _close(self) -> Optional[PendingArtifact]:
        current, self._current = self._current, None
        if current is None:
            return None
        current.markup = self._markup.markup
        current.attachments = list(self._markup.attachments)
        self._markup.reset()
        if not current.name:
            logger.warning("Skipping %s with an empty name (%s)", current.role.value, current.source)
            return None
        return current

    def _add_table(self, table: TableRegion) -> None:
        if table.visit_id is not None:
            return
        self._visited.append(table)
        table.visit_id = f"added_{len(self._visited)}"

        if self.artifact_type is ArtifactType.requirements:
            append_table(self._markup, table)
        elif self._current.role is Role.test_case:
            steps = self._current.steps
            steps.extend(extract_steps(self._markup, table, self.styles, first_index=len(steps)))
        else:
            logger.warning("Dropping table outside a test case (%s)", self._current.source)

    def _clear_visits(self) -> None:
        for table in self._visited:
            table.visit_id = None
        self._visited.clear()
