"""Style/outline classifier: maps regions and task-outline nodes to semantic roles"""

from typing import Optional

from docsync.config import StyleMapping
from docsync.core.identity import IdentityManager, is_ignored
from docsync.core.models import ArtifactKind, ArtifactType, FormattingRegion, Role


def boundary_role(region: FormattingRegion, styles: StyleMapping, artifact_type: ArtifactType) -> Optional[Role]:
    """Boundary role of the region's style for the selected artifact type, else None."""
    style = region.style
    if not style:
        return None
    if artifact_type is ArtifactType.test_cases:
        if style == styles.test_case_folder:
            return Role.test_folder
        if style == styles.test_case:
            return Role.test_case
        return None
    if styles.requirement_level(style) is not None:
        return Role.requirement
    return None


def classify(
    region: FormattingRegion,
    styles: StyleMapping,
    artifact_type: ArtifactType = ArtifactType.requirements,
    ) -> Role:
    """Role of region. Priority: ignore > table > boundary style > list item > content."""
    if is_ignored(region.side_channel):
        return Role.ignored
    if region.table is not None:
        return Role.table
    role = boundary_role(region, styles, artifact_type)
    if role is not None:
        return role
    if region.list_info is not None and region.list_info.level > 0:
        return Role.list_item
    return Role.content


def boundary_level(region: FormattingRegion, role: Role, styles: StyleMapping) -> int:
    """Indent level used for offsets: mapped requirement level, folder 1, test case 2."""
    if role is Role.requirement:
        return styles.requirement_level(region.style) or 1
    return 1 if role is Role.test_folder else 2


def classify_task(task, identity: IdentityManager) -> Role:
    """Role of a task-outline node.

    Release-tagged nodes belong to the remote release tree and a node already
    synced as a task stays one unless it became a summary. Otherwise summaries,
    milestones and top-level nodes are requirements and the rest are tasks.
    """
    if is_ignored(task.channel):
        return Role.ignored
    decoded = identity.decode(task.channel.identity)
    if decoded is not None and decoded[0] is ArtifactKind.release:
        return Role.release
    if decoded is not None and decoded[0] is ArtifactKind.task and not task.summary:
        return Role.task
    if task.summary or task.milestone or task.outline_level <= 1:
        return Role.requirement
    return Role.task
