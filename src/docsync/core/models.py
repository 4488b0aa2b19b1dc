"""Data model shared by the classifier, transcoders, hierarchy builder and sync drivers"""

import traceback
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union

from docsync.errors import describe_fault


NOT_SPECIFIED = "Not Specified"


class Role(str, Enum):
    """Semantic role of a document region or task-outline node."""
    ignored     = "ignored"
    table       = "table"
    requirement = "requirement"
    test_folder = "test_folder"
    test_case   = "test_case"
    task        = "task"
    release     = "release"
    list_item   = "list_item"
    content     = "content"


BOUNDARY_ROLES = frozenset({Role.requirement, Role.test_folder, Role.test_case})


class ArtifactKind(str, Enum):
    """Remote artifact kinds; values are the two-letter codes used in identity tokens."""
    requirement = "RQ"
    test_case   = "TC"
    test_folder = "TF"
    test_step   = "TS"
    task        = "TK"
    release     = "RL"


# Artifact type ids used when attaching documents.
ATTACHMENT_TYPE_IDS: dict[ArtifactKind, int] = {
    ArtifactKind.requirement: 1,
    ArtifactKind.test_case:   2,
    ArtifactKind.release:     4,
    ArtifactKind.task:        6,
    ArtifactKind.test_step:   7,
}

ROLE_KINDS: dict[Role, ArtifactKind] = {
    Role.requirement: ArtifactKind.requirement,
    Role.test_folder: ArtifactKind.test_folder,
    Role.test_case:   ArtifactKind.test_case,
    Role.task:        ArtifactKind.task,
    Role.release:     ArtifactKind.release,
}


class ArtifactType(str, Enum):
    """Artifact-type selector for document exports."""
    requirements = "requirements"
    test_cases   = "test-cases"


class ListKind(str, Enum):
    bullet   = "bullet"
    numbered = "numbered"


@dataclass(frozen=True)
class RunFormat:
    """Character formatting of a run, or a paragraph's default formatting."""
    bold:      bool = False
    italic:    bool = False
    underline: bool = False
    font:      Optional[str] = None


@dataclass(frozen=True)
class TextRun:
    text:   str
    format: RunFormat = RunFormat()


@dataclass(frozen=True)
class InlineImage:
    """Raw bytes of an embedded graphic; the format is detected during transcoding."""
    data:     bytes
    alt_text: str = ""


Inline = Union[TextRun, InlineImage]


@dataclass(frozen=True)
class ListInfo:
    kind:  ListKind
    level: int = 1      # 1-based nesting depth
    start: bool = False  # first item of a new list in the source


@dataclass
class SideChannel:
    """Two free-form text fields per boundary node, owned by the sync engine."""
    identity: str = ""
    stamp:    str = ""


@dataclass
class TableCell:
    regions: list["FormattingRegion"] = field(default_factory=list)
    width:   float = 1.0


@dataclass
class TableRow:
    cells: list[TableCell] = field(default_factory=list)


@dataclass
class TableRegion:
    """A grid of cells; the first row is the header row."""
    rows:     list[TableRow] = field(default_factory=list)
    borders:  bool = True
    visit_id: Optional[str] = None      # transient marker set while a pass is running

    @property
    def max_columns(self) -> int:
        return max((len(row.cells) for row in self.rows), default=0)


@dataclass
class FormattingRegion:
    """Read-only view of one unit of host content: a paragraph, list item or table."""
    style:         Optional[str] = None
    inlines:       list[Inline] = field(default_factory=list)
    defaults:      RunFormat = RunFormat()
    outline_level: Optional[int] = None
    list_info:     Optional[ListInfo] = None
    table:         Optional[TableRegion] = None
    side_channel:  Optional[SideChannel] = None
    source:        str = ""                 # locator for logs, e.g. "line 12"

    @property
    def text(self) -> str:
        return "".join(i.text for i in self.inlines if isinstance(i, TextRun))


@dataclass(frozen=True)
class AttachmentRecord:
    """An extracted image waiting for its owner to get a real remote id."""
    placeholder: str                    # e.g. Inline1.png, also the upload filename
    extension:   str
    data:        bytes
    alt_text:    str = ""
    step_index:  Optional[int] = None   # None: owned by the artifact itself

    @property
    def owned_by_step(self) -> bool:
        return self.step_index is not None


@dataclass
class StepRecord:
    description:     str = NOT_SPECIFIED
    expected_result: str = ""
    sample_data:     str = ""


@dataclass
class PendingArtifact:
    """An artifact being assembled from a boundary region and the content after it."""
    role:          Role
    name:          str
    indent_offset: int = 0
    markup:        str = ""
    attachments:   list[AttachmentRecord] = field(default_factory=list)
    steps:         list[StepRecord] = field(default_factory=list)
    side_channel:  Optional[SideChannel] = None
    source:        str = ""

    @property
    def kind(self) -> ArtifactKind:
        return ROLE_KINDS[self.role]

    def describe(self) -> str:
        label = f"{self.role.value.replace('_', ' ')} '{self.name}'"
        return f"{label} ({self.source})" if self.source else label


@dataclass
class LogEntry:
    item:    str
    message: str
    detail:  str = ""


@dataclass
class SyncOutcome:
    """Counters and per-item error log for one run; never partially discarded."""
    items_processed: int = 0
    error_count:     int = 0
    entries:         list[LogEntry] = field(default_factory=list)

    def record_error(self, item: str, exc: BaseException) -> LogEntry:
        entry = LogEntry(
            item=item,
            message=describe_fault(exc),
            detail="".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
        )
        self.entries.append(entry)
        self.error_count += 1
        return entry
