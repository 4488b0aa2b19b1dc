"""Integration tests for document export against the in-memory artifact service.

Reference document (login.md):

    # Login                 -> RQ1  indent AAA
    Users sign in.
    ## Password rules       -> RQ2  indent AAAAAA
    - Eight characters
    - One digit
    # Logout                -> RQ3  indent AAB

After the first export each heading carries a marker line such as
`<!-- docsync: Spira-RQ1 @ 2024-01-01T09:00:01.000 -->`. A second export
updates the same three requirements instead of creating new ones.
"""

import threading

import pytest

from docsync.config import Settings
from docsync.core.pipeline import run_document_export
from docsync.errors import NO_SELECTION, RemoteFault, SetupError, SyncAborted, SyncFailed
from docsync.remote.base import RemoteRequirement
from docsync.remote.memory import MemoryArtifactClient
from docsync.sources.markdown import MarkdownDocument


LOGIN_MD = """\
# Login

Users sign in.

## Password rules

- Eight characters
- One digit

# Logout
"""


def _export(client, settings, path, **kwargs):
    document = MarkdownDocument.load(path)
    return run_document_export(client, settings, document, **kwargs)


def test_first_export_creates_hierarchy(client, settings, write_doc):
    outcome = _export(client, settings, write_doc(LOGIN_MD))
    assert (outcome.items_processed, outcome.error_count) == (3, 0)
    stored = client.fetch_requirements()
    assert [(r.name, r.indent_level) for r in stored] == [
        ("Login", "AAA"), ("Password rules", "AAAAAA"), ("Logout", "AAB"),
    ]
    assert stored[0].description == '<p style="">Users sign in.</p>'
    assert stored[1].description == '<ul><li style="">Eight characters</li><li style="">One digit</li></ul>'


def test_export_writes_identity_markers(client, settings, write_doc):
    path = write_doc(LOGIN_MD)
    _export(client, settings, path)
    text = path.read_text()
    for n in (1, 2, 3):
        assert f"<!-- docsync: Spira-RQ{n} @ 2024-01-01T09:00:" in text


def test_second_export_updates_in_place(client, settings, write_doc):
    """Re-running never duplicates artifacts; stored stamps travel with the update."""
    path = write_doc(LOGIN_MD)
    _export(client, settings, path)
    stamps = [MarkdownDocument.load(path).regions[i].side_channel.stamp for i in (0, 2, 5)]

    path.write_text(path.read_text().replace("Users sign in.", "Users sign in with email."))
    outcome = _export(client, settings, path)

    assert outcome.items_processed == 3
    assert client.calls.count("create_requirement") == 3
    assert len(client.requirements) == 3
    assert client.requirements[1].description == '<p style="">Users sign in with email.</p>'
    received = [stamp for _, _, stamp in client.received_stamps]
    assert [r.strftime("%Y-%m-%dT%H:%M:%S.000") for r in received] == stamps


def test_progress_reported_per_boundary(client, settings, write_doc):
    events = []
    _export(client, settings, write_doc(LOGIN_MD), report=lambda c, t: events.append((c, t)))
    assert events == [(0, 3), (1, 3), (2, 3), (3, 3)]


def test_ignored_heading_is_not_exported(client, settings, write_doc):
    path = write_doc("# Keep\n\n# Draft\n<!-- docsync: IGNORE -->\n\nSecret.\n")
    outcome = _export(client, settings, path)
    assert outcome.items_processed == 1
    assert [r.name for r in client.requirements.values()] == ["Keep"]
    assert "<!-- docsync: IGNORE -->" in path.read_text()


def test_empty_document_is_rejected(client, settings, write_doc):
    with pytest.raises(SetupError, match=NO_SELECTION):
        _export(client, settings, write_doc(""))


# --- partial failure ---

class RejectingClient(MemoryArtifactClient):
    """Refuses to create requirements with one particular name."""

    def __init__(self, reject: str):
        super().__init__()
        self.reject = reject

    def create_requirement(self, requirement: RemoteRequirement, indent_offset: int) -> RemoteRequirement:
        if requirement.name == self.reject:
            raise RemoteFault(reason="Bad Request", detail=f"'{requirement.name}' is not allowed", status_code=400)
        return super().create_requirement(requirement, indent_offset)


def test_one_failure_does_not_stop_the_run(settings, write_doc):
    """Other items are still exported and stamped; the run ends with SyncFailed."""
    client = RejectingClient("Password rules")
    client.authenticate("admin", "secret")
    client.connect_to_project(1)
    path = write_doc(LOGIN_MD)

    with pytest.raises(SyncFailed) as info:
        _export(client, settings, path)

    outcome = info.value.outcome
    assert (outcome.items_processed, outcome.error_count) == (2, 1)
    assert outcome.entries[0].message == "'Password rules' is not allowed"
    assert str(info.value).startswith("Export failed with 1 errors.")
    text = path.read_text()
    assert "Spira-RQ1" in text and "Spira-RQ2" in text
    assert text.count("<!-- docsync:") == 2


# --- cancellation ---

def test_cancel_keeps_committed_items(client, settings, write_doc):
    """Items finished before the abort keep their identity."""
    cancel = threading.Event()
    path = write_doc(LOGIN_MD)

    def report(current, total):
        if current == 1:
            cancel.set()

    with pytest.raises(SyncAborted, match="Export aborted by user.") as info:
        _export(client, settings, path, report=report, cancel=cancel)

    assert info.value.outcome.items_processed == 1
    assert len(client.requirements) == 1
    assert path.read_text().count("<!-- docsync:") == 1


# --- attachments ---

def test_images_uploaded_and_linked(client, settings, write_doc, png_bytes, tmp_path):
    (tmp_path / "diagram.png").write_bytes(png_bytes)
    path = write_doc("# Architecture\n\nOverview ![diagram](diagram.png)\n")
    _export(client, settings, path)

    requirement = client.requirements[1]
    document = client.documents[1]
    assert document.filename_or_url == "Inline1.png"
    assert document.attached_artifacts[0].artifact_id == 1
    assert "Inline1.png" not in requirement.description
    assert '<img src="http://spira.test/Spira/1/Attachment/1.aspx" alt="diagram" />' in requirement.description


# --- test cases ---

TESTS_MD = """\
# Smoke

Quick checks.

## Sign in

Checks the login form.

| Step | Expected | Data |
|------|----------|------|
| Open ![shot](shot.png) | Form shown | |
| Submit | Home page | admin |
"""


@pytest.fixture(name="test_settings")
def test_settings_fixture(settings):
    return Settings(**{**settings.model_dump(), "artifact_type": "test-cases"})


def test_test_cases_with_steps(client, test_settings, write_doc, png_bytes, tmp_path):
    (tmp_path / "shot.png").write_bytes(png_bytes)
    path = write_doc(TESTS_MD)
    outcome = _export(client, test_settings, path)

    assert outcome.items_processed == 2
    folder = client.folders[1]
    case = client.test_cases[1]
    assert folder.description == '<p style="">Quick checks.</p>'
    assert case.test_case_folder_id == folder.test_case_folder_id
    assert case.description == '<p style="">Checks the login form.</p>'
    assert [(s.expected_result, s.sample_data) for s in case.test_steps] == [("Form shown", ""), ("Home page", "admin")]
    assert case.test_steps[0].description == 'Open <img src="http://spira.test/Spira/1/Attachment/1.aspx" alt="shot" />'
    assert client.documents[1].attached_artifacts[0].artifact_type_id == 7
    text = path.read_text()
    assert "Spira-TF1" in text and "Spira-TC1" in text


def test_removed_step_rows_are_deleted(client, test_settings, write_doc, png_bytes, tmp_path):
    (tmp_path / "shot.png").write_bytes(png_bytes)
    path = write_doc(TESTS_MD)
    _export(client, test_settings, path)

    path.write_text(path.read_text().replace("| Submit | Home page | admin |\n", ""))
    _export(client, test_settings, path)

    case = client.test_cases[1]
    assert len(client.test_cases) == 1
    assert len(case.test_steps) == 1
    assert "delete_test_step" in client.calls
    assert case.test_steps[0].expected_result == "Form shown"


def test_requirements_document_exported_as_test_cases(client, settings, test_settings, write_doc):
    """Requirement markers do not match folder or test case boundaries, so new artifacts are created."""
    path = write_doc(LOGIN_MD)
    _export(client, settings, path)

    outcome = _export(client, test_settings, path)

    assert (outcome.items_processed, outcome.error_count) == (3, 0)
    assert [f.name for f in client.folders.values()] == ["Login", "Logout"]
    assert [c.name for c in client.test_cases.values()] == ["Password rules"]
    assert client.test_cases[1].test_case_folder_id == 1
    assert len(client.requirements) == 3
    assert "update_requirement" not in client.calls
    regions = MarkdownDocument.load(path).regions
    assert [regions[i].side_channel.identity for i in (0, 2, 5)] == ["Spira-TF1", "Spira-TC1", "Spira-TF2"]
    assert "Spira-RQ" not in path.read_text()
