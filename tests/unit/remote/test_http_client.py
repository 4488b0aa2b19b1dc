"""Unit tests for remote/http.py using an httpx mock transport"""

import json

import httpx
import pytest

from docsync.core.models import ArtifactKind
from docsync.errors import RemoteFault
from docsync.remote.base import RemoteRequirement
from docsync.remote.http import PAGE_SIZE, SERVICE_PATH, HttpArtifactClient


BASE = "http://spira.test/Spira"


class FakeService:
    """Records requests and answers them from a route table keyed by (method, path suffix)."""

    def __init__(self, routes):
        self.routes = routes
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path.split(SERVICE_PATH, 1)[1]
        handler = self.routes.get((request.method, path))
        if handler is None:
            return httpx.Response(404, json={"Message": f"No route {request.method} {path}"})
        return handler(request) if callable(handler) else handler


def _client(routes) -> tuple[HttpArtifactClient, FakeService]:
    service = FakeService(routes)
    return HttpArtifactClient(BASE, transport=httpx.MockTransport(service)), service


def _connected(routes) -> tuple[HttpArtifactClient, FakeService]:
    routes = {
        ("GET", "projects"): httpx.Response(200, json=[]),
        ("GET", "projects/1"): httpx.Response(200, json={"ProjectId": 1}),
        **routes,
    }
    client, service = _client(routes)
    assert client.authenticate("admin", "key")
    assert client.connect_to_project(1)
    return client, service


def test_authenticate_sends_credentials():
    client, service = _client({("GET", "projects"): httpx.Response(200, json=[])})
    assert client.authenticate("admin", "key")
    params = service.requests[0].url.params
    assert (params["username"], params["api-key"]) == ("admin", "key")


def test_authenticate_rejected():
    client, _ = _client({("GET", "projects"): httpx.Response(401)})
    assert not client.authenticate("admin", "bad")


def test_connect_to_unknown_project():
    client, _ = _client({("GET", "projects"): httpx.Response(200, json=[])})
    client.authenticate("admin", "key")
    assert not client.connect_to_project(9)
    assert client.project_id is None


def test_create_requirement_uses_indent_route():
    """Payload goes out with PascalCase keys; the response is parsed back."""
    def create(request):
        body = json.loads(request.content)
        assert body["Name"] == "Login"
        return httpx.Response(200, json={**body, "RequirementId": 12, "IndentLevel": "AAA"})

    client, service = _connected({("POST", "projects/1/requirements/indent/-1"): create})
    created = client.create_requirement(RemoteRequirement(name="Login"), -1)
    assert created.requirement_id == 12
    assert created.indent_level == "AAA"


def test_fault_carries_service_message():
    client, _ = _connected({
        ("PUT", "projects/1/requirements"): httpx.Response(400, json={"Message": "Name is required"}),
    })
    with pytest.raises(RemoteFault, match="Name is required") as info:
        client.update_requirement(RemoteRequirement(requirement_id=1))
    assert info.value.status_code == 400


def test_transport_error_becomes_fault():
    def boom(request):
        raise httpx.ConnectError("refused", request=request)

    client = HttpArtifactClient(BASE, transport=httpx.MockTransport(boom))
    with pytest.raises(RemoteFault, match="ConnectError"):
        client.authenticate("admin", "key")


def test_paged_fetch_reads_all_pages():
    def page(request):
        start = int(request.url.params["starting_row"])
        count = PAGE_SIZE if start == 1 else 2
        return httpx.Response(200, json=[{"RequirementId": start + n, "Name": "r"} for n in range(count)])

    client, _ = _connected({("GET", "projects/1/requirements"): page})
    assert len(client.fetch_requirements()) == PAGE_SIZE + 2


def test_attachment_upload_and_url(png_bytes):
    def upload(request):
        body = json.loads(request.content)
        assert body["FilenameOrUrl"] == "Inline1.png"
        assert body["AttachedArtifacts"] == [{"ArtifactId": 3, "ArtifactTypeId": 1}]
        return httpx.Response(200, json={**body, "AttachmentId": 77})

    client, _ = _connected({
        ("POST", "projects/1/documents/file"): upload,
        ("GET", "projects/1/artifacts/-14/77/url"): httpx.Response(200, json="~/1/Attachment/77.aspx"),
    })
    assert client.add_attachment(ArtifactKind.requirement, 3, png_bytes, "Inline1.png") == 77
    assert client.resolve_artifact_url(-14, 1, 77) == "~/1/Attachment/77.aspx"
    assert client.web_server_url() == BASE
