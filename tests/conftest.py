"""Pytest configuration and fixtures for VCD client tests."""

from typing import Any, Callable, Dict, List, Optional, Sequence
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from vcd_client.api_client import BEARER_TOKEN_HEADER, VcdAPIClient
from vcd_client.config import LoggingConfig, VcdConfig

BASE_URL = "https://vcd.example.com"
DEFAULT_VERSIONS = ("36.0", "37.0", "37.1", "38.0", "38.1")

Handler = Callable[[httpx.Request], httpx.Response]


def versions_xml(versions: Sequence[str]) -> str:
    """Build a ``SupportedVersions`` document advertising ``versions``."""
    infos = "".join(
        f'<VersionInfo deprecated="false"><Version>{version}</Version>'
        f"<LoginUrl>{BASE_URL}/api/sessions</LoginUrl></VersionInfo>"
        for version in versions
    )
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        f'<SupportedVersions xmlns="http://www.vmware.com/vcloud/versions">{infos}</SupportedVersions>'
    )


def task_xml(
    task_id: str = "t1",
    status: str = "success",
    owner_id: str = "",
    result: str = "",
    error_message: str = "",
) -> str:
    """Build a ``Task`` document."""
    owner = f'<Owner href="{BASE_URL}/api/owner" id="{owner_id}" type="" name=""/>' if owner_id else ""
    error = (
        f'<Error majorErrorCode="500" minorErrorCode="INTERNAL_SERVER_ERROR" message="{error_message}"/>'
        if error_message
        else ""
    )
    result_node = f"<Result><ResultContent>{result}</ResultContent></Result>" if result else ""
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        f'<Task xmlns="http://www.vmware.com/vcloud/v1.5" href="{BASE_URL}/api/task/{task_id}" '
        f'id="urn:vcloud:task:{task_id}" name="task" operationName="op" status="{status}">'
        f"{owner}{error}<Description>test task</Description><Progress>100</Progress>{result_node}</Task>"
    )


def json_response(body: Any, status: int = 200, headers: Optional[Dict[str, str]] = None) -> Handler:
    return lambda request: httpx.Response(status, json=body, headers=headers)


def xml_response(body: str, status: int = 200) -> Handler:
    return lambda request: httpx.Response(
        status,
        content=body.encode(),
        headers={"Content-Type": "application/*+xml"},
    )


def pages(values: List[Any]) -> Dict[str, Any]:
    """A single page CloudAPI list response."""
    return {
        "resultTotal": len(values),
        "pageCount": 1,
        "page": 1,
        "pageSize": 128,
        "values": values,
    }


class FakeVcd:
    """Serves canned responses to an ``httpx.MockTransport``.

    Routes are keyed by method and URL path. A route registered with several
    handlers answers with them in order and repeats the last one.
    """

    def __init__(self, versions: Sequence[str] = DEFAULT_VERSIONS) -> None:
        self.routes: Dict[tuple, List[Handler]] = {}
        self.requests: List[httpx.Request] = []
        self.set_versions(versions)

    def set_versions(self, versions: Sequence[str]) -> None:
        self.add("GET", "/api/versions", xml_response(versions_xml(versions)))

    def add(self, method: str, path: str, *handlers: Handler) -> None:
        self.routes[(method, path)] = list(handlers)

    def add_json(self, method: str, path: str, body: Any, status: int = 200, headers: Optional[Dict[str, str]] = None) -> None:
        self.add(method, path, json_response(body, status, headers))

    def add_task(self, task_id: str, *documents: str) -> None:
        """Serve ``documents`` in order for polls of task ``task_id``."""
        self.add("GET", f"/api/task/{task_id}", *(xml_response(doc) for doc in documents))

    def calls(self, method: str, path: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handlers = self.routes.get((request.method, request.url.path))
        if not handlers:
            return httpx.Response(
                404,
                json={
                    "minorErrorCode": "NOT_FOUND",
                    "message": f"no route for {request.method} {request.url.path}",
                },
            )
        handler = handlers.pop(0) if len(handlers) > 1 else handlers[0]
        return handler(request)


@pytest.fixture
def fake_vcd() -> FakeVcd:
    """A fake VCD advertising API versions up to 38.1."""
    return FakeVcd()


@pytest.fixture
def vcd_client(fake_vcd: FakeVcd) -> VcdAPIClient:
    """An authenticated System administrator client talking to ``fake_vcd``."""
    client = VcdAPIClient(BASE_URL, api_version="37.0", max_retries=0)
    client.client = httpx.AsyncClient(transport=httpx.MockTransport(fake_vcd))
    client.auth_header = BEARER_TOKEN_HEADER
    client.token = "t" * 40
    client.is_sys_admin = True
    return client


@pytest.fixture
def sample_vcd_config() -> VcdConfig:
    """Create a sample VCD configuration for testing."""
    return VcdConfig(
        url="https://vcd.example.com",
        org="System",
        user="admin",
        password="test_password",
        insecure=True,
    )


@pytest.fixture
def sample_logging_config() -> LoggingConfig:
    """Create a sample logging configuration for testing."""
    return LoggingConfig(
        log_level="DEBUG",
        log_json=False,
    )


@pytest.fixture
def mock_httpx_response():
    """Create a mock httpx response."""
    mock_response = MagicMock()
    mock_response.status_code = 200
    mock_response.json.return_value = {"values": []}
    mock_response.headers = httpx.Headers({})
    mock_response.text = '{"values": []}'
    mock_response.content = b'{"values": []}'
    return mock_response


@pytest.fixture
def mock_httpx_client(mock_httpx_response):
    """Create a mock httpx async client."""
    mock_client = AsyncMock()
    mock_client.request.return_value = mock_httpx_response
    mock_client.aclose = AsyncMock()
    return mock_client


@pytest.fixture
def env_with_credentials(monkeypatch):
    """Set environment variables with test credentials."""
    monkeypatch.setenv("VCD_URL", "https://vcd.example.com")
    monkeypatch.setenv("VCD_ORG", "System")
    monkeypatch.setenv("VCD_USER", "admin")
    monkeypatch.setenv("VCD_PASSWORD", "test_password")
    monkeypatch.setenv("VCD_INSECURE", "true")
    monkeypatch.delenv("GOVCD_API_VERSION", raising=False)


@pytest.fixture
def env_without_credentials(monkeypatch):
    """Clear environment variables for credential-free testing."""
    for var in ["VCD_URL", "VCD_ORG", "VCD_USER", "VCD_PASSWORD",
                "VCD_TOKEN", "VCD_API_TOKEN", "VCD_INSECURE", "GOVCD_API_VERSION"]:
        monkeypatch.delenv(var, raising=False)
