import httpx
import pytest
from fastapi.testclient import TestClient

from image_ingest.app.api.deps import get_remote_fetcher
from image_ingest.app.core.config import Settings
from image_ingest.app.main import create_app
from image_ingest.app.services.ingest.remote_fetcher import RemoteFetcher


class FakeRemote:
    """Canned HTTP responses for the remote fetcher, keyed by URL."""

    def __init__(self):
        self.routes = {}
        self.requested = []

    def add(self, url: str, content: bytes = b"", status: int = 200, content_type: str = "image/jpeg"):
        self.routes[url] = lambda request: httpx.Response(
            status, headers={"content-type": content_type}, content=content
        )

    def add_handler(self, url: str, handler):
        self.routes[url] = handler

    async def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.requested.append(url)
        route = self.routes.get(url)
        if route is None:
            return httpx.Response(404, headers={"content-type": "text/plain"}, content=b"not found")
        response = route(request)
        if not isinstance(response, httpx.Response):
            response = await response
        return response

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def upload_dir(tmp_path):
    return tmp_path / "uploads"


@pytest.fixture
def settings(upload_dir):
    return Settings(
        upload_dir=upload_dir,
        fetch_timeout_seconds=2.0,
        fetch_max_bytes=1024 * 1024,
        fetch_max_concurrency=4,
        batch_timeout_seconds=10.0,
        disconnect_poll_seconds=0.05,
    )


@pytest.fixture
def fake_remote():
    return FakeRemote()


@pytest.fixture
def make_fetcher(fake_remote):
    def factory(**overrides) -> RemoteFetcher:
        options = {"timeout": 2.0, "max_bytes": 1024 * 1024, "max_concurrency": 4}
        options.update(overrides)
        return RemoteFetcher(transport=fake_remote.transport(), **options)

    return factory


@pytest.fixture
def app(settings, make_fetcher):
    app = create_app(settings)

    def override_fetcher():
        return make_fetcher(
            timeout=settings.fetch_timeout_seconds,
            max_bytes=settings.fetch_max_bytes,
            max_concurrency=settings.fetch_max_concurrency,
        )

    app.dependency_overrides[get_remote_fetcher] = override_fetcher
    return app


@pytest.fixture
def client(app):
    return TestClient(app)


def multipart_body(boundary: str, parts) -> bytes:
    """Assemble a multipart body from ``(headers, data)`` pairs."""
    out = b""
    for headers, data in parts:
        out += f"--{boundary}\r\n".encode()
        for name, value in headers:
            out += f"{name}: {value}\r\n".encode()
        out += b"\r\n" + data + b"\r\n"
    out += f"--{boundary}--\r\n".encode()
    return out


async def stream_of(*chunks: bytes):
    for chunk in chunks:
        yield chunk
