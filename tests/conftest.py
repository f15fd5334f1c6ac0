from __future__ import annotations

from datetime import datetime, timedelta, timezone
from urllib.parse import urlsplit

import pytest
from fastapi.testclient import TestClient

from securevault.common.exceptions import NotFound
from securevault.common.models import FileMetadata
from securevault.server.core import VaultServer


class FakeTransferClient:
    """In-memory stand-in for TransferClient used by the flow tests."""

    def __init__(self) -> None:
        self.blobs: dict[str, bytes] = {}
        self.metadata: dict[str, FileMetadata] = {}
        self.uploads: list[tuple[str, object]] = []
        self.info_calls = 0
        self.download_calls = 0
        self.upload_errors: list[Exception] = []
        self.info_errors: list[Exception] = []
        self.download_errors: list[Exception] = []
        self.on_upload = None
        self.on_download = None

    def store(self, filename: str, blob: bytes, remaining: int = 1) -> str:
        resource_id = f"res-{len(self.blobs) + 1}"
        self.blobs[resource_id] = blob
        self.metadata[resource_id] = FileMetadata(
            original_filename=filename,
            file_size=len(blob),
            remaining_downloads=remaining,
            expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
        )
        return resource_id

    def upload(self, blob, filename, policy, on_progress=None):
        if self.upload_errors:
            raise self.upload_errors.pop(0)
        if self.on_upload:
            self.on_upload()
        total = len(blob)
        if on_progress:
            for sent in (total // 4, total // 2, total):
                on_progress(sent, total)
        self.uploads.append((filename, policy))
        return self.store(filename, blob, policy.max_downloads)

    def get_info(self, resource_id):
        self.info_calls += 1
        if self.info_errors:
            raise self.info_errors.pop(0)
        if resource_id not in self.metadata:
            msg = "This file does not exist or has already been deleted."
            raise NotFound(msg)
        return self.metadata[resource_id]

    def download(self, resource_id, on_progress=None):
        self.download_calls += 1
        if self.download_errors:
            raise self.download_errors.pop(0)
        if self.on_download:
            self.on_download()
        blob = self.blobs[resource_id]
        if on_progress:
            half = len(blob) // 2
            on_progress(half, len(blob))
            on_progress(len(blob), len(blob))
        return blob


class AppResponse:
    """Wraps an httpx response with the requests API TransferClient uses."""

    def __init__(self, response) -> None:
        self._response = response
        self.status_code = response.status_code
        self.headers = response.headers
        self.closed = False

    def json(self):
        return self._response.json()

    def iter_content(self, chunk_size: int = 1):
        data = self._response.content
        for start in range(0, len(data), chunk_size):
            yield data[start : start + chunk_size]

    def close(self) -> None:
        self.closed = True


class AppSession:
    """requests.Session look-alike that routes calls into a FastAPI app."""

    def __init__(self, app) -> None:
        self.client = TestClient(app)
        self.requests: list[dict] = []

    def _record(self, method: str, url: str, headers: dict, body: bytes) -> None:
        assert urlsplit(url).fragment == ""
        self.requests.append(
            {"method": method, "url": url, "headers": headers, "body": body}
        )

    def get(self, url, stream=False, timeout=None):
        self._record("GET", url, {}, b"")
        return AppResponse(self.client.get(url))

    def post(self, url, data=None, headers=None, timeout=None):
        body = b""
        if data is not None:
            chunk = data.read(8192)
            while chunk:
                body += chunk
                chunk = data.read(8192)
        headers = dict(headers or {})
        self._record("POST", url, headers, body)
        return AppResponse(self.client.post(url, content=body, headers=headers))


@pytest.fixture
def transfer() -> FakeTransferClient:
    """Fake request layer for flow tests."""
    return FakeTransferClient()


@pytest.fixture
def vault_server() -> VaultServer:
    """Reference backend with default settings."""
    return VaultServer()


@pytest.fixture
def app_session(vault_server: VaultServer) -> AppSession:
    """Session that talks to the reference backend in-process."""
    return AppSession(vault_server.app)
