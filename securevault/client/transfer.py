"""
Request layer for the storage backend.

Only resource ids and ciphertext pass through here. Link fragments never
reach this module, so they cannot end up in a URL, header or body.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

import requests
from pydantic import ValidationError
from urllib3 import encode_multipart_formdata

from securevault.common.config import Config
from securevault.common.exceptions import Gone, NotFound, TransportError
from securevault.common.models import FileMetadata, UploadResponse

if TYPE_CHECKING:
    from securevault.common.interfaces import ProgressCallback
    from securevault.common.models import TransferPolicy

HTTP_NOT_FOUND = 404
HTTP_GONE = 410

NOT_FOUND_MESSAGE = "This file does not exist or has already been deleted."
GONE_MESSAGE = "This file has expired."

logger = logging.getLogger(__name__)


class ProgressReader:
    """File-like request body that reports how many bytes have been read."""

    def __init__(
        self,
        body: bytes,
        on_progress: ProgressCallback | None = None,
        chunk_size: int = 64 * 1024,
    ):
        self._body = body
        self._on_progress = on_progress
        self._chunk_size = chunk_size
        self._position = 0

    def __len__(self) -> int:
        return len(self._body)

    def read(self, size: int = -1) -> bytes:
        if size is None or size < 0:
            size = len(self._body) - self._position
        size = min(size, self._chunk_size)
        chunk = self._body[self._position : self._position + size]
        if chunk:
            self._position += len(chunk)
            if self._on_progress:
                self._on_progress(self._position, len(self._body))
        return chunk


class TransferClient:
    """Calls the backend's info, upload and download endpoints."""

    def __init__(
        self,
        server_url: str,
        session: requests.Session | None = None,
        timeout: float | None = None,
        chunk_size: int | None = None,
        config: Config | None = None,
    ):
        self.config = config or Config()
        self.server_url = server_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout if timeout is not None else self.config.REQUEST_TIMEOUT
        self.chunk_size = chunk_size or self.config.CHUNK_SIZE

    def _url(self, template: str, resource_id: str | None = None) -> str:
        if resource_id is None:
            return f"{self.server_url}{template}"
        return f"{self.server_url}{template.format(id=quote(resource_id, safe=''))}"

    @staticmethod
    def _error_message(response: Any, default: str) -> str:
        try:
            body = response.json()
        except ValueError:
            return default
        if isinstance(body, dict):
            return str(body.get("message") or body.get("detail") or default)
        return default

    def _check_status(self, response: Any, action: str) -> None:
        status = response.status_code
        if status == HTTP_NOT_FOUND:
            raise NotFound(NOT_FOUND_MESSAGE)
        if status == HTTP_GONE:
            raise Gone(self._error_message(response, GONE_MESSAGE))
        if status >= 400:  # noqa: PLR2004
            message = self._error_message(response, f"HTTP {status}")
            msg = f"{action} failed: {message}"
            raise TransportError(msg, status)

    def get_info(self, resource_id: str) -> FileMetadata:
        """Fetch metadata for a shared file."""
        logger.debug("Fetching info for %s", resource_id)
        try:
            r = self.session.get(
                self._url(self.config.INFO_PATH, resource_id), timeout=self.timeout
            )
        except requests.RequestException as err:
            msg = f"Could not reach the server: {err.__class__.__name__}"
            raise TransportError(msg) from err

        self._check_status(r, "File info")
        try:
            return FileMetadata.model_validate(r.json())
        except (ValueError, ValidationError) as err:
            msg = "Server returned malformed file information"
            raise TransportError(msg) from err

    def upload(
        self,
        blob: bytes,
        filename: str,
        policy: TransferPolicy,
        on_progress: ProgressCallback | None = None,
    ) -> str:
        """Upload ciphertext with its policy; returns the backend resource id."""
        fields: dict[str, Any] = {
            "file": (filename, blob, "application/octet-stream"),
            **policy.form_fields(),
        }
        body, content_type = encode_multipart_formdata(fields)
        reader = ProgressReader(body, on_progress, self.chunk_size)
        logger.info("Uploading %d encrypted bytes", len(blob))
        try:
            r = self.session.post(
                self._url(self.config.UPLOAD_PATH),
                data=reader,
                headers={"Content-Type": content_type},
                timeout=self.timeout,
            )
        except requests.RequestException as err:
            msg = f"Upload interrupted: {err.__class__.__name__}"
            raise TransportError(msg) from err

        self._check_status(r, "Upload")
        try:
            resource_id = UploadResponse.model_validate(r.json()).id
        except (ValueError, ValidationError) as err:
            msg = "Server returned a malformed upload response"
            raise TransportError(msg) from err
        logger.info("Upload complete: %s", resource_id)
        return resource_id

    def download(
        self, resource_id: str, on_progress: ProgressCallback | None = None
    ) -> bytes:
        """Download the ciphertext for a resource."""
        logger.info("Downloading %s", resource_id)
        try:
            r = self.session.get(
                self._url(self.config.DOWNLOAD_PATH, resource_id),
                stream=True,
                timeout=self.timeout,
            )
            try:
                self._check_status(r, "Download")
                total = int(r.headers.get("Content-Length") or 0)
                received = bytearray()
                for chunk in r.iter_content(chunk_size=self.chunk_size):
                    if not chunk:
                        continue
                    received.extend(chunk)
                    if on_progress:
                        on_progress(len(received), total)
            finally:
                r.close()
        except requests.RequestException as err:
            msg = f"Download interrupted: {err.__class__.__name__}"
            raise TransportError(msg) from err

        return bytes(received)
