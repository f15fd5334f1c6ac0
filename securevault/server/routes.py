"""
Routes for the reference backend.
"""

from __future__ import annotations

import logging
import time
from typing import Any

from fastapi import FastAPI, File, Form, UploadFile
from fastapi.responses import JSONResponse, Response

from securevault.common.exceptions import VaultError
from securevault.common.models import ErrorResponse, UploadResponse

from .store import BlobStore

HTTP_PAYLOAD_TOO_LARGE = 413


class VaultRoutes:
    """Handles FastAPI routes for the ciphertext store."""

    def __init__(self, store: BlobStore, max_upload_bytes: int, logger: logging.Logger):
        self.store = store
        self.max_upload_bytes = max_upload_bytes
        self.logger = logger

    def setup_routes(self, app: FastAPI) -> None:
        """Setup API routes on the FastAPI app."""
        app.get("/health")(self.health)
        app.get("/api/file/{blob_id}/info")(self.info)
        app.get("/api/download/{blob_id}")(self.download)
        app.post("/api/upload")(self.upload)

    @staticmethod
    def _error(message: str, status_code: int) -> JSONResponse:
        body = ErrorResponse(message=message).model_dump()
        return JSONResponse(body, status_code=status_code)

    async def health(self) -> dict[str, Any]:
        """Handle /health endpoint."""
        return {"status": "ok", "timestamp": int(time.time())}

    async def info(self, blob_id: str) -> Any:
        """Handle /api/file/{id}/info endpoint."""
        try:
            metadata = self.store.info(blob_id)
        except VaultError as e:
            return self._error(e.message, e.status_code)
        return metadata.model_dump(mode="json", by_alias=True)

    async def download(self, blob_id: str) -> Response:
        """Handle /api/download/{id} endpoint."""
        try:
            data = self.store.take(blob_id)
        except VaultError as e:
            return self._error(e.message, e.status_code)
        self.logger.info("Served %s (%d bytes)", blob_id, len(data))
        return Response(content=data, media_type="application/octet-stream")

    async def upload(
        self,
        file: UploadFile = File(...),
        max_downloads: int = Form(..., alias="maxDownloads", gt=0),
        expiry_hours: float = Form(..., alias="expiryHours", gt=0),
    ) -> Any:
        """Handle /api/upload endpoint."""
        data = await file.read()
        if len(data) > self.max_upload_bytes:
            return self._error("File is too large.", HTTP_PAYLOAD_TOO_LARGE)
        self.store.purge_expired()
        blob = self.store.add(
            file.filename or "upload.enc", data, max_downloads, expiry_hours
        )
        self.logger.info(
            "Stored %s: %d bytes, %d downloads, %.1f hours",
            blob.blob_id,
            blob.file_size,
            max_downloads,
            expiry_hours,
        )
        return UploadResponse(id=blob.blob_id).model_dump()
