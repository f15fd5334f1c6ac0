"""
Pydantic models for backend request/response validation.
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable

from pydantic import BaseModel, ConfigDict, Field

ENCRYPTED_SUFFIX = ".enc"
FALLBACK_FILENAME = "downloaded_file"


def strip_encrypted_suffix(filename: str) -> str:
    """Remove the ``.enc`` suffix appended at upload time."""
    if filename.endswith(ENCRYPTED_SUFFIX):
        filename = filename[: -len(ENCRYPTED_SUFFIX)]
    return filename or FALLBACK_FILENAME


def format_file_size(size: int) -> str:
    """Human-readable byte count, e.g. ``1.5 MB``."""
    if size <= 0:
        return "0 B"
    units = ["B", "KB", "MB", "GB", "TB"]
    value = float(size)
    index = 0
    while value >= 1024 and index < len(units) - 1:  # noqa: PLR2004
        value /= 1024
        index += 1
    if index == 0:
        return f"{size} B"
    return f"{value:.2f}".rstrip("0").rstrip(".") + f" {units[index]}"


class TransferPolicy(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    max_downloads: int = Field(default=1, gt=0, alias="maxDownloads")
    expiry_hours: float = Field(default=24, gt=0, alias="expiryHours")

    def form_fields(self) -> dict[str, str]:
        """Multipart form fields as the backend expects them."""
        hours = self.expiry_hours
        return {
            "maxDownloads": str(self.max_downloads),
            "expiryHours": str(int(hours)) if hours == int(hours) else str(hours),
        }


class FileMetadata(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    original_filename: str = Field(alias="originalFilename")
    file_size: int = Field(ge=0, alias="fileSize")
    remaining_downloads: int = Field(ge=0, alias="remainingDownloads")
    expires_at: datetime = Field(alias="expiresAt")

    @property
    def display_name(self) -> str:
        return strip_encrypted_suffix(self.original_filename)


class UploadResponse(BaseModel):
    id: str = Field(min_length=1)


class ErrorResponse(BaseModel):
    message: str


class ClientConfig(BaseModel):
    server_url: str | None = None
    server_host: str | None = None
    server_port: int | None = None
    log_level: int | None = None
    request_timeout: float | None = None
    chunk_size: int | None = Field(default=None, gt=0)
    encrypt_progress_fraction: float | None = Field(default=None, gt=0, lt=1)
    on_error_callback: Callable[[Exception], None] | None = None
