"""
Configuration settings for the encrypted transfer client and reference server.
"""

from __future__ import annotations

import logging
import os


def _optional_float(value: str | None) -> float | None:
    if value is None or value == "":
        return None
    return float(value)


class Config:
    """Central configuration class for all system settings."""

    def __init__(self) -> None:
        # Backend API layout
        self.INFO_PATH: str = "/api/file/{id}/info"
        self.DOWNLOAD_PATH: str = "/api/download/{id}"
        self.UPLOAD_PATH: str = "/api/upload"

        # Publish defaults, matching the choices offered to publishers
        self.DEFAULT_MAX_DOWNLOADS: int = 1
        self.DEFAULT_EXPIRY_HOURS: float = 24
        self.MAX_DOWNLOADS_CHOICES: tuple[int, ...] = (1, 3, 5, 10)
        self.EXPIRY_HOURS_CHOICES: tuple[int, ...] = (1, 6, 24, 72, 168)

        # Share of the progress bar spent on encryption before upload starts
        self.ENCRYPT_PROGRESS_FRACTION: float = 0.6

        # Transfer settings
        self.CHUNK_SIZE: int = 64 * 1024
        self.REQUEST_TIMEOUT: float | None = _optional_float(
            os.getenv("SECUREVAULT_REQUEST_TIMEOUT")
        )

        # Server settings
        self.SERVER_HOST: str = os.getenv("SECUREVAULT_SERVER_HOST", "127.0.0.1")
        self.SERVER_PORT: int = int(os.getenv("SECUREVAULT_SERVER_PORT", "8000"))
        self.SERVER_URL: str = os.getenv(
            "SECUREVAULT_SERVER_URL", f"http://{self.SERVER_HOST}:{self.SERVER_PORT}"
        )
        self.MAX_UPLOAD_BYTES: int = int(
            os.getenv("SECUREVAULT_MAX_UPLOAD_BYTES", str(100 * 1024 * 1024))
        )
        self.TOMBSTONE_TTL: int = 24 * 3600  # Keep exhausted entries answering 410

        # Logging
        level = logging.getLevelName(os.getenv("SECUREVAULT_LOG_LEVEL", "INFO").upper())
        self.LOG_LEVEL: int = level if isinstance(level, int) else logging.INFO
