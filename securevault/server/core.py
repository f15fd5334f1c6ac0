"""
Reference backend using FastAPI.

Stores ciphertext in memory and enforces download counters and expiry. It is
meant for local use and end-to-end tests, not as a production service.
"""

from __future__ import annotations

import logging
import time
from typing import Callable

from fastapi import FastAPI

from securevault.common.config import Config
from securevault.common.logging_utils import setup_logger

from .routes import VaultRoutes
from .store import BlobStore


class VaultServer:
    """Main backend class wiring the store to its routes."""

    def __init__(
        self,
        config: Config | None = None,
        log_level: int | None = None,
        max_upload_bytes: int | None = None,
        tombstone_ttl: int | None = None,
        server_host: str | None = None,
        server_port: int | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config or Config()
        self.logger = logging.getLogger(__name__)
        setup_logger(
            self.logger, log_level if log_level is not None else self.config.LOG_LEVEL
        )
        self.max_upload_bytes = max_upload_bytes or self.config.MAX_UPLOAD_BYTES
        self.server_host = server_host or self.config.SERVER_HOST
        self.server_port = server_port or self.config.SERVER_PORT
        self.store = BlobStore(
            tombstone_ttl if tombstone_ttl is not None else self.config.TOMBSTONE_TTL,
            clock=clock,
        )
        self.app = FastAPI(title="SecureVault")

        self.routes = VaultRoutes(self.store, self.max_upload_bytes, self.logger)
        self.routes.setup_routes(self.app)

        self.logger.info(
            "Backend ready on http://%s:%s", self.server_host, self.server_port
        )
