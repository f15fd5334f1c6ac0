"""
Entry point for the reference backend.
"""

from __future__ import annotations

import logging

import uvicorn

from securevault.common.config import Config

from .core import VaultServer


def start_server(config: Config | None = None) -> None:
    """Start the reference backend."""
    if config is None:
        config = Config()
    logging.basicConfig(level=config.LOG_LEVEL)
    server = VaultServer(config=config)
    uvicorn.run(server.app, host=server.server_host, port=server.server_port)


__all__ = ["VaultServer", "start_server"]
