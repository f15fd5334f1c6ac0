"""Infrastructure layer: resolves client settings against Config defaults.
"""

from __future__ import annotations

from securevault.common.config import Config
from securevault.common.logging_utils import configure_package_logging
from securevault.common.models import ClientConfig


class ConfigLoader:
    """Merges a ClientConfig with the Config defaults."""

    def __init__(self, client_config: ClientConfig | None = None):
        client_config = client_config or ClientConfig()
        self.config: Config = Config()

        # Compute server_url if host and port provided
        if client_config.server_host and client_config.server_port:
            self.server_url = (
                f"http://{client_config.server_host}:{client_config.server_port}"
            )
        else:
            self.server_url = client_config.server_url or self.config.SERVER_URL
        self.server_url = self.server_url.rstrip("/")

        self.log_level: int = (
            client_config.log_level
            if client_config.log_level is not None
            else self.config.LOG_LEVEL
        )
        self.request_timeout: float | None = (
            client_config.request_timeout
            if client_config.request_timeout is not None
            else self.config.REQUEST_TIMEOUT
        )
        self.chunk_size: int = client_config.chunk_size or self.config.CHUNK_SIZE
        self.encrypt_progress_fraction: float = (
            client_config.encrypt_progress_fraction
            if client_config.encrypt_progress_fraction is not None
            else self.config.ENCRYPT_PROGRESS_FRACTION
        )
        self.on_error_callback = client_config.on_error_callback

        # Setup logging
        self.logger = configure_package_logging(self.log_level)
        self.logger.debug("Using server %s", self.server_url)
