"""
Client entry point: builds transfer clients and flows from configuration.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Callable

from securevault.client.application.publish_flow import PublishFlow
from securevault.client.application.retrieve_flow import RetrieveFlow
from securevault.client.domain.entities import (
    LinkContext,
    PublishState,
    RetrievedFile,
    RetrieveState,
    SelectedFile,
    ShareLink,
)
from securevault.client.infrastructure.config_loader import ConfigLoader
from securevault.client.infrastructure.file_saver import DirectorySaver
from securevault.client.transfer import TransferClient
from securevault.common.capability import is_supported
from securevault.common.exceptions import VaultError, error_for_kind
from securevault.common.models import ClientConfig, FileMetadata, TransferPolicy

if TYPE_CHECKING:
    import requests

    from securevault.client.domain.entities import (
        FlowError,
        PublishSnapshot,
        RetrieveSnapshot,
    )


class VaultClient:
    """Publishes and retrieves end-to-end encrypted files."""

    def __init__(
        self,
        server_url: str | None = None,
        *,
        client_config: ClientConfig | None = None,
        session: requests.Session | None = None,
        capability_probe: Callable[[], bool] = is_supported,
    ):
        client_config = client_config or ClientConfig()
        if server_url:
            client_config = client_config.model_copy(update={"server_url": server_url})
        self.loader = ConfigLoader(client_config)
        self.server_url = self.loader.server_url
        self.session = session
        self.capability_probe = capability_probe
        self.on_error_callback = self.loader.on_error_callback
        self.transfer = self._transfer_for(self.server_url)

    def _transfer_for(self, base_url: str) -> TransferClient:
        return TransferClient(
            base_url,
            session=self.session,
            timeout=self.loader.request_timeout,
            chunk_size=self.loader.chunk_size,
            config=self.loader.config,
        )

    def is_supported(self) -> bool:
        return self.capability_probe()

    def publish_flow(
        self, on_change: Callable[[PublishSnapshot], None] | None = None
    ) -> PublishFlow:
        return PublishFlow(
            self.transfer,
            self.server_url,
            encrypt_fraction=self.loader.encrypt_progress_fraction,
            capability_probe=self.capability_probe,
            on_change=on_change,
            config=self.loader.config,
        )

    def retrieve_flow(
        self,
        link: LinkContext | ShareLink | str,
        *,
        output_dir: Path | str | None = None,
        on_change: Callable[[RetrieveSnapshot], None] | None = None,
    ) -> RetrieveFlow:
        """Flow for a link; requests go to the origin the link was shared from."""
        if isinstance(link, str):
            link = LinkContext.from_url(link)
        elif isinstance(link, ShareLink):
            link = LinkContext.from_share_link(link)
        saver = DirectorySaver(output_dir) if output_dir is not None else None
        return RetrieveFlow(
            link,
            self._transfer_for(link.base_url),
            file_saver=saver,
            capability_probe=self.capability_probe,
            on_change=on_change,
        )

    def _raise(self, error: FlowError | None) -> None:
        exc = (
            error_for_kind(error.kind, error.message)
            if error
            else VaultError("Operation failed")
        )
        if self.on_error_callback:
            self.on_error_callback(exc)
        raise exc

    def publish_file(
        self, path: Path | str, policy: TransferPolicy | None = None
    ) -> ShareLink:
        """Encrypt and upload a file in one call."""
        flow = self.publish_flow()
        flow.select_file(SelectedFile.from_path(path))
        link = flow.publish(policy)
        if link is None or flow.state is not PublishState.PUBLISHED:
            self._raise(flow.error)
        assert link is not None
        return link

    def info(self, link: LinkContext | ShareLink | str) -> FileMetadata:
        flow = self.retrieve_flow(link)
        metadata = flow.load()
        if metadata is None:
            self._raise(flow.error)
        assert metadata is not None
        return metadata

    def retrieve(
        self,
        link: LinkContext | ShareLink | str,
        output_dir: Path | str | None = None,
    ) -> RetrievedFile:
        """Fetch, decrypt and optionally save a shared file in one call."""
        flow = self.retrieve_flow(link, output_dir=output_dir)
        if flow.load() is None:
            self._raise(flow.error)
        result = flow.download()
        if result is None or flow.state is not RetrieveState.SUCCESS:
            self._raise(flow.error)
        assert result is not None
        return result
