"""
Interfaces and protocols for dependency injection.
"""

from __future__ import annotations

from typing import Callable, Protocol

from securevault.common.models import FileMetadata, TransferPolicy

ProgressCallback = Callable[[int, int], None]


class ITransferClient(Protocol):
    """Protocol for the backend request layer."""

    def get_info(self, resource_id: str) -> FileMetadata: ...

    def upload(
        self,
        blob: bytes,
        filename: str,
        policy: TransferPolicy,
        on_progress: ProgressCallback | None = None,
    ) -> str: ...

    def download(
        self, resource_id: str, on_progress: ProgressCallback | None = None
    ) -> bytes: ...


class IFileSaver(Protocol):
    """Protocol for delivering decrypted files to the host environment."""

    def __call__(self, filename: str, data: bytes) -> object: ...
