"""
Application layer: publish flow.

Idle -> Encrypting -> Uploading -> Published, with Failed reachable from any
active state. The file key lives only in the local scope of a run and is
dropped as soon as it has been encoded into the share link.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Callable

from securevault.client.domain.entities import (
    FlowError,
    PublishSnapshot,
    PublishState,
    SelectedFile,
    ShareLink,
)
from securevault.common.capability import is_supported
from securevault.common.config import Config
from securevault.common.crypto import CipherEngine, KeyCodec
from securevault.common.decorators import requires_capability
from securevault.common.exceptions import ErrorKind, NoFileSelected, VaultError
from securevault.common.models import ENCRYPTED_SUFFIX, TransferPolicy

if TYPE_CHECKING:
    from securevault.common.interfaces import ITransferClient

ACTIVE_STATES = (PublishState.ENCRYPTING, PublishState.UPLOADING)

# Progress checkpoints inside the encryption share, as fractions of it
STARTED = 1 / 6
KEY_READY = 1 / 2

logger = logging.getLogger(__name__)


class _Superseded(Exception):
    """Raised inside a run once reset() has replaced it."""


class PublishFlow:
    """Encrypts a selected file, uploads it and builds the share link."""

    def __init__(
        self,
        transfer_client: ITransferClient,
        link_base_url: str,
        *,
        encrypt_fraction: float | None = None,
        capability_probe: Callable[[], bool] = is_supported,
        on_change: Callable[[PublishSnapshot], None] | None = None,
        config: Config | None = None,
    ):
        self.config = config or Config()
        fraction = (
            encrypt_fraction
            if encrypt_fraction is not None
            else self.config.ENCRYPT_PROGRESS_FRACTION
        )
        if not 0 < fraction < 1:
            msg = "encrypt_fraction must be between 0 and 1"
            raise ValueError(msg)
        self.transfer_client = transfer_client
        self.link_base_url = link_base_url.rstrip("/")
        self.encrypt_fraction = fraction
        self.capability_probe = capability_probe
        self._listeners: list[Callable[[PublishSnapshot], None]] = []
        if on_change:
            self._listeners.append(on_change)

        self._lock = threading.Lock()
        self._generation = 0
        self._state = PublishState.IDLE
        self._progress = 0
        self._file: SelectedFile | None = None
        self._share_link: ShareLink | None = None
        self._error: FlowError | None = None

    # Query interface

    @property
    def state(self) -> PublishState:
        return self._state

    @property
    def progress(self) -> int:
        return self._progress

    @property
    def share_link(self) -> ShareLink | None:
        return self._share_link

    @property
    def error(self) -> FlowError | None:
        return self._error

    @property
    def selected_file(self) -> SelectedFile | None:
        return self._file

    def snapshot(self) -> PublishSnapshot:
        return PublishSnapshot(
            state=self._state,
            progress=self._progress,
            file_name=self._file.name if self._file else None,
            share_link=self._share_link,
            error=self._error,
        )

    def subscribe(
        self, listener: Callable[[PublishSnapshot], None]
    ) -> Callable[[], None]:
        """Register a state listener; returns a function that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            listener(snapshot)

    # Commands

    def select_file(self, selected: SelectedFile) -> None:
        """Choose the file to publish; clears any previous result."""
        self.reset()
        self._file = selected
        self._notify()

    def reset(self) -> None:
        """Return to Idle and abandon whatever run is in flight."""
        with self._lock:
            self._generation += 1
            self._state = PublishState.IDLE
            self._progress = 0
            self._file = None
            self._share_link = None
            self._error = None
        self._notify()

    def publish(self, policy: TransferPolicy | None = None) -> ShareLink | None:
        """Run the whole publish sequence; returns the link, or None on failure."""
        policy = policy or TransferPolicy(
            max_downloads=self.config.DEFAULT_MAX_DOWNLOADS,
            expiry_hours=self.config.DEFAULT_EXPIRY_HOURS,
        )
        with self._lock:
            if self._state in ACTIVE_STATES:
                msg = "A publish is already in progress"
                raise RuntimeError(msg)
            generation = self._generation
            self._state = PublishState.ENCRYPTING
            self._progress = 0
            self._share_link = None
            self._error = None

        try:
            return self._run(policy, generation)
        except _Superseded:
            logger.info("Publish superseded by reset, discarding result")
            return None
        except VaultError as err:
            self._fail(generation, FlowError.from_exception(err))
            return None
        except Exception:
            logger.exception("Unexpected publish error")
            self._fail(
                generation,
                FlowError(kind=ErrorKind.UNKNOWN, message="Unexpected error"),
            )
            raise

    @requires_capability("capability_probe")
    def _run(self, policy: TransferPolicy, generation: int) -> ShareLink:
        selected = self._file
        if selected is None:
            msg = "Please select a file."
            raise NoFileSelected(msg)

        encrypt_share = self.encrypt_fraction * 100
        self._advance(generation, PublishState.ENCRYPTING, encrypt_share * STARTED)
        key = KeyCodec.generate_key()
        self._advance(generation, PublishState.ENCRYPTING, encrypt_share * KEY_READY)
        container = CipherEngine.encrypt(selected.data, key)
        blob = container.to_bytes()
        self._advance(generation, PublishState.UPLOADING, encrypt_share)

        upload_share = 100 - encrypt_share

        def on_upload_progress(sent: int, total: int) -> None:
            if total > 0:
                self._advance(
                    generation,
                    PublishState.UPLOADING,
                    encrypt_share + upload_share * sent / total,
                )

        resource_id = self.transfer_client.upload(
            blob, selected.name + ENCRYPTED_SUFFIX, policy, on_upload_progress
        )
        self._check_current(generation)

        share_link = ShareLink(
            base_url=self.link_base_url,
            resource_id=resource_id,
            key_token=KeyCodec.encode(key),
        )
        del key

        with self._lock:
            self._check_current(generation)
            self._share_link = share_link
            self._state = PublishState.PUBLISHED
            self._progress = 100
        logger.info("Published %s as %s", selected.name, share_link.redacted)
        self._notify()
        return share_link

    def _check_current(self, generation: int) -> None:
        if generation != self._generation:
            raise _Superseded

    def _advance(self, generation: int, state: PublishState, progress: float) -> None:
        with self._lock:
            self._check_current(generation)
            self._state = state
            self._progress = max(self._progress, min(100, int(progress)))
        self._notify()

    def _fail(self, generation: int, error: FlowError) -> None:
        with self._lock:
            if generation != self._generation:
                return
            self._state = PublishState.FAILED
            self._error = error
        logger.warning("Publish failed (%s): %s", error.kind.value, error.message)
        self._notify()
