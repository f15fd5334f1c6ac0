"""
Application layer: retrieve flow.

Loading -> Ready -> Downloading -> Success, with Expired and Failed as error
terminals. The key token comes from the link context handed in at
construction; it is decoded locally and never passed to the request layer.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Callable

from securevault.client.domain.entities import (
    FlowError,
    LinkContext,
    RetrievedFile,
    RetrieveSnapshot,
    RetrieveState,
    ShareLink,
)
from securevault.common.capability import is_supported
from securevault.common.crypto import CipherEngine, KeyCodec
from securevault.common.decorators import requires_capability
from securevault.common.exceptions import (
    AuthenticationFailed,
    ErrorKind,
    Gone,
    MalformedKey,
    MissingKey,
    NotFound,
    SaveFailed,
    UnsupportedEnvironment,
    VaultError,
)

if TYPE_CHECKING:
    from securevault.common.interfaces import IFileSaver, ITransferClient
    from securevault.common.models import FileMetadata

MISSING_KEY_MESSAGE = "Invalid link: the decryption key is missing."
INFO_FAILED_MESSAGE = "Unable to retrieve file information."
INVALID_KEY_MESSAGE = "Invalid decryption key. The link may be incomplete."
EXHAUSTED_MESSAGE = (
    "This file has expired or has already been downloaded "
    "the maximum number of times."
)

# Progress checkpoints on the 0-100 scale
KEY_DECODED = 10
DOWNLOAD_DONE = 80
DECRYPTED = 95

logger = logging.getLogger(__name__)


class _Superseded(Exception):
    """Raised inside a run once reset() has replaced it."""


class RetrieveFlow:
    """Fetches metadata and ciphertext for a link and decrypts it locally."""

    def __init__(
        self,
        link: LinkContext | ShareLink | str,
        transfer_client: ITransferClient,
        *,
        file_saver: IFileSaver | None = None,
        capability_probe: Callable[[], bool] = is_supported,
        on_change: Callable[[RetrieveSnapshot], None] | None = None,
    ):
        if isinstance(link, str):
            link = LinkContext.from_url(link)
        elif isinstance(link, ShareLink):
            link = LinkContext.from_share_link(link)
        self.link = link
        self.transfer_client = transfer_client
        self.file_saver = file_saver
        self.capability_probe = capability_probe
        self._listeners: list[Callable[[RetrieveSnapshot], None]] = []
        if on_change:
            self._listeners.append(on_change)

        self._lock = threading.Lock()
        self._generation = 0
        self._state = RetrieveState.LOADING
        self._progress = 0
        self._metadata: FileMetadata | None = None
        self._result: RetrievedFile | None = None
        self._error: FlowError | None = None

    # Query interface

    @property
    def state(self) -> RetrieveState:
        return self._state

    @property
    def progress(self) -> int:
        return self._progress

    @property
    def metadata(self) -> FileMetadata | None:
        return self._metadata

    @property
    def result(self) -> RetrievedFile | None:
        return self._result

    @property
    def error(self) -> FlowError | None:
        return self._error

    def snapshot(self) -> RetrieveSnapshot:
        return RetrieveSnapshot(
            state=self._state,
            progress=self._progress,
            metadata=self._metadata,
            result=self._result,
            error=self._error,
        )

    def subscribe(
        self, listener: Callable[[RetrieveSnapshot], None]
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

    def reset(self) -> None:
        """Abandon in-flight work and go back to Loading."""
        with self._lock:
            self._generation += 1
            self._state = RetrieveState.LOADING
            self._progress = 0
            self._metadata = None
            self._result = None
            self._error = None
        self._notify()

    def load(self) -> FileMetadata | None:
        """Fetch the file's metadata; returns it once the flow is Ready."""
        with self._lock:
            if self._state is not RetrieveState.LOADING:
                msg = f"Cannot load from state {self._state.value}"
                raise RuntimeError(msg)
            generation = self._generation

        try:
            return self._load(generation)
        except _Superseded:
            logger.info("Metadata request superseded, discarding result")
            return None
        except (NotFound, Gone) as err:
            self._finish_error(
                generation, RetrieveState.EXPIRED, FlowError.from_exception(err)
            )
            return None
        except (MissingKey, MalformedKey, UnsupportedEnvironment) as err:
            self._finish_error(
                generation, RetrieveState.FAILED, FlowError.from_exception(err)
            )
            return None
        except VaultError as err:
            self._finish_error(
                generation,
                RetrieveState.FAILED,
                FlowError.from_exception(err, INFO_FAILED_MESSAGE),
            )
            return None
        except Exception:
            logger.exception("Unexpected error while loading %s", self.link.redacted)
            self._finish_error(
                generation,
                RetrieveState.FAILED,
                FlowError(kind=ErrorKind.UNKNOWN, message=INFO_FAILED_MESSAGE),
            )
            raise

    @requires_capability("capability_probe")
    def _load(self, generation: int) -> FileMetadata:
        if not self.link.fragment:
            raise MissingKey(MISSING_KEY_MESSAGE)

        metadata = self.transfer_client.get_info(self.link.resource_id)
        with self._lock:
            self._check_current(generation)
            self._metadata = metadata
            self._state = RetrieveState.READY
        logger.info(
            "File ready: %s (%d bytes)", metadata.display_name, metadata.file_size
        )
        self._notify()
        return metadata

    def download(self) -> RetrievedFile | None:
        """Download and decrypt; only runs after explicit user action.

        Allowed from Ready, or straight from a retryable failure once the
        metadata is known.
        """
        with self._lock:
            if self._metadata is None or not (
                self._state is RetrieveState.READY or self._can_retry()
            ):
                msg = f"Cannot download from state {self._state.value}"
                raise RuntimeError(msg)
            generation = self._generation
            self._state = RetrieveState.DOWNLOADING
            self._progress = 0
            self._error = None

        try:
            return self._download(generation)
        except _Superseded:
            logger.info("Download superseded, discarding result")
            return None
        except (AuthenticationFailed, MalformedKey) as err:
            self._finish_error(
                generation,
                RetrieveState.FAILED,
                FlowError.from_exception(err, INVALID_KEY_MESSAGE),
            )
            return None
        except SaveFailed as err:
            self._finish_error(
                generation, RetrieveState.FAILED, FlowError.from_exception(err)
            )
            return None
        except (Gone, NotFound) as err:
            self._finish_error(
                generation,
                RetrieveState.EXPIRED,
                FlowError.from_exception(err, EXHAUSTED_MESSAGE),
            )
            return None
        except VaultError as err:
            self._finish_error(
                generation, RetrieveState.FAILED, FlowError.from_exception(err)
            )
            return None
        except Exception:
            logger.exception(
                "Unexpected error while downloading %s", self.link.redacted
            )
            self._finish_error(
                generation,
                RetrieveState.FAILED,
                FlowError(kind=ErrorKind.UNKNOWN, message="Unexpected error"),
            )
            raise

    @requires_capability("capability_probe")
    def _download(self, generation: int) -> RetrievedFile:
        self._advance(generation, RetrieveState.DOWNLOADING, 0)
        key = KeyCodec.decode(self.link.fragment)
        self._advance(generation, RetrieveState.DOWNLOADING, KEY_DECODED)

        span = DOWNLOAD_DONE - KEY_DECODED

        def on_download_progress(received: int, total: int) -> None:
            if total > 0:
                self._advance(
                    generation,
                    RetrieveState.DOWNLOADING,
                    KEY_DECODED + span * min(received, total) / total,
                )

        blob = self.transfer_client.download(
            self.link.resource_id, on_download_progress
        )
        self._advance(generation, RetrieveState.DOWNLOADING, DOWNLOAD_DONE)

        plaintext = CipherEngine.decrypt(blob, key)
        del key
        self._advance(generation, RetrieveState.DOWNLOADING, DECRYPTED)

        metadata = self._metadata
        self._check_current(generation)
        assert metadata is not None
        result = RetrievedFile(filename=metadata.display_name, data=plaintext)

        with self._lock:
            self._check_current(generation)
            self._result = result
            self._state = RetrieveState.SUCCESS
            self._progress = 100
        logger.info("Decrypted %s (%d bytes)", result.filename, len(result.data))
        self._notify()
        if self.file_saver is not None:
            self._deliver(result)
        return result

    def _deliver(self, result: RetrievedFile) -> None:
        # The download is already spent; the plaintext stays on self.result
        try:
            self.file_saver(result.filename, result.data)
        except OSError as err:
            msg = f"Could not save {result.filename}: {err.strerror or err}"
            raise SaveFailed(msg) from err

    def retry(self) -> RetrieveState:
        """Return to the last safe checkpoint after a retryable failure.

        With metadata already fetched the flow goes back to Ready and waits
        for download(). Otherwise it goes back to Loading and fetches the
        metadata again. Returns the resulting state.
        """
        with self._lock:
            if not self._can_retry():
                msg = "Nothing to retry"
                raise RuntimeError(msg)
            self._state = (
                RetrieveState.READY
                if self._metadata is not None
                else RetrieveState.LOADING
            )
            self._error = None
            self._progress = 0
            state = self._state
        self._notify()
        if state is RetrieveState.LOADING:
            self.load()
        return self._state

    def _can_retry(self) -> bool:
        return (
            self._state is RetrieveState.FAILED
            and self._error is not None
            and self._error.retryable
        )

    def _check_current(self, generation: int) -> None:
        if generation != self._generation:
            raise _Superseded

    def _advance(self, generation: int, state: RetrieveState, progress: float) -> None:
        with self._lock:
            self._check_current(generation)
            self._state = state
            self._progress = max(self._progress, min(100, int(progress)))
        self._notify()

    def _finish_error(
        self, generation: int, state: RetrieveState, error: FlowError
    ) -> None:
        with self._lock:
            if generation != self._generation:
                return
            self._state = state
            self._error = error
        logger.warning(
            "Retrieve %s (%s): %s", state.value, error.kind.value, error.message
        )
        self._notify()
