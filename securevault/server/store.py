"""
In-memory ciphertext store enforcing download counters and expiry.
"""

from __future__ import annotations

import threading
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable

from securevault.common.exceptions import Gone, NotFound
from securevault.common.models import FileMetadata

NOT_FOUND_MESSAGE = "This file does not exist or has already been deleted."
EXPIRED_MESSAGE = "This file has expired."
EXHAUSTED_MESSAGE = "This file has reached its download limit."


@dataclass
class StoredBlob:
    blob_id: str
    filename: str
    file_size: int
    remaining_downloads: int
    expires_at: float
    data: bytes | None = field(default=None, repr=False)

    def metadata(self) -> FileMetadata:
        return FileMetadata(
            original_filename=self.filename,
            file_size=self.file_size,
            remaining_downloads=self.remaining_downloads,
            expires_at=datetime.fromtimestamp(self.expires_at, tz=timezone.utc),
        )


class BlobStore:
    """Holds uploaded ciphertext. It never sees keys or plaintext."""

    def __init__(self, tombstone_ttl: int, clock: Callable[[], float] = time.time):
        self.tombstone_ttl = tombstone_ttl
        self.clock = clock
        self.blobs: dict[str, StoredBlob] = {}
        self._lock = threading.Lock()

    def add(
        self, filename: str, data: bytes, max_downloads: int, expiry_hours: float
    ) -> StoredBlob:
        """Store a new blob and return its record."""
        blob = StoredBlob(
            blob_id=str(uuid.uuid4()),
            filename=filename,
            file_size=len(data),
            remaining_downloads=max_downloads,
            expires_at=self.clock() + expiry_hours * 3600,
            data=data,
        )
        with self._lock:
            self.blobs[blob.blob_id] = blob
        return blob

    def _live(self, blob_id: str) -> StoredBlob:
        blob = self.blobs.get(blob_id)
        if blob is None:
            raise NotFound(NOT_FOUND_MESSAGE)
        if blob.expires_at <= self.clock():
            blob.data = None
            raise Gone(EXPIRED_MESSAGE)
        if blob.remaining_downloads <= 0 or blob.data is None:
            raise Gone(EXHAUSTED_MESSAGE)
        return blob

    def info(self, blob_id: str) -> FileMetadata:
        with self._lock:
            return self._live(blob_id).metadata()

    def take(self, blob_id: str) -> bytes:
        """Return the ciphertext and consume one download."""
        with self._lock:
            blob = self._live(blob_id)
            data = blob.data
            assert data is not None
            blob.remaining_downloads -= 1
            if blob.remaining_downloads == 0:
                # Keep a tombstone so later requests get 410 rather than 404
                blob.data = None
            return data

    def purge_expired(self) -> int:
        """Drop entries whose expiry passed more than tombstone_ttl ago."""
        cutoff = self.clock() - self.tombstone_ttl
        with self._lock:
            stale = [
                bid for bid, blob in self.blobs.items() if blob.expires_at < cutoff
            ]
            for bid in stale:
                self.blobs.pop(bid, None)
        return len(stale)
