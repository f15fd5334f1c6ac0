"""Domain layer: links, files and flow state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING
from urllib.parse import quote, unquote, urlsplit, urlunsplit

from securevault.common.exceptions import ErrorKind, MalformedLink, VaultError

if TYPE_CHECKING:
    from securevault.common.models import FileMetadata

LINK_PATH_PREFIX = "/download/"
REDACTED = "<redacted>"


def _link_url(base_url: str, resource_id: str, fragment: str) -> str:
    path_id = quote(resource_id, safe="")
    return f"{base_url.rstrip('/')}{LINK_PATH_PREFIX}{path_id}#{fragment}"


@dataclass(frozen=True)
class ShareLink:
    """Backend resource id plus the key token carried in the fragment."""

    base_url: str
    resource_id: str
    key_token: str = field(repr=False)

    @property
    def url(self) -> str:
        return _link_url(self.base_url, self.resource_id, self.key_token)

    @property
    def redacted(self) -> str:
        return _link_url(self.base_url, self.resource_id, REDACTED)


@dataclass(frozen=True)
class LinkContext:
    """The link a retrieve flow was opened with, split into its parts."""

    base_url: str
    resource_id: str
    fragment: str = field(default="", repr=False)

    @classmethod
    def from_url(cls, url: str) -> LinkContext:
        parts = urlsplit(url.strip())
        if parts.scheme not in ("http", "https") or not parts.netloc:
            msg = "Link must be an http(s) URL"
            raise MalformedLink(msg)
        index = parts.path.rfind(LINK_PATH_PREFIX)
        if index < 0:
            msg = "Link does not point to a shared file"
            raise MalformedLink(msg)
        resource_id = unquote(parts.path[index + len(LINK_PATH_PREFIX) :])
        if not resource_id or "/" in resource_id:
            msg = "Link does not contain a file identifier"
            raise MalformedLink(msg)
        base_url = urlunsplit((parts.scheme, parts.netloc, parts.path[:index], "", ""))
        return cls(base_url=base_url, resource_id=resource_id, fragment=parts.fragment)

    @classmethod
    def from_share_link(cls, link: ShareLink) -> LinkContext:
        return cls(
            base_url=link.base_url,
            resource_id=link.resource_id,
            fragment=link.key_token,
        )

    @property
    def redacted(self) -> str:
        return _link_url(self.base_url, self.resource_id, REDACTED)


@dataclass(frozen=True)
class SelectedFile:
    """A file chosen for publishing."""

    name: str
    data: bytes = field(repr=False)

    @classmethod
    def from_path(cls, path: Path | str) -> SelectedFile:
        file_path = Path(path)
        return cls(name=file_path.name, data=file_path.read_bytes())

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class RetrievedFile:
    """Decrypted plaintext and the filename it was shared under."""

    filename: str
    data: bytes = field(repr=False)


@dataclass(frozen=True)
class FlowError:
    """User-facing failure captured by a flow."""

    kind: ErrorKind
    message: str
    retryable: bool = False

    @classmethod
    def from_exception(cls, err: VaultError, message: str | None = None) -> FlowError:
        return cls(
            kind=err.kind, message=message or err.message, retryable=err.retryable
        )


class PublishState(str, Enum):
    IDLE = "idle"
    ENCRYPTING = "encrypting"
    UPLOADING = "uploading"
    PUBLISHED = "published"
    FAILED = "failed"


class RetrieveState(str, Enum):
    LOADING = "loading"
    READY = "ready"
    DOWNLOADING = "downloading"
    SUCCESS = "success"
    EXPIRED = "expired"
    FAILED = "failed"


@dataclass(frozen=True)
class PublishSnapshot:
    state: PublishState
    progress: int
    file_name: str | None = None
    share_link: ShareLink | None = None
    error: FlowError | None = None


@dataclass(frozen=True)
class RetrieveSnapshot:
    state: RetrieveState
    progress: int
    metadata: FileMetadata | None = None
    result: RetrievedFile | None = None
    error: FlowError | None = None
