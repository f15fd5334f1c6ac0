"""
Exceptions for the encrypted transfer protocol.

Every failure the client can surface to a user is one of these classes. Each
carries an ``ErrorKind`` so callers can branch on the kind of failure rather
than on message text.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    UNSUPPORTED_ENVIRONMENT = "unsupported_environment"
    NO_FILE = "no_file"
    MISSING_KEY = "missing_key"
    MALFORMED_KEY = "malformed_key"
    MALFORMED_LINK = "malformed_link"
    AUTHENTICATION_FAILED = "authentication_failed"
    NOT_FOUND = "not_found"
    GONE = "gone"
    TRANSPORT = "transport"
    SAVE_FAILED = "save_failed"
    UNKNOWN = "unknown"


class VaultError(Exception):
    """Base exception for all protocol failures."""

    kind: ErrorKind = ErrorKind.UNKNOWN
    retryable: bool = False

    def __init__(self, message: str, status_code: int = 400) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class UnsupportedEnvironment(VaultError):
    """No secure randomness or AES-GCM implementation is available."""

    kind = ErrorKind.UNSUPPORTED_ENVIRONMENT

    def __init__(self, message: str) -> None:
        super().__init__(message, 500)


class NoFileSelected(VaultError):
    kind = ErrorKind.NO_FILE


class MissingKey(VaultError):
    """The link has no fragment, so nothing can be decrypted."""

    kind = ErrorKind.MISSING_KEY


class MalformedKey(VaultError):
    """The fragment is not a valid encoding of a 256-bit key."""

    kind = ErrorKind.MALFORMED_KEY


class MalformedLink(VaultError):
    kind = ErrorKind.MALFORMED_LINK


class AuthenticationFailed(VaultError):
    """The GCM tag did not verify: wrong key, corruption or tampering."""

    kind = ErrorKind.AUTHENTICATION_FAILED


class NotFound(VaultError):
    """The resource never existed or was deleted."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, message: str) -> None:
        super().__init__(message, 404)


class Gone(VaultError):
    """The resource expired or its download limit was reached."""

    kind = ErrorKind.GONE

    def __init__(self, message: str) -> None:
        super().__init__(message, 410)


class TransportError(VaultError):
    """Network failure or unexpected backend response."""

    kind = ErrorKind.TRANSPORT
    retryable = True

    def __init__(self, message: str, status_code: int = 502) -> None:
        super().__init__(message, status_code)


class SaveFailed(VaultError):
    """Decrypted plaintext could not be written to its destination."""

    kind = ErrorKind.SAVE_FAILED


_BY_KIND: dict[ErrorKind, type[VaultError]] = {
    cls.kind: cls
    for cls in (
        UnsupportedEnvironment,
        NoFileSelected,
        MissingKey,
        MalformedKey,
        MalformedLink,
        AuthenticationFailed,
        NotFound,
        Gone,
        TransportError,
        SaveFailed,
    )
}


def error_for_kind(kind: ErrorKind, message: str) -> VaultError:
    """Rebuild the exception matching a recorded failure kind."""
    return _BY_KIND.get(kind, VaultError)(message)
