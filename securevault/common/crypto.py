"""
Key handling and authenticated encryption for shared files.

Files are sealed with AES-256-GCM. The wire container is the 12-byte IV
followed by the ciphertext with the 16-byte tag appended, exactly as
``AESGCM.encrypt`` produces it. Keys travel only as unpadded base64url
tokens inside the link fragment.
"""

from __future__ import annotations

import base64
import binascii
import hmac
import os
import re
from dataclasses import dataclass

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from securevault.common.exceptions import (
    AuthenticationFailed,
    MalformedKey,
    UnsupportedEnvironment,
)

KEY_SIZE = 32
IV_SIZE = 12
TAG_SIZE = 16
TOKEN_LENGTH = 43  # ceil(32 * 4 / 3) without padding

_TOKEN_RE = re.compile(r"^[A-Za-z0-9_-]+$")


def secure_random(size: int) -> bytes:
    """Bytes from the OS CSPRNG; never degrades to a weaker source."""
    try:
        return os.urandom(size)
    except NotImplementedError as err:
        msg = "No secure random source is available on this platform"
        raise UnsupportedEnvironment(msg) from err


class SymmetricKey:
    """A 256-bit file key. Its material is never shown in reprs or logs."""

    __slots__ = ("_material",)

    def __init__(self, material: bytes) -> None:
        if not isinstance(material, (bytes, bytearray)) or len(material) != KEY_SIZE:
            msg = f"Key must be exactly {KEY_SIZE} bytes"
            raise MalformedKey(msg)
        self._material = bytes(material)

    @property
    def material(self) -> bytes:
        return self._material

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SymmetricKey):
            return NotImplemented
        return hmac.compare_digest(self._material, other._material)

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return "SymmetricKey(<redacted>)"

    __str__ = __repr__


@dataclass(frozen=True)
class CipherContainer:
    """IV plus ciphertext-with-tag, as stored by the backend."""

    iv: bytes
    sealed: bytes

    def to_bytes(self) -> bytes:
        return self.iv + self.sealed

    @classmethod
    def parse(cls, data: bytes) -> CipherContainer:
        if len(data) < IV_SIZE + TAG_SIZE:
            msg = "Encrypted payload is truncated"
            raise AuthenticationFailed(msg)
        return cls(iv=bytes(data[:IV_SIZE]), sealed=bytes(data[IV_SIZE:]))

    def __len__(self) -> int:
        return len(self.iv) + len(self.sealed)


class KeyCodec:
    """Generates keys and converts them to and from fragment-safe tokens."""

    @staticmethod
    def generate_key() -> SymmetricKey:
        return SymmetricKey(secure_random(KEY_SIZE))

    @staticmethod
    def encode(key: SymmetricKey) -> str:
        return base64.urlsafe_b64encode(key.material).rstrip(b"=").decode("ascii")

    @staticmethod
    def decode(token: str) -> SymmetricKey:
        """Parse a token; anything but a canonical 43-char encoding is rejected."""
        if (
            not isinstance(token, str)
            or len(token) != TOKEN_LENGTH
            or not _TOKEN_RE.match(token)
        ):
            msg = "Key token is missing characters or contains invalid ones"
            raise MalformedKey(msg)
        try:
            material = base64.urlsafe_b64decode(token + "=")
        except (binascii.Error, ValueError) as err:
            msg = "Key token is not valid base64url"
            raise MalformedKey(msg) from err
        key = SymmetricKey(material)
        # Reject tokens whose unused trailing bits are set
        if KeyCodec.encode(key) != token:
            msg = "Key token is not in canonical form"
            raise MalformedKey(msg)
        return key


class CipherEngine:
    """AES-256-GCM over whole-file payloads."""

    @staticmethod
    def encrypt(plaintext: bytes, key: SymmetricKey) -> CipherContainer:
        iv = secure_random(IV_SIZE)
        sealed = AESGCM(key.material).encrypt(iv, bytes(plaintext), None)
        return CipherContainer(iv=iv, sealed=sealed)

    @staticmethod
    def decrypt(container: CipherContainer | bytes, key: SymmetricKey) -> bytes:
        if not isinstance(container, CipherContainer):
            container = CipherContainer.parse(container)
        if len(container.iv) != IV_SIZE or len(container.sealed) < TAG_SIZE:
            msg = "Encrypted payload is truncated"
            raise AuthenticationFailed(msg)
        try:
            return AESGCM(key.material).decrypt(container.iv, container.sealed, None)
        except InvalidTag as err:
            msg = "Decryption failed: wrong key or corrupted data"
            raise AuthenticationFailed(msg) from err
