"""
Capability probe: confirms AES-256-GCM and secure randomness before any flow runs.
"""

from __future__ import annotations

import logging
from functools import lru_cache

from cryptography.exceptions import InvalidTag, UnsupportedAlgorithm
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from securevault.common.crypto import IV_SIZE, KEY_SIZE, secure_random
from securevault.common.exceptions import UnsupportedEnvironment

logger = logging.getLogger(__name__)

UNSUPPORTED_MESSAGE = (
    "This environment cannot encrypt or decrypt files: AES-256-GCM is not "
    "available. Install a current release of the 'cryptography' package "
    "built against a recent OpenSSL."
)

_PROBE_PLAINTEXT = b"securevault capability probe"


@lru_cache(maxsize=1)
def is_supported() -> bool:
    """Run a real AES-256-GCM round trip with a random key."""
    try:
        key = secure_random(KEY_SIZE)
        iv = secure_random(IV_SIZE)
        cipher = AESGCM(key)
        sealed = cipher.encrypt(iv, _PROBE_PLAINTEXT, None)
        supported = cipher.decrypt(iv, sealed, None) == _PROBE_PLAINTEXT
    except (UnsupportedEnvironment, UnsupportedAlgorithm, InvalidTag) as err:
        logger.warning("Capability probe failed: %s", err)
        return False
    if not supported:
        logger.warning("Capability probe failed: round trip mismatch")
    return supported


def require_supported() -> None:
    """Raise UnsupportedEnvironment unless the probe passes."""
    if not is_supported():
        raise UnsupportedEnvironment(UNSUPPORTED_MESSAGE)
