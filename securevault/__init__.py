# SecureVault

from securevault.client.application.publish_flow import PublishFlow
from securevault.client.application.retrieve_flow import RetrieveFlow
from securevault.client.client import VaultClient
from securevault.common.capability import is_supported
from securevault.common.crypto import CipherEngine, KeyCodec
from securevault.common.models import TransferPolicy

__all__ = [
    "CipherEngine",
    "KeyCodec",
    "PublishFlow",
    "RetrieveFlow",
    "TransferPolicy",
    "VaultClient",
    "is_supported",
]
