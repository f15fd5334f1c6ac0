# Common utilities
from securevault.common.crypto import CipherEngine as CipherEngine
from securevault.common.crypto import KeyCodec as KeyCodec
from securevault.common.logging_utils import setup_logger as setup_logger

__all__ = ["CipherEngine", "KeyCodec", "setup_logger"]
