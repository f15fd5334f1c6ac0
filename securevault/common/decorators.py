"""Decorators that guard operations behind the capability probe.
"""

from __future__ import annotations

import logging
from functools import wraps
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable

from securevault.common.capability import UNSUPPORTED_MESSAGE, is_supported
from securevault.common.exceptions import UnsupportedEnvironment

logger = logging.getLogger(__name__)


def requires_capability(
    probe: Callable[[], bool] | str = is_supported,
    error_message: str = UNSUPPORTED_MESSAGE,
    *,
    raise_exception: bool = True,
) -> Callable:
    """Decorator that runs the function only when the crypto probe passes.

    Args:
        probe: Probe callable, or the name of an attribute on ``self`` holding one
        error_message: Message carried by UnsupportedEnvironment
        raise_exception: Whether to raise or return None when unsupported

    Returns:
        Decorated function that refuses to run in an unsupported environment
    """

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            if isinstance(probe, str):
                if not args:
                    error_msg = f"Cannot get probe attribute '{probe}' without self"
                    raise ValueError(error_msg)
                check = getattr(args[0], probe)
            else:
                check = probe

            if not check():
                if raise_exception:
                    raise UnsupportedEnvironment(error_message)
                logger.warning("Capability check failed: %s", error_message)
                return None
            return func(*args, **kwargs)

        return wrapper

    return decorator
