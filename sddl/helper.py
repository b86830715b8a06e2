"""Process-wide default resolver and a one-call entry point."""

import threading
from typing import Any, Callable, Dict, Optional

from .config import Settings
from .orchestrator import FunctionCallback, Resolver

_global_resolver: Optional[Resolver] = None
_global_lock = threading.Lock()


def get_resolver(settings: Optional[Settings] = None, **kwargs) -> Resolver:
    """
    Get or create the process-wide resolver.

    Arguments only apply on the first call; later calls return the same
    instance so the in-flight gate is shared by every caller.

    Args:
        settings: Configuration (default: Settings.from_env())
        **kwargs: Additional arguments passed to Resolver
    """
    global _global_resolver

    with _global_lock:
        if _global_resolver is None:
            _global_resolver = Resolver(settings or Settings.from_env(), **kwargs)
        return _global_resolver


def reset_resolver() -> None:
    """Close and drop the process-wide resolver (useful for testing)."""
    global _global_resolver

    with _global_lock:
        resolver, _global_resolver = _global_resolver, None
    if resolver is not None:
        resolver.close()


def resolve(
    data: Optional[str],
    on_success: Callable[[Dict[str, Any]], None],
    on_error: Optional[Callable[[str], None]] = None,
    read_clipboard: bool = True,
) -> bool:
    """
    Resolve the deferred deep link with the process-wide resolver.

    Args:
        data: Inbound link URI, or None for an organic open
        on_success: Called with the details payload
        on_error: Called with a human-readable message (default: ignored)
        read_clipboard: Poll the clipboard when the link has no identifier

    Returns:
        True if the invocation was accepted
    """
    return get_resolver().fetch_details(
        data, FunctionCallback(on_success, on_error), read_clipboard=read_clipboard
    )
