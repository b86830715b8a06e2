"""
Deferred deep link resolution for freshly installed or re-opened apps.

Decides which identifier (if any) brought the user to the app and exchanges
it for a details payload from the resolution service.
"""

__version__ = "2.0.2"

from .outcome import ErrorKind, Failure, Outcome, Success
from .orchestrator import Resolver, ResolutionCallback
from .helper import get_resolver, reset_resolver, resolve

__all__ = [
    "__version__",
    "ErrorKind",
    "Failure",
    "Outcome",
    "Success",
    "Resolver",
    "ResolutionCallback",
    "get_resolver",
    "reset_resolver",
    "resolve",
]
