import re
from typing import Any

MIN_ID_LENGTH = 4
MAX_ID_LENGTH = 64

_ID_RE = re.compile(r"[A-Za-z0-9_-]+")


def is_valid_identifier(value: Any) -> bool:
    """
    True iff value is a 4-64 character string of ASCII letters, digits,
    underscores and hyphens.
    """
    if not isinstance(value, str):
        return False
    if not MIN_ID_LENGTH <= len(value) <= MAX_ID_LENGTH:
        return False
    # fullmatch, not match with $: "$" accepts a trailing newline
    return _ID_RE.fullmatch(value) is not None
