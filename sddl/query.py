from typing import Dict, Optional
from urllib.parse import unquote, urlparse


def _decode(component: str) -> str:
    # %XX only; "+" stays literal. Malformed escapes pass through unchanged,
    # invalid UTF-8 becomes U+FFFD.
    return unquote(component, encoding="utf-8", errors="replace")


def parse(raw: Optional[str]) -> Dict[str, str]:
    """
    Decode an ampersand-delimited, percent-encoded key/value string.

    The first occurrence of a key wins; later duplicates are dropped.
    Empty pairs and pairs with an empty key are ignored.
    """
    if raw is None or not raw.strip():
        return {}

    out: Dict[str, str] = {}
    for pair in raw.split("&"):
        if not pair:
            continue
        name, sep, value = pair.partition("=")
        name = _decode(name)
        value = _decode(value) if sep else ""
        if name and name not in out:
            out[name] = value
    return out


def first_path_segment(uri: Optional[str]) -> Optional[str]:
    """Return the first non-empty path segment of a URI, decoded."""
    if not uri:
        return None

    for segment in urlparse(uri).path.split("/"):
        if segment:
            return _decode(segment)
    return None
