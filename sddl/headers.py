"""
Device and attribution headers sent with every resolution request.

Every field is optional: a value that is missing or cannot be sent as a
header is left out, never raised.
"""

import locale
import platform
import string
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Optional
from urllib.parse import quote

from .referrer import AttributionRecord

DEVICE_PLATFORM = "Python"

# X-header name -> referrer param name(s), first present wins
ATTRIBUTION_PARAMS = {
    "X-UTM-Source": ("utm_source",),
    "X-UTM-Medium": ("utm_medium",),
    "X-UTM-Campaign": ("utm_campaign",),
    "X-UTM-Term": ("utm_term",),
    "X-UTM-Content": ("utm_content",),
    "X-GCLID": ("gclid",),
    "X-SDDL-ID": ("sddl_id", "sddl"),
}

_SAFE_CHARS = string.punctuation + " "


def _safe(probe: Callable[[], Any]) -> Optional[Any]:
    try:
        return probe()
    except Exception:
        return None


def _detect_language() -> Optional[str]:
    lang = locale.getlocale()[0]
    return lang.replace("_", "-") if lang else None


def _detect_timezone() -> Optional[str]:
    tz = datetime.now().astimezone().tzinfo
    key = getattr(tz, "key", None)
    return key or datetime.now().astimezone().tzname()


@dataclass(frozen=True)
class DeviceInfo:
    app_identifier: Optional[str] = None
    screen_width: Optional[int] = None
    screen_height: Optional[int] = None
    dpr: Optional[float] = None
    os_version: Optional[str] = None
    language: Optional[str] = None
    timezone: Optional[str] = None

    @classmethod
    def detect(cls, app_identifier: Optional[str] = None, **overrides) -> "DeviceInfo":
        """
        Probe the running system for what can be learned without a UI.

        Screen metrics are unknown to a headless process; hosts pass them in
        ``overrides``.
        """
        values = {
            "app_identifier": app_identifier,
            "os_version": _safe(platform.release) or None,
            "language": _safe(_detect_language),
            "timezone": _safe(_detect_timezone),
        }
        values.update(overrides)
        return cls(**values)


def header_value(value: Any) -> Optional[str]:
    """Coerce a value to something a header can carry, or None to omit it."""
    if value is None or isinstance(value, bool):
        return None
    text = str(value).strip()
    if not text or "\r" in text or "\n" in text:
        return None
    if not text.isascii():
        text = quote(text, safe=_SAFE_CHARS)
    return text


def _format_dpr(dpr: Optional[float]) -> Optional[str]:
    if dpr is None:
        return None
    return f"{float(dpr):g}"


def build_headers(
    user_agent: str,
    device: Optional[DeviceInfo] = None,
    record: Optional[AttributionRecord] = None,
) -> Dict[str, str]:
    """
    Assemble request headers from device info and the cached attribution.

    Args:
        user_agent: User-Agent value
        device: Device metrics (fields may be None)
        record: Cached install attribution, if any

    Returns:
        Header dict with unavailable fields omitted
    """
    candidates: Dict[str, Any] = {
        "User-Agent": user_agent,
        "X-Device-Platform": DEVICE_PLATFORM,
    }
    if device is not None:
        candidates.update({
            "X-App-Identifier": device.app_identifier,
            "X-Client-Screen-Width": device.screen_width,
            "X-Client-Screen-Height": device.screen_height,
            "X-Client-DPR": _safe(lambda: _format_dpr(device.dpr)),
            "X-Client-OS-Version": device.os_version,
            "X-Client-Language": device.language,
            "X-Client-Timezone": device.timezone,
        })
    if record is not None:
        candidates.update({
            "X-Install-Referrer": record.raw,
            "X-Referrer-Click-Ts": record.click_ts_sec or None,
            "X-Install-Begin-Ts": record.install_begin_ts_sec or None,
        })
        for name, keys in ATTRIBUTION_PARAMS.items():
            candidates[name] = next(
                (record.params[k] for k in keys if record.params.get(k)), None
            )

    headers = {}
    for name, value in candidates.items():
        text = header_value(value)
        if text is not None:
            headers[name] = text
    return headers
