"""
Persisted key-value state for the resolver.

``LocalState`` is the only thing the engine talks to; the backing store is
any ``KeyValueStore`` (in-memory, a JSON file, or SQLite via database.py).
"""

import json
import threading
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

PREFS_NAMESPACE = "sddl_sdk_prefs"

KEY_RAW = "sddl.referrer.raw"
KEY_CLICK = "sddl.referrer.click"
KEY_INSTALL = "sddl.referrer.install"
KEY_SENT = "sddl.referrer.sent.v1"
KEY_COLD_START = "sddl.coldstart.handled"


class KeyValueStore:
    """Minimal persistent mapping. Subclasses implement get and update."""

    def get(self, key: str, default: Any = None) -> Any:
        raise NotImplementedError

    def update(self, values: Mapping[str, Any]) -> None:
        """Write all values together."""
        raise NotImplementedError

    def snapshot(self) -> Dict[str, Any]:
        raise NotImplementedError


class MemoryStore(KeyValueStore):
    def __init__(self, initial: Optional[Mapping[str, Any]] = None):
        self._lock = threading.Lock()
        self._data: Dict[str, Any] = dict(initial or {})

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._data.get(key, default)

    def update(self, values: Mapping[str, Any]) -> None:
        with self._lock:
            self._data.update(values)

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return dict(self._data)


def load_store(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {PREFS_NAMESPACE: {}}
    try:
        with path.open("r", encoding="utf-8") as f:
            content = f.read().strip()
            if not content:
                return {PREFS_NAMESPACE: {}}
            data = json.loads(content)
    except (json.JSONDecodeError, IOError):
        return {PREFS_NAMESPACE: {}}
    if not isinstance(data, dict) or not isinstance(data.get(PREFS_NAMESPACE), dict):
        return {PREFS_NAMESPACE: {}}
    return data


def save_store(path: Path, store: Dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    with tmp.open("w", encoding="utf-8") as f:
        json.dump(store, f, indent=2, ensure_ascii=False)
    tmp.replace(path)


class JsonFileStore(KeyValueStore):
    """Keys live under the prefs namespace of a JSON document on disk."""

    def __init__(self, path: Path, namespace: str = PREFS_NAMESPACE):
        self.path = Path(path)
        self.namespace = namespace
        self._lock = threading.Lock()

    def _prefs(self, store: Dict[str, Any]) -> Dict[str, Any]:
        prefs = store.setdefault(self.namespace, {})
        if not isinstance(prefs, dict):
            prefs = store[self.namespace] = {}
        return prefs

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._prefs(load_store(self.path)).get(key, default)

    def update(self, values: Mapping[str, Any]) -> None:
        with self._lock:
            store = load_store(self.path)
            self._prefs(store).update(values)
            save_store(self.path, store)

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return dict(self._prefs(load_store(self.path)))


def open_store(path: Optional[Path]) -> KeyValueStore:
    """Pick a store by file suffix: .db/.sqlite use SQLite, anything else JSON."""
    if path is None:
        return MemoryStore()
    path = Path(path)
    if path.suffix in {".db", ".sqlite", ".sqlite3"}:
        from .database import SqlStore
        return SqlStore(path)
    return JsonFileStore(path)


def _as_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


class LocalState:
    """Typed accessors over a KeyValueStore for the engine's persisted flags."""

    def __init__(self, store: Optional[KeyValueStore] = None):
        self.store = store if store is not None else MemoryStore()

    def is_cold_start_handled(self) -> bool:
        return bool(self.store.get(KEY_COLD_START, False))

    def mark_cold_start_handled(self) -> None:
        self.store.update({KEY_COLD_START: True})

    def read_referrer(self) -> Optional[Tuple[str, int, int]]:
        """Return (raw, click_ts_sec, install_begin_ts_sec) or None."""
        raw = self.store.get(KEY_RAW)
        if not isinstance(raw, str):
            return None
        return raw, _as_int(self.store.get(KEY_CLICK, 0)), _as_int(self.store.get(KEY_INSTALL, 0))

    def write_referrer(self, raw: str, click_ts_sec: int, install_begin_ts_sec: int) -> None:
        self.store.update({
            KEY_RAW: raw,
            KEY_CLICK: int(click_ts_sec),
            KEY_INSTALL: int(install_begin_ts_sec),
        })

    def is_referrer_sent(self) -> bool:
        return bool(self.store.get(KEY_SENT, False))

    def mark_referrer_sent(self) -> None:
        self.store.update({KEY_SENT: True})
