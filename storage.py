"""
Quota-limited key/value storage.

A StorageArea holds the values and enforces one quota shared by every key.
Each execution context (a session, a tab) talks to the area through its own
LocalStore. When one context writes a key, the other contexts that subscribed
to that key are handed the new value; the writer itself is not notified.
Values are opaque strings.
"""

import json
import logging
import os
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

from errors import QuotaExceededError, StorageWriteError

logger = logging.getLogger(__name__)

DEFAULT_QUOTA = 5_000_000

ChangeCallback = Callable[[Optional[str]], None]


class StorageArea:
    """Shared backing for one or more LocalStore contexts.

    Size is counted in characters of key plus value. With a ``path`` the area
    loads from and flushes to a JSON file after every change.
    """

    def __init__(self, quota: int = DEFAULT_QUOTA, path: Optional[Union[str, Path]] = None):
        self.quota = quota
        self.path = Path(path) if path else None
        self._data: Dict[str, str] = {}
        self._contexts: List["LocalStore"] = []
        if self.path is not None and self.path.exists():
            self._data = self._load_file(self.path)

    @staticmethod
    def _load_file(path: Path) -> Dict[str, str]:
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable storage file %s: %s", path, e)
            return {}
        if not isinstance(data, dict):
            logger.warning("Ignoring storage file %s: expected an object", path)
            return {}
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _flush(self, key: str, data: Dict[str, str]) -> None:
        """Write ``data`` to the file, then make it the live contents.

        On a failed write the live contents are left as they were.
        """
        if self.path is not None:
            tmp = self.path.with_suffix(self.path.suffix + ".tmp")
            try:
                with open(tmp, "w", encoding="utf-8") as f:
                    json.dump(data, f)
                os.replace(tmp, self.path)
            except OSError as e:
                raise StorageWriteError(key, e) from e
        self._data = data

    def usage(self, exclude: Optional[str] = None) -> int:
        return sum(len(k) + len(v) for k, v in self._data.items() if k != exclude)

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str, origin: Optional["LocalStore"] = None) -> None:
        requested = len(key) + len(value)
        available = self.quota - self.usage(exclude=key)
        if requested > available:
            raise QuotaExceededError(key, requested, max(available, 0))
        self._flush(key, {**self._data, key: value})
        self._broadcast(key, value, origin)

    def delete(self, key: str, origin: Optional["LocalStore"] = None) -> None:
        if key not in self._data:
            return
        self._flush(key, {k: v for k, v in self._data.items() if k != key})
        self._broadcast(key, None, origin)

    def attach(self, store: "LocalStore") -> None:
        self._contexts.append(store)

    def detach(self, store: "LocalStore") -> None:
        if store in self._contexts:
            self._contexts.remove(store)

    def _broadcast(self, key: str, value: Optional[str], origin: Optional["LocalStore"]) -> None:
        for ctx in list(self._contexts):
            if ctx is not origin:
                ctx._deliver(key, value)


class LocalStore:
    """One context's view of a StorageArea."""

    def __init__(self, area: Optional[StorageArea] = None):
        self.area = area if area is not None else StorageArea()
        self._listeners: Dict[str, List[ChangeCallback]] = {}
        self.area.attach(self)

    def read(self, key: str) -> Optional[str]:
        return self.area.get(key)

    def write(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``. Raises QuotaExceededError when it does not fit."""
        self.area.set(key, value, origin=self)

    def remove(self, key: str) -> None:
        self.area.delete(key, origin=self)

    def on_external_change(self, key: str, callback: ChangeCallback) -> Callable[[], None]:
        self._listeners.setdefault(key, []).append(callback)

        def unsubscribe() -> None:
            callbacks = self._listeners.get(key, [])
            if callback in callbacks:
                callbacks.remove(callback)

        return unsubscribe

    def close(self) -> None:
        self._listeners.clear()
        self.area.detach(self)

    def _deliver(self, key: str, value: Optional[str]) -> None:
        for callback in list(self._listeners.get(key, [])):
            try:
                callback(value)
            except Exception:
                logger.exception("External change handler for '%s' failed", key)
