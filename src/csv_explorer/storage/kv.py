"""
Key-value stores backing dataset and view persistence.
Values are opaque strings; callers own the serialization.
"""

import os
import re
from typing import Dict, Optional, Protocol

from csv_explorer.config import settings


class KeyValueStore(Protocol):
    def get_item(self, key: str) -> Optional[str]: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


class MemoryStore:
    """Process-local store, used by tests and when nothing should touch disk."""

    def __init__(self):
        self._items: Dict[str, str] = {}

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)


class FileStore:
    """One JSON file per key under a directory."""

    def __init__(self, directory: Optional[str] = None):
        self.directory = directory or settings.STORAGE_DIR

    def _path(self, key: str) -> str:
        safe = re.sub(r"[^a-zA-Z0-9_.-]", "_", key)
        return os.path.join(self.directory, f"{safe}.json")

    def get_item(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not os.path.exists(path):
            return None
        with open(path, "r", encoding="utf-8") as fh:
            return fh.read()

    def set_item(self, key: str, value: str) -> None:
        os.makedirs(self.directory, exist_ok=True)
        path = self._path(key)
        tmp_path = f"{path}.tmp"
        with open(tmp_path, "w", encoding="utf-8") as fh:
            fh.write(value)
        os.replace(tmp_path, path)

    def remove_item(self, key: str) -> None:
        path = self._path(key)
        if os.path.exists(path):
            os.remove(path)
