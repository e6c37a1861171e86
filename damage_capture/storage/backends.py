# damage_capture/storage/backends.py
"""Key-value persistence surfaces used by the session store."""
import logging
import os
import threading
from abc import ABC, abstractmethod
from typing import Dict, Optional

from damage_capture.utils.exceptions import PersistenceError

class KeyValueStore(ABC):
    """Durable string slots addressed by key."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        ...

class MemoryStore(KeyValueStore):
    def __init__(self):
        self._data: Dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

class JsonFileStore(KeyValueStore):
    """One `<key>.json` file per slot inside a directory."""

    def __init__(self, directory: str):
        self.logger = logging.getLogger(__name__)
        self.directory = directory
        self._lock = threading.Lock()
        os.makedirs(directory, exist_ok=True)

    def _path(self, key: str) -> str:
        return os.path.join(self.directory, f"{key}.json")

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        try:
            with self._lock:
                if not os.path.exists(path):
                    return None
                with open(path, 'r', encoding='utf-8') as f:
                    return f.read()
        except OSError as e:
            raise PersistenceError(f"Cannot read {path}: {e}") from e

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        tmp_path = f"{path}.tmp"
        try:
            with self._lock:
                with open(tmp_path, 'w', encoding='utf-8') as f:
                    f.write(value)
                os.replace(tmp_path, path)
            self.logger.debug(f"Wrote {path}")
        except OSError as e:
            raise PersistenceError(f"Cannot write {path}: {e}") from e

    def delete(self, key: str) -> None:
        path = self._path(key)
        try:
            with self._lock:
                if os.path.exists(path):
                    os.remove(path)
        except OSError as e:
            raise PersistenceError(f"Cannot delete {path}: {e}") from e
