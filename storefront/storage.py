"""
JSON-file-backed local storage for state that survives a restart
"""
import json
import os
from threading import Lock
from typing import Any, Dict, List

import structlog


AUTH_TOKEN = "auth_token"
USER_DATA = "user_data"
REFRESH_TOKEN = "refresh_token"
CART_BACKUP = "cart_backup"


class LocalStorage:
    """Key/value store persisted as a single JSON document"""

    def __init__(self, path: str):
        self.path = path
        self._lock = Lock()
        self.logger = structlog.get_logger().bind(component="local_storage")

    def _read(self) -> Dict[str, Any]:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            self.logger.error("Error reading local storage", path=self.path, error=str(e))
            return {}
        if not isinstance(data, dict):
            self.logger.error("Local storage is not a JSON object", path=self.path)
            return {}
        return data

    def _write(self, data: Dict[str, Any]) -> None:
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        tmp_path = f"{self.path}.tmp"
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f)
        os.replace(tmp_path, self.path)

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._read().get(key, default)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            data = self._read()
            data[key] = value
            self._write(data)
        self.logger.debug("Local storage set", key=key)

    def remove(self, key: str) -> bool:
        with self._lock:
            data = self._read()
            if key not in data:
                return False
            del data[key]
            self._write(data)
        return True

    def has(self, key: str) -> bool:
        with self._lock:
            return key in self._read()

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._read())

    def clear(self) -> None:
        with self._lock:
            self._write({})
