import os
import re
import tempfile
from typing import Dict, Optional

from .base import StorageBackend

_SAFE_KEY = re.compile(r"[^A-Za-z0-9._-]")


class JsonFileStorage(StorageBackend):
    """One ``<key>.json`` file per key inside ``directory``."""

    def __init__(self, directory: str):
        self.directory = directory

    def path_for(self, key: str) -> str:
        return os.path.join(self.directory, f"{_SAFE_KEY.sub('_', key)}.json")

    def get_item(self, key: str) -> Optional[str]:
        try:
            with open(self.path_for(key), "r", encoding="utf-8") as f:
                return f.read()
        except FileNotFoundError:
            return None

    def set_item(self, key: str, value: str) -> None:
        os.makedirs(self.directory, exist_ok=True)
        path = self.path_for(key)
        # запись во временный файл + атомарная замена
        fd, tmp_path = tempfile.mkstemp(dir=self.directory, prefix=".tmp-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(value)
            os.replace(tmp_path, path)
        except OSError:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise

    def remove_item(self, key: str) -> None:
        try:
            os.remove(self.path_for(key))
        except FileNotFoundError:
            pass


class InMemoryStorage(StorageBackend):
    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.items: Dict[str, str] = dict(initial or {})
        self.write_count = 0

    def get_item(self, key: str) -> Optional[str]:
        return self.items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self.items[key] = value
        self.write_count += 1

    def remove_item(self, key: str) -> None:
        self.items.pop(key, None)
