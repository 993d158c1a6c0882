"""
Durable client-side storage for the auth token (and other small settings).

Values live in a single JSON file, mirroring browser localStorage: string
keys, string values, survive restarts.
"""

import os
import json
import logging
from pathlib import Path
from typing import Optional, Union

TOKEN_KEY = "authToken"


def default_storage_path() -> Path:
    home = os.getenv("EVENT_MANAGER_HOME") or os.path.join(os.path.expanduser("~"), ".event_manager")
    return Path(home) / "storage.json"


class TokenStore:
    """Key/value store backed by a JSON file."""

    def __init__(self, path: Optional[Union[str, Path]] = None):
        self.path = Path(path) if path else default_storage_path()

    def _read(self) -> dict:
        try:
            with open(self.path, "r", encoding="utf-8") as fh:
                data = json.load(fh)
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            logging.warning(f"Ignoring unreadable client storage {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: dict) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(".tmp")
        with open(tmp, "w", encoding="utf-8") as fh:
            json.dump(data, fh)
        os.replace(tmp, self.path)

    def get_item(self, key: str) -> Optional[str]:
        return self._read().get(key)

    def set_item(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    def remove_item(self, key: str) -> None:
        data = self._read()
        if key in data:
            del data[key]
            self._write(data)

    # --- token shortcuts ---
    def get_token(self) -> Optional[str]:
        return self.get_item(TOKEN_KEY)

    def set_token(self, token: str) -> None:
        self.set_item(TOKEN_KEY, token)

    def remove_token(self) -> None:
        self.remove_item(TOKEN_KEY)
