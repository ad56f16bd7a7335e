import json
import logging
import os
import re
import tempfile
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional

from errors import StorageError

logger = logging.getLogger(__name__)

VALID_ROLES = ("system", "user", "assistant")

Turn = Dict[str, str]
ErrorHook = Callable[[StorageError], None]

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9]")


def sanitize_user_id(user_id: str) -> str:
    """Map a raw user identifier to a filesystem-safe storage key.

    Every character outside [A-Za-z0-9] becomes "_", so "user!1" and
    "user_1" share one history.
    """
    return _UNSAFE_CHARS.sub("_", user_id)


def _is_turn(item) -> bool:
    return (
        isinstance(item, dict)
        and item.get("role") in VALID_ROLES
        and isinstance(item.get("content"), str)
    )


class MemoryStore(ABC):
    """Per-user conversation history: whole-value load and save."""

    def __init__(self, history_limit: int = 20, on_error: Optional[ErrorHook] = None):
        self.history_limit = history_limit
        self.on_error = on_error

    def load(self, user_id: str) -> List[Turn]:
        """Return the stored history, or [] when missing or unreadable."""
        key = sanitize_user_id(user_id)
        try:
            return self._read(key)
        except Exception as e:
            self._report(StorageError("load", key, e))
            return []

    def save(self, user_id: str, history: List[Turn]) -> None:
        """Replace the stored history with its most recent turns."""
        key = sanitize_user_id(user_id)
        recent = [{"role": t["role"], "content": t["content"]} for t in history[-self.history_limit:]]
        try:
            self._write(key, recent)
        except Exception as e:
            self._report(StorageError("save", key, e))

    @abstractmethod
    def _read(self, key: str) -> List[Turn]:
        """Return the raw history for a sanitized key; may raise."""

    @abstractmethod
    def _write(self, key: str, history: List[Turn]) -> None:
        """Replace the history for a sanitized key; may raise."""

    def _report(self, error: StorageError) -> None:
        logger.error(
            "Memory store %s failed for %s: %s",
            error.operation,
            error.user_key,
            error.cause,
            extra={"event": "storage_error", "operation": error.operation, "user_key": error.user_key},
        )
        if self.on_error is not None:
            self.on_error(error)


class FileMemoryStore(MemoryStore):
    """One pretty-printed JSON file per sanitized user identifier."""

    def __init__(self, storage_dir: str = "memories", history_limit: int = 20,
                 on_error: Optional[ErrorHook] = None):
        super().__init__(history_limit, on_error)
        # Directory is created by _write
        self.storage_dir = storage_dir

    def path_for(self, user_id: str) -> str:
        return os.path.join(self.storage_dir, f"{sanitize_user_id(user_id)}.json")

    def _read(self, key: str) -> List[Turn]:
        filepath = os.path.join(self.storage_dir, f"{key}.json")
        if not os.path.exists(filepath):
            return []

        with open(filepath, 'r', encoding='utf-8') as f:
            data = json.load(f)

        if not isinstance(data, list) or not all(_is_turn(item) for item in data):
            raise ValueError(f"unexpected history format in {filepath}")
        return data

    def _write(self, key: str, history: List[Turn]) -> None:
        os.makedirs(self.storage_dir, exist_ok=True)
        filepath = os.path.join(self.storage_dir, f"{key}.json")

        # Write a complete copy next to the target, then swap it in
        fd, tmp_path = tempfile.mkstemp(dir=self.storage_dir, prefix=f".{key}.", suffix=".tmp")
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(history, f, indent=2, ensure_ascii=False)
            os.replace(tmp_path, filepath)
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise


class InMemoryStore(MemoryStore):
    """Process-local store, for tests and hosts without a writable disk."""

    def __init__(self, history_limit: int = 20, on_error: Optional[ErrorHook] = None):
        super().__init__(history_limit, on_error)
        self._data: Dict[str, List[Turn]] = {}

    def _read(self, key: str) -> List[Turn]:
        return [dict(t) for t in self._data.get(key, [])]

    def _write(self, key: str, history: List[Turn]) -> None:
        self._data[key] = [dict(t) for t in history]
