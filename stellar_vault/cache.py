"""Namespaced TTL cache over a persistent key-value store."""

import json
import os
import shutil
import sys
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any, Protocol

from stellar_vault.constants import CACHE_DIR_NAME, CACHE_PREFIX, CACHE_STORE_FILE, DEFAULT_CACHE_TTL_SECONDS
from stellar_vault.models import CacheEntry


class LocalStore(Protocol):
    """Synchronous string key-value store, shaped like the browser's localStorage."""

    def get_item(self, key: str) -> str | None: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...

    def __len__(self) -> int: ...

    def key(self, index: int) -> str | None: ...


class MemoryStore:
    """In-process store. Contents are lost when the process exits."""

    def __init__(self) -> None:
        self._items: dict[str, str] = {}

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def __len__(self) -> int:
        return len(self._items)

    def key(self, index: int) -> str | None:
        keys = list(self._items)
        if 0 <= index < len(keys):
            return keys[index]
        return None


class FileStore(MemoryStore):
    """Store persisted as a single JSON document, rewritten on every change."""

    def __init__(self, path: Path) -> None:
        super().__init__()
        self.path = path
        if path.exists():
            try:
                with path.open("r", encoding="utf-8") as f:
                    loaded = json.load(f)
                if isinstance(loaded, dict):
                    self._items = {str(k): str(v) for k, v in loaded.items()}
            except Exception:  # pylint: disable=broad-exception-caught
                # Unreadable store file: start empty, it is overwritten on the next write
                self._items = {}

    def set_item(self, key: str, value: str) -> None:
        super().set_item(key, value)
        self._flush()

    def remove_item(self, key: str) -> None:
        if key in self._items:
            super().remove_item(key)
            self._flush()

    def _flush(self) -> None:
        with self.path.open("w", encoding="utf-8") as f:
            json.dump(self._items, f, ensure_ascii=False, indent=None, separators=(",", ":"))


def get_cache_dir() -> Path:
    """Get the cache directory path. Uses XDG_CACHE_HOME if available, otherwise ~/.cache."""
    cache_home = os.getenv("XDG_CACHE_HOME")
    if cache_home:
        base = Path(cache_home)
    else:
        base = Path.home() / ".cache"
    cache_dir = base / CACHE_DIR_NAME
    cache_dir.mkdir(parents=True, exist_ok=True)
    return cache_dir


def default_file_store() -> FileStore:
    return FileStore(get_cache_dir() / CACHE_STORE_FILE)


def clear_cache() -> None:
    """Clear all cached data."""
    cache_dir = get_cache_dir()
    if cache_dir.exists():
        shutil.rmtree(cache_dir)
        print("✅ Cache cleared successfully.", file=sys.stderr)
    else:
        print("ℹ️  Cache directory does not exist (nothing to clear).", file=sys.stderr)


class VaultCache:
    """
    Best-effort TTL cache. Every key is stored as `prefix + key` in the backing store.

    Entries are valid while `now - stored_at < ttl`. Expired entries are removed when read.
    Store and serialization failures never propagate: a failed write is dropped and a
    corrupt entry reads as a miss.
    """

    def __init__(
        self,
        store: LocalStore | None = None,
        *,
        prefix: str = CACHE_PREFIX,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.store: LocalStore = store if store is not None else MemoryStore()
        self.prefix = prefix
        self.clock = clock

    def set(self, key: str, data: Any, ttl: float = DEFAULT_CACHE_TTL_SECONDS) -> None:
        entry = {"data": data, "ts": self.clock(), "ttl": ttl}
        try:
            self.store.set_item(self.prefix + key, json.dumps(entry, separators=(",", ":")))
        except Exception:  # pylint: disable=broad-exception-caught
            # Quota exceeded or unserializable value: continue without cache
            pass

    def get(self, key: str) -> Any | None:
        try:
            raw = self.store.get_item(self.prefix + key)
            if not raw:
                return None
            loaded = json.loads(raw)
            entry = CacheEntry(data=loaded["data"], stored_at=float(loaded["ts"]), ttl=float(loaded["ttl"]))
        except Exception:  # pylint: disable=broad-exception-caught
            # Corrupt entry reads as a miss and stays until the next set()
            return None
        if not entry.is_fresh(self.clock()):
            self.invalidate(key)
            return None
        return entry.data

    def invalidate(self, key: str) -> None:
        try:
            self.store.remove_item(self.prefix + key)
        except Exception:  # pylint: disable=broad-exception-caught
            pass

    def invalidate_all(self) -> None:
        try:
            keys = [k for k in (self.store.key(i) for i in range(len(self.store))) if k and k.startswith(self.prefix)]
            for k in keys:
                self.store.remove_item(k)
        except Exception:  # pylint: disable=broad-exception-caught
            pass
