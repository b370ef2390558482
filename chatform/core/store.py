from __future__ import annotations

import base64
import hashlib
import json
import logging
import os
import time
from abc import ABC, abstractmethod
from typing import Callable, Dict, Optional, Tuple

from .constants import CONFIG_KEY_PREFIX, STATE_KEY_PREFIX
from .errors import StorageError
from .state import dumps_config, dumps_state, loads_config, loads_state
from .types import CollectionConfig, SessionState

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


class KeyValueStore(ABC):
    """
    Byte-level persistence contract. Expiry is the store's job: a record
    whose TTL elapsed must behave exactly like a missing one.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[bytes]:
        ...

    @abstractmethod
    def put(self, key: str, data: bytes, ttl: int) -> None:
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        ...

    def exists(self, key: str) -> bool:
        return self.get(key) is not None


class MemoryStore(KeyValueStore):
    def __init__(self, clock: Clock = time.time):
        self._clock = clock
        self._items: Dict[str, Tuple[float, bytes]] = {}

    def get(self, key: str) -> Optional[bytes]:
        item = self._items.get(key)
        if item is None:
            return None
        expires_at, data = item
        if expires_at <= self._clock():
            del self._items[key]
            return None
        return data

    def put(self, key: str, data: bytes, ttl: int) -> None:
        self._items[key] = (self._clock() + int(ttl), bytes(data))

    def delete(self, key: str) -> None:
        self._items.pop(key, None)


class FileStore(KeyValueStore):
    """
    One JSON envelope per key, named by the sha256 of the key:
      {"key": ..., "expires_at": <epoch seconds>, "data": <base64>}
    """

    def __init__(self, base_dir: str, clock: Clock = time.time):
        self.base_dir = base_dir
        self._clock = clock
        os.makedirs(base_dir, exist_ok=True)

    def _path(self, key: str) -> str:
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()
        return os.path.join(self.base_dir, f"{digest}.json")

    def get(self, key: str) -> Optional[bytes]:
        path = self._path(key)
        if not os.path.exists(path):
            return None

        with open(path, "r", encoding="utf-8") as f:
            try:
                envelope = json.load(f)
                stored_key = envelope["key"]
                expires_at = float(envelope["expires_at"])
                data = base64.b64decode(envelope["data"])
            except (ValueError, KeyError, TypeError) as e:
                raise StorageError(f"Corrupt store record {path}: {e}") from e

        if stored_key != key:
            logger.warning("[Store] %s holds key %r, expected %r", path, stored_key, key)
            return None
        if expires_at <= self._clock():
            self.delete(key)
            return None
        return data

    def put(self, key: str, data: bytes, ttl: int) -> None:
        path = self._path(key)
        envelope = {
            "key": key,
            "expires_at": self._clock() + int(ttl),
            "data": base64.b64encode(data).decode("ascii"),
        }
        tmp = path + ".tmp"
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(envelope, f)
        os.replace(tmp, path)

    def delete(self, key: str) -> None:
        try:
            os.remove(self._path(key))
        except FileNotFoundError:
            pass


class SessionStore:
    """
    Typed facade over a KeyValueStore for session states and configs.
    Every save refreshes the TTL (sliding expiry).
    """

    def __init__(self, backend: KeyValueStore, ttl: int = 3600):
        self.backend = backend
        self.ttl = int(ttl)

    # Sessions
    def load_session(self, session_id: str) -> Optional[SessionState]:
        raw = self.backend.get(STATE_KEY_PREFIX + session_id)
        if raw is None:
            return None
        return loads_state(raw)

    def save_session(self, state: SessionState) -> None:
        self.backend.put(STATE_KEY_PREFIX + state.session_id, dumps_state(state), self.ttl)

    def delete_session(self, session_id: str) -> None:
        self.backend.delete(STATE_KEY_PREFIX + session_id)

    def has_session(self, session_id: str) -> bool:
        return self.backend.exists(STATE_KEY_PREFIX + session_id)

    # Configs
    def save_config(self, config: CollectionConfig) -> None:
        self.backend.put(CONFIG_KEY_PREFIX + config.name, dumps_config(config), self.ttl)
        logger.debug("[Store] config saved: %s", config.name)

    def load_config(self, name: str) -> Optional[CollectionConfig]:
        raw = self.backend.get(CONFIG_KEY_PREFIX + name)
        if raw is None:
            logger.debug("[Store] config not found: %s", name)
            return None
        return loads_config(raw)


def store_from_env() -> SessionStore:
    from .config import sessions_dir, session_ttl, store_backend

    if store_backend() == "memory":
        return SessionStore(MemoryStore(), ttl=session_ttl())
    return SessionStore(FileStore(sessions_dir()), ttl=session_ttl())
