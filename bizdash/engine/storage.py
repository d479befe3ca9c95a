"""
BizDash Session Storage — Persistent key-value backends for session keys.

Every backend offers the browser-localStorage surface used by the session
store: get_item / set_item / remove_item, string values only.

Backends:
- MemoryStorage: process-local dict (tests, single process)
- FileStorage:   JSON file that survives restarts (CLI)
- RedisStorage:  prefixed Redis string keys with circuit breaker

The Reflex UI supplies its own adapter over rx.LocalStorage vars
(see bizdash.ui.state).
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import time
from pathlib import Path
from typing import Dict, Optional, Protocol, runtime_checkable

from bizdash.engine.errors import BizDashSessionError

logger = logging.getLogger("bizdash.engine.storage")


@runtime_checkable
class KeyValueStorage(Protocol):
    """The localStorage contract."""

    def get_item(self, key: str) -> Optional[str]: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


class MemoryStorage:
    """Dict-backed storage. Lives as long as the process."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._data[key] = str(value)

    def remove_item(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self):
        return set(self._data)

    def __contains__(self, key: str) -> bool:
        return key in self._data


class FileStorage:
    """
    JSON-file storage. Each write rewrites the whole file atomically
    (temp file + os.replace) so a crash never leaves half a document.
    """

    def __init__(self, file_path: str = ".bizdash/session.json"):
        self._path = Path(file_path)

    @property
    def path(self) -> Path:
        return self._path

    def _read(self) -> Dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            with open(self._path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise BizDashSessionError(
                f"Session file is corrupt: {self._path}",
                file_path=str(self._path),
            ) from e
        if not isinstance(data, dict):
            raise BizDashSessionError(
                f"Session file must hold a JSON object: {self._path}",
                file_path=str(self._path),
            )
        return {str(k): str(v) for k, v in data.items()}

    def _write(self, data: Dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=str(self._path.parent), prefix=".session-")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, sort_keys=True)
            os.replace(tmp, self._path)
        except OSError:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise

    def get_item(self, key: str) -> Optional[str]:
        return self._read().get(key)

    def set_item(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = str(value)
        self._write(data)

    def remove_item(self, key: str) -> None:
        data = self._read()
        if key in data:
            del data[key]
            self._write(data)


class RedisStorage:
    """
    Redis-backed storage with a circuit breaker.

    Reads fall back to None while Redis is down, so a broken Redis looks like
    an empty store and the guard redirects to login. Writes and removals
    raise BizDashSessionError.
    """

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379/0",
        prefix: str = "bizdash:session:",
        db: int = 4,
        failure_threshold: int = 5,
        failure_window: int = 30,
    ):
        self._redis_url = redis_url
        self._prefix = prefix
        self._db = db
        self._client = None
        self._available = False

        self._failure_count = 0
        self._failure_threshold = failure_threshold
        self._failure_window = failure_window
        self._first_failure_time = 0.0
        self._circuit_open = False

    def connect(self) -> bool:
        """Initialize the Redis connection."""
        import redis

        try:
            self._client = redis.Redis.from_url(
                self._redis_url,
                db=self._db,
                decode_responses=True,
                socket_timeout=5,
                socket_connect_timeout=5,
            )
            self._client.ping()
            self._available = True
            self._circuit_open = False
            self._failure_count = 0
            logger.info(f"Redis session storage connected: DB {self._db} ({self._prefix})")
            return True
        except redis.RedisError as e:
            logger.warning(f"Redis connection failed (DB {self._db}): {e}")
            self._available = False
            return False

    def _check_circuit(self) -> bool:
        if self._circuit_open:
            if time.time() - self._first_failure_time > self._failure_window:
                self._circuit_open = False
                self._failure_count = 0
                return self.connect()
            return False
        return self._available

    def _record_failure(self) -> None:
        now = time.time()
        if self._failure_count == 0:
            self._first_failure_time = now
        self._failure_count += 1

        if self._failure_count >= self._failure_threshold:
            elapsed = now - self._first_failure_time
            if elapsed <= self._failure_window:
                self._circuit_open = True
                logger.error(
                    f"Redis circuit breaker OPEN: {self._failure_count} failures in {elapsed:.1f}s"
                )

    def _make_key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    def get_item(self, key: str) -> Optional[str]:
        if not self._check_circuit():
            return None
        try:
            return self._client.get(self._make_key(key))
        except Exception as e:
            self._record_failure()
            logger.debug(f"Redis GET failed: {e}")
            return None

    def set_item(self, key: str, value: str) -> None:
        self._require_writable("SET", key)
        try:
            self._client.set(self._make_key(key), str(value))
        except Exception as e:
            self._record_failure()
            raise BizDashSessionError(f"Redis SET failed for {key}: {e}", key=key) from e

    def remove_item(self, key: str) -> None:
        self._require_writable("DELETE", key)
        try:
            self._client.delete(self._make_key(key))
        except Exception as e:
            self._record_failure()
            raise BizDashSessionError(f"Redis DELETE failed for {key}: {e}", key=key) from e

    def _require_writable(self, op: str, key: str) -> None:
        if not self._check_circuit():
            state = "circuit open" if self._circuit_open else "not connected"
            raise BizDashSessionError(f"Redis {op} skipped for {key}: {state}", key=key)

    @property
    def is_available(self) -> bool:
        return self._available

    @property
    def is_circuit_open(self) -> bool:
        return self._circuit_open


def create_storage(
    backend: str,
    file_path: str = ".bizdash/session.json",
    redis_url: str = "redis://localhost:6379/0",
    redis_db: int = 4,
    key_prefix: str = "bizdash:session:",
) -> KeyValueStorage:
    """Build a storage backend by name (memory/file/redis)."""
    if backend == "memory":
        return MemoryStorage()
    if backend == "file":
        return FileStorage(file_path=file_path)
    if backend == "redis":
        storage = RedisStorage(redis_url=redis_url, prefix=key_prefix, db=redis_db)
        storage.connect()
        return storage
    raise ValueError(f"Unknown session storage backend: {backend}")
