"""
BizDash Logging — Structured JSON file-based audit logging with async queue.

Implements:
- FileLogger: Per-object-type, per-category log files (daily rotation)
- AsyncLogQueue: In-memory queue with background flush
- Log entry builders for guard decisions, session changes, API calls

Files land in {log_dir}/{object_type}/{category}/{YYYY-MM-DD}.jsonl.
Tokens are never written to any entry.
"""

from __future__ import annotations

import json
import logging
import threading
from collections import defaultdict
from datetime import date, datetime, timezone
from pathlib import Path
from queue import Empty, Full, Queue
from typing import Any, Dict, List, Optional

logger = logging.getLogger("bizdash.engine.logging")

OBJECT_TYPE_CATEGORIES = {
    "guard": ["execution", "security"],
    "session": ["execution", "security"],
    "auth_api": ["execution", "performance"],
    "system": ["execution"],
}


class LogEntry:
    """A structured log entry destined for a specific file."""

    __slots__ = ("object_type", "category", "data")

    def __init__(self, object_type: str, category: str, data: Dict[str, Any]):
        self.object_type = object_type
        self.category = category
        self.data = data

    def to_json(self) -> str:
        return json.dumps(self.data, default=str, separators=(",", ":"))


class FileLogger:
    """
    Writes structured JSON log entries to per-object-type, per-category files.

    Thread-safe — one lock per file path.
    """

    def __init__(self, log_dir: str = ".bizdash/logs"):
        self._log_dir = Path(log_dir)
        self._file_locks: Dict[str, threading.Lock] = defaultdict(threading.Lock)
        for obj_type, categories in OBJECT_TYPE_CATEGORIES.items():
            for cat in categories:
                (self._log_dir / obj_type / cat).mkdir(parents=True, exist_ok=True)

    def write(self, entry: LogEntry) -> None:
        self.write_batch([entry])

    def write_batch(self, entries: List[LogEntry]) -> None:
        """Write a batch of entries, grouped by target file."""
        grouped: Dict[str, List[LogEntry]] = defaultdict(list)
        for entry in entries:
            grouped[str(self._resolve_path(entry.object_type, entry.category))].append(entry)

        for file_path, batch in grouped.items():
            with self._file_locks[file_path]:
                Path(file_path).parent.mkdir(parents=True, exist_ok=True)
                with open(file_path, "a", encoding="utf-8") as f:
                    for entry in batch:
                        f.write(entry.to_json())
                        f.write("\n")

    def _resolve_path(self, object_type: str, category: str) -> Path:
        return self._log_dir / object_type / category / f"{date.today().isoformat()}.jsonl"

    @property
    def log_dir(self) -> Path:
        return self._log_dir

    def read_today(self, object_type: str, category: str) -> List[Dict[str, Any]]:
        """Read back today's entries for one object_type/category, oldest first."""
        path = self._resolve_path(object_type, category)
        if not path.exists():
            return []
        entries: List[Dict[str, Any]] = []
        with open(path, "r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    entries.append(json.loads(line))
                except json.JSONDecodeError:
                    logger.warning("Skipping malformed log line in %s", path)
        return entries


class AsyncLogQueue:
    """
    Bounded in-memory queue drained to a FileLogger by a daemon thread.

    push() never blocks; a full queue drops the entry and counts it.
    """

    def __init__(self, file_logger: FileLogger, flush_interval_ms: int = 100, max_queue_size: int = 10000):
        self._logger = file_logger
        self._flush_interval = flush_interval_ms / 1000.0
        self._queue: Queue[LogEntry] = Queue(maxsize=max_queue_size)
        self._stopped = threading.Event()
        self._flush_thread: Optional[threading.Thread] = None
        self._dropped_count = 0

    def start(self) -> None:
        if self._flush_thread is not None:
            return
        self._stopped.clear()
        self._flush_thread = threading.Thread(target=self._run, name="bizdash-log-flush", daemon=True)
        self._flush_thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        """Stop the flush thread, then write whatever is still queued."""
        self._stopped.set()
        if self._flush_thread is not None:
            self._flush_thread.join(timeout=timeout)
            self._flush_thread = None
        self.drain()
        if self._dropped_count:
            logger.warning(f"Log queue dropped {self._dropped_count} entries")

    def push(self, entry: LogEntry) -> bool:
        try:
            self._queue.put_nowait(entry)
        except Full:
            self._dropped_count += 1
            return False
        return True

    def _run(self) -> None:
        while not self._stopped.wait(self._flush_interval):
            self.drain()

    def drain(self) -> None:
        """Write everything queued so far, synchronously."""
        batch: List[LogEntry] = []
        while True:
            try:
                batch.append(self._queue.get_nowait())
            except Empty:
                break
        if not batch:
            return
        try:
            self._logger.write_batch(batch)
        except OSError as e:
            logger.error(f"Log flush failed, {len(batch)} entries lost: {e}")

    @property
    def pending_count(self) -> int:
        return self._queue.qsize()

    @property
    def dropped_count(self) -> int:
        return self._dropped_count


# ---------------------------------------------------------------------------
# Log Entry Builders
# ---------------------------------------------------------------------------

def _base_entry(event: str, level: str, **extra: Any) -> Dict[str, Any]:
    entry: Dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "level": level,
        "event": event,
    }
    entry.update({k: v for k, v in extra.items() if v is not None})
    return entry


def log_guard_decision(
    path: str,
    status: str,
    reason: Optional[str] = None,
    user_id: Optional[str] = None,
    role: Optional[str] = None,
    required_role: Optional[str] = None,
    redirect_to: Optional[str] = None,
    detail: Optional[str] = None,
) -> LogEntry:
    """Build a guard decision entry. Denials go to the security category."""
    denied = status == "unauthorized"
    data = _base_entry(
        event="guard_decision",
        level="WARNING" if denied else "INFO",
        path=path,
        status=status,
        reason=reason,
        user_id=user_id,
        role=role,
        required_role=required_role,
        redirect_to=redirect_to,
        detail=detail,
    )
    return LogEntry("guard", "security" if denied else "execution", data)


def log_session_event(
    event: str,
    user_id: Optional[str] = None,
    role: Optional[str] = None,
    keys: Optional[List[str]] = None,
    detail: Optional[str] = None,
) -> LogEntry:
    """Build a session lifecycle entry (hydrated/saved/cleared/clear_failed/partial_discarded)."""
    security = event in ("cleared", "clear_failed", "partial_discarded")
    level = {"partial_discarded": "WARNING", "clear_failed": "ERROR"}.get(event, "INFO")
    data = _base_entry(
        event=f"session_{event}",
        level=level,
        user_id=user_id,
        role=role,
        keys=keys,
        detail=detail,
    )
    return LogEntry("session", "security" if security else "execution", data)


def log_auth_call(
    endpoint: str,
    method: str,
    status_code: Optional[int],
    duration_ms: float,
    success: bool,
    error: Optional[str] = None,
) -> LogEntry:
    """Build an auth API call entry. status_code is None on transport failure."""
    data = _base_entry(
        event="auth_api_called",
        level="INFO" if success else "ERROR",
        endpoint=endpoint,
        method=method,
        status_code=status_code,
        duration_ms=round(duration_ms, 2),
        success=success,
        error=error,
    )
    return LogEntry("auth_api", "execution", data)


def log_system_event(
    event: str,
    level: str = "INFO",
    details: Optional[Dict[str, Any]] = None,
) -> LogEntry:
    """Build a system event entry (startup, shutdown, config load)."""
    return LogEntry("system", "execution", _base_entry(event=event, level=level, details=details))


# ---------------------------------------------------------------------------
# Global Log Queue Singleton
# ---------------------------------------------------------------------------

_global_queue: Optional[AsyncLogQueue] = None


def init_logging(
    log_dir: str = ".bizdash/logs",
    level: str = "INFO",
    flush_interval_ms: int = 100,
    max_queue_size: int = 10000,
) -> AsyncLogQueue:
    """Configure the bizdash stdlib logger level and start the global queue."""
    global _global_queue
    logging.getLogger("bizdash").setLevel(level.upper())
    if _global_queue is not None:
        return _global_queue
    _global_queue = AsyncLogQueue(
        file_logger=FileLogger(log_dir=log_dir),
        flush_interval_ms=flush_interval_ms,
        max_queue_size=max_queue_size,
    )
    _global_queue.start()
    return _global_queue


def get_log_queue() -> Optional[AsyncLogQueue]:
    return _global_queue


def log(entry: LogEntry) -> bool:
    """Push an entry to the global queue. Non-blocking."""
    if _global_queue is None:
        logger.debug("Log queue not initialized — entry dropped")
        return False
    return _global_queue.push(entry)


def shutdown_logging() -> None:
    """Flush and stop the global log queue."""
    global _global_queue
    if _global_queue:
        _global_queue.stop()
        _global_queue = None
