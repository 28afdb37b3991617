"""Rebuild lockfile handling (PID + process start time)."""

from __future__ import annotations

import getpass
import json
import logging
import os
import socket
from contextlib import contextmanager
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Optional

import psutil

from ..exceptions import IndexLockedError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LockInfo:
    pid: int
    process_start_time_utc: str
    created_at_utc: str
    hostname: str
    user: str
    index_path: str


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def get_process_start_time(pid: int) -> Optional[str]:
    try:
        start_ts = psutil.Process(pid).create_time()
    except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
        return None
    return datetime.fromtimestamp(start_ts, tz=timezone.utc).isoformat()


def _current_user() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return "unknown"


def _read_lock(path: Path) -> Optional[LockInfo]:
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
        return LockInfo(
            pid=int(payload.get("pid")),
            process_start_time_utc=str(payload.get("process_start_time_utc")),
            created_at_utc=str(payload.get("created_at_utc")),
            hostname=str(payload.get("hostname")),
            user=str(payload.get("user")),
            index_path=str(payload.get("index_path")),
        )
    except (OSError, ValueError, TypeError, AttributeError):
        return None


def _is_lock_valid(lock: Optional[LockInfo]) -> bool:
    if not lock or not lock.pid:
        return False
    start = get_process_start_time(lock.pid)
    if not start:
        return False
    return start == lock.process_start_time_utc


def acquire_index_lock(lock_path: Path, index_path: str) -> LockInfo:
    """Create ``lock_path`` exclusively, taking over locks of dead processes."""
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    pid = os.getpid()
    info = LockInfo(
        pid=pid,
        process_start_time_utc=get_process_start_time(pid) or _utc_now(),
        created_at_utc=_utc_now(),
        hostname=socket.gethostname(),
        user=_current_user(),
        index_path=str(index_path),
    )

    while True:
        try:
            with lock_path.open("x", encoding="utf-8") as handle:
                json.dump(asdict(info), handle, indent=2)
            return info
        except FileExistsError:
            existing = _read_lock(lock_path)
            if _is_lock_valid(existing):
                raise IndexLockedError(
                    f"Duplicates index rebuild already running (pid={existing.pid})",
                    lock_path=str(lock_path),
                    pid=existing.pid,
                )
            logger.warning("Taking over stale rebuild lock %s", lock_path)
            lock_path.unlink(missing_ok=True)


def release_index_lock(lock_path: Path) -> None:
    lock_path.unlink(missing_ok=True)


@contextmanager
def index_lock(lock_path: Optional[Path], index_path: str) -> Iterator[Optional[LockInfo]]:
    """Hold the rebuild lock for the block; no-op when ``lock_path`` is None."""
    if lock_path is None:
        yield None
        return
    info = acquire_index_lock(lock_path, index_path)
    try:
        yield info
    finally:
        release_index_lock(lock_path)
