"""
Update Notice - Single Flight Lock
Keeps at most one check cycle running per task name, across threads and
processes.
"""

import fcntl
import logging
import os
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, Optional

logger = logging.getLogger(__name__)

_locks: Dict[str, threading.Lock] = {}
_locks_guard = threading.Lock()


def _thread_lock(name: str) -> threading.Lock:
    with _locks_guard:
        if name not in _locks:
            _locks[name] = threading.Lock()
        return _locks[name]


@contextmanager
def single_flight(name: str, lock_dir: Optional[Path] = None) -> Iterator[bool]:
    """
    Try to take the lock for ``name`` without waiting.

    Yields True when the caller owns the lock, False when another thread or
    process already holds it. The caller should drop its work on False.
    """
    thread_lock = _thread_lock(name)
    if not thread_lock.acquire(blocking=False):
        logger.info(f"{name} already running in this process")
        yield False
        return

    fd = None
    try:
        if lock_dir is not None:
            lock_dir = Path(lock_dir)
            lock_dir.mkdir(parents=True, exist_ok=True)
            fd = os.open(str(lock_dir / f"{name}.lock"), os.O_RDWR | os.O_CREAT, 0o600)
            try:
                fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
            except BlockingIOError:
                logger.info(f"{name} already running in another process")
                os.close(fd)
                fd = None
                yield False
                return
        yield True
    finally:
        if fd is not None:
            fcntl.flock(fd, fcntl.LOCK_UN)
            os.close(fd)
        thread_lock.release()
