from __future__ import annotations

import contextlib
import errno
import fcntl
import os
from typing import Iterator

from support_tool.core.errors import LockUnavailableError


@contextlib.contextmanager
def exclusive_file_lock(lock_path: str, *, blocking: bool = True) -> Iterator[None]:
    """
    Exclusive flock(2) on a dedicated lock file. The kernel drops the lock when
    the descriptor closes, including on process death.
    """
    os.makedirs(os.path.dirname(lock_path) or ".", mode=0o700, exist_ok=True)
    fd = os.open(lock_path, os.O_RDWR | os.O_CREAT, 0o600)
    try:
        flags = fcntl.LOCK_EX if blocking else fcntl.LOCK_EX | fcntl.LOCK_NB
        try:
            fcntl.flock(fd, flags)
        except OSError as e:
            if e.errno in (errno.EWOULDBLOCK, errno.EAGAIN, errno.EACCES):
                raise LockUnavailableError(lock_path=lock_path) from e
            raise
        try:
            yield
        finally:
            fcntl.flock(fd, fcntl.LOCK_UN)
    finally:
        os.close(fd)
