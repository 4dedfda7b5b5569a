"""
The log cache and durable file writes.

A cache file holds the hash of the newest commit already rendered on its first
line, followed by the log rows rendered so far. It is read whole before a run
starts writing anything and replaced by rename once the run has succeeded.
"""

from __future__ import annotations
import dataclasses
import logging
import os
import pathlib
import re
import tempfile
from typing import Iterable, Optional

logger = logging.getLogger(__name__)

HASH_RE = re.compile(r"^(?:[0-9a-f]{40}|[0-9a-f]{64})$")


def is_hash(s: str) -> bool:
    return bool(HASH_RE.match(s))


def _umask() -> int:
    mask = os.umask(0)
    os.umask(mask)
    return mask


def write_atomic(path: pathlib.Path, data: bytes) -> None:
    """Write ``data`` next to ``path`` and rename it into place."""
    path = pathlib.Path(path)
    fd, tmp = tempfile.mkstemp(prefix=f".{path.name}.", dir=str(path.parent))
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.chmod(tmp, 0o666 & ~_umask())
        os.replace(tmp, path)
    except BaseException:
        try:
            os.unlink(tmp)
        except FileNotFoundError:
            pass
        raise


def write_text(path: pathlib.Path, text: str) -> None:
    write_atomic(path, text.encode("utf-8"))


# ---- reading -----------------------------------------------------------------

@dataclasses.dataclass(frozen=True)
class CacheState:
    cursor: Optional[str]
    body: bytes = b""  # rows rendered by earlier runs, kept verbatim

    @property
    def empty(self) -> bool:
        return self.cursor is None


def read_cache(path: Optional[pathlib.Path]) -> CacheState:
    """
    Load a cache file. A missing, unreadable or malformed file yields a state
    without cursor, which means a full walk.
    """
    if path is None:
        return CacheState(cursor=None)
    try:
        data = pathlib.Path(path).read_bytes()
    except FileNotFoundError:
        logger.info("no cache at %s, walking the full history", path)
        return CacheState(cursor=None)
    except OSError as e:
        logger.warning("cannot read cache %s (%s), walking the full history", path, e)
        return CacheState(cursor=None)

    first, sep, body = data.partition(b"\n")
    cursor = first.decode("ascii", errors="replace").strip()
    if not sep or not is_hash(cursor):
        logger.warning("%s: no valid object id on the first line, ignoring the cache", path)
        return CacheState(cursor=None)
    return CacheState(cursor=cursor, body=body)


# ---- writing -----------------------------------------------------------------

class CacheWriter:
    """
    Stage a new cache in a temporary file and promote it with ``commit()``.

    Leaving the ``with`` block without committing removes the temporary file,
    so the previous cache stays the only one visible.
    """

    def __init__(self, path: pathlib.Path) -> None:
        self.path = pathlib.Path(path)
        self._tmp: Optional[str] = None

    def __enter__(self) -> "CacheWriter":
        return self

    def __exit__(self, *exc) -> None:
        self.discard()

    @property
    def staged(self) -> bool:
        return self._tmp is not None

    def stage(self, cursor: str, rows: Iterable[str], previous: bytes = b"") -> None:
        self.discard()
        fd, self._tmp = tempfile.mkstemp(prefix="cache.", dir=str(self.path.parent))
        with os.fdopen(fd, "wb") as f:
            f.write(cursor.encode("ascii") + b"\n")
            for row in rows:
                f.write(row.encode("utf-8"))
            f.write(previous)

    def commit(self) -> None:
        if self._tmp is None:
            return
        tmp, self._tmp = self._tmp, None
        os.chmod(tmp, 0o666 & ~_umask())
        os.replace(tmp, self.path)
        logger.info("cache updated: %s", self.path)

    def discard(self) -> None:
        tmp, self._tmp = self._tmp, None
        if tmp is None:
            return
        try:
            os.unlink(tmp)
        except FileNotFoundError:
            pass
