"""Blob storage collaborators.

The repositories only need ``get(key) -> bytes | None`` and ``set(key, data)``:
no transactions, no queries. Two implementations are provided, an in-memory
store and a directory store that keeps one file per key.
"""

from __future__ import annotations

import contextlib
import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Protocol

from formwright.errors import PersistenceError

logger = logging.getLogger(__name__)

_KEY_PATTERN = re.compile(r"^[a-z][a-z0-9_]{0,63}$")


class BlobStore(Protocol):
    """Opaque key-value blob store."""

    def get(self, key: str) -> bytes | None: ...

    def set(self, key: str, data: bytes) -> None: ...


def _check_key(key: str) -> None:
    # Keys become filenames in DirectoryBlobStore
    if not _KEY_PATTERN.match(key):
        msg = f"Invalid storage key '{key}': must match ^[a-z][a-z0-9_]{{0,63}}$"
        raise ValueError(msg)


class MemoryBlobStore:
    """Dict-backed store. Used by tests and embedders that persist elsewhere."""

    def __init__(self, initial: dict[str, bytes] | None = None) -> None:
        self._blobs: dict[str, bytes] = dict(initial or {})

    def get(self, key: str) -> bytes | None:
        _check_key(key)
        return self._blobs.get(key)

    def set(self, key: str, data: bytes) -> None:
        _check_key(key)
        self._blobs[key] = bytes(data)


class DirectoryBlobStore:
    """One ``<key>.json`` file per key under *root*, replaced atomically on write."""

    def __init__(self, root: Path) -> None:
        self.root = root

    def _path(self, key: str) -> Path:
        _check_key(key)
        return self.root / f"{key}.json"

    def get(self, key: str) -> bytes | None:
        path = self._path(key)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as exc:
            logger.warning("Failed to read %s: %s", path, exc)
            return None

    def set(self, key: str, data: bytes) -> None:
        path = self._path(key)
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            write_atomic(path, data)
        except OSError as exc:
            raise PersistenceError(key, str(exc)) from exc


def write_atomic(path: Path, data: bytes) -> None:
    """Replace *path* with *data* in one step.

    The bytes go to a temp file created next to *path* with a name unique to this
    call, so two writers never share a temp file and readers only ever see the
    old or the new content. The temp file is removed if anything fails.
    """
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    tmp = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp, path)
    except BaseException:
        with contextlib.suppress(OSError):
            tmp.unlink()
        raise
