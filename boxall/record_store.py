"""Generic key/blob persistence used by the registry, box records and ledger.

Keys are relative, ``/`` separated paths such as ``boxes.json`` or
``boxes/box_a000_main.json``.  Payloads are JSON text.  :class:`JsonFileStore`
keeps one file per key; :mod:`boxall.database` provides the same contract on
top of a SQL database.
"""

from __future__ import annotations

import logging
import os
import re
import tempfile
from typing import Optional, Protocol, runtime_checkable

from .errors import StorageUnavailableError

logger = logging.getLogger(__name__)

_INVALID_FILENAME_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')


@runtime_checkable
class RecordStore(Protocol):
    """Durable mapping of record key to JSON payload."""

    def load(self, key: str) -> Optional[str]: ...

    def save(self, key: str, payload: str) -> bool: ...

    def delete(self, key: str) -> bool: ...

    def rename(self, old_key: str, new_key: str) -> bool: ...

    def exists(self, key: str) -> bool: ...

    def keys(self, prefix: str = "") -> list[str]: ...


def sanitize_filename(name: str) -> str:
    """Return ``name`` usable as part of a record key.

    Invalid path characters and spaces become underscores, repeated
    underscores collapse, the result is lower-cased and at most 50
    characters long.
    """

    value = _INVALID_FILENAME_CHARS.sub("_", name or "").replace(" ", "_")
    value = re.sub(r"_{2,}", "_", value)
    return value[:50].lower()


class JsonFileStore:
    """Store every record as a file below ``base_path``."""

    def __init__(self, base_path: str) -> None:
        self.base_path = os.path.abspath(base_path)
        try:
            os.makedirs(self.base_path, exist_ok=True)
        except OSError as exc:
            raise StorageUnavailableError(
                f"Unable to create data directory {self.base_path}: {exc}"
            ) from exc

    def _path(self, key: str) -> str:
        path = os.path.abspath(os.path.join(self.base_path, *key.split("/")))
        if os.path.commonpath([path, self.base_path]) != self.base_path:
            raise ValueError(f"Record key escapes the data directory: {key!r}")
        return path

    def load(self, key: str) -> Optional[str]:
        """Return the payload for ``key`` or ``None`` when it does not exist."""

        path = self._path(key)
        try:
            with open(path, encoding="utf-8") as f:
                return f.read()
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise StorageUnavailableError(f"Unable to read {path}: {exc}") from exc

    def save(self, key: str, payload: str) -> bool:
        path = self._path(key)
        directory = os.path.dirname(path)
        try:
            os.makedirs(directory, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=directory, suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(payload)
                os.replace(tmp_path, path)
            except OSError:
                os.unlink(tmp_path)
                raise
        except OSError as exc:
            logger.error("Error saving %s: %s", key, exc)
            return False
        logger.debug("Saved %s", path)
        return True

    def delete(self, key: str) -> bool:
        path = self._path(key)
        try:
            os.remove(path)
        except FileNotFoundError:
            logger.debug("Record %s not found for deletion", key)
            return False
        except OSError as exc:
            logger.error("Error deleting %s: %s", key, exc)
            return False
        return True

    def rename(self, old_key: str, new_key: str) -> bool:
        """Move ``old_key`` to ``new_key``; an existing ``new_key`` is never replaced."""

        old_path = self._path(old_key)
        new_path = self._path(new_key)
        if not os.path.exists(old_path):
            logger.warning("Source record %s not found for rename", old_key)
            return False
        if os.path.exists(new_path):
            logger.warning("Destination record %s already exists", new_key)
            return False
        try:
            os.makedirs(os.path.dirname(new_path), exist_ok=True)
            os.rename(old_path, new_path)
        except OSError as exc:
            logger.error("Error renaming %s to %s: %s", old_key, new_key, exc)
            return False
        return True

    def exists(self, key: str) -> bool:
        return os.path.isfile(self._path(key))

    def keys(self, prefix: str = "") -> list[str]:
        found = []
        for root, _dirs, files in os.walk(self.base_path):
            for name in files:
                if name.endswith(".tmp"):
                    continue
                rel = os.path.relpath(os.path.join(root, name), self.base_path)
                key = rel.replace(os.sep, "/")
                if key.startswith(prefix):
                    found.append(key)
        return sorted(found)
