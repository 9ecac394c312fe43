"""
Snapshot persistence for the roster.

The roster is stored as one opaque text value per key, written wholesale after
each change and read once at startup. Last writer wins.
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Dict, Optional, Protocol, Union

from .utils.logging import get_logger

log = get_logger(__name__)


class SnapshotStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...


class InMemorySnapshotStore:
    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._values: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value


class JsonFileSnapshotStore:
    """
    Keeps each key in `<directory>/<key>.json`.

    Writes land in a temp file in the same directory and are moved into place
    with os.replace, so a reader never sees half a snapshot. A failed write
    removes the temp file and re-raises the OSError.
    """

    def __init__(self, directory: Union[str, Path]) -> None:
        self.directory = Path(directory)

    def path_for(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def get(self, key: str) -> Optional[str]:
        path = self.path_for(key)
        if not path.exists():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            log.exception("Could not read snapshot %s", path)
            return None

    def set(self, key: str, value: str) -> None:
        path = self.path_for(key)
        tmp_name = None
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=f".{key}.", suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(value)
            os.replace(tmp_name, path)
        except OSError:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
