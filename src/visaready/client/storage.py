"""
Durable client-side key/value storage for workflow state.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from ..core.interfaces import StateStorage


logger = logging.getLogger(__name__)


class InMemoryStateStorage(StateStorage):
    """Dictionary-backed storage, for tests and embedding."""

    def __init__(self, initial: Optional[Mapping[str, Any]] = None):
        self._data: Dict[str, Any] = dict(initial or {})

    def get(self, key: str) -> Optional[Any]:
        return self._data.get(key)

    def set_many(self, values: Mapping[str, Any]) -> None:
        self._data.update(values)

    def remove(self, keys: Iterable[str]) -> None:
        for key in keys:
            self._data.pop(key, None)

    def keys(self) -> List[str]:
        return list(self._data)


class JsonFileStateStorage(StateStorage):
    """
    Stores all keys in one JSON document.

    Every write replaces the file atomically, so a crash mid-write leaves the
    previous document intact.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._data: Dict[str, Any] = self._read()

    def get(self, key: str) -> Optional[Any]:
        return self._data.get(key)

    def set_many(self, values: Mapping[str, Any]) -> None:
        self._data.update(values)
        self._write()

    def remove(self, keys: Iterable[str]) -> None:
        removed = [key for key in list(keys) if key in self._data]
        for key in removed:
            del self._data[key]
        if removed:
            self._write()

    def keys(self) -> List[str]:
        return list(self._data)

    def _read(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable state file {self.path}: {str(e)}")
            return {}

        if not isinstance(data, dict):
            logger.warning(f"Ignoring state file {self.path}: not a JSON object")
            return {}

        return data

    def _write(self):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=".state-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(self._data, fh, indent=2, default=str)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
