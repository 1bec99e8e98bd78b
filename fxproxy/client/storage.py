from __future__ import annotations

import contextlib
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Protocol

logger = logging.getLogger("fxproxy.client.storage")


class KeyValueStorage(Protocol):
    def read(self, key: str, default: Any = None) -> Any: ...

    def write(self, key: str, value: Any) -> None: ...

    def remove(self, key: str) -> None: ...


class JsonFileStorage:
    """Durable key/value store kept as one JSON object on disk.

    Every read goes back to the file, so separate processes sharing the path see
    each other's writes (last writer wins). A missing or corrupt file reads as
    empty; it is never an error.
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def _load(self) -> Dict[str, Any]:
        try:
            raw = self.path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return {}
        except OSError as e:
            logger.warning("cannot read %s: %s", self.path, e)
            return {}
        if not raw:
            return {}
        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning("discarding corrupt storage file %s", self.path)
            return {}
        return data if isinstance(data, dict) else {}

    def _dump(self, data: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        # one temp file per write; concurrent writers only race on the final rename
        fd, tmp_name = tempfile.mkstemp(
            dir=self.path.parent, prefix=self.path.name + ".", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(data, fh, ensure_ascii=False, indent=2)
            os.replace(tmp_name, self.path)
        except Exception:
            with contextlib.suppress(OSError):
                os.unlink(tmp_name)
            raise

    def read(self, key: str, default: Any = None) -> Any:
        data = self._load()
        return data.get(key, default)

    def write(self, key: str, value: Any) -> None:
        data = self._load()
        data[key] = value
        self._dump(data)

    def remove(self, key: str) -> None:
        data = self._load()
        if data.pop(key, None) is not None:
            self._dump(data)


class MemoryStorage:
    """In-process stand-in with the same interface, values copied through JSON."""

    def __init__(self) -> None:
        self._data: Dict[str, str] = {}

    def read(self, key: str, default: Any = None) -> Any:
        raw = self._data.get(key)
        if raw is None:
            return default
        return json.loads(raw)

    def write(self, key: str, value: Any) -> None:
        self._data[key] = json.dumps(value)

    def remove(self, key: str) -> None:
        self._data.pop(key, None)
