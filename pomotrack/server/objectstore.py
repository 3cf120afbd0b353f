"""Object storage behind the remote sync endpoint.

Daily documents live under ``daily-logs/YYYY-MM-DD.json``.  Because the
date part is zero-padded ISO, sorting keys as strings sorts them by date.
"""

import json
import logging
import os
import re
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

DAILY_PREFIX = "daily-logs/"
_DAILY_KEY_RE = re.compile(r"^daily-logs/(\d{4}-\d{2}-\d{2})\.json$")


class ObjectNotFound(KeyError):
    """Raised when a requested key does not exist."""


def daily_key(day: str) -> str:
    return f"{DAILY_PREFIX}{day}.json"


def date_of_key(key: str) -> str | None:
    """Return the ``YYYY-MM-DD`` part of a daily key, or ``None``."""
    match = _DAILY_KEY_RE.match(key)
    return match.group(1) if match else None


class ObjectStore(ABC):
    """Common interface for an opaque key to bytes store.

    The sync endpoint only needs put/get/list; any backend offering those
    (a directory, a bucket) can sit behind this interface.
    """

    @abstractmethod
    def put(self, key: str, body: bytes) -> None:
        """Store *body* under *key*, overwriting any previous value."""
        pass

    @abstractmethod
    def get(self, key: str) -> bytes:
        """Return the bytes stored under *key*; raise ObjectNotFound if absent."""
        pass

    @abstractmethod
    def list_keys(self, prefix: str = "") -> list[str]:
        """Return every stored key starting with *prefix*, sorted."""
        pass

    def put_json(self, key: str, value: Any) -> None:
        self.put(key, json.dumps(value, ensure_ascii=False).encode("utf-8"))

    def get_json(self, key: str) -> Any:
        return json.loads(self.get(key).decode("utf-8"))


class DirectoryObjectStore(ObjectStore):
    """Stores each object as a file below *root*; key slashes become directories."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root).expanduser()

    def _path(self, key: str) -> Path:
        if key.startswith("/") or ".." in key.split("/"):
            raise ValueError(f"Invalid object key: {key!r}")
        return self.root.joinpath(*key.split("/"))

    def put(self, key: str, body: bytes) -> None:
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        # Write-then-rename so readers never see a half-written document.
        fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=".tmp-")
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(body)
            os.replace(tmp, path)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise

    def get(self, key: str) -> bytes:
        path = self._path(key)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            raise ObjectNotFound(key) from None

    def list_keys(self, prefix: str = "") -> list[str]:
        if not self.root.exists():
            return []
        keys = []
        for path in self.root.rglob("*"):
            if not path.is_file() or path.name.startswith(".tmp-"):
                continue
            key = path.relative_to(self.root).as_posix()
            if key.startswith(prefix):
                keys.append(key)
        return sorted(keys)


class MemoryObjectStore(ObjectStore):
    """Dict-backed store, handy for tests and throwaway servers."""

    def __init__(self) -> None:
        self.objects: dict[str, bytes] = {}

    def put(self, key: str, body: bytes) -> None:
        self.objects[key] = body

    def get(self, key: str) -> bytes:
        try:
            return self.objects[key]
        except KeyError:
            raise ObjectNotFound(key) from None

    def list_keys(self, prefix: str = "") -> list[str]:
        return sorted(k for k in self.objects if k.startswith(prefix))
