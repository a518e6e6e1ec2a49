"""Key/value storage for client-side state that must outlive a single game.

LocalJsonStorage is the durable flavour (one JSON document per key on disk,
surviving process restarts the way browser localStorage survives a reload).
MemoryStorage lives only as long as the process, like sessionStorage.

Files are written atomically with owner-only permissions (0o600) inside an
owner-only directory (0o700): queued records contain user ids and device info.
"""

import contextlib
import json
import os
import re
import tempfile
from pathlib import Path
from typing import Any, Protocol

import structlog

logger = structlog.get_logger()

_STORAGE_DIR_MODE = 0o700
_STORAGE_FILE_MODE = 0o600

_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_.-]{1,128}$")


class KeyValueStorage(Protocol):
    """Protocol for JSON-serializable key/value persistence."""

    def get(self, key: str) -> Any | None: ...  # noqa: ANN401

    def set(self, key: str, value: Any) -> None: ...  # noqa: ANN401

    def remove(self, key: str) -> None: ...


def _validate_key(key: str) -> None:
    if not _KEY_PATTERN.match(key) or key.startswith("."):
        raise ValueError(f"Invalid storage key: {key!r}")


class MemoryStorage:
    """Process-lifetime storage. Values round-trip through JSON like the durable one."""

    def __init__(self) -> None:
        self._items: dict[str, str] = {}

    def get(self, key: str) -> Any | None:  # noqa: ANN401
        raw = self._items.get(key)
        return None if raw is None else json.loads(raw)

    def set(self, key: str, value: Any) -> None:  # noqa: ANN401
        _validate_key(key)
        self._items[key] = json.dumps(value)

    def remove(self, key: str) -> None:
        self._items.pop(key, None)


class LocalJsonStorage:
    """Stores each key as ``<key>.json`` under a directory.

    A corrupt or unreadable document reads as missing (and is logged) so a
    bad write never wedges the client; writes go through temp-file-then-rename.
    """

    def __init__(self, storage_dir: str | Path) -> None:
        self._dir = Path(storage_dir).resolve()

    def _path_for(self, key: str) -> Path:
        _validate_key(key)
        target = (self._dir / f"{key}.json").resolve()
        if not target.is_relative_to(self._dir):
            raise ValueError(f"Path traversal rejected: '{key}' resolves outside storage directory")
        return target

    def get(self, key: str) -> Any | None:  # noqa: ANN401
        path = self._path_for(key)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError:
            logger.warning("could not read storage key", key=key, path=str(path))
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("discarding corrupt storage document", key=key, path=str(path))
            return None

    def set(self, key: str, value: Any) -> None:  # noqa: ANN401
        target = self._path_for(key)
        payload = json.dumps(value, separators=(",", ":")).encode("utf-8")

        self._dir.mkdir(mode=_STORAGE_DIR_MODE, parents=True, exist_ok=True)
        self._dir.chmod(_STORAGE_DIR_MODE)

        fd, tmp_path = tempfile.mkstemp(dir=str(self._dir), suffix=".tmp", prefix=".kv_")
        fd_owned = True
        try:
            with os.fdopen(fd, "wb") as f:
                fd_owned = False  # os.fdopen took ownership; it will close fd
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.chmod(tmp_path, _STORAGE_FILE_MODE)  # noqa: PTH101
            Path(tmp_path).replace(target)
        except BaseException:
            if fd_owned:
                with contextlib.suppress(OSError):
                    os.close(fd)
            with contextlib.suppress(OSError):
                Path(tmp_path).unlink()
            raise

    def remove(self, key: str) -> None:
        with contextlib.suppress(FileNotFoundError):
            self._path_for(key).unlink()
