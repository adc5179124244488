"""Directory-backed storage: one file per key."""

import os
import tempfile
from collections.abc import Iterator
from pathlib import Path
from urllib.parse import quote, unquote

from ..core.exceptions import StorageError
from .base import StorageBackend, StorageEvent

SUFFIX = ".kv"


class FileStorage(StorageBackend):
    """Persist each key as a UTF-8 file under ``directory``.

    Writes go through a temporary file and ``os.replace`` so readers in
    other processes never observe a half-written value. Changes made by
    other handles are discovered by ``poll()``, which compares the
    directory contents against the last snapshot this handle saw.
    """

    def __init__(self, directory: Path | str) -> None:
        super().__init__()
        self.directory = Path(directory)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(
                "Cannot create storage directory",
                operation="init",
                details={"directory": str(self.directory)},
                cause=e,
            ) from e
        self._seen: dict[str, str] = self._snapshot()

    def _path(self, key: str) -> Path:
        return self.directory / f"{quote(key, safe='')}{SUFFIX}"

    def _key(self, path: Path) -> str:
        return unquote(path.name[: -len(SUFFIX)])

    def _read(self, path: Path) -> str | None:
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            raise StorageError(
                "Failed to read storage file",
                operation="get_item",
                key=self._key(path),
                cause=e,
            ) from e

    def _snapshot(self) -> dict[str, str]:
        # Undecodable bytes still count as a change of value.
        snapshot = {}
        for path in self.directory.glob(f"*{SUFFIX}"):
            try:
                snapshot[self._key(path)] = path.read_bytes().decode(
                    "utf-8", errors="replace"
                )
            except FileNotFoundError:
                continue
            except OSError as e:
                raise StorageError(
                    "Failed to scan storage directory", operation="poll", cause=e
                ) from e
        return snapshot

    def get_item(self, key: str) -> str | None:
        return self._read(self._path(key))

    def set_item(self, key: str, value: str) -> None:
        path = self._path(key)
        temp_path: str | None = None
        try:
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self.directory,
                prefix=".tmp-",
                delete=False,
            ) as handle:
                temp_path = handle.name
                handle.write(value)
            os.replace(temp_path, path)
        except OSError as e:
            if temp_path:
                Path(temp_path).unlink(missing_ok=True)
            raise StorageError(
                "Failed to write storage file", operation="set_item", key=key, cause=e
            ) from e
        self._seen[key] = value

    def remove_item(self, key: str) -> None:
        try:
            self._path(key).unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(
                "Failed to remove storage file",
                operation="remove_item",
                key=key,
                cause=e,
            ) from e
        self._seen.pop(key, None)

    def keys(self) -> Iterator[str]:
        for path in sorted(self.directory.glob(f"*{SUFFIX}")):
            yield self._key(path)

    def poll(self) -> int:
        current = self._snapshot()
        dispatched = 0
        for key in sorted(set(current) | set(self._seen)):
            old_value = self._seen.get(key)
            new_value = current.get(key)
            if old_value != new_value:
                self.dispatch(
                    StorageEvent(key=key, old_value=old_value, new_value=new_value)
                )
                dispatched += 1
        self._seen = current
        return dispatched
