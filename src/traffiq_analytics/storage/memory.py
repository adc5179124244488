"""In-process storage area shared by several handles."""

from collections.abc import Iterator

from ..core.exceptions import QuotaExceededError
from .base import StorageBackend, StorageEvent


class MemoryArea:
    """Shared key-value area, the in-process analogue of an origin's storage.

    Every ``MemoryStorage`` attached to the same area sees the same data;
    writes are announced synchronously to the other attached handles.
    """

    def __init__(self, quota_bytes: int | None = None) -> None:
        self.quota_bytes = quota_bytes
        self._data: dict[str, str] = {}
        self._handles: list["MemoryStorage"] = []

    def attach(self, handle: "MemoryStorage") -> None:
        self._handles.append(handle)

    def detach(self, handle: "MemoryStorage") -> None:
        if handle in self._handles:
            self._handles.remove(handle)

    def used_bytes(self, replacing: str | None = None, value: str = "") -> int:
        used = sum(
            len(key) + len(stored)
            for key, stored in self._data.items()
            if key != replacing
        )
        if replacing is not None:
            used += len(replacing) + len(value)
        return used

    def write(self, writer: "MemoryStorage", key: str, value: str | None) -> None:
        if value is not None and self.quota_bytes is not None:
            if self.used_bytes(replacing=key, value=value) > self.quota_bytes:
                raise QuotaExceededError(
                    "Storage quota exceeded", key=key, quota_bytes=self.quota_bytes
                )
        old_value = self._data.get(key)
        if value is None:
            self._data.pop(key, None)
        else:
            self._data[key] = value
        if old_value == value:
            return
        event = StorageEvent(key=key, old_value=old_value, new_value=value)
        for handle in list(self._handles):
            if handle is not writer:
                handle.dispatch(event)

    def read(self, key: str) -> str | None:
        return self._data.get(key)

    def keys(self) -> list[str]:
        return list(self._data)


class MemoryStorage(StorageBackend):
    """Handle onto a ``MemoryArea``.

    Two handles on one area behave like two tabs of the same origin.
    """

    def __init__(self, area: MemoryArea | None = None) -> None:
        super().__init__()
        self.area = area or MemoryArea()
        self.area.attach(self)

    def get_item(self, key: str) -> str | None:
        return self.area.read(key)

    def set_item(self, key: str, value: str) -> None:
        self.area.write(self, key, value)

    def remove_item(self, key: str) -> None:
        self.area.write(self, key, None)

    def keys(self) -> Iterator[str]:
        return iter(self.area.keys())

    def close(self) -> None:
        self.area.detach(self)
        super().close()
