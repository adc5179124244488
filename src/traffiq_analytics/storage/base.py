"""Key-value storage backend contract.

A backend instance is one handle onto a shared storage area, the way a
browser tab is one view onto its origin's local storage. Writes made
through one handle are announced to every *other* handle as a
``StorageEvent``; the writer itself is never notified.
"""

import uuid
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterator
from dataclasses import dataclass

from ..core.logging import LoggingMixin


@dataclass(frozen=True)
class StorageEvent:
    """Change notification for a single key.

    ``new_value`` is ``None`` when the key was removed.
    """

    key: str
    old_value: str | None
    new_value: str | None


StorageListener = Callable[[StorageEvent], None]


class StorageBackend(LoggingMixin, ABC):
    """Abstract synchronous string key-value store with change notifications."""

    def __init__(self) -> None:
        self.handle_id = uuid.uuid4().hex
        self._listeners: list[StorageListener] = []

    @abstractmethod
    def get_item(self, key: str) -> str | None:
        """Return the stored value or ``None`` when the key is absent."""

    @abstractmethod
    def set_item(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``.

        Raises:
            StorageError: If the write fails (including quota exhaustion)
        """

    @abstractmethod
    def remove_item(self, key: str) -> None:
        """Delete ``key``; absent keys are ignored."""

    @abstractmethod
    def keys(self) -> Iterator[str]:
        """Iterate over the stored keys."""

    def poll(self) -> int:
        """Deliver pending external change notifications.

        Push-based backends deliver on write and have nothing to poll.

        Returns:
            Number of events dispatched
        """
        return 0

    def close(self) -> None:
        """Release backend resources."""
        self._listeners.clear()

    def subscribe(self, listener: StorageListener) -> Callable[[], None]:
        """Register a change listener; returns a callable that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def dispatch(self, event: StorageEvent) -> None:
        """Deliver an external change to this handle's listeners."""
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                self.logger.error(
                    "Storage listener failed", key=event.key, error=str(e)
                )
