"""Cross-tab convergence.

Each tab persists the whole document, so the last writer wins. When
another handle writes this tab's document key, the tab reloads it and
re-renders; writes are never merged.
"""

from collections.abc import Callable

from ..core.exceptions import StorageError
from ..core.logging import LoggingMixin
from ..storage.base import StorageBackend, StorageEvent
from .analytics_store import AnalyticsStore

RenderCallback = Callable[[AnalyticsStore], None]


class CrossTabSync(LoggingMixin):
    """Reload a store when its document changes in another tab."""

    def __init__(self, store: AnalyticsStore, backend: StorageBackend):
        self.store = store
        self.backend = backend
        self._callbacks: list[RenderCallback] = []
        self._unsubscribe: Callable[[], None] | None = None

    @property
    def running(self) -> bool:
        return self._unsubscribe is not None

    def add_render_callback(self, callback: RenderCallback) -> None:
        self._callbacks.append(callback)

    def remove_render_callback(self, callback: RenderCallback) -> None:
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def start(self) -> None:
        if self._unsubscribe is None:
            self._unsubscribe = self.backend.subscribe(self.handle_event)

    def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def pump(self) -> int:
        """Deliver notifications pending on polling backends.

        Returns:
            Number of events dispatched; 0 when the backend could not be read
        """
        try:
            return self.backend.poll()
        except StorageError as e:
            self.logger.error("Failed to poll storage for changes", error=str(e))
            return 0

    def handle_event(self, event: StorageEvent) -> bool:
        """Reload and re-render when the event targets this tab's document.

        Returns:
            True when the store was reloaded
        """
        if event.key != self.store.identity_key:
            return False

        self.logger.debug("Document changed in another tab", identity_key=event.key)
        self.store.reload()
        for callback in list(self._callbacks):
            try:
                callback(self.store)
            except Exception as e:
                self.logger.error(
                    "Render callback failed",
                    callback=getattr(callback, "__name__", repr(callback)),
                    error=str(e),
                )
        return True
