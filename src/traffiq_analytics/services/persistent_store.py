"""Identity-scoped persistence of the analytics document.

Persistence is advisory: every failure is logged and swallowed so the
in-memory document stays authoritative for the rest of the session.
"""

import json
from collections.abc import Callable
from datetime import datetime

from ..core.config import StorageConfig
from ..core.exceptions import SerializationError, StorageError
from ..core.logging import get_logger
from ..models.document import AnalyticsDocument, decode_document, encode_document
from ..storage.base import StorageBackend

logger = get_logger(__name__)


class PersistentStore:
    """Load and save one JSON document per identity namespace.

    The namespace is resolved from the session record on every call,
    since the signed-in identity can change within a page life.
    """

    def __init__(
        self,
        backend: StorageBackend,
        config: StorageConfig,
        clock: Callable[[], datetime],
    ):
        """Initialize with injected dependencies.

        Args:
            backend: Key-value storage handle
            config: Storage configuration (base and session keys)
            clock: Source of the current time for session expiry checks
        """
        self.backend = backend
        self.config = config
        self.clock = clock

    @property
    def base_key(self) -> str:
        return self.config.base_key

    def current_identity(self) -> str | None:
        """Email of the active, unexpired session, if any."""
        try:
            raw = self.backend.get_item(self.config.session_key)
        except StorageError as e:
            logger.warning("Failed to read session record", error=str(e))
            return None
        if not raw:
            return None

        try:
            session = json.loads(raw)
        except ValueError:
            logger.warning("Ignoring unparsable session record")
            return None
        if not isinstance(session, dict) or not session.get("email"):
            return None

        expires_at = session.get("expiresAt")
        if expires_at:
            try:
                expiry = datetime.fromisoformat(str(expires_at).replace("Z", "+00:00"))
            except ValueError:
                logger.warning("Ignoring session with invalid expiry")
                return None
            if expiry.tzinfo is None:
                expiry = expiry.astimezone()
            if expiry < self.clock():
                logger.info("Session expired, using shared namespace")
                return None

        return str(session["email"])

    def resolve_identity_key(self) -> str:
        """Return ``<base_key>_<email>`` or the unscoped base key."""
        identity = self.current_identity()
        if identity:
            return f"{self.base_key}_{identity}"
        return self.base_key

    def load(self, identity_key: str | None = None) -> AnalyticsDocument:
        """Read the document for an identity, defaulting on any problem.

        Args:
            identity_key: Storage key; resolved from the session when omitted

        Returns:
            A structurally valid document
        """
        key = identity_key or self.resolve_identity_key()
        try:
            raw = self.backend.get_item(key)
        except StorageError as e:
            logger.error("Failed to read analytics document", identity_key=key, error=str(e))
            return AnalyticsDocument()

        if raw is None:
            logger.debug("No stored analytics document", identity_key=key)
            return AnalyticsDocument()

        try:
            return decode_document(raw, key=key)
        except SerializationError as e:
            logger.warning(
                "Discarding unreadable analytics document",
                identity_key=key,
                error=str(e),
            )
            return AnalyticsDocument()

    def save(
        self, document: AnalyticsDocument, identity_key: str | None = None
    ) -> bool:
        """Write the whole document; never raises.

        Returns:
            True when the write reached storage
        """
        key = identity_key or self.resolve_identity_key()
        try:
            self.backend.set_item(key, encode_document(document))
        except (StorageError, SerializationError) as e:
            logger.error("Failed to save analytics document", identity_key=key, error=str(e))
            return False
        return True

    def clear(self, identity_key: str | None = None) -> None:
        """Remove the persisted document for an identity."""
        key = identity_key or self.resolve_identity_key()
        try:
            self.backend.remove_item(key)
        except StorageError as e:
            logger.error("Failed to remove analytics document", identity_key=key, error=str(e))
