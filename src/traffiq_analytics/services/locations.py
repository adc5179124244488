"""Canonical location directory.

Records store the canonical location id. Older records stored the
display name instead, so matching consults this directory in exactly
one place rather than comparing ids and names ad hoc.
"""


class LocationDirectory:
    """Bidirectional id <-> display-name lookup."""

    def __init__(self, locations: dict[str, str] | None = None):
        self._names = dict(locations or {})
        self._ids = {name: location_id for location_id, name in self._names.items()}

    def __iter__(self):
        return iter(self._names)

    def name_for(self, location_id: str) -> str:
        return self._names.get(location_id, location_id)

    def canonical_id(self, location: str | None) -> str | None:
        """Map a display name back to its id; unknown values pass through."""
        if location is None:
            return None
        return self._ids.get(location, location)

    def matches(self, recorded: str | None, location_id: str) -> bool:
        """True when a record's location refers to ``location_id``."""
        if recorded is None:
            return False
        return self.canonical_id(recorded) == self.canonical_id(location_id)
