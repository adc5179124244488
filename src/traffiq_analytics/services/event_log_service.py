"""Bounded, newest-first logs of discrete traffic events.

Incidents, recommendations and emergency-vehicle events are prepended
and trimmed from the tail, so index 0 is always the most recent entry.
"""

from collections.abc import Callable
from datetime import datetime, timedelta

from ..core.config import AnalyticsConfig
from ..core.logging import get_logger
from ..models.document import (
    AnalyticsDocument,
    EmergencyEventRecord,
    IncidentRecord,
    RecommendationRecord,
    round_half_up,
)

logger = get_logger(__name__)


def _next_id(now: datetime, newest: list) -> int:
    """Wall-clock milliseconds, forced past the newest id in the log."""
    millis = int(now.timestamp() * 1000)
    if newest:
        return max(millis, newest[0].id + 1)
    return millis


class EventLog:
    """Insert-with-dedup, cap-and-trim event logs."""

    def __init__(self, config: AnalyticsConfig, clock: Callable[[], datetime]):
        """Initialize with injected dependencies.

        Args:
            config: Analytics configuration (log capacities, dedup window)
            clock: Source of the current local time
        """
        self.config = config
        self.clock = clock

    @property
    def dedup_window(self) -> timedelta:
        return timedelta(seconds=self.config.recommendation_dedup_seconds)

    def record_incident(
        self,
        document: AnalyticsDocument,
        incident_type: str,
        description: str,
        location_id: str | None = None,
    ) -> IncidentRecord:
        now = self.clock()
        incident = IncidentRecord(
            id=_next_id(now, document.incidents),
            type=incident_type or "alert",
            description=description or "",
            timestamp=now,
            location_id=location_id or document.session.current_location_id,
        )
        document.incidents.insert(0, incident)
        del document.incidents[self.config.max_incidents :]
        document.day(now.date().isoformat()).incidents += 1
        return incident

    def is_duplicate_recommendation(
        self, document: AnalyticsDocument, text: str
    ) -> bool:
        """True when the same text was logged within the dedup window."""
        now = self.clock()
        return any(
            existing.text == text and abs(now - existing.timestamp) < self.dedup_window
            for existing in document.recommendations
        )

    def record_recommendation(
        self,
        document: AnalyticsDocument,
        text: str,
        location_id: str | None = None,
    ) -> RecommendationRecord | None:
        """Log a recommendation unless it repeats a standing one.

        Returns:
            The new record, or None when dropped as a duplicate
        """
        if not text:
            return None
        if self.is_duplicate_recommendation(document, text):
            logger.debug("Dropped repeated recommendation", text=text)
            return None

        now = self.clock()
        recommendation = RecommendationRecord(
            id=_next_id(now, document.recommendations),
            text=text,
            timestamp=now,
            location_id=location_id or document.session.current_location_id,
        )
        document.recommendations.insert(0, recommendation)
        del document.recommendations[self.config.max_recommendations :]
        return recommendation

    def record_emergency_event(
        self,
        document: AnalyticsDocument,
        event_type: str,
        lane: str | int | None = None,
        direction: str | None = None,
        location_id: str | None = None,
    ) -> int:
        """Log an emergency-vehicle detection.

        Returns:
            Id to pass to ``clear_emergency_event`` once the vehicle has passed
        """
        now = self.clock()
        event = EmergencyEventRecord(
            id=_next_id(now, document.emergency_events),
            type=event_type or "emergency",
            lane=lane,
            direction=direction,
            timestamp=now,
            location_id=location_id or document.session.current_location_id,
        )
        document.emergency_events.insert(0, event)
        del document.emergency_events[self.config.max_emergency_events :]
        return event.id

    def clear_emergency_event(self, document: AnalyticsDocument, event_id: int) -> bool:
        """Mark an emergency event cleared; idempotent.

        Returns:
            True only when this call recorded the clearance
        """
        for event in document.emergency_events:
            if event.id != event_id:
                continue
            if event.is_cleared:
                return False
            cleared_at = self.clock()
            event.cleared_at = cleared_at
            event.response_time_seconds = round_half_up(
                (cleared_at - event.timestamp).total_seconds()
            )
            return True
        return False
