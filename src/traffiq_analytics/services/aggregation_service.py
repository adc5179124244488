"""Incremental traffic aggregation over the analytics document.

This service owns the numeric subtrees of the document (totals, hour
and location buckets, daily totals, queue, speed, savings and congestion
statistics). Each method applies one observation completely and reports
whether the document changed; persisting is left to the caller so that
a mutation is always saved as one whole document.
"""

import math
from collections.abc import Callable, Iterable, Mapping
from datetime import datetime, timedelta
from typing import Any

from ..core.config import AnalyticsConfig
from ..core.logging import get_logger
from ..models.document import (
    WEEKDAY_LABELS,
    AnalyticsDocument,
    CongestionBucket,
    HourBucket,
    LocationStats,
    MeasurementBucket,
    round_half_up,
)
from ..models.observation import CongestionLevel, VehicleTypeCounts

logger = get_logger(__name__)

UNKNOWN_LOCATION = "Unknown"


def _valid_measurement(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, int | float):
        return None
    if not math.isfinite(value):
        return None
    return float(value)


def weekday_label(moment: datetime) -> str:
    """Sunday-first weekday label (``Sun`` .. ``Sat``)."""
    return WEEKDAY_LABELS[(moment.weekday() + 1) % 7]


class AggregationEngine:
    """Running statistics over a stream of traffic observations."""

    def __init__(self, config: AnalyticsConfig, clock: Callable[[], datetime]):
        """Initialize with injected dependencies.

        Args:
            config: Analytics configuration
            clock: Source of the current local time
        """
        self.config = config
        self.clock = clock

    def resolve_location(
        self, document: AnalyticsDocument, location_id: str | None
    ) -> str | None:
        """Explicit location, else the session's current location."""
        return location_id or document.session.current_location_id

    def record_observation(
        self,
        document: AnalyticsDocument,
        counts: VehicleTypeCounts | Mapping[str, Any],
        wait_seconds: float = 0,
        location_id: str | None = None,
    ) -> bool:
        """Fold one cycle's vehicle counts and wait time into the aggregates.

        Args:
            document: Document to update in place
            counts: Per-class vehicle counts (missing classes count as 0)
            wait_seconds: Average wait observed this cycle
            location_id: Location to attribute to (defaults to session)

        Returns:
            False when historical recording is disabled
        """
        if not document.settings.save_historical_data:
            return False

        if not isinstance(counts, VehicleTypeCounts):
            counts = VehicleTypeCounts.model_validate(dict(counts or {}))
        vehicle_count = counts.total
        now = self.clock()
        hour = now.hour
        location = self.resolve_location(document, location_id)

        bucket = document.hourly_buckets.setdefault(hour, HourBucket())
        bucket.vehicle_sum += vehicle_count
        bucket.sample_count += 1

        if location:
            location_bucket = document.location_hours(location).setdefault(
                hour, HourBucket()
            )
            location_bucket.vehicle_sum += vehicle_count
            location_bucket.sample_count += 1

        document.day(now.date().isoformat()).vehicles += vehicle_count

        stats = document.location_stats.setdefault(
            location or UNKNOWN_LOCATION, LocationStats()
        )
        stats.vehicles += vehicle_count
        wait = _valid_measurement(wait_seconds) or 0.0
        if wait > 0:
            # Weighted by the count before this sample is added.
            stats.avg_wait_seconds = round_half_up(
                (stats.avg_wait_seconds * stats.sample_count + wait)
                / (stats.sample_count + 1)
            )
        stats.sample_count += 1

        document.totals.vehicles += vehicle_count
        return True

    def record_queue_length(
        self,
        document: AnalyticsDocument,
        meters: float,
        location_id: str | None = None,
    ) -> bool:
        """Accumulate a queue-length observation; negative values are rejected."""
        value = _valid_measurement(meters)
        if value is None or value < 0:
            logger.debug("Rejected queue length", meters=meters)
            return False

        location = self.resolve_location(document, location_id) or UNKNOWN_LOCATION
        queue_stats = document.queue_stats
        queue_stats.overall.add(value)
        queue_stats.hourly.setdefault(self.clock().hour, MeasurementBucket()).add(value)
        queue_stats.by_location.setdefault(location, MeasurementBucket()).add(value)
        return True

    def record_speed(
        self,
        document: AnalyticsDocument,
        kmh: float,
        location_id: str | None = None,
    ) -> bool:
        """Accumulate an average-speed observation; non-positive values are rejected."""
        value = _valid_measurement(kmh)
        if value is None or value <= 0:
            return False

        location = self.resolve_location(document, location_id) or UNKNOWN_LOCATION
        document.speed_stats.overall.add(value)
        document.speed_stats.by_location.setdefault(location, MeasurementBucket()).add(
            value
        )
        return True

    def record_savings(
        self,
        document: AnalyticsDocument,
        time_saved_minutes: float | None = 0,
        co2_saved_kg: float | None = 0,
    ) -> bool:
        savings = document.savings_stats
        savings.time_saved_minutes += _valid_measurement(time_saved_minutes) or 0.0
        savings.co2_saved_kg += _valid_measurement(co2_saved_kg) or 0.0
        savings.optimizations_applied += 1
        return True

    def record_congestion(
        self,
        document: AnalyticsDocument,
        levels: Iterable[CongestionLevel | str],
    ) -> bool:
        """Add this cycle's mean lane congestion to the hour and weekday series."""
        weights = []
        for level in levels:
            try:
                weights.append(CongestionLevel(level).weight)
            except ValueError:
                continue
        if not weights:
            return False

        mean = sum(weights) / len(weights)
        now = self.clock()
        history = document.congestion_history
        for bucket in (
            history.hourly.setdefault(now.hour, CongestionBucket()),
            history.daily.setdefault(weekday_label(now), CongestionBucket()),
        ):
            bucket.congestion_sum += mean
            bucket.samples += 1
        return True

    def start_session(self, document: AnalyticsDocument) -> bool:
        """Count a new dashboard session; points it at the default location if unset."""
        now = self.clock()
        document.totals.sessions += 1
        document.session.last_active_timestamp = now
        if document.session.current_location_id is None:
            document.session.current_location_id = self.config.default_location_id
        document.day(now.date().isoformat()).sessions += 1
        return True

    def set_current_location(
        self, document: AnalyticsDocument, location_id: str | None
    ) -> bool:
        if document.session.current_location_id == location_id:
            return False
        document.session.current_location_id = location_id
        return True

    def cleanup_old_data(self, document: AnalyticsDocument, retention_days: int) -> int:
        """Drop daily totals and incidents older than the retention window.

        ISO date keys sort lexicographically in calendar order, so a plain
        string comparison against the cutoff key is sufficient.

        Returns:
            Number of entries removed
        """
        cutoff_key = (
            self.clock().date() - timedelta(days=max(0, int(retention_days)))
        ).isoformat()

        stale_days = [key for key in document.daily_totals if key < cutoff_key]
        for key in stale_days:
            del document.daily_totals[key]

        kept_incidents = [
            incident
            for incident in document.incidents
            if incident.timestamp.date().isoformat() >= cutoff_key
        ]
        removed = len(stale_days) + len(document.incidents) - len(kept_incidents)
        document.incidents = kept_incidents

        logger.info(
            "Retention cleanup completed",
            cutoff=cutoff_key,
            removed=removed,
        )
        return removed
