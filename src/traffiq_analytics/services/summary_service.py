"""Read-side projections over the analytics document.

Every view is recomputed from the document it is handed; nothing is
cached and nothing is mutated.
"""

from collections.abc import Callable
from datetime import datetime, timedelta

from ..core.config import AnalyticsConfig
from ..models.document import (
    AnalyticsDocument,
    EmergencyEventRecord,
    HourBucket,
    IncidentRecord,
    LocationStats,
    RecommendationRecord,
    round_half_up,
)
from .aggregation_service import weekday_label
from .analytics_dtos import (
    AnalyticsSummary,
    ChartPeriod,
    ChartPoint,
    CongestionLabel,
    CongestionTier,
    LocationRanking,
    PeakHour,
    SuggestionFrequency,
)
from .locations import LocationDirectory

MIN_EFFICIENCY = 70
MAX_EFFICIENCY = 99
BASE_EFFICIENCY = 94
EFFICIENCY_PENALTY_PER_INCIDENT = 2


def flow_efficiency(vehicles: int, incidents: int) -> int:
    """Flow-efficiency score; 0 when nothing has been observed."""
    if vehicles <= 0:
        return 0
    score = BASE_EFFICIENCY - incidents * EFFICIENCY_PENALTY_PER_INCIDENT
    return min(MAX_EFFICIENCY, max(MIN_EFFICIENCY, score))


def congestion_label(efficiency: int) -> CongestionLabel:
    if efficiency < 60:
        return CongestionLabel.HIGH
    if efficiency < 85:
        return CongestionLabel.MEDIUM
    return CongestionLabel.LOW


class SummaryProjector:
    """Stateless analytics views: summary, rankings, chart series, logs."""

    def __init__(
        self,
        config: AnalyticsConfig,
        clock: Callable[[], datetime],
        directory: LocationDirectory | None = None,
    ):
        self.config = config
        self.clock = clock
        self.directory = directory or LocationDirectory(config.locations)

    def _today(self) -> str:
        return self.clock().date().isoformat()

    def _for_location(self, entries: dict, location_id: str):
        """Entry recorded for a location under its id or a legacy display name."""
        if location_id in entries:
            return entries[location_id]
        for key, entry in entries.items():
            if self.directory.matches(key, location_id):
                return entry
        return None

    def _location_stats(
        self, document: AnalyticsDocument, location_id: str
    ) -> LocationStats | None:
        return self._for_location(document.location_stats, location_id)

    def _filter(self, records: list, location_id: str | None) -> list:
        if not location_id:
            return list(records)
        return [r for r in records if self.directory.matches(r.location_id, location_id)]

    def get_analytics_summary(
        self, document: AnalyticsDocument, location_id: str | None = None
    ) -> AnalyticsSummary:
        """Headline figures, globally or for one location.

        Location savings are the global savings scaled by the location's
        share of all observed vehicles, an approximation rather than an
        exact attribution.
        """
        today = self._today()
        savings = document.savings_stats
        incidents_today = [
            incident
            for incident in self._filter(document.incidents, location_id)
            if incident.timestamp.date().isoformat() == today
        ]
        emergencies_today = [
            event
            for event in self._filter(document.emergency_events, location_id)
            if event.timestamp.date().isoformat() == today
        ]

        if location_id:
            stats = self._location_stats(document, location_id)
            vehicles = stats.vehicles if stats else 0
            incidents = len(incidents_today)
            avg_wait = stats.avg_wait_seconds if stats else 0
            queue = self._for_location(document.queue_stats.by_location, location_id)
            speed = self._for_location(document.speed_stats.by_location, location_id)
            share = (
                min(1.0, vehicles / document.totals.vehicles)
                if document.totals.vehicles > 0
                else 0.0
            )
        else:
            day = document.daily_totals.get(today)
            vehicles = day.vehicles if day else 0
            incidents = day.incidents if day else 0
            avg_wait = self._overall_wait(document)
            queue = document.queue_stats.overall
            speed = document.speed_stats.overall
            share = 1.0

        efficiency = flow_efficiency(vehicles, incidents)
        return AnalyticsSummary(
            total_vehicles_today=vehicles,
            avg_wait_time=avg_wait,
            avg_speed_kmh=(
                round(speed.average, 1) if speed and speed.sample_count else None
            ),
            incidents_today=incidents,
            emergency_events=len(emergencies_today),
            flow_efficiency=efficiency,
            avg_queue_length=round(queue.average, 1) if queue else 0.0,
            time_saved_minutes=round(savings.time_saved_minutes * share, 1),
            co2_saved_kg=round(savings.co2_saved_kg * share, 2),
            optimizations_applied=savings.optimizations_applied,
            congestion_level=congestion_label(efficiency),
            total_sessions=document.totals.sessions,
            location_id=location_id,
        )

    @staticmethod
    def _overall_wait(document: AnalyticsDocument) -> int:
        """Sample-weighted mean of the per-location running averages."""
        weighted = sum(
            stats.avg_wait_seconds * stats.sample_count
            for stats in document.location_stats.values()
            if stats.avg_wait_seconds > 0
        )
        samples = sum(
            stats.sample_count
            for stats in document.location_stats.values()
            if stats.avg_wait_seconds > 0
        )
        return round_half_up(weighted / samples) if samples else 0

    def get_peak_hours(
        self, document: AnalyticsDocument, location_id: str | None = None
    ) -> list[PeakHour]:
        """Top hours by average vehicles per sample; empty without data."""
        if location_id:
            buckets = (
                self._for_location(document.location_hourly_buckets, location_id) or {}
            )
        else:
            buckets = document.hourly_buckets
        hours = [
            PeakHour(hour=hour, avg_vehicles=round_half_up(bucket.average))
            for hour, bucket in buckets.items()
            if bucket.sample_count > 0
        ]
        hours.sort(key=lambda peak: (-peak.avg_vehicles, peak.hour))
        return hours[: self.config.peak_hours_limit]

    def congestion_tier(self, vehicles: int) -> CongestionTier:
        if vehicles > self.config.high_congestion_vehicles:
            return CongestionTier.HIGH
        if vehicles > self.config.medium_congestion_vehicles:
            return CongestionTier.MEDIUM
        return CongestionTier.LOW

    def get_busiest_locations(self, document: AnalyticsDocument) -> list[LocationRanking]:
        rankings = [
            LocationRanking(
                location_id=location_id,
                name=self.directory.name_for(location_id),
                vehicles=stats.vehicles,
                congestion=self.congestion_tier(stats.vehicles),
            )
            for location_id, stats in document.location_stats.items()
        ]
        rankings.sort(key=lambda ranking: (-ranking.vehicles, ranking.location_id))
        return rankings[: self.config.busiest_locations_limit]

    def get_hourly_data(
        self, document: AnalyticsDocument, location_id: str | None = None
    ) -> dict[int, HourBucket]:
        """Raw hour buckets for charting; falls back to global data."""
        buckets = document.hourly_buckets
        if location_id:
            buckets = (
                self._for_location(document.location_hourly_buckets, location_id)
                or buckets
            )
        return {hour: bucket.model_copy() for hour, bucket in sorted(buckets.items())}

    def get_recommendations(
        self,
        document: AnalyticsDocument,
        limit: int = 10,
        location_id: str | None = None,
    ) -> list[RecommendationRecord]:
        return self._filter(document.recommendations, location_id)[: max(0, limit)]

    def get_incidents(
        self,
        document: AnalyticsDocument,
        limit: int = 10,
        location_id: str | None = None,
    ) -> list[IncidentRecord]:
        return self._filter(document.incidents, location_id)[: max(0, limit)]

    def get_emergency_events(
        self,
        document: AnalyticsDocument,
        limit: int = 10,
        location_id: str | None = None,
    ) -> list[EmergencyEventRecord]:
        return self._filter(document.emergency_events, location_id)[: max(0, limit)]

    def get_suggestion_frequency(
        self,
        document: AnalyticsDocument,
        location_id: str | None = None,
        limit: int = 5,
    ) -> list[SuggestionFrequency]:
        """Recommendation texts ranked by how often they were logged."""
        ranking: dict[str, SuggestionFrequency] = {}
        for record in self._filter(document.recommendations, location_id):
            entry = ranking.get(record.text)
            if entry is None:
                ranking[record.text] = SuggestionFrequency(
                    text=record.text, count=1, last_seen=record.timestamp
                )
            else:
                entry.count += 1
                entry.last_seen = max(entry.last_seen, record.timestamp)
        ordered = sorted(
            ranking.values(),
            key=lambda entry: (-entry.count, -entry.last_seen.timestamp()),
        )
        return ordered[: max(0, limit)]

    def get_congestion_series(
        self, document: AnalyticsDocument, period: ChartPeriod | str = ChartPeriod.HOUR
    ) -> list[ChartPoint]:
        """Rolling congestion trend ending now: 24 hours or 7 days."""
        now = self.clock()
        history = document.congestion_history
        points = []
        if ChartPeriod(period) is ChartPeriod.HOUR:
            for offset in range(23, -1, -1):
                hour = (now.hour - offset) % 24
                bucket = history.hourly.get(hour)
                points.append(
                    ChartPoint(
                        label=f"{hour:02d}:00",
                        value=bucket.value if bucket else 0,
                        samples=bucket.samples if bucket else 0,
                    )
                )
        else:
            for offset in range(6, -1, -1):
                label = weekday_label(now - timedelta(days=offset))
                bucket = history.daily.get(label)
                points.append(
                    ChartPoint(
                        label=label,
                        value=bucket.value if bucket else 0,
                        samples=bucket.samples if bucket else 0,
                    )
                )
        return points
