"""Application-facing analytics store.

``AnalyticsStore`` owns the in-memory document for one tab and is the
only writer that hands it to persistence. Every public mutation runs
against a working copy, swaps it in once the owning service has applied
the whole change, and then saves the complete document.

Lifecycle::

    store = container.analytics_store()
    store.init()
    store.record_observation({"car": 5}, wait_seconds=20)
    ...
    store.flush()
"""

from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from typing import Any, TypeVar

from pydantic import ValidationError as PydanticValidationError

from ..core.exceptions import TraffiqAnalyticsError
from ..core.logging import LoggingMixin
from ..models.document import (
    AnalyticsDocument,
    EmergencyEventRecord,
    HourBucket,
    IncidentRecord,
    RecommendationRecord,
)
from ..models.observation import CongestionLevel, VehicleTypeCounts
from .aggregation_service import AggregationEngine
from .analytics_dtos import (
    AnalyticsSummary,
    ChartPeriod,
    ChartPoint,
    InfrastructureInsight,
    InsightImpact,
    LocationRanking,
    PeakHour,
    SuggestionFrequency,
)
from .event_log_service import EventLog
from .export_service import ExportService
from .insights_service import InsightsService
from .persistent_store import PersistentStore
from .summary_service import SummaryProjector

T = TypeVar("T")

# Failures a mutation may hit while applying a change to the working copy.
MUTATION_ERRORS = (TraffiqAnalyticsError, PydanticValidationError, TypeError, ValueError)


class AnalyticsStore(LoggingMixin):
    """Single owner of one identity's analytics document."""

    def __init__(
        self,
        persistent_store: PersistentStore,
        engine: AggregationEngine,
        event_log: EventLog,
        projector: SummaryProjector,
        exporter: ExportService,
        insights: InsightsService,
    ):
        """Initialize with injected dependencies.

        Args:
            persistent_store: Identity-scoped document persistence
            engine: Aggregate statistics writer
            event_log: Incident, recommendation and emergency log writer
            projector: Read-side summary views
            exporter: Download renderers
            insights: Infrastructure suggestion rules
        """
        self.persistent_store = persistent_store
        self.engine = engine
        self.event_log = event_log
        self.projector = projector
        self.exporter = exporter
        self.insights = insights

        self._document: AnalyticsDocument | None = None
        self._identity_key: str | None = None
        self._pinned = False
        self._batch_depth = 0
        self._dirty = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def init(self, identity_key: str | None = None) -> "AnalyticsStore":
        """Load the document for an identity.

        Args:
            identity_key: Fixed storage key. When omitted the key follows
                the session record and is re-resolved on every operation.
        """
        self._pinned = identity_key is not None
        self._load(identity_key or self.persistent_store.resolve_identity_key())
        return self

    def _load(self, identity_key: str) -> None:
        self._identity_key = identity_key
        self._document = self.persistent_store.load(identity_key)
        self._dirty = False
        self.logger.debug("Analytics document loaded", identity_key=identity_key)

    @property
    def identity_key(self) -> str:
        """Storage key of the document currently held."""
        self._current_document()
        return self._identity_key

    @property
    def document(self) -> AnalyticsDocument:
        return self._current_document()

    def _current_document(self) -> AnalyticsDocument:
        if self._pinned:
            if self._document is None:
                self._load(self._identity_key)
            return self._document

        key = self.persistent_store.resolve_identity_key()
        if self._document is None or key != self._identity_key:
            if self._document is not None:
                if self._dirty:
                    self._save()
                self.logger.info(
                    "Active identity changed",
                    previous_identity_key=self._identity_key,
                    identity_key=key,
                )
            self._load(key)
        return self._document

    def reload(self) -> AnalyticsDocument:
        """Discard the in-memory document and read it back from storage."""
        if self._pinned:
            self._load(self._identity_key)
        else:
            self._load(self.persistent_store.resolve_identity_key())
        return self._document

    def flush(self) -> bool:
        """Persist the current document."""
        self._current_document()
        return self._save()

    def _save(self) -> bool:
        saved = self.persistent_store.save(self._document, self._identity_key)
        self._dirty = not saved
        return saved

    @contextmanager
    def batch(self) -> Iterator["AnalyticsStore"]:
        """Group several mutations into a single save."""
        self._batch_depth += 1
        try:
            yield self
        finally:
            self._batch_depth -= 1
            if self._batch_depth == 0 and self._dirty:
                self._save()

    def apply(self, operation: str, change: Callable[[AnalyticsDocument], T]) -> T | None:
        """Run ``change`` against a working copy and persist the result.

        The working copy replaces the current document only when
        ``change`` completes, so a failing change leaves no partial write.
        A result of ``None`` or ``False`` means nothing changed.

        Returns:
            Whatever ``change`` returned, or None when it failed
        """
        working = self._current_document().model_copy(deep=True)
        try:
            result = change(working)
        except MUTATION_ERRORS as e:
            self.logger.warning(
                "Analytics update discarded",
                operation=operation,
                identity_key=self._identity_key,
                error=str(e),
            )
            return None

        if result is None or result is False:
            return result
        self._document = working
        self._dirty = True
        if self._batch_depth == 0:
            self._save()
        return result

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def get_setting(self, key: str, default: Any = None) -> Any:
        settings = self.document.settings
        return getattr(settings, settings.resolve_key(key), default)

    def set_setting(self, key: str, value: Any) -> bool:
        return bool(self.update_settings({key: value}))

    def update_settings(self, values: Mapping[str, Any]) -> bool:
        """Merge values into the flat settings map (last write wins)."""

        def change(document: AnalyticsDocument) -> bool:
            settings = document.settings
            merged = settings.model_dump()
            for key, value in values.items():
                merged[settings.resolve_key(key)] = value
            document.settings = type(settings).model_validate(merged)
            return True

        return bool(self.apply("update_settings", change))

    def get_all_settings(self) -> dict[str, Any]:
        return self.document.settings.model_dump(by_alias=True)

    # ------------------------------------------------------------------
    # Aggregates
    # ------------------------------------------------------------------

    def record_observation(
        self,
        counts: VehicleTypeCounts | Mapping[str, Any],
        wait_seconds: float = 0,
        location_id: str | None = None,
    ) -> bool:
        return bool(
            self.apply(
                "record_observation",
                lambda document: self.engine.record_observation(
                    document, counts, wait_seconds, location_id
                ),
            )
        )

    def record_queue_length(self, meters: float, location_id: str | None = None) -> bool:
        return bool(
            self.apply(
                "record_queue_length",
                lambda document: self.engine.record_queue_length(
                    document, meters, location_id
                ),
            )
        )

    def record_speed(self, kmh: float, location_id: str | None = None) -> bool:
        return bool(
            self.apply(
                "record_speed",
                lambda document: self.engine.record_speed(document, kmh, location_id),
            )
        )

    def record_savings(
        self, time_saved_minutes: float | None = 0, co2_saved_kg: float | None = 0
    ) -> bool:
        return bool(
            self.apply(
                "record_savings",
                lambda document: self.engine.record_savings(
                    document, time_saved_minutes, co2_saved_kg
                ),
            )
        )

    def record_congestion(self, levels: list[CongestionLevel | str]) -> bool:
        return bool(
            self.apply(
                "record_congestion",
                lambda document: self.engine.record_congestion(document, levels),
            )
        )

    def start_session(self) -> bool:
        return bool(self.apply("start_session", self.engine.start_session))

    def set_current_location(self, location_id: str | None) -> bool:
        return bool(
            self.apply(
                "set_current_location",
                lambda document: self.engine.set_current_location(document, location_id),
            )
        )

    # ------------------------------------------------------------------
    # Event logs
    # ------------------------------------------------------------------

    def record_incident(
        self,
        incident_type: str,
        description: str,
        location_id: str | None = None,
    ) -> IncidentRecord | None:
        return self.apply(
            "record_incident",
            lambda document: self.event_log.record_incident(
                document, incident_type, description, location_id
            ),
        )

    def record_recommendation(
        self, text: str, location_id: str | None = None
    ) -> RecommendationRecord | None:
        return self.apply(
            "record_recommendation",
            lambda document: self.event_log.record_recommendation(
                document, text, location_id
            ),
        )

    def record_emergency_event(
        self,
        event_type: str,
        lane: str | int | None = None,
        direction: str | None = None,
        location_id: str | None = None,
    ) -> int | None:
        return self.apply(
            "record_emergency_event",
            lambda document: self.event_log.record_emergency_event(
                document, event_type, lane, direction, location_id
            ),
        )

    def clear_emergency_event(self, event_id: int) -> bool:
        return bool(
            self.apply(
                "clear_emergency_event",
                lambda document: self.event_log.clear_emergency_event(document, event_id),
            )
        )

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def clear_analytics(self) -> bool:
        """Reset every analytics subtree; settings and session survive."""

        def change(document: AnalyticsDocument) -> bool:
            fresh = AnalyticsDocument(
                settings=document.settings.model_copy(deep=True),
                session=document.session.model_copy(deep=True),
            )
            for name in type(document).model_fields:
                setattr(document, name, getattr(fresh, name))
            return True

        cleared = bool(self.apply("clear_analytics", change))
        if cleared:
            self.logger.info("Analytics cleared", identity_key=self._identity_key)
        return cleared

    def cleanup_old_data(self, retention_days: int | None = None) -> int:
        """Prune entries older than the retention window.

        Args:
            retention_days: Days to keep; defaults to the document's
                ``dataRetentionDays`` setting

        Returns:
            Number of entries removed
        """
        if retention_days is None:
            retention_days = self.document.settings.data_retention_days
        removed = self.apply(
            "cleanup_old_data",
            lambda document: self.engine.cleanup_old_data(document, retention_days),
        )
        return removed or 0

    # ------------------------------------------------------------------
    # Read views
    # ------------------------------------------------------------------

    def get_analytics_summary(self, location_id: str | None = None) -> AnalyticsSummary:
        return self.projector.get_analytics_summary(self.document, location_id)

    def get_peak_hours(self, location_id: str | None = None) -> list[PeakHour]:
        return self.projector.get_peak_hours(self.document, location_id)

    def get_busiest_locations(self) -> list[LocationRanking]:
        return self.projector.get_busiest_locations(self.document)

    def get_hourly_data(self, location_id: str | None = None) -> dict[int, HourBucket]:
        return self.projector.get_hourly_data(self.document, location_id)

    def get_recommendations(
        self, limit: int = 10, location_id: str | None = None
    ) -> list[RecommendationRecord]:
        return self.projector.get_recommendations(self.document, limit, location_id)

    def get_incidents(
        self, limit: int = 10, location_id: str | None = None
    ) -> list[IncidentRecord]:
        return self.projector.get_incidents(self.document, limit, location_id)

    def get_emergency_events(
        self, limit: int = 10, location_id: str | None = None
    ) -> list[EmergencyEventRecord]:
        return self.projector.get_emergency_events(self.document, limit, location_id)

    def get_suggestion_frequency(
        self, location_id: str | None = None, limit: int = 5
    ) -> list[SuggestionFrequency]:
        return self.projector.get_suggestion_frequency(self.document, location_id, limit)

    def get_congestion_series(
        self, period: ChartPeriod | str = ChartPeriod.HOUR
    ) -> list[ChartPoint]:
        return self.projector.get_congestion_series(self.document, period)

    def get_infrastructure_insights(
        self, location_id: str | None = None
    ) -> list[InfrastructureInsight]:
        return self.insights.generate(self.document, location_id)

    def get_insight_locations(self, limit: int = 5) -> list[tuple[str, int]]:
        return self.insights.rank_locations(self.insights.generate(self.document), limit)

    def get_insight_impact(self) -> InsightImpact:
        return self.insights.estimate_impact(self.insights.generate(self.document))

    # ------------------------------------------------------------------
    # Exports
    # ------------------------------------------------------------------

    def export_data(self) -> str:
        """Full JSON dump of the current document."""
        return self.exporter.export_json(self.document)

    def export_chart_csv(self) -> str:
        return self.exporter.export_chart_csv(self.document)

    def export_daily_csv(self) -> str:
        return self.exporter.export_daily_csv(self.document)

    def build_text_report(self) -> str:
        return self.exporter.build_text_report(self.document)
