"""Analytics services for TraffiQ."""

from .aggregation_service import AggregationEngine
from .analytics_store import AnalyticsStore
from .demo_data import DemoScenarioFeed, generate_demo_data
from .event_log_service import EventLog
from .export_service import ExportService
from .ingestion_service import ObservationIngestor
from .insights_service import InsightsService
from .locations import LocationDirectory
from .persistent_store import PersistentStore
from .summary_service import SummaryProjector
from .sync_service import CrossTabSync

__all__ = [
    "AggregationEngine",
    "AnalyticsStore",
    "CrossTabSync",
    "DemoScenarioFeed",
    "EventLog",
    "ExportService",
    "InsightsService",
    "LocationDirectory",
    "ObservationIngestor",
    "PersistentStore",
    "SummaryProjector",
    "generate_demo_data",
]
