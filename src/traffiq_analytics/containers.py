"""Dependency injection container for TraffiQ Analytics.

The application root owns one ``ApplicationContainer`` per tab. The
container builds the storage handle, the analytics services and the
``AnalyticsStore`` facade that replaces a module-level singleton.

Tests and embedders override ``settings``, ``storage_backend`` or
``clock_source`` before resolving anything; ``create_container`` wraps
the common overrides.
"""

from collections.abc import Callable
from datetime import datetime

from dependency_injector import containers, providers

from .core.config import Settings, get_settings
from .core.logging import get_logger, setup_logging
from .models.document import ensure_aware, local_now
from .services.aggregation_service import AggregationEngine
from .services.analytics_store import AnalyticsStore
from .services.event_log_service import EventLog
from .services.export_service import ExportService
from .services.ingestion_service import ObservationIngestor
from .services.insights_service import InsightsService
from .services.locations import LocationDirectory
from .services.persistent_store import PersistentStore
from .services.summary_service import SummaryProjector
from .services.sync_service import CrossTabSync
from .storage.base import StorageBackend
from .storage.factory import create_storage_backend
from .storage.memory import MemoryArea

logger = get_logger(__name__)


def _aware_clock(source: Callable[[], datetime]) -> Callable[[], datetime]:
    def clock() -> datetime:
        return ensure_aware(source())

    return clock


class ApplicationContainer(containers.DeclarativeContainer):
    """Root container wiring storage, services and the store facade."""

    # Settings provider
    settings = providers.Singleton(get_settings)

    # Logging, configured once via init_resources()
    logging_setup = providers.Resource(setup_logging, settings=settings)

    # Time source; naive results are read as local time
    clock_source = providers.Object(local_now)
    clock = providers.Singleton(_aware_clock, clock_source)

    # Storage
    memory_area = providers.Singleton(
        MemoryArea,
        quota_bytes=settings.provided.storage.quota_bytes,
    )

    storage_backend = providers.Singleton(
        create_storage_backend,
        settings=settings,
        area=memory_area,
    )

    persistent_store = providers.Singleton(
        PersistentStore,
        backend=storage_backend,
        config=settings.provided.storage,
        clock=clock,
    )

    # Services
    location_directory = providers.Singleton(
        LocationDirectory,
        settings.provided.analytics.locations,
    )

    aggregation_engine = providers.Singleton(
        AggregationEngine,
        config=settings.provided.analytics,
        clock=clock,
    )

    event_log = providers.Singleton(
        EventLog,
        config=settings.provided.analytics,
        clock=clock,
    )

    summary_projector = providers.Singleton(
        SummaryProjector,
        config=settings.provided.analytics,
        clock=clock,
        directory=location_directory,
    )

    export_service = providers.Singleton(ExportService, projector=summary_projector)

    insights_service = providers.Singleton(InsightsService, directory=location_directory)

    # Application-level services
    analytics_store = providers.Singleton(
        AnalyticsStore,
        persistent_store=persistent_store,
        engine=aggregation_engine,
        event_log=event_log,
        projector=summary_projector,
        exporter=export_service,
        insights=insights_service,
    )

    observation_ingestor = providers.Singleton(ObservationIngestor, store=analytics_store)

    cross_tab_sync = providers.Singleton(
        CrossTabSync,
        store=analytics_store,
        backend=storage_backend,
    )


def create_container(
    settings: Settings | None = None,
    backend: StorageBackend | None = None,
    clock: Callable[[], datetime] | None = None,
    configure_logging: bool = False,
) -> ApplicationContainer:
    """Build a container with optional overrides.

    Args:
        settings: Settings to use instead of the cached environment settings
        backend: Storage handle to use instead of the configured backend
        clock: Time source to use instead of the local wall clock
        configure_logging: Run logging setup for the application root

    Returns:
        Configured application container
    """
    container = ApplicationContainer()
    if settings is not None:
        container.settings.override(providers.Object(settings))
    if backend is not None:
        container.storage_backend.override(providers.Object(backend))
    if clock is not None:
        container.clock_source.override(providers.Object(clock))
    if configure_logging:
        container.init_resources()
    return container


def build_analytics_store(
    settings: Settings | None = None,
    backend: StorageBackend | None = None,
    clock: Callable[[], datetime] | None = None,
    identity_key: str | None = None,
) -> AnalyticsStore:
    """Create and initialise an ``AnalyticsStore`` in one call."""
    container = create_container(settings=settings, backend=backend, clock=clock)
    store = container.analytics_store()
    store.init(identity_key)
    logger.debug("Analytics store ready", identity_key=store.identity_key)
    return store
