"""TraffiQ Analytics - client-side traffic analytics engine.

Aggregates per-cycle traffic observations into a persisted, per-identity
analytics document and projects dashboard summaries, rankings, chart
series and exports from it.
"""

__version__ = "0.1.0"
__author__ = "TraffiQ Team"

# Core exports
from .containers import ApplicationContainer, build_analytics_store, create_container
from .core.config import Settings, get_settings
from .core.exceptions import TraffiqAnalyticsError
from .core.logging import setup_logging
from .services.analytics_store import AnalyticsStore

__all__ = [
    "__version__",
    "ApplicationContainer",
    "AnalyticsStore",
    "Settings",
    "TraffiqAnalyticsError",
    "build_analytics_store",
    "create_container",
    "get_settings",
    "setup_logging",
]
