"""Data Transfer Objects (DTOs) for analytics read views.

Projections hand these typed structures to presentation code instead of
ad-hoc dictionaries; ``to_dict`` renders the camelCase shape the
dashboard consumes.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic.alias_generators import to_camel

# ============================
# Enums
# ============================


class CongestionTier(str, Enum):
    """Location congestion tier by cumulative vehicle volume."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class CongestionLabel(str, Enum):
    """Summary congestion label derived from flow efficiency."""

    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class ChartPeriod(str, Enum):
    HOUR = "hour"
    DAY = "day"


class InsightPriority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return {"high": 0, "medium": 1, "low": 2}[self.value]


class InsightType(str, Enum):
    TRAFFIC_SIGNAL = "traffic-signal"
    ROAD_IMPROVEMENT = "road-improvement"
    NEW_INFRASTRUCTURE = "new-infrastructure"
    TIMING_OPTIMIZATION = "timing-optimization"

    @property
    def is_signal(self) -> bool:
        return self in (InsightType.TRAFFIC_SIGNAL, InsightType.TIMING_OPTIMIZATION)


def _camel_dict(obj: Any) -> dict[str, Any]:
    def convert(value: Any) -> Any:
        if isinstance(value, Enum):
            return value.value
        if isinstance(value, datetime):
            return value.isoformat()
        if isinstance(value, dict):
            return {to_camel(str(k)): convert(v) for k, v in value.items()}
        if isinstance(value, list):
            return [convert(v) for v in value]
        return value

    return convert(asdict(obj))


# ============================
# Summary DTOs
# ============================


@dataclass
class AnalyticsSummary:
    """Headline figures for the analytics page.

    With ``location_id`` set, ``total_vehicles_today`` is the location's
    all-time vehicle count; no per-location daily totals are kept.
    """

    total_vehicles_today: int = 0
    avg_wait_time: int = 0
    avg_speed_kmh: float | None = None
    incidents_today: int = 0
    emergency_events: int = 0
    flow_efficiency: int = 0
    avg_queue_length: float = 0.0
    time_saved_minutes: float = 0.0
    co2_saved_kg: float = 0.0
    optimizations_applied: int = 0
    congestion_level: CongestionLabel = CongestionLabel.LOW
    total_sessions: int = 0
    location_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return _camel_dict(self)


@dataclass
class PeakHour:
    hour: int
    avg_vehicles: int

    def to_dict(self) -> dict[str, Any]:
        return _camel_dict(self)


@dataclass
class LocationRanking:
    location_id: str
    name: str
    vehicles: int
    congestion: CongestionTier

    def to_dict(self) -> dict[str, Any]:
        return _camel_dict(self)


@dataclass
class SuggestionFrequency:
    text: str
    count: int
    last_seen: datetime

    def to_dict(self) -> dict[str, Any]:
        return _camel_dict(self)


@dataclass
class ChartPoint:
    """One bar of the congestion trend chart."""

    label: str
    value: int
    samples: int


# ============================
# Insight DTOs
# ============================


@dataclass
class InfrastructureInsight:
    id: str
    type: InsightType
    priority: InsightPriority
    title: str
    description: str
    location: str
    impact: int

    def to_dict(self) -> dict[str, Any]:
        return _camel_dict(self)


@dataclass
class InsightImpact:
    """Aggregate projected impact of the current insights (None = no data)."""

    wait_reduction_percent: int | None = None
    throughput_increase_percent: int | None = None
    co2_reduction_kg: int | None = None
    counts: dict[str, int] = field(default_factory=dict)
