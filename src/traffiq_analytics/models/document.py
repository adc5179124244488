"""Persisted analytics document.

One ``AnalyticsDocument`` exists per identity namespace. It is stored as a
single JSON object with camelCase keys and is always read leniently:
missing subtrees default, non-finite numbers become zero, out-of-range
hour keys and malformed log records are dropped, and documents written
by the earlier single-namespace dashboard are migrated on read.
"""

import json
import math
from datetime import date, datetime
from typing import Annotated, Any

from pydantic import (
    AliasChoices,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    ValidationError,
    model_validator,
)
from pydantic.alias_generators import to_camel

from ..core.exceptions import SerializationError

SCHEMA_VERSION = 2
HOURS_PER_DAY = 24
WEEKDAY_LABELS = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")


def _finite_number(value: Any) -> float:
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, int | float):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value)
        except ValueError:
            return 0.0
    else:
        return 0.0
    return number if math.isfinite(number) else 0.0


def _count(value: Any) -> int:
    return max(0, int(_finite_number(value)))


def _record_id(value: Any) -> Any:
    if isinstance(value, float) and math.isfinite(value):
        return int(value)
    return value


def _optional_text(value: Any) -> str | None:
    if value is None:
        return None
    return str(value)


def _aware(value: Any) -> Any:
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return value
    if isinstance(value, datetime) and value.tzinfo is None:
        return value.astimezone()
    return value


def _mapping(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


def _hour_keyed(value: Any) -> dict:
    cleaned = {}
    for key, bucket in _mapping(value).items():
        try:
            hour = int(key)
        except (TypeError, ValueError):
            continue
        if 0 <= hour < HOURS_PER_DAY and isinstance(bucket, dict | BaseModel):
            cleaned[hour] = bucket
    return cleaned


def _date_keyed(value: Any) -> dict:
    cleaned = {}
    for key, entry in _mapping(value).items():
        try:
            date.fromisoformat(str(key))
        except ValueError:
            continue
        if isinstance(entry, dict | BaseModel):
            cleaned[str(key)] = entry
    return cleaned


def _location_keyed(value: Any) -> dict:
    return {
        str(key): entry
        for key, entry in _mapping(value).items()
        if isinstance(entry, dict | BaseModel)
    }


Count = Annotated[int, BeforeValidator(_count)]
Amount = Annotated[float, BeforeValidator(_finite_number)]
RecordId = Annotated[int, BeforeValidator(_record_id)]
OptionalText = Annotated[str | None, BeforeValidator(_optional_text)]
Timestamp = Annotated[datetime, BeforeValidator(_aware)]
OptionalTimestamp = Annotated[datetime | None, BeforeValidator(_aware)]


class DocumentModel(BaseModel):
    """Base for every persisted subtree: camelCase on disk, snake_case in code."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class HourBucket(DocumentModel):
    vehicle_sum: Count = Field(
        default=0,
        validation_alias=AliasChoices("vehicleSum", "vehicles", "vehicle_sum"),
        serialization_alias="vehicleSum",
    )
    sample_count: Count = Field(
        default=0,
        validation_alias=AliasChoices("sampleCount", "count", "sample_count"),
        serialization_alias="sampleCount",
    )

    @property
    def average(self) -> float:
        return self.vehicle_sum / self.sample_count if self.sample_count else 0.0


class DailyTotals(DocumentModel):
    vehicles: Count = 0
    incidents: Count = 0
    sessions: Count = 0


class LocationStats(DocumentModel):
    """Per-location totals with a running weighted average wait."""

    vehicles: Count = 0
    avg_wait_seconds: Count = Field(
        default=0,
        validation_alias=AliasChoices("avgWaitSeconds", "avgWait", "avg_wait_seconds"),
        serialization_alias="avgWaitSeconds",
    )
    sample_count: Count = Field(
        default=0,
        validation_alias=AliasChoices("sampleCount", "count", "sample_count"),
        serialization_alias="sampleCount",
    )


class MeasurementBucket(DocumentModel):
    """Running sum/count of a continuous measurement."""

    total: Amount = 0.0
    sample_count: Count = 0

    @property
    def average(self) -> float:
        return self.total / self.sample_count if self.sample_count else 0.0

    def add(self, value: float) -> None:
        self.total += value
        self.sample_count += 1


HourlyBuckets = Annotated[dict[int, HourBucket], BeforeValidator(_hour_keyed)]
HourlyMeasurements = Annotated[
    dict[int, MeasurementBucket], BeforeValidator(_hour_keyed)
]
LocationMeasurements = Annotated[
    dict[str, MeasurementBucket], BeforeValidator(_location_keyed)
]


class QueueStats(DocumentModel):
    """Queue-length observations in meters."""

    overall: MeasurementBucket = Field(default_factory=MeasurementBucket)
    hourly: HourlyMeasurements = Field(default_factory=dict)
    by_location: LocationMeasurements = Field(default_factory=dict)


class SpeedStats(DocumentModel):
    """Average-speed observations in km/h."""

    overall: MeasurementBucket = Field(default_factory=MeasurementBucket)
    by_location: LocationMeasurements = Field(default_factory=dict)


class SavingsStats(DocumentModel):
    time_saved_minutes: Amount = 0.0
    co2_saved_kg: Amount = 0.0
    optimizations_applied: Count = 0


class CongestionBucket(DocumentModel):
    congestion_sum: Amount = 0.0
    samples: Count = 0

    @property
    def value(self) -> int:
        """Presentation value: mean level (1-3) scaled to roughly 0-100."""
        if not self.samples:
            return 0
        return round_half_up(self.congestion_sum / self.samples * 33)


class CongestionHistory(DocumentModel):
    hourly: Annotated[
        dict[int, CongestionBucket], BeforeValidator(_hour_keyed)
    ] = Field(default_factory=dict)
    daily: Annotated[
        dict[str, CongestionBucket], BeforeValidator(_location_keyed)
    ] = Field(default_factory=dict)


class Totals(DocumentModel):
    vehicles: Count = 0
    sessions: Count = 0


class IncidentRecord(DocumentModel):
    id: RecordId
    type: str = "alert"
    description: str = ""
    timestamp: Timestamp
    location_id: OptionalText = None


class RecommendationRecord(DocumentModel):
    id: RecordId
    text: str
    timestamp: Timestamp
    location_id: OptionalText = None


class EmergencyEventRecord(DocumentModel):
    id: RecordId
    type: str = "emergency"
    lane: OptionalText = None
    direction: OptionalText = None
    timestamp: Timestamp
    location_id: OptionalText = None
    cleared_at: OptionalTimestamp = None
    response_time_seconds: int | None = None

    @property
    def is_cleared(self) -> bool:
        return self.cleared_at is not None


def _valid_records(model: type[DocumentModel]) -> BeforeValidator:
    def validate(value: Any) -> list:
        if not isinstance(value, list):
            return []
        records = []
        for item in value:
            try:
                records.append(model.model_validate(item))
            except ValidationError:
                continue
        return records

    return BeforeValidator(validate)


class SessionState(DocumentModel):
    current_location_id: OptionalText = None
    last_active_timestamp: OptionalTimestamp = None


class AnalyticsSettings(DocumentModel):
    """Flat, last-write-wins configuration map.

    Unknown primitive keys are preserved as extras.
    """

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="allow"
    )

    audio_alerts: bool = True
    incident_notifications: bool = True
    congestion_warnings: bool = True
    heatmap_enabled: bool = True
    live_vehicle_counts: bool = True
    map_style: str = "dark"
    default_camera: str = "environment"
    frame_rate: int = 2
    save_historical_data: bool = True
    data_retention_days: int = Field(default=30, ge=0)

    def resolve_key(self, key: str) -> str:
        """Map a snake_case or camelCase key to the attribute name it sets."""
        for name, field in type(self).model_fields.items():
            if key in (name, field.alias):
                return name
        return key


class AnalyticsDocument(DocumentModel):
    """Root persisted object, one per identity."""

    schema_version: int = SCHEMA_VERSION
    settings: AnalyticsSettings = Field(default_factory=AnalyticsSettings)
    totals: Totals = Field(default_factory=Totals)
    hourly_buckets: HourlyBuckets = Field(default_factory=dict)
    location_hourly_buckets: Annotated[
        dict[str, HourlyBuckets], BeforeValidator(_location_keyed)
    ] = Field(default_factory=dict)
    daily_totals: Annotated[
        dict[str, DailyTotals], BeforeValidator(_date_keyed)
    ] = Field(default_factory=dict)
    location_stats: Annotated[
        dict[str, LocationStats], BeforeValidator(_location_keyed)
    ] = Field(default_factory=dict)
    queue_stats: QueueStats = Field(default_factory=QueueStats)
    speed_stats: SpeedStats = Field(default_factory=SpeedStats)
    savings_stats: SavingsStats = Field(default_factory=SavingsStats)
    congestion_history: CongestionHistory = Field(default_factory=CongestionHistory)
    incidents: Annotated[
        list[IncidentRecord], _valid_records(IncidentRecord)
    ] = Field(default_factory=list)
    recommendations: Annotated[
        list[RecommendationRecord], _valid_records(RecommendationRecord)
    ] = Field(default_factory=list)
    emergency_events: Annotated[
        list[EmergencyEventRecord], _valid_records(EmergencyEventRecord)
    ] = Field(default_factory=list)
    session: SessionState = Field(default_factory=SessionState)

    @model_validator(mode="before")
    @classmethod
    def normalize_layout(cls, data: Any) -> Any:
        """Drop mistyped subtrees and migrate the legacy nested layout."""
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if isinstance(data.get("analytics"), dict):
            data = _migrate_legacy(data)
        for name, field in cls.model_fields.items():
            for key in (name, field.alias):
                if key in data and not isinstance(data[key], dict | list | BaseModel):
                    if name != "schema_version":
                        data.pop(key)
        return data

    def location_hours(self, location_id: str) -> dict[int, HourBucket]:
        return self.location_hourly_buckets.setdefault(location_id, {})

    def day(self, date_key: str) -> DailyTotals:
        return self.daily_totals.setdefault(date_key, DailyTotals())


def _migrate_legacy(data: dict[str, Any]) -> dict[str, Any]:
    analytics = data.pop("analytics")
    settings = dict(_mapping(data.get("settings")))
    settings.pop("apiKey", None)
    legacy_session = _mapping(data.get("session"))

    def relocate(records: Any) -> list:
        moved = []
        for record in records if isinstance(records, list) else []:
            if isinstance(record, dict):
                record = dict(record)
                if "intersection" in record:
                    record["locationId"] = record.pop("intersection")
                moved.append(record)
        return moved

    return {
        "schemaVersion": SCHEMA_VERSION,
        "settings": settings,
        "totals": {
            "vehicles": analytics.get("totalVehicles", 0),
            "sessions": analytics.get("totalSessions", 0),
        },
        "hourlyBuckets": analytics.get("hourlyData", {}),
        "locationHourlyBuckets": analytics.get("cameraHourlyData", {}),
        "dailyTotals": analytics.get("dailyTotals", {}),
        "locationStats": analytics.get("intersectionStats", {}),
        "incidents": relocate(analytics.get("incidents")),
        "recommendations": relocate(analytics.get("recommendations")),
        "session": {
            "currentLocationId": legacy_session.get("currentIntersection"),
            "lastActiveTimestamp": legacy_session.get("lastActive"),
        },
    }


def ensure_aware(moment: datetime) -> datetime:
    """Interpret naive datetimes as local time."""
    return moment if moment.tzinfo is not None else moment.astimezone()


def local_now() -> datetime:
    return datetime.now().astimezone()


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positives, matching dashboard presentation."""
    return math.floor(value + 0.5)


def encode_document(document: AnalyticsDocument, indent: int | None = None) -> str:
    """Serialize the full document to JSON."""
    try:
        return document.model_dump_json(by_alias=True, indent=indent)
    except (TypeError, ValueError) as e:
        raise SerializationError("Failed to encode analytics document", cause=e) from e


def decode_document(raw: str | bytes, key: str | None = None) -> AnalyticsDocument:
    """Parse a serialized document, sanitizing what can be salvaged.

    Raises:
        SerializationError: If the payload is not a JSON object
    """
    try:
        payload = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise SerializationError("Stored document is not valid JSON", key=key, cause=e) from e
    if not isinstance(payload, dict):
        raise SerializationError(
            "Stored document is not a JSON object",
            key=key,
            details={"type": type(payload).__name__},
        )
    try:
        return AnalyticsDocument.model_validate(payload)
    except ValidationError as e:
        raise SerializationError("Stored document failed validation", key=key, cause=e) from e
