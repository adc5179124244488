"""Inbound observation schemas.

One ``ObservationEvent`` describes a single inference cycle from the
detection pipeline. Payloads are validated once at the ingestion
boundary; missing fields default and negative counts clamp to zero so
that downstream aggregation never has to re-check shapes.
"""

from enum import Enum
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, Field, field_validator


def _non_negative(value: Any) -> Any:
    if isinstance(value, int | float) and not isinstance(value, bool):
        return max(0, value)
    if value is None:
        return 0
    return value


NonNegativeInt = Annotated[int, BeforeValidator(_non_negative)]
NonNegativeFloat = Annotated[float, BeforeValidator(_non_negative)]


class CongestionLevel(str, Enum):
    """Lane congestion label reported by the detection pipeline."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def weight(self) -> int:
        return {"low": 1, "medium": 2, "high": 3}[self.value]


class VehicleTypeCounts(BaseModel):
    """Per-class vehicle counts."""

    car: NonNegativeInt = 0
    truck: NonNegativeInt = 0
    bus: NonNegativeInt = 0
    motorcycle: NonNegativeInt = 0

    @property
    def total(self) -> int:
        return self.car + self.truck + self.bus + self.motorcycle

    def __add__(self, other: "VehicleTypeCounts") -> "VehicleTypeCounts":
        return VehicleTypeCounts(
            car=self.car + other.car,
            truck=self.truck + other.truck,
            bus=self.bus + other.bus,
            motorcycle=self.motorcycle + other.motorcycle,
        )


class LaneObservation(BaseModel):
    """State of one lane during an inference cycle."""

    lane_id: str | int | None = None
    direction: str | None = None
    vehicle_count: NonNegativeInt = 0
    vehicle_types: VehicleTypeCounts = Field(default_factory=VehicleTypeCounts)
    queue_length_meters: float | None = None
    congestion: CongestionLevel | None = None

    @field_validator("congestion", mode="before")
    @classmethod
    def normalize_congestion(cls, v: Any) -> Any:
        """Unknown labels are treated as absent."""
        if isinstance(v, str):
            v = v.strip().lower()
            return v if v in {level.value for level in CongestionLevel} else None
        return v


class Alert(BaseModel):
    """Canonical alert shape.

    The pipeline emits either plain strings or ``{type, message}``
    objects; both collapse to this model before logging.
    """

    type: str = "alert"
    message: str = "Alert"

    @classmethod
    def from_raw(cls, raw: Any) -> "Alert":
        if isinstance(raw, Alert):
            return raw
        if isinstance(raw, str):
            return cls(message=raw)
        if isinstance(raw, dict):
            alert_type = raw.get("type") or "alert"
            message = raw.get("message") or raw.get("type") or "Alert"
            return cls(type=str(alert_type), message=str(message))
        return cls(message=str(raw))


class EmergencyVehicle(BaseModel):
    type: str = "emergency"
    lane_id: str | int | None = None
    direction: str | None = None


class ObservationEvent(BaseModel):
    """One analysis cycle's worth of traffic state."""

    lanes: list[LaneObservation] = Field(default_factory=list)
    pedestrians: NonNegativeInt = 0
    avg_wait_seconds: NonNegativeFloat = 0.0
    avg_speed_kmh: float | None = None
    alerts: list[Alert] = Field(default_factory=list)
    optimization_suggestions: list[str] = Field(default_factory=list)
    emergency_vehicles: list[EmergencyVehicle] = Field(default_factory=list)
    location_id: str | None = None

    @field_validator("lanes", "emergency_vehicles", mode="before")
    @classmethod
    def default_list(cls, v: Any) -> Any:
        return v if v is not None else []

    @field_validator("alerts", mode="before")
    @classmethod
    def canonicalize_alerts(cls, v: Any) -> list[Alert]:
        if not v:
            return []
        if not isinstance(v, list):
            v = [v]
        return [Alert.from_raw(item) for item in v]

    @field_validator("optimization_suggestions", mode="before")
    @classmethod
    def clean_suggestions(cls, v: Any) -> list[str]:
        if not v:
            return []
        if isinstance(v, str):
            v = [v]
        return [str(item).strip() for item in v if item and str(item).strip()]

    @property
    def vehicle_types(self) -> VehicleTypeCounts:
        """Vehicle types summed across lanes."""
        totals = VehicleTypeCounts()
        for lane in self.lanes:
            totals = totals + lane.vehicle_types
        return totals

    @property
    def mean_queue_length(self) -> float | None:
        """Mean of the lanes that report a non-negative queue length."""
        lengths = [
            lane.queue_length_meters
            for lane in self.lanes
            if lane.queue_length_meters is not None and lane.queue_length_meters >= 0
        ]
        if not lengths:
            return None
        return sum(lengths) / len(lengths)

    @property
    def congestion_levels(self) -> list[CongestionLevel]:
        return [lane.congestion for lane in self.lanes if lane.congestion is not None]
