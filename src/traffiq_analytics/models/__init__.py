"""Data models for TraffiQ Analytics."""

from .document import (
    AnalyticsDocument,
    AnalyticsSettings,
    DailyTotals,
    EmergencyEventRecord,
    HourBucket,
    IncidentRecord,
    LocationStats,
    MeasurementBucket,
    RecommendationRecord,
    decode_document,
    encode_document,
)
from .observation import (
    Alert,
    CongestionLevel,
    EmergencyVehicle,
    LaneObservation,
    ObservationEvent,
    VehicleTypeCounts,
)

__all__ = [
    "AnalyticsDocument",
    "AnalyticsSettings",
    "DailyTotals",
    "EmergencyEventRecord",
    "HourBucket",
    "IncidentRecord",
    "LocationStats",
    "MeasurementBucket",
    "RecommendationRecord",
    "decode_document",
    "encode_document",
    "Alert",
    "CongestionLevel",
    "EmergencyVehicle",
    "LaneObservation",
    "ObservationEvent",
    "VehicleTypeCounts",
]
