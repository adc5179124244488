"""Ingestion boundary for detection-pipeline observations.

Raw payloads are validated into ``ObservationEvent`` once, here; the
store and its services only ever see canonical shapes.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from ..core.logging import get_logger, log_context
from ..models.observation import ObservationEvent, VehicleTypeCounts
from .analytics_store import AnalyticsStore

logger = get_logger(__name__)

MINUTES_SAVED_PER_SUGGESTION_PER_VEHICLE = 0.3

# Idling CO2 emission in kg per minute, by vehicle class.
IDLE_CO2_KG_PER_MINUTE = {
    "car": 0.016,
    "truck": 0.040,
    "bus": 0.035,
    "motorcycle": 0.008,
}


def estimate_savings(
    counts: VehicleTypeCounts, suggestion_count: int
) -> tuple[float, float]:
    """Time (minutes) and CO2 (kg) saved by acting on this cycle's suggestions."""
    minutes_per_vehicle = suggestion_count * MINUTES_SAVED_PER_SUGGESTION_PER_VEHICLE
    time_saved = counts.total * minutes_per_vehicle
    co2_saved = sum(
        getattr(counts, vehicle_class) * rate * minutes_per_vehicle
        for vehicle_class, rate in IDLE_CO2_KG_PER_MINUTE.items()
    )
    return time_saved, co2_saved


@dataclass
class IngestResult:
    """What one ingested cycle produced."""

    accepted: bool
    vehicles: int = 0
    incidents: int = 0
    recommendations: int = 0
    emergency_event_ids: list[int] | None = None


class ObservationIngestor:
    """Validate inference-cycle payloads and fan them out to the store."""

    def __init__(self, store: AnalyticsStore):
        self.store = store

    def validate(self, payload: ObservationEvent | Mapping[str, Any]) -> ObservationEvent | None:
        if isinstance(payload, ObservationEvent):
            return payload
        try:
            return ObservationEvent.model_validate(payload)
        except PydanticValidationError as e:
            logger.warning(
                "Dropped invalid observation payload",
                errors=e.error_count(),
                error=str(e),
            )
            return None

    def ingest(self, payload: ObservationEvent | Mapping[str, Any]) -> IngestResult:
        """Apply one cycle; the whole cycle is persisted with a single save."""
        event = self.validate(payload)
        if event is None:
            return IngestResult(accepted=False)

        store = self.store
        location_id = event.location_id
        counts = event.vehicle_types
        result = IngestResult(accepted=True, emergency_event_ids=[])

        with log_context(location_id=location_id), store.batch():
            if store.record_observation(counts, event.avg_wait_seconds, location_id):
                result.vehicles = counts.total

            queue_length = event.mean_queue_length
            if queue_length is not None:
                store.record_queue_length(queue_length, location_id)
            if event.avg_speed_kmh is not None:
                store.record_speed(event.avg_speed_kmh, location_id)
            store.record_congestion(event.congestion_levels)

            for vehicle in event.emergency_vehicles:
                event_id = store.record_emergency_event(
                    vehicle.type, vehicle.lane_id, vehicle.direction, location_id
                )
                if event_id is not None:
                    result.emergency_event_ids.append(event_id)

            for alert in event.alerts:
                if store.record_incident(alert.type, alert.message, location_id):
                    result.incidents += 1

            for suggestion in event.optimization_suggestions:
                if store.record_recommendation(suggestion, location_id):
                    result.recommendations += 1

            if event.optimization_suggestions:
                time_saved, co2_saved = estimate_savings(
                    counts, len(event.optimization_suggestions)
                )
                store.record_savings(time_saved, co2_saved)

        logger.debug(
            "Observation ingested",
            location_id=location_id,
            vehicles=result.vehicles,
            incidents=result.incidents,
            recommendations=result.recommendations,
        )
        return result
