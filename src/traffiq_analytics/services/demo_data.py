"""Synthetic traffic data for demonstrations.

``generate_demo_data`` fills a store with a plausible day of history;
``DemoScenarioFeed`` produces a stream of observation payloads that can
be pushed through ``ObservationIngestor`` like live detections. Both are
deterministic for a seeded ``random.Random``.
"""

import copy
import random
from collections.abc import Iterable, Iterator
from typing import Any

from ..core.logging import get_logger
from ..models.document import AnalyticsDocument, HourBucket, LocationStats, round_half_up
from .analytics_store import AnalyticsStore

logger = get_logger(__name__)

# Relative traffic volume per hour of day, with morning and evening rush.
HOURLY_PROFILE = (
    0.15, 0.10, 0.08, 0.08, 0.12, 0.30,
    0.65, 1.00, 0.95, 0.70, 0.60, 0.65,
    0.70, 0.65, 0.65, 0.75, 0.95, 1.00,
    0.85, 0.60, 0.45, 0.35, 0.25, 0.20,
)

PEAK_VEHICLES_PER_HOUR = 180

DEMO_INCIDENTS = (
    ("violation", "Red light violation detected on Lane 3"),
    ("safety", "Unsafe pedestrian crossing detected"),
    ("congestion", "Queue backup approaching intersection limit"),
    ("alert", "Near-miss incident recorded"),
)

DEMO_RECOMMENDATIONS = (
    "Increase green time for Lane 1 by 15 seconds",
    "Increase green time for Lane 2 by 20 seconds",
    "Extend pedestrian crossing time by 5 seconds",
    "Consider adding left-turn signal for Lane 3",
    "Consider temporary rerouting from Lane 4",
)


def _lane(lane_id, car, truck, bus, motorcycle, queue, congestion):
    return {
        "lane_id": lane_id,
        "vehicle_count": car + truck + bus + motorcycle,
        "vehicle_types": {"car": car, "truck": truck, "bus": bus, "motorcycle": motorcycle},
        "queue_length_meters": queue,
        "congestion": congestion,
    }


DEMO_SCENARIOS: tuple[dict[str, Any], ...] = (
    {
        "name": "Normal Traffic",
        "lanes": [
            _lane(1, 6, 1, 0, 1, 15, "low"),
            _lane(2, 9, 2, 1, 0, 25, "medium"),
            _lane(3, 5, 0, 0, 1, 10, "low"),
            _lane(4, 8, 1, 0, 1, 20, "low"),
        ],
        "pedestrians": 8,
        "avg_wait_seconds": 31,
        "alerts": [],
        "optimization_suggestions": ["Consider slight increase in Lane 2 green time"],
    },
    {
        "name": "Rush Hour",
        "lanes": [
            _lane(1, 14, 2, 1, 1, 45, "high"),
            _lane(2, 17, 3, 2, 0, 55, "high"),
            _lane(3, 12, 1, 1, 1, 35, "medium"),
            _lane(4, 16, 2, 1, 1, 50, "high"),
        ],
        "pedestrians": 24,
        "avg_wait_seconds": 83,
        "alerts": [
            "High congestion detected on Lane 2",
            "Queue backup approaching intersection limit",
        ],
        "optimization_suggestions": [
            "Increase green time for Lane 1 by 15 seconds",
            "Increase green time for Lane 2 by 20 seconds",
            "Consider temporary rerouting from Lane 4",
        ],
    },
    {
        "name": "Safety Alert",
        "lanes": [
            _lane(1, 8, 1, 0, 1, 20, "medium"),
            _lane(2, 6, 1, 1, 0, 18, "low"),
            _lane(3, 10, 1, 0, 1, 28, "medium"),
            _lane(4, 5, 1, 0, 1, 14, "low"),
        ],
        "pedestrians": 15,
        "avg_wait_seconds": 36,
        "alerts": [
            {"type": "violation", "message": "Red light violation detected on Lane 3"},
            {"type": "safety", "message": "Unsafe pedestrian crossing detected"},
        ],
        "optimization_suggestions": [
            "Extend pedestrian crossing time by 5 seconds",
            "Consider adding left-turn signal for Lane 3",
        ],
    },
    {
        "name": "Light Traffic",
        "lanes": [
            _lane(1, 2, 1, 0, 0, 5, "low"),
            _lane(2, 4, 0, 1, 0, 8, "low"),
            _lane(3, 2, 0, 0, 0, 4, "low"),
            _lane(4, 3, 0, 0, 1, 6, "low"),
        ],
        "pedestrians": 3,
        "avg_wait_seconds": 11,
        "alerts": [],
        "optimization_suggestions": [],
    },
    {
        "name": "Bus Priority Active",
        "lanes": [
            _lane(1, 7, 1, 0, 1, 18, "low"),
            _lane(2, 3, 0, 3, 0, 12, "low"),
            _lane(3, 9, 1, 0, 1, 22, "medium"),
            _lane(4, 6, 1, 0, 1, 16, "low"),
        ],
        "pedestrians": 12,
        "avg_wait_seconds": 31,
        "alerts": ["Bus priority signal activated on Lane 2"],
        "optimization_suggestions": ["Reduce Lane 3 wait time after bus clears"],
    },
)


def lane_congestion(vehicle_count: int) -> str:
    if vehicle_count >= 15:
        return "high"
    if vehicle_count >= 8:
        return "medium"
    return "low"


class DemoScenarioFeed:
    """Cycle through canned scenarios with small random variation."""

    def __init__(
        self,
        rng: random.Random | None = None,
        location_id: str | None = None,
        scenarios: Iterable[dict[str, Any]] = DEMO_SCENARIOS,
    ):
        self.rng = rng or random.Random()
        self.location_id = location_id
        self.scenarios = list(scenarios)
        self.index = 0

    @property
    def scenario_names(self) -> list[str]:
        return [scenario["name"] for scenario in self.scenarios]

    def set_scenario(self, name: str) -> bool:
        for index, scenario in enumerate(self.scenarios):
            if scenario["name"] == name:
                self.index = index
                return True
        return False

    def next_payload(self) -> dict[str, Any]:
        scenario = self.scenarios[self.index]
        self.index = (self.index + 1) % len(self.scenarios)

        payload = copy.deepcopy(scenario)
        payload.pop("name")
        for lane in payload["lanes"]:
            variation = self.rng.randint(-2, 2)
            types = lane["vehicle_types"]
            types["car"] = max(0, types["car"] + variation)
            lane["vehicle_count"] = sum(types.values())
            lane["queue_length_meters"] = max(0, lane["queue_length_meters"] + variation * 3)
            lane["congestion"] = lane_congestion(lane["vehicle_count"])
        payload["pedestrians"] = max(0, payload["pedestrians"] + self.rng.randint(-2, 2))
        payload["avg_wait_seconds"] = max(5, payload["avg_wait_seconds"] + self.rng.randint(-5, 4))
        if self.location_id:
            payload["location_id"] = self.location_id
        return payload

    def __iter__(self) -> Iterator[dict[str, Any]]:
        while True:
            yield self.next_payload()


def generate_demo_data(
    store: AnalyticsStore,
    locations: Iterable[str] | None = None,
    rng: random.Random | None = None,
) -> None:
    """Replace the store's analytics with one synthetic day of history.

    Args:
        store: Store to populate; settings and session are kept
        locations: Location ids to populate; defaults to the configured directory
        rng: Random source, seed it for reproducible data
    """
    rng = rng or random.Random()
    location_ids = list(locations) if locations is not None else list(store.projector.directory)
    today = store.projector.clock().date().isoformat()

    def populate(document: AnalyticsDocument) -> bool:
        for location_id in location_ids:
            hours = document.location_hours(location_id)
            stats = document.location_stats.setdefault(location_id, LocationStats())
            for hour, weight in enumerate(HOURLY_PROFILE):
                vehicles = round_half_up(
                    PEAK_VEHICLES_PER_HOUR * weight * rng.uniform(0.8, 1.2)
                )
                hours[hour] = HourBucket(vehicle_sum=vehicles, sample_count=1)
                global_bucket = document.hourly_buckets.setdefault(hour, HourBucket())
                global_bucket.vehicle_sum += vehicles
                global_bucket.sample_count += 1
                stats.vehicles += vehicles
                document.day(today).vehicles += vehicles
                document.totals.vehicles += vehicles
            stats.sample_count = len(HOURLY_PROFILE)
            stats.avg_wait_seconds = rng.randint(15, 55)
        return True

    with store.batch():
        store.clear_analytics()
        store.apply("generate_demo_data", populate)
        for location_id in location_ids:
            for incident_type, description in rng.sample(DEMO_INCIDENTS, 2):
                store.record_incident(incident_type, description, location_id)
            for text in rng.sample(DEMO_RECOMMENDATIONS, 2):
                store.record_recommendation(text, location_id)

    logger.info("Demo data generated", locations=len(location_ids))
