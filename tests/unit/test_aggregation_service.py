"""Unit tests for incremental traffic aggregation."""

import math
from datetime import datetime, timezone

from traffiq_analytics.models.document import DailyTotals, IncidentRecord
from traffiq_analytics.models.observation import VehicleTypeCounts
from traffiq_analytics.services.aggregation_service import (
    UNKNOWN_LOCATION,
    weekday_label,
)

CARS_AND_TRUCK = {"car": 5, "truck": 1, "bus": 0, "motorcycle": 0}


class TestRecordObservation:
    def test_scenario_three_observations(self, engine, document, clock):
        for _ in range(3):
            engine.record_observation(document, CARS_AND_TRUCK, 20, "i95")

        stats = document.location_stats["i95"]
        assert (stats.vehicles, stats.avg_wait_seconds, stats.sample_count) == (18, 20, 3)
        bucket = document.hourly_buckets[clock().hour]
        assert (bucket.vehicle_sum, bucket.sample_count) == (18, 3)
        assert document.location_hourly_buckets["i95"][clock().hour].vehicle_sum == 18
        assert document.daily_totals["2024-01-10"].vehicles == 18
        assert document.totals.vehicles == 18

    def test_running_average_uses_prior_count(self, engine, document):
        averages = []
        for wait in (10, 20, 30):
            engine.record_observation(document, {"car": 1}, wait, "locA")
            averages.append(document.location_stats["locA"].avg_wait_seconds)

        assert averages == [10, 15, 20]

    def test_zero_wait_counts_sample_without_moving_average(self, engine, document):
        engine.record_observation(document, {"car": 1}, 30, "locA")
        engine.record_observation(document, {"car": 1}, 0, "locA")

        stats = document.location_stats["locA"]
        assert stats.avg_wait_seconds == 30
        assert stats.sample_count == 2

    def test_missing_vehicle_classes_count_as_zero(self, engine, document):
        engine.record_observation(document, {"bus": 2}, 0, "locA")

        assert document.totals.vehicles == 2

    def test_accepts_typed_counts(self, engine, document):
        engine.record_observation(document, VehicleTypeCounts(car=3, motorcycle=1))

        assert document.totals.vehicles == 4

    def test_disabled_history_is_a_no_op(self, engine, document):
        document.settings.save_historical_data = False

        assert engine.record_observation(document, CARS_AND_TRUCK, 20, "i95") is False
        assert document.totals.vehicles == 0
        assert document.hourly_buckets == {}

    def test_location_falls_back_to_session_then_unknown(self, engine, document):
        engine.record_observation(document, {"car": 1})
        assert UNKNOWN_LOCATION in document.location_stats
        assert document.location_hourly_buckets == {}

        document.session.current_location_id = "i97_md178"
        engine.record_observation(document, {"car": 2})
        assert document.location_stats["i97_md178"].vehicles == 2

    def test_bucket_sample_count_never_decreases(self, engine, document, clock):
        counts = []
        for vehicles in (4, 0, 9, 1):
            engine.record_observation(document, {"car": vehicles})
            bucket = document.hourly_buckets[clock().hour]
            counts.append(bucket.sample_count)
            assert 0 <= bucket.average <= 9

        assert counts == sorted(counts)


class TestMeasurements:
    def test_negative_queue_is_rejected(self, engine, document):
        before = document.queue_stats.model_copy(deep=True)

        assert engine.record_queue_length(document, -5, "locA") is False
        assert document.queue_stats == before

    def test_non_finite_queue_is_rejected(self, engine, document):
        assert engine.record_queue_length(document, math.nan, "locA") is False
        assert engine.record_queue_length(document, math.inf, "locA") is False
        assert document.queue_stats.overall.sample_count == 0

    def test_queue_updates_all_three_buckets(self, engine, document, clock):
        engine.record_queue_length(document, 12.5, "locA")
        engine.record_queue_length(document, 7.5, "locA")

        queue = document.queue_stats
        assert queue.overall.average == 10.0
        assert queue.hourly[clock().hour].sample_count == 2
        assert queue.by_location["locA"].total == 20.0

    def test_speed_rejects_non_positive(self, engine, document):
        assert engine.record_speed(document, 0, "locA") is False
        assert engine.record_speed(document, 42.0, "locA") is True
        assert document.speed_stats.by_location["locA"].average == 42.0

    def test_savings_accumulate(self, engine, document):
        engine.record_savings(document, 1.5, 0.25)
        engine.record_savings(document, None, None)

        savings = document.savings_stats
        assert savings.time_saved_minutes == 1.5
        assert savings.co2_saved_kg == 0.25
        assert savings.optimizations_applied == 2


class TestCongestion:
    def test_levels_accumulate_hour_and_weekday(self, engine, document, clock):
        engine.record_congestion(document, ["low", "high"])
        engine.record_congestion(document, ["medium", "garbage"])

        hourly = document.congestion_history.hourly[clock().hour]
        assert hourly.samples == 2
        assert hourly.value == 66
        assert document.congestion_history.daily["Wed"].samples == 2

    def test_no_labelled_lanes_is_a_no_op(self, engine, document):
        assert engine.record_congestion(document, []) is False
        assert document.congestion_history.hourly == {}

    def test_weekday_labels_start_on_sunday(self):
        assert weekday_label(datetime(2024, 1, 7, tzinfo=timezone.utc)) == "Sun"
        assert weekday_label(datetime(2024, 1, 13, tzinfo=timezone.utc)) == "Sat"


class TestSession:
    def test_start_session(self, engine, document, clock):
        engine.start_session(document)

        assert document.totals.sessions == 1
        assert document.daily_totals["2024-01-10"].sessions == 1
        assert document.session.last_active_timestamp == clock()
        assert document.session.current_location_id == "i695_balt_natl"

    def test_set_current_location(self, engine, document):
        assert engine.set_current_location(document, "i97_md32") is True
        assert engine.set_current_location(document, "i97_md32") is False
        assert document.session.current_location_id == "i97_md32"


class TestRetention:
    def test_entries_before_cutoff_are_removed(self, engine, document):
        for day in range(1, 11):
            document.daily_totals[f"2024-01-{day:02d}"] = DailyTotals(vehicles=day)

        engine.cleanup_old_data(document, 5)

        assert sorted(document.daily_totals) == [
            f"2024-01-{day:02d}" for day in range(5, 11)
        ]

    def test_incidents_before_cutoff_are_removed(self, engine, document):
        document.incidents = [
            IncidentRecord(
                id=2, description="new",
                timestamp=datetime(2024, 1, 5, 0, 1, tzinfo=timezone.utc),
            ),
            IncidentRecord(
                id=1, description="old",
                timestamp=datetime(2024, 1, 4, 23, 59, tzinfo=timezone.utc),
            ),
        ]

        removed = engine.cleanup_old_data(document, 5)

        assert removed == 1
        assert [incident.id for incident in document.incidents] == [2]
