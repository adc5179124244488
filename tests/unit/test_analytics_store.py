"""Unit tests for the AnalyticsStore facade."""

import json
from datetime import datetime, timezone

from traffiq_analytics.models.document import DailyTotals


class TestLifecycle:
    def test_init_loads_persisted_document(self, make_store):
        first = make_store()
        first.record_observation({"car": 4})

        second = make_store()

        assert second.document.totals.vehicles == 4

    def test_every_mutation_persists(self, store):
        store.record_observation({"car": 2}, 15, "locA")
        store.record_incident("alert", "Stalled car")

        persisted = store.persistent_store.load(store.identity_key)
        assert persisted.totals.vehicles == 2
        assert len(persisted.incidents) == 1

    def test_pinned_identity_ignores_session(self, make_store):
        store = make_store(identity_key="traffiq_data_kiosk")
        store.persistent_store.backend.set_item(
            "trafiq_session", json.dumps({"email": "a@example.com"})
        )

        store.record_observation({"car": 1})

        assert store.identity_key == "traffiq_data_kiosk"
        assert store.persistent_store.load("traffiq_data_kiosk").totals.vehicles == 1

    def test_identity_change_switches_document(self, store):
        store.record_observation({"car": 5})
        store.persistent_store.backend.set_item(
            "trafiq_session", json.dumps({"email": "a@example.com"})
        )

        assert store.document.totals.vehicles == 0
        store.record_observation({"car": 1})

        assert store.persistent_store.load("traffiq_data").totals.vehicles == 5
        assert store.persistent_store.load("traffiq_data_a@example.com").totals.vehicles == 1

    def test_failed_save_keeps_memory_authoritative(self, store):
        store.persistent_store.save = lambda document, identity_key=None: False

        assert store.record_observation({"car": 3}) is True
        assert store.get_analytics_summary().total_vehicles_today == 3
        assert store.flush() is False

    def test_batch_saves_once(self, store):
        saves = []
        store.persistent_store.save = lambda document, identity_key=None: saves.append(1) or True

        with store.batch():
            store.record_observation({"car": 1})
            store.record_speed(40)
            store.record_recommendation("Extend green")

        assert len(saves) == 1


class TestAtomicity:
    def test_failed_change_leaves_document_untouched(self, store):
        store.record_observation({"car": 1})

        def half_done(document):
            document.totals.vehicles += 100
            raise ValueError("boom")

        assert store.apply("half_done", half_done) is None
        assert store.document.totals.vehicles == 1

    def test_rejected_input_does_not_save(self, store):
        saves = []
        store.persistent_store.save = lambda document, identity_key=None: saves.append(1) or True

        assert store.record_queue_length(-5, "locA") is False
        assert saves == []


class TestSettings:
    def test_get_and_set(self, store):
        assert store.get_setting("dataRetentionDays") == 30

        store.set_setting("data_retention_days", 7)
        store.set_setting("customFlag", "on")

        assert store.get_setting("data_retention_days") == 7
        assert store.get_setting("customFlag") == "on"
        assert store.get_setting("missing", "fallback") == "fallback"
        assert store.reload().settings.data_retention_days == 7

    def test_update_settings_and_get_all(self, store):
        store.update_settings({"audioAlerts": False, "mapStyle": "light"})

        all_settings = store.get_all_settings()
        assert all_settings["audioAlerts"] is False
        assert all_settings["mapStyle"] == "light"
        assert all_settings["frameRate"] == 2

    def test_invalid_setting_is_rejected(self, store):
        assert store.set_setting("dataRetentionDays", -3) is False
        assert store.get_setting("dataRetentionDays") == 30

    def test_disabling_history_stops_recording(self, store):
        store.set_setting("saveHistoricalData", False)

        assert store.record_observation({"car": 9}) is False
        assert store.document.totals.vehicles == 0


class TestMaintenance:
    def test_clear_analytics_zeroes_summary(self, store):
        store.set_current_location("i97_md178")
        store.set_setting("mapStyle", "light")
        store.record_observation({"car": 6}, 20)
        store.record_incident("alert", "Stalled car")
        store.record_recommendation("Extend green")
        store.record_savings(3.0, 1.0)

        store.clear_analytics()
        summary = store.get_analytics_summary()

        assert summary.total_vehicles_today == 0
        assert summary.incidents_today == 0
        assert summary.time_saved_minutes == 0.0
        assert store.get_peak_hours() == []
        assert store.get_busiest_locations() == []
        assert store.get_recommendations() == []
        assert store.get_setting("mapStyle") == "light"
        assert store.document.session.current_location_id == "i97_md178"
        assert store.reload().totals.vehicles == 0

    def test_cleanup_defaults_to_retention_setting(self, store, clock):
        def seed(document):
            for day in range(1, 11):
                document.daily_totals[f"2024-01-{day:02d}"] = DailyTotals(vehicles=1)
            return True

        store.apply("seed", seed)
        store.set_setting("dataRetentionDays", 5)

        assert store.cleanup_old_data() == 4
        assert min(store.document.daily_totals) == "2024-01-05"

    def test_emergency_lifecycle(self, store, clock):
        event_id = store.record_emergency_event("ambulance", 1, "east", "locA")
        clock.advance(seconds=20)

        assert store.clear_emergency_event(event_id) is True
        assert store.clear_emergency_event(event_id) is False
        assert store.get_emergency_events()[0].response_time_seconds == 20

    def test_start_session_counts_today(self, store):
        store.start_session()

        assert store.get_analytics_summary().total_sessions == 1
        assert store.document.daily_totals["2024-01-10"].sessions == 1


class TestViewsAndExports:
    def test_export_round_trips_through_load(self, store):
        store.record_observation({"car": 5, "truck": 1}, 20, "i95")
        store.record_incident("alert", "Stalled car", "i95")
        store.record_recommendation("Extend green", "i95")

        exported = store.export_data()
        store.persistent_store.backend.set_item("traffiq_copy", exported)
        restored = store.persistent_store.load("traffiq_copy")

        assert restored.totals == store.document.totals
        assert restored.incidents == store.document.incidents
        assert restored.recommendations == store.document.recommendations

    def test_insight_views(self, store, clock):
        for _ in range(3):
            store.record_observation({"car": 120}, 50, "i97_md178")

        insights = store.get_infrastructure_insights()
        assert insights[0].priority.value == "high"
        assert store.get_insight_locations()[0][0] == "I-97 @ MD 178"
        assert store.get_insight_impact().counts["total"] == len(insights)

    def test_csv_and_report_exports(self, store):
        store.record_congestion(["high"])
        store.record_observation({"car": 1})

        assert store.export_chart_csv().startswith("Period,Label,Congestion Value,Samples\n")
        assert store.export_daily_csv().splitlines()[1] == "2024-01-10,1,0,0"
        assert "Total Vehicles Today: 1" in store.build_text_report()

    def test_series_follow_clock(self, store, clock):
        clock.set(datetime(2024, 1, 10, 3, tzinfo=timezone.utc))
        store.record_congestion(["low"])

        assert store.get_congestion_series("hour")[-1].label == "03:00"
        assert store.get_congestion_series("hour")[-1].value == 33
