"""Unit tests for bounded, newest-first event logs."""

from datetime import timedelta


class TestIncidents:
    def test_log_is_bounded_newest_first(self, event_log, document, clock):
        for index in range(150):
            event_log.record_incident(document, "alert", f"incident {index}")
            clock.advance(seconds=1)

        descriptions = [incident.description for incident in document.incidents]
        assert len(descriptions) == 100
        assert descriptions[0] == "incident 149"
        assert descriptions[-1] == "incident 50"

    def test_ids_are_strictly_decreasing_from_head(self, event_log, document):
        for _ in range(5):
            event_log.record_incident(document, "alert", "same millisecond")

        ids = [incident.id for incident in document.incidents]
        assert ids == sorted(ids, reverse=True)
        assert len(set(ids)) == 5

    def test_incident_creates_day_entry(self, event_log, document):
        event_log.record_incident(document, "violation", "Red light")

        assert document.daily_totals["2024-01-10"].incidents == 1
        assert document.daily_totals["2024-01-10"].vehicles == 0

    def test_location_defaults_to_session(self, event_log, document):
        document.session.current_location_id = "i97_md178"

        incident = event_log.record_incident(document, "alert", "Stalled car")

        assert incident.location_id == "i97_md178"


class TestRecommendations:
    def test_repeat_within_window_is_dropped(self, event_log, document, clock):
        assert event_log.record_recommendation(document, "Extend green", "locA")
        clock.advance(minutes=4, seconds=59)

        assert event_log.record_recommendation(document, "Extend green", "locA") is None
        assert len(document.recommendations) == 1

    def test_repeat_after_window_is_logged(self, event_log, document, clock):
        event_log.record_recommendation(document, "Extend green", "locA")
        clock.advance(minutes=5)

        assert event_log.record_recommendation(document, "Extend green", "locA")
        assert len(document.recommendations) == 2

    def test_different_text_is_not_a_duplicate(self, event_log, document):
        event_log.record_recommendation(document, "Extend green")
        event_log.record_recommendation(document, "Shorten cycle")

        assert [r.text for r in document.recommendations] == ["Shorten cycle", "Extend green"]

    def test_log_is_bounded(self, event_log, document, clock):
        for index in range(60):
            event_log.record_recommendation(document, f"suggestion {index}")

        assert len(document.recommendations) == 50
        assert document.recommendations[0].text == "suggestion 59"

    def test_empty_text_is_ignored(self, event_log, document):
        assert event_log.record_recommendation(document, "") is None
        assert document.recommendations == []


class TestEmergencyEvents:
    def test_record_returns_id_and_starts_uncleared(self, event_log, document):
        event_id = event_log.record_emergency_event(document, "ambulance", 2, "north", "locA")

        event = document.emergency_events[0]
        assert event.id == event_id
        assert event.lane == "2"
        assert event.cleared_at is None
        assert event.response_time_seconds is None

    def test_clear_is_idempotent(self, event_log, document, clock):
        event_id = event_log.record_emergency_event(document, "fire", None, None)
        clock.advance(seconds=42, milliseconds=600)

        assert event_log.clear_emergency_event(document, event_id) is True
        first_clear = document.emergency_events[0].cleared_at
        clock.advance(seconds=30)
        assert event_log.clear_emergency_event(document, event_id) is False

        event = document.emergency_events[0]
        assert event.response_time_seconds == 43
        assert event.cleared_at == first_clear

    def test_clear_unknown_id_is_a_no_op(self, event_log, document):
        assert event_log.clear_emergency_event(document, 12345) is False

    def test_log_is_bounded(self, event_log, document, clock):
        for _ in range(55):
            event_log.record_emergency_event(document, "police")
            clock.advance(seconds=1)

        assert len(document.emergency_events) == 50

    def test_dedup_window_follows_config(self, event_log):
        assert event_log.dedup_window == timedelta(minutes=5)
