"""Unit tests for rule-based infrastructure insights."""

from datetime import datetime, timezone

import pytest

from traffiq_analytics.models.document import IncidentRecord, LocationStats
from traffiq_analytics.services.analytics_dtos import InsightPriority, InsightType
from traffiq_analytics.services.insights_service import InsightsService
from traffiq_analytics.services.locations import LocationDirectory


@pytest.fixture
def insights(test_settings):
    return InsightsService(LocationDirectory(test_settings.analytics.locations))


def incident(incident_id, location_id):
    return IncidentRecord(
        id=incident_id,
        description="x",
        timestamp=datetime(2024, 1, 10, tzinfo=timezone.utc),
        location_id=location_id,
    )


class TestGenerate:
    def test_no_data_gives_no_insights(self, insights, document):
        assert insights.generate(document) == []

    def test_quiet_location_is_skipped(self, insights, document):
        document.location_stats["locA"] = LocationStats(vehicles=5)

        assert insights.generate(document) == []

    def test_signal_and_capacity_rules(self, insights, document):
        document.location_stats["i97_md32"] = LocationStats(
            vehicles=900, avg_wait_seconds=30, sample_count=10
        )

        generated = insights.generate(document)

        assert [(i.type, i.priority) for i in generated] == [
            (InsightType.ROAD_IMPROVEMENT, InsightPriority.HIGH),
            (InsightType.TRAFFIC_SIGNAL, InsightPriority.MEDIUM),
        ]
        assert generated[0].location == "I-97 N of MD 32"
        assert generated[0].impact == 18
        assert generated[1].impact == 12

    def test_timing_rule(self, insights, document):
        document.location_stats["locA"] = LocationStats(vehicles=60, avg_wait_seconds=20)

        [insight] = insights.generate(document)

        assert insight.type is InsightType.TIMING_OPTIMIZATION
        assert insight.priority is InsightPriority.LOW
        assert insight.impact == 4

    def test_safety_rule_counts_logged_incidents(self, insights, document):
        document.location_stats["i97_md178"] = LocationStats(vehicles=20)
        document.incidents = [
            incident(1, "i97_md178"),
            incident(2, "I-97 @ MD 178"),
            incident(3, "elsewhere"),
        ]

        [insight] = insights.generate(document)

        assert insight.type is InsightType.NEW_INFRASTRUCTURE
        assert insight.impact == 8

    def test_location_filter(self, insights, document):
        document.location_stats["a"] = LocationStats(vehicles=400)
        document.location_stats["b"] = LocationStats(vehicles=400)

        assert {i.location for i in insights.generate(document, "b")} == {"b"}


class TestImpact:
    def test_empty_impact(self, insights):
        impact = insights.estimate_impact([])

        assert impact.wait_reduction_percent is None
        assert impact.counts == {}

    def test_impact_averages(self, insights, document):
        document.location_stats["a"] = LocationStats(vehicles=900, avg_wait_seconds=50)

        impact = insights.estimate_impact(insights.generate(document))

        assert impact.wait_reduction_percent == 20
        assert impact.throughput_increase_percent == 18
        assert impact.co2_reduction_kg == 19
        assert impact.counts == {
            "total": 2, "highPriority": 2, "signal": 1, "infrastructure": 1,
        }

    def test_rank_locations(self, insights, document):
        document.location_stats["a"] = LocationStats(vehicles=900, avg_wait_seconds=50)
        document.location_stats["b"] = LocationStats(vehicles=400)

        ranking = insights.rank_locations(insights.generate(document))

        assert ranking == [("a", 2), ("b", 1)]
