"""Rule-based infrastructure insights derived from observed data only.

No insight is produced for a location without meaningful observations.
"""

from collections import Counter

from ..models.document import AnalyticsDocument, round_half_up
from .analytics_dtos import (
    InfrastructureInsight,
    InsightImpact,
    InsightPriority,
    InsightType,
)
from .locations import LocationDirectory


class InsightsService:
    """Signal-timing, capacity and safety suggestions per location."""

    def __init__(self, directory: LocationDirectory):
        self.directory = directory

    def generate(
        self, document: AnalyticsDocument, location_id: str | None = None
    ) -> list[InfrastructureInsight]:
        incident_counts = Counter(
            self.directory.canonical_id(incident.location_id)
            for incident in document.incidents
            if incident.location_id
        )
        insights: list[InfrastructureInsight] = []

        for location, stats in document.location_stats.items():
            if location_id and not self.directory.matches(location, location_id):
                continue

            vehicles = stats.vehicles
            avg_wait = stats.avg_wait_seconds
            incidents = incident_counts.get(self.directory.canonical_id(location), 0)
            if vehicles < 10 and avg_wait == 0 and incidents == 0:
                continue
            name = self.directory.name_for(location)

            if vehicles >= 100 and avg_wait >= 25:
                insights.append(
                    InfrastructureInsight(
                        id=f"signal-{location}",
                        type=InsightType.TRAFFIC_SIGNAL,
                        priority=(
                            InsightPriority.HIGH if avg_wait >= 45 else InsightPriority.MEDIUM
                        ),
                        title="Optimize Signal Timing",
                        description=(
                            f"{avg_wait}s average wait with {vehicles:,} vehicles. "
                            "Adaptive signals recommended."
                        ),
                        location=name,
                        impact=min(30, round_half_up(avg_wait * 0.4)),
                    )
                )

            if vehicles >= 300:
                insights.append(
                    InfrastructureInsight(
                        id=f"road-{location}",
                        type=InsightType.ROAD_IMPROVEMENT,
                        priority=(
                            InsightPriority.HIGH if vehicles >= 800 else InsightPriority.MEDIUM
                        ),
                        title="Evaluate Capacity",
                        description=(
                            f"{vehicles:,} vehicles recorded. "
                            "Consider turn lane or expansion."
                        ),
                        location=name,
                        impact=min(25, round_half_up(vehicles / 50)),
                    )
                )

            if incidents >= 2:
                insights.append(
                    InfrastructureInsight(
                        id=f"safety-{location}",
                        type=InsightType.NEW_INFRASTRUCTURE,
                        priority=(
                            InsightPriority.HIGH if incidents >= 4 else InsightPriority.MEDIUM
                        ),
                        title="Safety Review",
                        description=(
                            f"{incidents} incidents recorded. Review signage and markings."
                        ),
                        location=name,
                        impact=min(20, incidents * 4),
                    )
                )

            if vehicles >= 50 and 15 <= avg_wait < 25:
                insights.append(
                    InfrastructureInsight(
                        id=f"timing-{location}",
                        type=InsightType.TIMING_OPTIMIZATION,
                        priority=InsightPriority.LOW,
                        title="Fine-tune Cycle",
                        description=(
                            f"{avg_wait}s wait time could be reduced with cycle optimization."
                        ),
                        location=name,
                        impact=round_half_up(avg_wait * 0.2),
                    )
                )

        insights.sort(key=lambda insight: insight.priority.rank)
        return insights

    @staticmethod
    def rank_locations(
        insights: list[InfrastructureInsight], limit: int = 5
    ) -> list[tuple[str, int]]:
        """Locations ordered by how many insights they produced."""
        return Counter(insight.location for insight in insights).most_common(limit)

    @staticmethod
    def estimate_impact(insights: list[InfrastructureInsight]) -> InsightImpact:
        if not insights:
            return InsightImpact()

        signal = [i.impact for i in insights if i.type.is_signal]
        infrastructure = [i.impact for i in insights if not i.type.is_signal]
        wait = round_half_up(sum(signal) / len(signal)) if signal else 0
        throughput = (
            round_half_up(sum(infrastructure) / len(infrastructure)) if infrastructure else 0
        )
        co2 = round_half_up((wait + throughput) * 0.5)
        return InsightImpact(
            wait_reduction_percent=wait or None,
            throughput_increase_percent=throughput or None,
            co2_reduction_kg=co2 or None,
            counts={
                "total": len(insights),
                "highPriority": sum(
                    1 for i in insights if i.priority is InsightPriority.HIGH
                ),
                "signal": len(signal),
                "infrastructure": len(infrastructure),
            },
        )
