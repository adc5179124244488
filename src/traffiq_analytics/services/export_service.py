"""User-triggered exports: JSON dump, CSV series and a plain-text report."""

import csv
import io
from datetime import date

from ..models.document import AnalyticsDocument, encode_document
from .analytics_dtos import ChartPeriod
from .summary_service import SummaryProjector

CHART_CSV_HEADER = ["Period", "Label", "Congestion Value", "Samples"]
DAILY_CSV_HEADER = ["Date", "Vehicles", "Incidents", "Sessions"]


def format_hour(hour: int) -> str:
    """12-hour clock label, e.g. ``5:00 PM``."""
    return f"{hour % 12 or 12}:00 {'AM' if hour < 12 else 'PM'}"


def export_filename(kind: str, today: date) -> str:
    return f"traffiq_data_{today.isoformat()}.{kind}"


class ExportService:
    """Render the document for download."""

    def __init__(self, projector: SummaryProjector):
        self.projector = projector

    def export_json(self, document: AnalyticsDocument) -> str:
        """Full document dump; round-trips through ``PersistentStore.load``."""
        return encode_document(document, indent=2)

    def export_chart_csv(self, document: AnalyticsDocument) -> str:
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(CHART_CSV_HEADER)
        for period, name in ((ChartPeriod.HOUR, "Hourly"), (ChartPeriod.DAY, "Daily")):
            for point in self.projector.get_congestion_series(document, period):
                writer.writerow([name, point.label, point.value, point.samples])
        return buffer.getvalue()

    def export_daily_csv(self, document: AnalyticsDocument) -> str:
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(DAILY_CSV_HEADER)
        for day_key, totals in sorted(document.daily_totals.items()):
            writer.writerow([day_key, totals.vehicles, totals.incidents, totals.sessions])
        return buffer.getvalue()

    def build_text_report(self, document: AnalyticsDocument) -> str:
        summary = self.projector.get_analytics_summary(document)
        generated = self.projector.clock().strftime("%Y-%m-%d %H:%M:%S")
        peak_lines = [
            f"{index}. {format_hour(peak.hour)} - {peak.avg_vehicles} vehicles"
            for index, peak in enumerate(self.projector.get_peak_hours(document), 1)
        ]
        location_lines = [
            f"{index}. {ranking.name} - {ranking.vehicles} vehicles"
            for index, ranking in enumerate(
                self.projector.get_busiest_locations(document), 1
            )
        ]
        lines = [
            "TraffiQ Traffic Analysis Report",
            f"Generated: {generated}",
            "",
            "SUMMARY",
            "-------",
            f"Total Vehicles Today: {summary.total_vehicles_today}",
            f"Average Wait Time: {summary.avg_wait_time}s",
            f"Incidents Today: {summary.incidents_today}",
            f"Flow Efficiency: {summary.flow_efficiency}%",
            "",
            "PEAK HOURS",
            "----------",
            *(peak_lines or ["No data"]),
            "",
            "BUSIEST LOCATIONS",
            "-----------------",
            *(location_lines or ["No data"]),
        ]
        return "\n".join(lines) + "\n"
