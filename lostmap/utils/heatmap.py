from typing import Iterable, List

from lostmap.models.report import Report

DEFAULT_INTENSITY = 0.6


def heat_points(reports: Iterable[Report], intensity: float = DEFAULT_INTENSITY) -> List[List[float]]:
    """[lat, lon, intensity] triples for a client-side heat layer."""
    return [
        [report.location.latitude, report.location.longitude, intensity]
        for report in reports
    ]
