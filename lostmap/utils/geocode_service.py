import logging
from typing import List, Optional

import requests
from fastapi.concurrency import run_in_threadpool

from lostmap.core.interfaces import GeocodeResult

logger = logging.getLogger(__name__)


class NominatimGeocodeService:
    """Free-text place search against an OpenStreetMap Nominatim endpoint."""

    def __init__(
        self,
        url: str = "https://nominatim.openstreetmap.org/search",
        user_agent: str = "lostmap/0.1",
        timeout: float = 10.0,
        http: Optional[requests.Session] = None,
    ):
        self.url = url
        self.timeout = timeout
        self.http = http or requests.Session()
        # Nominatim's usage policy asks for an identifying agent
        self.http.headers.update({"User-Agent": user_agent})

    async def search(self, text: str) -> List[GeocodeResult]:
        return await run_in_threadpool(self._search, text)

    def _search(self, text: str) -> List[GeocodeResult]:
        response = self.http.get(
            self.url,
            params={"format": "json", "q": text},
            timeout=self.timeout,
        )
        response.raise_for_status()

        results = []
        for place in response.json():
            try:
                results.append(
                    GeocodeResult(
                        latitude=float(place["lat"]),
                        longitude=float(place["lon"]),
                        display_name=place.get("display_name"),
                    )
                )
            except (KeyError, TypeError, ValueError):
                logger.warning("Ignoring unparseable geocode result: %r", place)

        return results
