import logging

from lostmap.core.errors import NotFoundError, TransportError, ValidationError
from lostmap.core.interfaces import GeocodeService
from lostmap.models.report import Location

logger = logging.getLogger(__name__)


class GeocodeResolver:
    def __init__(self, service: GeocodeService):
        self.service = service

    async def resolve(self, query: str) -> Location:
        """Most relevant match for a place name."""
        query = (query or "").strip()
        if not query:
            raise ValidationError("Enter a place to search for.")

        try:
            results = await self.service.search(query)
        except Exception as e:
            logger.exception("Geocode search for %r failed", query)
            raise TransportError("Search failed") from e

        if not results:
            raise NotFoundError("Location not found")

        best = results[0]
        return Location(latitude=best.latitude, longitude=best.longitude)
