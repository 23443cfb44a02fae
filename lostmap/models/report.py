from datetime import datetime, timezone
from typing import Any, Mapping, Optional
from pydantic import BaseModel, ConfigDict, Field


STREET_VIEW_URL = "https://www.google.com/maps/@?api=1&map_action=pano&viewpoint={lat},{lon}"


class Location(BaseModel):
    model_config = ConfigDict(frozen=True)

    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)


class Report(BaseModel):
    """A lost-item pin as delivered by the live feed. Immutable."""

    model_config = ConfigDict(frozen=True)

    id: str
    description: str
    location: Location
    created_at: datetime
    image_url: Optional[str] = None
    owner_id: Optional[str] = None
    owner_display_name: Optional[str] = None

    @property
    def street_view_url(self) -> str:
        return STREET_VIEW_URL.format(lat=self.location.latitude, lon=self.location.longitude)

    @classmethod
    def from_document(cls, doc: Mapping[str, Any]) -> "Report":
        """
        Build a Report from a stored lost_items document.

        Raises ValueError when the document has no id, coordinates or timestamp,
        since such a pin cannot be placed or ordered.
        """
        if not doc.get("id"):
            raise ValueError("document has no id")
        if doc.get("latitude") is None or doc.get("longitude") is None:
            raise ValueError(f"document {doc['id']} has no location")
        if doc.get("created_at") is None:
            raise ValueError(f"document {doc['id']} has no timestamp")

        created_at = doc["created_at"]
        if isinstance(created_at, datetime) and created_at.tzinfo is None:
            # SQLite hands timestamps back without their zone; they are UTC
            created_at = created_at.replace(tzinfo=timezone.utc)

        return cls(
            id=str(doc["id"]),
            description=doc.get("description") or "",
            location=Location(latitude=doc["latitude"], longitude=doc["longitude"]),
            created_at=created_at,
            image_url=doc.get("image_url") or None,
            owner_id=doc.get("owner_id") or None,
            owner_display_name=doc.get("owner_display_name") or None,
        )
