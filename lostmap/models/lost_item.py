import uuid
from typing import Optional
from sqlmodel import Field, SQLModel
from datetime import datetime, timezone


class LostItem(SQLModel, table=True):
    __tablename__ = "lost_items"

    id: str = Field(default_factory=lambda: uuid.uuid4().hex, primary_key=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), index=True)

    # Reporter snapshot, taken at creation
    owner_id: Optional[str] = Field(default=None, index=True)  # None for legacy/anonymous pins
    owner_display_name: Optional[str] = None

    # Item fields
    description: str
    latitude: float
    longitude: float
    image_url: Optional[str] = None
