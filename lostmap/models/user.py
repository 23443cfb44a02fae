from typing import Optional
import uuid
from sqlmodel import Field, SQLModel
from datetime import datetime, timezone


class User(SQLModel, table=True):
    __tablename__ = "users"

    id: Optional[int] = Field(default=None, primary_key=True)
    public_id: str = Field(default_factory=lambda: uuid.uuid4().hex, index=True, unique=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    name: Optional[str] = None
    image: Optional[str] = None
    email: str = Field(index=True, unique=True)

    # Sign-in methods
    google_id: Optional[str] = Field(default=None, index=True, unique=True)
    password_hash: Optional[str] = None
