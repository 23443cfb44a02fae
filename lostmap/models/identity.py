from typing import Literal, Optional
from pydantic import BaseModel, ConfigDict

from lostmap.models.user import User


class Identity(BaseModel):
    """The signed-in user as seen by a map client."""

    model_config = ConfigDict(frozen=True)

    uid: str
    display_name: Optional[str] = None
    email: Optional[str] = None
    provider: Literal["google", "password"]

    @property
    def label(self) -> Optional[str]:
        return self.display_name or self.email

    @classmethod
    def from_user(cls, user: User, provider: str) -> "Identity":
        return cls(
            uid=user.public_id,
            display_name=user.name,
            email=user.email,
            provider=provider,
        )
