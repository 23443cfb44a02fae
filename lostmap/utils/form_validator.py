from typing import Optional
from pydantic import BaseModel, Field


class MapClickForm(BaseModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)


class DraftUpdateForm(BaseModel):
    description: str = Field(max_length=280)


class GoogleSignInForm(BaseModel):
    id_token: str = Field(min_length=1)


class EmailSignInForm(BaseModel):
    email: str = Field(min_length=3, max_length=254)
    password: str = Field(min_length=1)


class EmailSignUpForm(EmailSignInForm):
    name: Optional[str] = Field(default=None, max_length=80)
