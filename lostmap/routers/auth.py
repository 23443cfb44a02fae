from typing import Optional
from fastapi import APIRouter, Depends
from pydantic import BaseModel

from lostmap.core.client import MapClient
from lostmap.models.identity import Identity
from lostmap.utils.auth_helper import get_map_client
from lostmap.utils.form_validator import EmailSignInForm, EmailSignUpForm, GoogleSignInForm

router = APIRouter()


class IdentityResponse(BaseModel):
    user: Optional[Identity]


@router.post("/google", response_model=IdentityResponse)
async def google_sign_in(payload: GoogleSignInForm, client: MapClient = Depends(get_map_client)):
    identity = await client.identity.sign_in("google", id_token=payload.id_token)
    return IdentityResponse(user=identity)


@router.post("/email/signin", response_model=IdentityResponse)
async def email_sign_in(payload: EmailSignInForm, client: MapClient = Depends(get_map_client)):
    identity = await client.identity.sign_in("email", email=payload.email, password=payload.password)
    return IdentityResponse(user=identity)


@router.post("/email/signup", response_model=IdentityResponse)
async def email_sign_up(payload: EmailSignUpForm, client: MapClient = Depends(get_map_client)):
    identity = await client.identity.sign_up(payload.email, payload.password, payload.name)
    return IdentityResponse(user=identity)


@router.post("/signout", response_model=IdentityResponse)
async def sign_out(client: MapClient = Depends(get_map_client)):
    await client.identity.sign_out()
    return IdentityResponse(user=None)


@router.get("/me", response_model=IdentityResponse)
async def get_me(client: MapClient = Depends(get_map_client)):
    return IdentityResponse(user=client.session.current_identity())
