import logging
from typing import Any, Callable, List, Optional

from fastapi.concurrency import run_in_threadpool
from google.auth.transport import requests as grequests
from google.oauth2 import id_token
from passlib.context import CryptContext
from sqlmodel import Session, select

from lostmap.core.errors import SignInError
from lostmap.core.interfaces import IdentityCallback
from lostmap.models.identity import Identity
from lostmap.models.user import User

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def verify_google_token(token: str, client_id: str) -> dict:
    try:
        return id_token.verify_oauth2_token(token, grequests.Request(), client_id)
    except ValueError:
        raise SignInError("Invalid Google ID token")


class AccountIdentityProvider:
    """
    Sign-in state for one map client, backed by the users table.

    Listeners are told about every change, and once straight away on
    registration, the way a hosted auth SDK reports its state.
    """

    def __init__(self, engine, google_client_id: str = "", google_verifier=verify_google_token):
        self.engine = engine
        self.google_client_id = google_client_id
        self.google_verifier = google_verifier
        self._identity: Optional[Identity] = None
        self._listeners: List[IdentityCallback] = []

    def on_identity_changed(self, callback: IdentityCallback) -> Callable[[], None]:
        self._listeners.append(callback)
        callback(self._identity)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def _set_identity(self, identity: Optional[Identity]) -> None:
        self._identity = identity
        for listener in list(self._listeners):
            try:
                listener(identity)
            except Exception:
                logger.exception("Identity listener failed")

    async def sign_in(self, method: str, **credentials: Any) -> Identity:
        if method == "google":
            identity = await run_in_threadpool(self._google_sign_in, credentials.get("id_token") or "")
        elif method == "email":
            identity = await run_in_threadpool(
                self._email_sign_in, credentials.get("email") or "", credentials.get("password") or ""
            )
        else:
            raise SignInError(f"Unsupported sign-in method '{method}'")

        self._set_identity(identity)
        logger.info("Signed in %s via %s", identity.uid, method)
        return identity

    async def sign_up(self, email: str, password: str, name: Optional[str] = None) -> Identity:
        identity = await run_in_threadpool(self._email_sign_up, email, password, name)
        self._set_identity(identity)
        logger.info("Signed up %s", identity.uid)
        return identity

    async def sign_out(self) -> None:
        if self._identity is not None:
            logger.info("Signed out %s", self._identity.uid)
        self._set_identity(None)

    def _google_sign_in(self, token: str) -> Identity:
        if not self.google_client_id:
            raise SignInError("Google sign-in is not configured")
        if not token:
            raise SignInError("Missing Google ID token")

        # idinfo now trusted and parsed by Google libs
        idinfo = self.google_verifier(token, self.google_client_id)
        google_id = idinfo["sub"]
        email = idinfo.get("email")

        with Session(self.engine) as session:
            user = session.exec(select(User).where(User.google_id == google_id)).first()

            if not user and email:
                # link an existing email/password account
                user = session.exec(select(User).where(User.email == email)).first()
                if user:
                    user.google_id = google_id

            if not user:
                if not email:
                    raise SignInError("Google account has no email address")
                user = User(google_id=google_id, email=email)

            user.name = idinfo.get("name") or user.name
            user.image = idinfo.get("picture") or user.image

            session.add(user)
            session.commit()
            session.refresh(user)

            return Identity.from_user(user, "google")

    def _email_sign_in(self, email: str, password: str) -> Identity:
        email = email.strip().lower()

        with Session(self.engine) as session:
            user = session.exec(select(User).where(User.email == email)).first()

            if not user or not user.password_hash or not verify_password(password, user.password_hash):
                raise SignInError("Sign in error: wrong email or password")

            return Identity.from_user(user, "password")

    def _email_sign_up(self, email: str, password: str, name: Optional[str]) -> Identity:
        email = email.strip().lower()

        if "@" not in email:
            raise SignInError("Sign up error: invalid email address")
        if len(password) < MIN_PASSWORD_LENGTH:
            raise SignInError(f"Sign up error: password must be at least {MIN_PASSWORD_LENGTH} characters")

        with Session(self.engine) as session:
            existing = session.exec(select(User).where(User.email == email)).first()
            if existing:
                raise SignInError("Sign up error: email already in use")

            user = User(email=email, name=name, password_hash=hash_password(password))
            session.add(user)
            session.commit()
            session.refresh(user)

            return Identity.from_user(user, "password")
