import logging
import time
import uuid
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional, Tuple

from fastapi import Request, Response, WebSocket
from jose import JWTError, jwt

from lostmap.core.client import MapClient

logger = logging.getLogger(__name__)

SESSION_COOKIE = "map_session"
ALGORITHM = "HS256"
SESSION_EXPIRE_MINUTES = 30 * 24 * 60  # 30 days
SESSION_IDLE_SECONDS = 2 * 60 * 60
MAX_SESSIONS = 1000


def issue_session_token(session_id: str, secret: str) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sid": session_id,
        "iat": now,
        "exp": now + timedelta(minutes=SESSION_EXPIRE_MINUTES),
    }
    return jwt.encode(payload, secret, algorithm=ALGORITHM)


def read_session_token(token: Optional[str], secret: str) -> Optional[str]:
    if not token:
        return None

    try:
        payload = jwt.decode(token, secret, algorithms=[ALGORITHM])
    except JWTError:
        return None

    return payload.get("sid")


class MapSessions:
    """
    One MapClient per browser session, created on first contact.

    Sessions untouched for `idle_timeout` seconds are closed whenever a new one
    is opened, and the least recently used one makes room once `max_sessions`
    is reached. Sessions held by an open feed socket are never evicted.
    """

    def __init__(
        self,
        client_factory: Callable[[], MapClient],
        secret: str,
        idle_timeout: float = SESSION_IDLE_SECONDS,
        max_sessions: int = MAX_SESSIONS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.client_factory = client_factory
        self.secret = secret
        self.idle_timeout = idle_timeout
        self.max_sessions = max_sessions
        self.clock = clock
        self._clients: Dict[str, MapClient] = {}
        self._last_seen: Dict[str, float] = {}
        self._held: Dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._clients)

    def get(self, session_id: Optional[str]) -> Optional[MapClient]:
        if session_id is None:
            return None

        client = self._clients.get(session_id)
        if client is not None:
            self._last_seen[session_id] = self.clock()
        return client

    def create(self) -> Tuple[str, MapClient]:
        self.evict_idle()
        if len(self._clients) >= self.max_sessions:
            self._evict_least_recent()

        session_id = uuid.uuid4().hex
        client = self.client_factory()
        client.open()
        self._clients[session_id] = client
        self._last_seen[session_id] = self.clock()
        logger.info("Opened map session %s", session_id)
        return session_id, client

    def close(self, session_id: str) -> None:
        client = self._clients.pop(session_id, None)
        self._last_seen.pop(session_id, None)
        if client is not None:
            client.close()
            logger.info("Closed map session %s", session_id)

    def close_all(self) -> None:
        for session_id in list(self._clients):
            self.close(session_id)

    def evict_idle(self) -> int:
        cutoff = self.clock() - self.idle_timeout
        stale = [
            session_id
            for session_id, seen in self._last_seen.items()
            if seen < cutoff and session_id not in self._held
        ]
        for session_id in stale:
            self.close(session_id)

        if stale:
            logger.info("Evicted %d idle map sessions", len(stale))
        return len(stale)

    def _evict_least_recent(self) -> None:
        candidates = [s for s in self._clients if s not in self._held]
        if not candidates:
            logger.warning("All %d map sessions are held open", len(self._clients))
            return

        oldest = min(candidates, key=lambda s: self._last_seen[s])
        logger.warning("Map session limit reached, evicting %s", oldest)
        self.close(oldest)

    @contextmanager
    def hold(self, session_id: str):
        self._held[session_id] = self._held.get(session_id, 0) + 1
        try:
            yield
        finally:
            remaining = self._held.pop(session_id) - 1
            if remaining:
                self._held[session_id] = remaining
            if session_id in self._clients:
                self._last_seen[session_id] = self.clock()


async def get_map_client(request: Request, response: Response):
    sessions: MapSessions = request.app.state.sessions

    session_id = read_session_token(request.cookies.get(SESSION_COOKIE), sessions.secret)
    client = sessions.get(session_id)
    created = None

    if client is None:
        created, client = sessions.create()
        response.set_cookie(
            SESSION_COOKIE,
            issue_session_token(created, sessions.secret),
            max_age=SESSION_EXPIRE_MINUTES * 60,
            httponly=True,
            samesite="lax",
        )

    try:
        yield client
    except Exception:
        # the cookie never reaches the browser, so nobody could come back for it
        if created is not None:
            sessions.close(created)
        raise


def get_existing_session(websocket: WebSocket) -> Tuple[Optional[str], Optional[MapClient]]:
    sessions: MapSessions = websocket.app.state.sessions
    session_id = read_session_token(websocket.cookies.get(SESSION_COOKIE), sessions.secret)
    return session_id, sessions.get(session_id)
