"""Session persistence: in-memory for demo/tests, Redis for production."""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from typing import Callable, Dict, Optional, Tuple

import redis.asyncio as redis_async
from cryptography.fernet import Fernet, InvalidToken
from pydantic import ValidationError
from redis.asyncio import Redis
from redis.exceptions import RedisError

from src.core.models.session_state import SessionState

logger = logging.getLogger(__name__)


class SessionStore(ABC):
    """Load and persist :class:`SessionState` objects by session id."""

    @abstractmethod
    async def load(self, session_id: str) -> Optional[SessionState]:
        """Return the stored state or None when the session is unknown/expired."""

    @abstractmethod
    async def save(self, state: SessionState) -> bool:
        """Persist the state; returns False when the write could not be made."""

    @abstractmethod
    async def delete(self, session_id: str) -> bool:
        """Forget the session."""

    async def close(self) -> None:
        return None


class InMemorySessionStore(SessionStore):
    """
    Process-local store. Sessions do not survive a restart.

    Entries expire ``ttl`` seconds after their last save; expired entries load
    as missing and are pruned on the next save.
    """

    def __init__(self, ttl: int = 60 * 60 * 4, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl = ttl
        self._clock = clock
        self._sessions: Dict[str, Tuple[float, SessionState]] = {}

    async def load(self, session_id: str) -> Optional[SessionState]:
        entry = self._sessions.get(session_id)
        if entry is None:
            return None
        expires_at, state = entry
        if expires_at <= self._clock():
            self._sessions.pop(session_id, None)
            return None
        return state

    async def save(self, state: SessionState) -> bool:
        now = self._clock()
        self._prune(now)
        self._sessions[state.session_id] = (now + self.ttl, state)
        return True

    async def delete(self, session_id: str) -> bool:
        return self._sessions.pop(session_id, None) is not None

    def _prune(self, now: float) -> None:
        expired = [sid for sid, (expires_at, _) in self._sessions.items() if expires_at <= now]
        for sid in expired:
            del self._sessions[sid]
        if expired:
            logger.debug("Pruned %d expired sessions", len(expired))

    def __len__(self) -> int:
        return len(self._sessions)


class RedisSessionStore(SessionStore):
    """Redis-backed store; payloads are Fernet-encrypted when a key is configured."""

    def __init__(
        self,
        redis_url: str,
        ttl: int = 60 * 60 * 4,
        encryption_key: Optional[str] = None,
        key_prefix: str = "session",
    ):
        """
        Initialize Redis session store.

        Args:
            redis_url: Redis connection URL (e.g., redis://localhost:6379/0)
            ttl: Session lifetime in seconds, refreshed on every save
            encryption_key: Optional Fernet key used to encrypt tokens at rest
            key_prefix: Namespace for session keys
        """
        self.redis_url = redis_url.strip()
        self.ttl = ttl
        self.key_prefix = key_prefix
        self.fernet = Fernet(encryption_key) if encryption_key else None
        self._client: Optional[Redis] = None

    async def connect(self) -> None:
        """Establish connection to Redis."""
        if self._client is None:
            try:
                self._client = await redis_async.from_url(
                    self.redis_url,
                    encoding="utf-8",
                    decode_responses=True,
                )
                await self._client.ping()
                logger.info("Redis session store connected")
            except RedisError as e:
                logger.error("Failed to connect to Redis: %s", e)
                self._client = None
                raise

    async def close(self) -> None:
        """Close Redis connection."""
        if self._client:
            await self._client.close()
            self._client = None
            logger.info("Redis session store closed")

    async def get_client(self) -> Redis:
        if self._client is None:
            await self.connect()
        return self._client

    def _encode(self, state: SessionState) -> str:
        raw = state.model_dump_json()
        if self.fernet is None:
            return raw
        return self.fernet.encrypt(raw.encode("utf-8")).decode("utf-8")

    def _decode(self, data: str) -> Optional[SessionState]:
        raw = data
        if self.fernet is not None:
            try:
                raw = self.fernet.decrypt(data.encode("utf-8")).decode("utf-8")
            except InvalidToken:
                # Undecryptable sessions are treated as missing so the user starts over
                logger.warning("Discarding session payload that failed decryption")
                return None
        try:
            return SessionState.model_validate_json(raw)
        except ValidationError as e:
            logger.warning("Discarding malformed session payload: %s", e)
            return None

    async def load(self, session_id: str) -> Optional[SessionState]:
        try:
            client = await self.get_client()
            data = await client.get(self._session_key(session_id))
        except RedisError as e:
            logger.warning("Redis error loading session: %s", e)
            return None
        if not data:
            return None
        return self._decode(data)

    async def save(self, state: SessionState) -> bool:
        try:
            client = await self.get_client()
            await client.set(self._session_key(state.session_id), self._encode(state), ex=self.ttl)
            return True
        except RedisError as e:
            logger.warning("Redis error saving session: %s", e)
            return False

    async def delete(self, session_id: str) -> bool:
        try:
            client = await self.get_client()
            result = await client.delete(self._session_key(session_id))
            return result > 0
        except RedisError as e:
            logger.warning("Redis error deleting session: %s", e)
            return False

    def _session_key(self, session_id: str) -> str:
        return f"{self.key_prefix}:{session_id}"


def build_session_store(settings) -> SessionStore:
    """Create the store selected by SESSION_BACKEND."""
    session_settings = settings.session
    if session_settings.backend == "redis":
        logger.info("Using Redis session store")
        return RedisSessionStore(
            redis_url=session_settings.redis_url,
            ttl=session_settings.max_age,
            encryption_key=session_settings.encryption_key,
        )
    logger.info("Using in-memory session store; sessions are lost on restart")
    return InMemorySessionStore(ttl=session_settings.max_age)
