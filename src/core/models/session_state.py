"""Server-side session state: credentials, pending OAuth state and the last result."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


class Credential(BaseModel):
    """
    Bearer credential obtained for one provider.

    Meta providers keep the primary token in ``user_access_token``; TikTok keeps
    it in ``access_token``. Which field is used is part of the provider config.
    """

    user_access_token: Optional[str] = None
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None
    obtained_at: datetime = Field(default_factory=now_utc)
    page_access_token: Optional[str] = None
    page_access_tokens: Dict[str, str] = Field(default_factory=dict)

    def cache_page_token(self, page_id: str, token: str) -> None:
        self.page_access_tokens[page_id] = token
        self.page_access_token = token


class PendingAuthState(BaseModel):
    """State (and PKCE verifier) issued with an authorization redirect."""

    state: str
    code_verifier: Optional[str] = None
    created_at: datetime = Field(default_factory=now_utc)


class LastResult(BaseModel):
    """Outcome of the last completed handler, shown by the result page."""

    title: str
    payload: Any = None
    error: Optional[str] = None

    @property
    def is_error(self) -> bool:
        return self.error is not None


class SessionState(BaseModel):
    """
    Everything the broker keeps for one browser session.

    Owned by exactly one session id; handlers receive it by dependency and the
    session middleware persists it through the configured store.
    """

    session_id: str
    credentials: Dict[str, Credential] = Field(default_factory=dict)
    pending: Dict[str, PendingAuthState] = Field(default_factory=dict)
    last_result: Optional[LastResult] = None
    created_at: datetime = Field(default_factory=now_utc)

    def record(
        self,
        title: str,
        *,
        payload: Any = None,
        error: Optional[str] = None,
    ) -> LastResult:
        self.last_result = LastResult(title=title, payload=payload, error=error)
        return self.last_result
