"""Session models for the Social OAuth Broker."""

from src.core.models.session_state import (
    Credential,
    LastResult,
    PendingAuthState,
    SessionState,
)

__all__ = [
    "Credential",
    "LastResult",
    "PendingAuthState",
    "SessionState",
]
