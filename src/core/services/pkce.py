"""Anti-CSRF state and PKCE (Proof Key for Code Exchange) generation."""

from __future__ import annotations

import base64
import hashlib
import secrets

from src.core.models.session_state import PendingAuthState

STATE_BYTES = 16
VERIFIER_BYTES = 32
CHALLENGE_METHOD = "S256"


def generate_state() -> str:
    """Return an unguessable hex state token (16 bytes of entropy)."""
    return secrets.token_hex(STATE_BYTES)


def generate_code_verifier() -> str:
    """Return a URL-safe, unpadded verifier built from 32 random bytes (43 chars)."""
    return base64.urlsafe_b64encode(secrets.token_bytes(VERIFIER_BYTES)).decode("utf-8").rstrip("=")


def derive_code_challenge(code_verifier: str) -> str:
    """URL-safe base64 (no padding) of SHA-256(verifier)."""
    digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).decode("utf-8").rstrip("=")


def new_pending_auth_state(use_pkce: bool) -> PendingAuthState:
    """Create the pending state stored server-side when a flow starts."""
    return PendingAuthState(
        state=generate_state(),
        code_verifier=generate_code_verifier() if use_pkce else None,
    )
