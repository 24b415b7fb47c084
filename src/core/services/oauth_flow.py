"""Generic OAuth 2.0 authorization-code flow driven by a per-provider config."""

from __future__ import annotations

import hmac
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

import httpx

from src.core.errors import (
    InvalidState,
    MissingCode,
    MissingVerifier,
    OAuthFlowError,
    TokenExchangeFailed,
)
from src.core.models.session_state import (
    Credential,
    LastResult,
    PendingAuthState,
    SessionState,
)
from src.core.services.pkce import CHALLENGE_METHOD, derive_code_challenge, new_pending_auth_state
from src.core.services.upstream import extract_error_message, request_json

logger = logging.getLogger(__name__)

# (client, credential, token response) -> result payload
EnrichFn = Callable[[httpx.AsyncClient, Credential, dict], Awaitable[Any]]


@dataclass(frozen=True)
class ProviderConfig:
    """Everything that differs between providers."""

    name: str
    key: str
    display_name: str
    authorize_url: str
    token_url: str
    client_id: str
    client_secret: str
    redirect_uri: str
    scopes: tuple[str, ...]
    success_title: str
    token_method: str = "GET"
    client_id_param: str = "client_id"
    use_pkce: bool = False
    credential_field: str = "access_token"
    extra_token_params: dict[str, str] = field(default_factory=dict)
    log_id_header: Optional[str] = None
    enrich: Optional[EnrichFn] = None
    callback_aliases: tuple[str, ...] = ()

    @property
    def error_title(self) -> str:
        return f"{self.display_name} OAuth Error"


def _coerce_int(value: Any) -> Optional[int]:
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


class OAuthFlow:
    """
    Authorization redirect and callback state machine for one provider.

    ``start`` issues a fresh pending state (plus PKCE verifier when the provider
    needs it) and returns the consent URL. ``complete`` validates the callback,
    exchanges the code, stores the credential, runs the optional enrichment and
    records the outcome in the session's LastResult.
    """

    def __init__(self, config: ProviderConfig, client: Optional[httpx.AsyncClient] = None):
        self.config = config
        self.client = client

    # ------------------------------------------------------------------
    # Step 1: authorization redirect
    # ------------------------------------------------------------------
    def authorization_url(self, pending: PendingAuthState) -> str:
        config = self.config
        params = {
            config.client_id_param: config.client_id,
            "redirect_uri": config.redirect_uri,
            "response_type": "code",
            "scope": ",".join(config.scopes),
            "state": pending.state,
        }
        if config.use_pkce:
            params["code_challenge"] = derive_code_challenge(pending.code_verifier)
            params["code_challenge_method"] = CHALLENGE_METHOD
        query = str(httpx.QueryParams(params))
        return f"{config.authorize_url}?{query}"

    def start(self, session: SessionState) -> str:
        pending = new_pending_auth_state(self.config.use_pkce)
        session.pending[self.config.key] = pending
        logger.info(
            "Starting %s authorization (pkce=%s)", self.config.name, self.config.use_pkce
        )
        return self.authorization_url(pending)

    # ------------------------------------------------------------------
    # Step 2: callback
    # ------------------------------------------------------------------
    async def complete(
        self,
        session: SessionState,
        *,
        code: Optional[str],
        state: Optional[str],
        error: Optional[str] = None,
        error_description: Optional[str] = None,
    ) -> LastResult:
        try:
            payload = await self._run(
                session,
                code=code,
                state=state,
                error=error,
                error_description=error_description,
            )
        except OAuthFlowError as exc:
            logger.warning(
                "%s callback failed: %s: %s",
                self.config.name,
                exc.__class__.__name__,
                exc.message,
            )
            return session.record(self.config.error_title, error=exc.message)

        logger.info("%s callback completed", self.config.name)
        return session.record(self.config.success_title, payload=payload)

    async def _run(
        self,
        session: SessionState,
        *,
        code: Optional[str],
        state: Optional[str],
        error: Optional[str],
        error_description: Optional[str],
    ) -> Any:
        config = self.config

        if not code:
            message = f"Missing code parameter from {config.display_name}."
            if error or error_description:
                message = f"{message} ({error or 'error'}: {error_description or 'no description'})"
            raise MissingCode(message)

        pending = self._consume_state(session, state)

        verifier: Optional[str] = None
        if config.use_pkce:
            verifier = pending.code_verifier
            if not verifier:
                raise MissingVerifier()

        token_data = await self._exchange_code(code, verifier)

        access_token = token_data["access_token"]
        credential = Credential(
            refresh_token=token_data.get("refresh_token"),
            expires_in=_coerce_int(token_data.get("expires_in")),
        )
        setattr(credential, config.credential_field, access_token)
        session.credentials[config.key] = credential

        if config.enrich is None:
            return None
        return await config.enrich(self.client, credential, token_data)

    def _consume_state(self, session: SessionState, state: Optional[str]) -> PendingAuthState:
        pending = session.pending.get(self.config.key)
        if not state or pending is None:
            raise InvalidState()
        if not hmac.compare_digest(state.encode("utf-8"), pending.state.encode("utf-8")):
            raise InvalidState()
        session.pending.pop(self.config.key, None)
        return pending

    async def _exchange_code(self, code: str, verifier: Optional[str]) -> dict:
        config = self.config
        params = {
            config.client_id_param: config.client_id,
            "client_secret": config.client_secret,
            "redirect_uri": config.redirect_uri,
            "code": code,
            **config.extra_token_params,
        }
        if verifier:
            params["code_verifier"] = verifier

        if config.token_method.upper() == "POST":
            result = await request_json(
                self.client,
                "POST",
                config.token_url,
                data=params,
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            )
        else:
            result = await request_json(self.client, "GET", config.token_url, params=params)

        if config.log_id_header:
            log_id = result.headers.get(config.log_id_header)
            if log_id:
                logger.info("%s token exchange log id: %s", config.name, log_id)

        if not result.ok:
            raise TokenExchangeFailed(result.error)

        token_data = result.json_dict()
        if not token_data.get("access_token"):
            # TikTok reports some failures with a 2xx status
            raise TokenExchangeFailed(extract_error_message(token_data))
        return token_data
