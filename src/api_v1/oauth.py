"""OAuth start/callback/logout endpoints for every configured provider."""


import logging
from typing import Annotated, Callable, Optional

import httpx
from fastapi import APIRouter, Depends, FastAPI, Query, status
from fastapi.responses import RedirectResponse

from src.core.dependencies import (
    get_http_client,
    get_provider,
    get_providers,
    get_session_state,
)
from src.core.models.session_state import SessionState
from src.core.services.oauth_flow import OAuthFlow, ProviderConfig

logger = logging.getLogger(__name__)

router = APIRouter(tags=["oauth"])

RESULT_PATH = "/result"


def _to_result() -> RedirectResponse:
    return RedirectResponse(RESULT_PATH, status_code=status.HTTP_302_FOUND)


async def _complete_callback(
    config: ProviderConfig,
    session: SessionState,
    client: httpx.AsyncClient,
    *,
    code: Optional[str],
    state: Optional[str],
    error: Optional[str],
    error_description: Optional[str],
) -> RedirectResponse:
    flow = OAuthFlow(config, client)
    try:
        await flow.complete(
            session,
            code=code,
            state=state,
            error=error,
            error_description=error_description,
        )
    except Exception as exc:
        logger.exception("%s callback error: %s", config.name, exc)
        session.record(config.error_title, error=f"{config.display_name} OAuth failed.")
    return _to_result()


@router.get("/auth/{provider}", response_class=RedirectResponse)
async def start_authorization(
    config: Annotated[ProviderConfig, Depends(get_provider)],
    session: Annotated[SessionState, Depends(get_session_state)],
) -> RedirectResponse:
    """Send the user to the provider's consent screen."""
    auth_url = OAuthFlow(config).start(session)
    return RedirectResponse(auth_url, status_code=status.HTTP_302_FOUND)


@router.get("/callback/{provider}", response_class=RedirectResponse)
async def callback(
    config: Annotated[ProviderConfig, Depends(get_provider)],
    session: Annotated[SessionState, Depends(get_session_state)],
    client: Annotated[httpx.AsyncClient, Depends(get_http_client)],
    code: Annotated[str | None, Query()] = None,
    state: Annotated[str | None, Query()] = None,
    error: Annotated[str | None, Query()] = None,
    error_description: Annotated[str | None, Query()] = None,
) -> RedirectResponse:
    """Validate state, exchange the code and record the outcome for /result."""
    return await _complete_callback(
        config,
        session,
        client,
        code=code,
        state=state,
        error=error,
        error_description=error_description,
    )


@router.get("/logout/{provider}", response_class=RedirectResponse)
async def disconnect_provider(
    config: Annotated[ProviderConfig, Depends(get_provider)],
    session: Annotated[SessionState, Depends(get_session_state)],
) -> RedirectResponse:
    """Forget the provider credential held in this session."""
    session.credentials.pop(config.key, None)
    session.pending.pop(config.key, None)
    session.record(
        f"{config.display_name} Logout",
        payload=f"Disconnected from {config.display_name}.",
    )
    return _to_result()


@router.get("/facebook/refresh", response_class=RedirectResponse)
async def facebook_refresh(
    session: Annotated[SessionState, Depends(get_session_state)],
) -> RedirectResponse:
    session.record(
        "Facebook Token Refresh",
        error="Facebook user tokens do not support refresh. Please re-login if expired.",
    )
    return _to_result()


def _fixed_provider(name: str) -> Callable[..., ProviderConfig]:
    def _resolve(
        providers: Annotated[dict[str, ProviderConfig], Depends(get_providers)],
    ) -> ProviderConfig:
        return providers[name]

    return _resolve


def register_callback_aliases(app: FastAPI, providers: dict[str, ProviderConfig]) -> None:
    """Serve each provider's extra callback paths next to ``/callback/{provider}``."""
    for config in providers.values():
        for path in config.callback_aliases:
            resolve = _fixed_provider(config.name)

            async def alias_callback(
                config: Annotated[ProviderConfig, Depends(resolve)],
                session: Annotated[SessionState, Depends(get_session_state)],
                client: Annotated[httpx.AsyncClient, Depends(get_http_client)],
                code: Annotated[str | None, Query()] = None,
                state: Annotated[str | None, Query()] = None,
                error: Annotated[str | None, Query()] = None,
                error_description: Annotated[str | None, Query()] = None,
            ) -> RedirectResponse:
                return await _complete_callback(
                    config,
                    session,
                    client,
                    code=code,
                    state=state,
                    error=error,
                    error_description=error_description,
                )

            app.add_api_route(
                path,
                alias_callback,
                methods=["GET"],
                response_class=RedirectResponse,
                tags=["oauth"],
                name=f"{config.name}_callback_alias",
            )
            logger.debug("Registered %s callback alias at %s", config.name, path)
