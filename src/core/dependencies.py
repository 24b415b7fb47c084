"""
FastAPI dependencies for dependency injection.

Handlers receive the session-scoped state, provider configs, HTTP client and
use cases through these functions so tests can override any of them.
"""

import logging
from typing import Annotated, AsyncGenerator

import httpx
from fastapi import Depends, HTTPException, Request, status

from src.core.config import Settings, get_settings
from src.core.models.session_state import SessionState
from src.core.services.graph_api_service import GraphAPIService
from src.core.services.oauth_flow import ProviderConfig
from src.core.services.providers import build_providers
from src.core.services.session_store import SessionStore
from src.core.services.tiktok_api_service import TikTokAPIService
from src.core.use_cases import (
    FetchPageTokenUseCase,
    FetchTikTokProfileUseCase,
    PublishInstagramPostUseCase,
    PublishPagePostUseCase,
)

logger = logging.getLogger(__name__)


# ============================================================================
# Session Dependencies
# ============================================================================


def get_session_store(request: Request) -> SessionStore:
    """Store configured on the application at startup."""
    return request.app.state.session_store


def get_session_state(request: Request) -> SessionState:
    """
    Get the SessionState bound to this request by SessionMiddleware.

    Mutations are persisted by the middleware once the handler returns.
    """
    state = getattr(request.state, "session", None)
    if state is None:
        raise RuntimeError("SessionMiddleware is not installed")
    return state


# ============================================================================
# Provider Dependencies
# ============================================================================


def get_providers(
    settings: Annotated[Settings, Depends(get_settings)]
) -> dict[str, ProviderConfig]:
    return build_providers(settings)


def get_provider(
    provider: str,
    providers: Annotated[dict[str, ProviderConfig], Depends(get_providers)],
) -> ProviderConfig:
    """Resolve the ``{provider}`` path parameter."""
    config = providers.get(provider.lower())
    if config is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown provider: {provider}",
        )
    return config


# ============================================================================
# Service Dependencies
# ============================================================================


async def get_http_client(
    settings: Annotated[Settings, Depends(get_settings)]
) -> AsyncGenerator[httpx.AsyncClient, None]:
    """
    Outbound HTTP client for the current request.

    Yields:
        AsyncClient closed once the request is done
    """
    async with httpx.AsyncClient(timeout=settings.http.timeout) as client:
        yield client


def get_graph_api_service(
    client: Annotated[httpx.AsyncClient, Depends(get_http_client)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> GraphAPIService:
    """Get GraphAPIService instance."""
    return GraphAPIService(client, settings.graph_url)


def get_tiktok_api_service(
    client: Annotated[httpx.AsyncClient, Depends(get_http_client)],
) -> TikTokAPIService:
    """Get TikTokAPIService instance."""
    return TikTokAPIService(client)


# ============================================================================
# Use Case Dependencies
# ============================================================================


def get_fetch_page_token_use_case(
    graph: Annotated[GraphAPIService, Depends(get_graph_api_service)],
) -> FetchPageTokenUseCase:
    return FetchPageTokenUseCase(graph)


def get_publish_page_post_use_case(
    graph: Annotated[GraphAPIService, Depends(get_graph_api_service)],
) -> PublishPagePostUseCase:
    return PublishPagePostUseCase(graph)


def get_publish_instagram_post_use_case(
    graph: Annotated[GraphAPIService, Depends(get_graph_api_service)],
) -> PublishInstagramPostUseCase:
    return PublishInstagramPostUseCase(graph)


def get_fetch_tiktok_profile_use_case(
    tiktok: Annotated[TikTokAPIService, Depends(get_tiktok_api_service)],
) -> FetchTikTokProfileUseCase:
    return FetchTikTokProfileUseCase(tiktok)
