"""Provider declarations for Facebook, Instagram and TikTok."""

from __future__ import annotations

import logging
from functools import partial
from typing import Any

import httpx

from src.core.config import Settings
from src.core.errors import DependentCallFailed
from src.core.models.session_state import Credential
from src.core.services.graph_api_service import GraphAPIService
from src.core.services.oauth_flow import ProviderConfig
from src.core.services.tiktok_api_service import TIKTOK_AUTHORIZE_URL, TIKTOK_TOKEN_URL

logger = logging.getLogger(__name__)

FACEBOOK_SCOPES = (
    "pages_show_list",
    "pages_manage_posts",
    "pages_read_engagement",
    "publish_video",
)

INSTAGRAM_SCOPES = (
    "instagram_basic",
    "pages_show_list",
    "business_management",
    "ads_management",
    "pages_manage_posts",
)


async def list_facebook_pages(
    client: httpx.AsyncClient,
    credential: Credential,
    token_data: dict,
    *,
    graph_url: str,
) -> Any:
    graph = GraphAPIService(client, graph_url)
    result = await graph.list_pages(credential.user_access_token)
    if not result.ok:
        raise DependentCallFailed(result.error or "Failed to fetch Facebook pages.")
    return result.data


async def resolve_instagram_accounts(
    client: httpx.AsyncClient,
    credential: Credential,
    token_data: dict,
    *,
    graph_url: str,
) -> list[dict]:
    """
    Map each managed Page to its linked Instagram Business account.

    Pages are processed sequentially in listing order. A page whose lookup
    fails stays in the list with an ``error`` field so the other pages are
    still reported.
    """
    graph = GraphAPIService(client, graph_url)
    token = credential.user_access_token
    listing = await graph.list_pages(token, fields="id,name")
    if not listing.ok:
        raise DependentCallFailed(listing.error or "Failed to fetch Facebook pages.")

    results: list[dict] = []
    for page in listing.json_dict().get("data") or []:
        page_id = str(page.get("id"))
        info = await graph.get_page_instagram_account(page_id, token)
        if info.ok:
            results.append(info.data)
            continue
        failure = DependentCallFailed(info.error or "Failed to fetch IG business account.")
        logger.warning("Instagram account lookup failed for page %s: %s", page_id, failure.message)
        results.append({"id": page.get("id"), "name": page.get("name"), "error": failure.message})
    return results


async def summarize_tiktok_token(
    client: httpx.AsyncClient,
    credential: Credential,
    token_data: dict,
) -> dict:
    return {
        "access_token": credential.access_token,
        "refresh_token": credential.refresh_token,
        "expires_in": token_data.get("expires_in"),
        "open_id": token_data.get("open_id"),
        "scope": token_data.get("scope"),
    }


def build_providers(settings: Settings) -> dict[str, ProviderConfig]:
    """Provider configs keyed by the name used in routes (``facebook`` ...)."""
    graph_url = settings.graph_url
    dialog_url = f"{settings.meta.auth_base_url.rstrip('/')}/{settings.meta.graph_version}/dialog/oauth"
    token_url = f"{graph_url}/oauth/access_token"

    facebook = ProviderConfig(
        name="facebook",
        key="fb",
        display_name="Facebook",
        authorize_url=dialog_url,
        token_url=token_url,
        client_id=settings.facebook.app_id,
        client_secret=settings.facebook.app_secret,
        redirect_uri=settings.facebook.redirect_uri,
        scopes=FACEBOOK_SCOPES,
        success_title="Facebook: Your Pages",
        credential_field="user_access_token",
        enrich=partial(list_facebook_pages, graph_url=graph_url),
    )
    instagram = ProviderConfig(
        name="instagram",
        key="ig",
        display_name="Instagram",
        authorize_url=dialog_url,
        token_url=token_url,
        client_id=settings.instagram.app_id,
        client_secret=settings.instagram.app_secret,
        redirect_uri=settings.instagram.redirect_uri,
        scopes=INSTAGRAM_SCOPES,
        success_title="Instagram: Linked IG Business Accounts",
        credential_field="user_access_token",
        enrich=partial(resolve_instagram_accounts, graph_url=graph_url),
    )
    aliases = ()
    if settings.tiktok.callback_path and settings.tiktok.callback_path != "/callback/tiktok":
        aliases = (settings.tiktok.callback_path,)
    tiktok = ProviderConfig(
        name="tiktok",
        key="tt",
        display_name="TikTok",
        authorize_url=TIKTOK_AUTHORIZE_URL,
        token_url=TIKTOK_TOKEN_URL,
        client_id=settings.tiktok.client_key,
        client_secret=settings.tiktok.client_secret,
        redirect_uri=settings.tiktok.redirect_uri,
        scopes=tuple(settings.tiktok.scopes),
        success_title="TikTok: Access Token",
        token_method="POST",
        client_id_param="client_key",
        use_pkce=True,
        credential_field="access_token",
        extra_token_params={"grant_type": "authorization_code"},
        log_id_header="x-tt-logid",
        enrich=summarize_tiktok_token,
        callback_aliases=aliases,
    )
    return {config.name: config for config in (facebook, instagram, tiktok)}
