"""Use cases for Facebook Page actions (page token, page post)."""

import logging

from src.core.errors import NotAuthenticated, ResourceNotFound, UpstreamActionFailed
from src.core.models.session_state import Credential, LastResult, SessionState
from src.core.services.graph_api_service import GraphAPIService, find_page

logger = logging.getLogger(__name__)

PROVIDER_KEY = "fb"
DEFAULT_POST_MESSAGE = "Test post from OAuth demo (for access verification)."


def _require_facebook_credential(session: SessionState) -> Credential:
    credential = session.credentials.get(PROVIDER_KEY)
    if credential is None or not credential.user_access_token:
        raise NotAuthenticated("Login with Facebook first")
    return credential


class FetchPageTokenUseCase:
    """Derive the page-scoped token for one managed Page and cache it in the session."""

    def __init__(self, graph: GraphAPIService):
        self.graph = graph

    async def execute(self, session: SessionState, page_id: str) -> LastResult:
        credential = _require_facebook_credential(session)

        listing = await self.graph.list_pages(credential.user_access_token)
        if not listing.ok:
            message = listing.error or "Unable to fetch page token."
            raise UpstreamActionFailed(f"Unable to fetch page token: {message}")

        page = find_page(listing.json_dict(), page_id)
        if page is None:
            raise ResourceNotFound("Page not found or not managed by you")

        if page.get("access_token"):
            credential.cache_page_token(page_id, page["access_token"])
            logger.info("Cached page token for page_id=%s", page_id)

        return session.record(
            f"Facebook: Page Token for {page_id}",
            payload={
                "pageId": page_id,
                "page_name": page.get("name"),
                "page_access_token": page.get("access_token"),
            },
        )


class PublishPagePostUseCase:
    """
    Publish a message to a Page feed.

    Uses the cached page token for that page when present; otherwise derives
    it once from the user token and caches it.
    """

    def __init__(self, graph: GraphAPIService):
        self.graph = graph

    async def _resolve_page_token(self, credential: Credential, page_id: str) -> str:
        cached = credential.page_access_tokens.get(page_id)
        if cached:
            return cached

        listing = await self.graph.list_pages(credential.user_access_token)
        if not listing.ok:
            raise UpstreamActionFailed(
                f"Page post failed: {listing.error or 'unable to list pages'}"
            )
        page = find_page(listing.json_dict(), page_id)
        if page is None or not page.get("access_token"):
            raise ResourceNotFound("Page not found")

        credential.cache_page_token(page_id, page["access_token"])
        return page["access_token"]

    async def execute(self, session: SessionState, page_id: str, message: str | None = None) -> LastResult:
        credential = _require_facebook_credential(session)
        page_token = await self._resolve_page_token(credential, page_id)

        result = await self.graph.publish_page_post(page_id, page_token, message or DEFAULT_POST_MESSAGE)
        if not result.ok:
            raise UpstreamActionFailed(f"Page post failed: {result.error or 'unknown error'}")

        logger.info("Published post to page_id=%s", page_id)
        return session.record("Facebook: Page Post Result", payload=result.data)
