"""Meta Graph API calls used by the Facebook and Instagram flows."""

import logging
from typing import Optional

import httpx

from src.core.services.upstream import UpstreamResult, request_json

logger = logging.getLogger(__name__)


class GraphAPIService:
    """
    Thin wrapper over the Facebook Graph API.

    Every method returns an :class:`UpstreamResult`; callers decide how a
    failure maps onto the error taxonomy.
    """

    def __init__(self, client: httpx.AsyncClient, graph_url: str):
        """
        Args:
            client: Shared async HTTP client for the current request
            graph_url: Versioned Graph base, e.g. https://graph.facebook.com/v21.0
        """
        self.client = client
        self.graph_url = graph_url.rstrip("/")

    def _url(self, path: str) -> str:
        return f"{self.graph_url}/{path.lstrip('/')}"

    async def list_pages(self, user_token: str, fields: Optional[str] = None) -> UpstreamResult:
        """List the Pages the user manages (``/me/accounts``)."""
        params = {"access_token": user_token}
        if fields:
            params["fields"] = fields
        return await request_json(self.client, "GET", self._url("me/accounts"), params=params)

    async def get_page_instagram_account(self, page_id: str, user_token: str) -> UpstreamResult:
        """Resolve the Instagram Business account linked to a Page."""
        return await request_json(
            self.client,
            "GET",
            self._url(page_id),
            params={
                "fields": "name,instagram_business_account{id,username}",
                "access_token": user_token,
            },
        )

    async def publish_page_post(self, page_id: str, page_token: str, message: str) -> UpstreamResult:
        return await request_json(
            self.client,
            "POST",
            self._url(f"{page_id}/feed"),
            data={"message": message},
            params={"access_token": page_token},
        )

    async def create_media_container(
        self,
        ig_user_id: str,
        user_token: str,
        *,
        image_url: Optional[str],
        caption: str,
    ) -> UpstreamResult:
        data = {"caption": caption}
        if image_url:
            data["image_url"] = image_url
        return await request_json(
            self.client,
            "POST",
            self._url(f"{ig_user_id}/media"),
            data=data,
            params={"access_token": user_token},
        )

    async def publish_media(self, ig_user_id: str, user_token: str, creation_id: str) -> UpstreamResult:
        return await request_json(
            self.client,
            "POST",
            self._url(f"{ig_user_id}/media_publish"),
            data={"creation_id": creation_id},
            params={"access_token": user_token},
        )


def find_page(listing: dict, page_id: str) -> Optional[dict]:
    """Pick a page out of a ``/me/accounts`` response."""
    for page in listing.get("data") or []:
        if str(page.get("id")) == str(page_id):
            return page
    return None
