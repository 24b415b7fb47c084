"""Use case for publishing an image to an Instagram Business account."""

import logging
from typing import Optional

from src.core.errors import NotAuthenticated, UpstreamActionFailed
from src.core.models.session_state import LastResult, SessionState
from src.core.services.graph_api_service import GraphAPIService

logger = logging.getLogger(__name__)

PROVIDER_KEY = "ig"
DEFAULT_CAPTION = "Test post from OAuth demo"


class PublishInstagramPostUseCase:
    """
    Two-step Instagram publishing.

    1. Create a media container for the image
    2. Publish the container
    """

    def __init__(self, graph: GraphAPIService):
        self.graph = graph

    async def execute(
        self,
        session: SessionState,
        ig_user_id: str,
        *,
        image_url: Optional[str],
        caption: Optional[str] = None,
    ) -> LastResult:
        credential = session.credentials.get(PROVIDER_KEY)
        if credential is None or not credential.user_access_token:
            raise NotAuthenticated("Login with Instagram first")
        token = credential.user_access_token

        container = await self.graph.create_media_container(
            ig_user_id,
            token,
            image_url=image_url,
            caption=caption or DEFAULT_CAPTION,
        )
        if not container.ok:
            raise UpstreamActionFailed(f"Instagram post failed: {container.error or 'unknown error'}")

        creation_id = container.json_dict().get("id")
        if not creation_id:
            raise UpstreamActionFailed("Instagram post failed: no media container id returned")

        published = await self.graph.publish_media(ig_user_id, token, str(creation_id))
        if not published.ok:
            raise UpstreamActionFailed(f"Instagram post failed: {published.error or 'unknown error'}")

        logger.info("Published Instagram media for ig_user_id=%s", ig_user_id)
        return session.record("Instagram: Post Result", payload=published.data)
