"""Use case for reading the connected TikTok profile."""

import logging

from src.core.errors import NotAuthenticated, UpstreamActionFailed
from src.core.models.session_state import LastResult, SessionState
from src.core.services.tiktok_api_service import TikTokAPIService

logger = logging.getLogger(__name__)

PROVIDER_KEY = "tt"


class FetchTikTokProfileUseCase:
    def __init__(self, tiktok: TikTokAPIService):
        self.tiktok = tiktok

    async def execute(self, session: SessionState) -> LastResult:
        credential = session.credentials.get(PROVIDER_KEY)
        if credential is None or not credential.access_token:
            raise NotAuthenticated("Login with TikTok first.")

        result = await self.tiktok.get_profile(credential.access_token)
        if not result.ok:
            raise UpstreamActionFailed(
                f"Failed to fetch TikTok profile: {result.error or 'unknown error'}"
            )
        return session.record("TikTok: User Profile", payload=result.data)
