"""TikTok Open API calls."""

import logging

import httpx

from src.core.services.upstream import UpstreamResult, request_json

logger = logging.getLogger(__name__)

TIKTOK_AUTHORIZE_URL = "https://www.tiktok.com/v2/auth/authorize/"
TIKTOK_TOKEN_URL = "https://open.tiktokapis.com/v2/oauth/token/"
TIKTOK_PROFILE_URL = "https://open.tiktokapis.com/v2/user/info/"
PROFILE_FIELDS = "open_id,union_id,avatar_url,display_name"


class TikTokAPIService:
    """Profile lookup against the TikTok v2 API."""

    def __init__(self, client: httpx.AsyncClient):
        self.client = client

    async def get_profile(self, access_token: str) -> UpstreamResult:
        result = await request_json(
            self.client,
            "GET",
            TIKTOK_PROFILE_URL,
            params={"fields": PROFILE_FIELDS},
            headers={"Authorization": f"Bearer {access_token}"},
        )
        # TikTok answers 200 with a non-"ok" error code on some failures
        error = result.json_dict().get("error")
        if result.ok and isinstance(error, dict) and error.get("code") not in (None, "ok"):
            logger.warning("TikTok profile lookup returned error code %s", error.get("code"))
            return UpstreamResult(
                ok=False,
                status_code=result.status_code,
                data=result.data,
                error=error.get("message") or str(error.get("code")),
                headers=result.headers,
            )
        return result
