"""Authenticated provider actions (Page token, Page post, IG post, TikTok profile)."""

import json
import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import RedirectResponse
from pydantic import ValidationError

from src.api_v1.oauth import RESULT_PATH
from src.api_v1.schemas import InstagramPostRequest, PagePostRequest
from src.core.dependencies import (
    get_fetch_page_token_use_case,
    get_fetch_tiktok_profile_use_case,
    get_publish_instagram_post_use_case,
    get_publish_page_post_use_case,
    get_session_state,
)
from src.core.models.session_state import SessionState
from src.core.use_cases import (
    FetchPageTokenUseCase,
    FetchTikTokProfileUseCase,
    PublishInstagramPostUseCase,
    PublishPagePostUseCase,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["actions"])


async def read_body(request: Request) -> dict[str, Any]:
    """
    Read a JSON or form-encoded body into a plain dict.

    An empty body yields ``{}`` so every field falls back to its default.
    """
    content_type = request.headers.get("content-type", "").lower()
    if content_type.startswith("application/json"):
        raw = await request.body()
        if not raw.strip():
            return {}
        try:
            body = json.loads(raw)
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Malformed JSON body") from exc
        if not isinstance(body, dict):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="JSON body must be an object")
        return body

    if content_type.startswith(("application/x-www-form-urlencoded", "multipart/form-data")):
        form = await request.form()
        return {key: value for key, value in form.items() if isinstance(value, str)}

    return {}


def _parse(model, body: dict[str, Any]):
    try:
        return model.model_validate(body)
    except ValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=exc.errors(include_url=False, include_context=False),
        ) from exc


def _to_result() -> RedirectResponse:
    return RedirectResponse(RESULT_PATH, status_code=status.HTTP_302_FOUND)


@router.get("/facebook/page-token/{page_id}", response_class=RedirectResponse)
async def fetch_page_token(
    page_id: str,
    session: Annotated[SessionState, Depends(get_session_state)],
    use_case: Annotated[FetchPageTokenUseCase, Depends(get_fetch_page_token_use_case)],
) -> RedirectResponse:
    """Derive and cache the page-scoped token for ``page_id``."""
    await use_case.execute(session, page_id)
    return _to_result()


@router.post("/facebook/page-post/{page_id}", response_class=RedirectResponse)
async def publish_page_post(
    page_id: str,
    session: Annotated[SessionState, Depends(get_session_state)],
    body: Annotated[dict[str, Any], Depends(read_body)],
    use_case: Annotated[PublishPagePostUseCase, Depends(get_publish_page_post_use_case)],
) -> RedirectResponse:
    """Publish a text post to a managed Page."""
    payload = _parse(PagePostRequest, body)
    await use_case.execute(session, page_id, payload.message)
    return _to_result()


@router.post("/instagram/post/{ig_user_id}", response_class=RedirectResponse)
async def publish_instagram_post(
    ig_user_id: str,
    session: Annotated[SessionState, Depends(get_session_state)],
    body: Annotated[dict[str, Any], Depends(read_body)],
    use_case: Annotated[PublishInstagramPostUseCase, Depends(get_publish_instagram_post_use_case)],
) -> RedirectResponse:
    """Create and publish an image post on an Instagram Business account."""
    payload = _parse(InstagramPostRequest, body)
    await use_case.execute(
        session,
        ig_user_id,
        image_url=payload.image_url,
        caption=payload.caption,
    )
    return _to_result()


@router.get("/tiktok/profile", response_class=RedirectResponse)
async def fetch_tiktok_profile(
    session: Annotated[SessionState, Depends(get_session_state)],
    use_case: Annotated[FetchTikTokProfileUseCase, Depends(get_fetch_tiktok_profile_use_case)],
) -> RedirectResponse:
    await use_case.execute(session)
    return _to_result()
