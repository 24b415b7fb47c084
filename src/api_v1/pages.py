"""HTML pages: home with connection status, last-result viewer and session logout."""

import json
from pathlib import Path
from typing import Annotated

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates

from src.core.config import Settings, get_settings
from src.core.dependencies import get_session_state
from src.core.models.session_state import SessionState

router = APIRouter(tags=["pages"])

templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent.parent / "templates"))

NO_RESULT_TITLE = "No result"


@router.get("/", response_class=HTMLResponse)
async def home(
    request: Request,
    session: Annotated[SessionState, Depends(get_session_state)],
    settings: Annotated[Settings, Depends(get_settings)],
):
    return templates.TemplateResponse(
        request,
        "index.html",
        {
            "app_name": settings.app_name,
            "fb": session.credentials.get("fb"),
            "ig": session.credentials.get("ig"),
            "tt": session.credentials.get("tt"),
        },
    )


@router.get("/result", response_class=HTMLResponse)
async def show_result(
    request: Request,
    session: Annotated[SessionState, Depends(get_session_state)],
):
    """Render the LastResult of this session, or an empty placeholder."""
    last = session.last_result
    title = last.title if last else NO_RESULT_TITLE
    payload = last.payload if last and last.payload is not None else {}
    error = last.error if last else None
    return templates.TemplateResponse(
        request,
        "result.html",
        {
            "title": title,
            "payload_json": json.dumps(payload, indent=2, default=str),
            "error": error,
        },
    )


@router.get("/logout", response_class=RedirectResponse)
async def end_session(request: Request) -> RedirectResponse:
    """Drop the whole session; the middleware deletes it and clears the cookie."""
    request.state.discard_session = True
    return RedirectResponse("/", status_code=status.HTTP_302_FOUND)
