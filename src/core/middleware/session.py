"""Middleware binding a server-side SessionState to an HTTP-only cookie."""

import logging
import uuid

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from src.core.dependencies import get_session_store
from src.core.models.session_state import SessionState
from src.core.services.session_store import SessionStore

logger = logging.getLogger(__name__)


class SessionMiddleware(BaseHTTPMiddleware):
    """
    Load the caller's SessionState before the handler runs and persist it after.

    The cookie only carries an opaque id. Unknown or expired ids are replaced by
    a fresh one rather than adopted. Handlers that set
    ``request.state.discard_session`` get the session deleted and the cookie
    cleared instead of saved.
    """

    def __init__(
        self,
        app,
        cookie_name: str = "session_id",
        max_age: int = 60 * 60 * 4,
        secure: bool = False,
        exempt_paths: tuple[str, ...] = ("/health", "/favicon.ico"),
    ):
        """
        Args:
            app: ASGI app
            cookie_name: Name of the session cookie
            max_age: Cookie lifetime in seconds
            secure: Set the Secure flag (enable behind HTTPS)
            exempt_paths: Paths served without a session
        """
        super().__init__(app)
        self.cookie_name = cookie_name
        self.max_age = max_age
        self.secure = secure
        self.exempt_paths = exempt_paths

    async def dispatch(self, request: Request, call_next) -> Response:
        if request.url.path in self.exempt_paths:
            return await call_next(request)

        store: SessionStore = get_session_store(request)
        session_id = request.cookies.get(self.cookie_name)
        state = await store.load(session_id) if session_id else None
        if state is None:
            state = SessionState(session_id=str(uuid.uuid4()))
            logger.debug("Issued new session")

        request.state.session = state
        request.state.discard_session = False

        response = await call_next(request)

        if getattr(request.state, "discard_session", False):
            await store.delete(state.session_id)
            response.delete_cookie(self.cookie_name, path="/")
            return response

        await store.save(state)
        response.set_cookie(
            self.cookie_name,
            state.session_id,
            max_age=self.max_age,
            httponly=True,
            secure=self.secure,
            samesite="lax",
            path="/",
        )
        return response
