"""
Pytest configuration and helpers for the OAuth broker test-suite.

Provider credentials are fixed through the environment before the app is
imported. Every test gets a fresh in-memory session store, and outbound HTTP
goes through ``httpx.MockTransport`` so tests can both stub provider answers
and assert which calls were (or were not) made.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Any, AsyncGenerator, Callable, Generator, Optional

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# ---------------------------------------------------------------------------
# Environment bootstrap
# ---------------------------------------------------------------------------

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ["FB_APP_ID"] = "fb-app-id"
os.environ["FB_APP_SECRET"] = "fb-app-secret"
os.environ["FB_REDIRECT_URI"] = "http://testserver/callback/facebook"
os.environ["IG_APP_ID"] = "ig-app-id"
os.environ["IG_APP_SECRET"] = "ig-app-secret"
os.environ["IG_REDIRECT_URI"] = "http://testserver/callback/instagram"
os.environ["TT_CLIENT_KEY"] = "tt-client-key"
os.environ["TT_CLIENT_SECRET"] = "tt-client-secret"
os.environ["TT_REDIRECT_URI"] = "http://testserver/auth/tiktok/callback"
os.environ["TT_SCOPES"] = "user.info.basic,video.upload,video.publish"
os.environ["TT_CALLBACK_PATH"] = "/auth/tiktok/callback"
os.environ["META_GRAPH_VERSION"] = "v21.0"
os.environ["SESSION_BACKEND"] = "memory"
os.environ["SESSION_COOKIE_NAME"] = "session_id"
os.environ["HOST"] = "0.0.0.0"
os.environ["PORT"] = "3100"
os.environ["LOG_LEVEL"] = "DEBUG"
os.environ["REDIS_URL"] = ""

from src.core.config import get_settings  # noqa: E402

get_settings.cache_clear()

from src.core.dependencies import get_http_client  # noqa: E402
from src.core.models.session_state import Credential, SessionState  # noqa: E402
from src.core.services.session_store import InMemorySessionStore  # noqa: E402
from src.main import app  # noqa: E402

GRAPH = "https://graph.facebook.com/v21.0"
TIKTOK_API = "https://open.tiktokapis.com/v2"
COOKIE_NAME = "session_id"


# ---------------------------------------------------------------------------
# Upstream spy
# ---------------------------------------------------------------------------


class UpstreamRecorder:
    """
    MockTransport handler that answers stubbed provider routes and records calls.

    Routes are keyed by method and URL without the query string. Unstubbed
    routes answer 404 with a Graph-style error body.
    """

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], Callable[[httpx.Request], httpx.Response]] = {}
        self.requests: list[httpx.Request] = []

    def add(
        self,
        method: str,
        url: str,
        *,
        json: Any = None,
        status_code: int = 200,
        headers: Optional[dict[str, str]] = None,
        handler: Optional[Callable[[httpx.Request], httpx.Response]] = None,
    ) -> None:
        if handler is None:
            def handler(request: httpx.Request) -> httpx.Response:
                return httpx.Response(status_code, json=json if json is not None else {}, headers=headers)

        self.routes[(method.upper(), url)] = handler

    def calls_to(self, method: str, url: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method.upper() and _base_url(r) == url]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self.routes.get((request.method, _base_url(request)))
        if handler is None:
            return httpx.Response(404, json={"error": {"message": f"unmocked {request.method} {_base_url(request)}"}})
        return handler(request)


def _base_url(request: httpx.Request) -> str:
    return f"{request.url.scheme}://{request.url.host}{request.url.path}"


# ---------------------------------------------------------------------------
# Dependency overrides
# ---------------------------------------------------------------------------


@pytest.fixture
def upstream() -> UpstreamRecorder:
    return UpstreamRecorder()


@pytest.fixture
def session_store() -> InMemorySessionStore:
    store = InMemorySessionStore()
    app.state.session_store = store
    return store


@pytest.fixture(autouse=True)
def override_dependencies(upstream: UpstreamRecorder, session_store: InMemorySessionStore) -> Generator[None, None, None]:
    """Route outbound HTTP through the recorder and isolate session state."""

    async def _get_http_client_override() -> AsyncGenerator[httpx.AsyncClient, None]:
        async with httpx.AsyncClient(transport=httpx.MockTransport(upstream)) as http:
            yield http

    app.dependency_overrides[get_http_client] = _get_http_client_override

    try:
        yield
    finally:
        app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# HTTP client
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    """HTTPX client configured for the ASGI app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as http:
        yield http


# ---------------------------------------------------------------------------
# Session helpers
# ---------------------------------------------------------------------------


async def current_session(client: AsyncClient, store: InMemorySessionStore) -> Optional[SessionState]:
    session_id = client.cookies.get(COOKIE_NAME)
    if not session_id:
        return None
    return await store.load(session_id)


@pytest.fixture
def read_session(client: AsyncClient, session_store: InMemorySessionStore):
    """Load the SessionState bound to ``client``'s session cookie."""

    async def _read() -> Optional[SessionState]:
        return await current_session(client, session_store)

    return _read


@pytest.fixture
def login_as(client: AsyncClient, session_store: InMemorySessionStore):
    """Open a session for ``client`` and attach credentials to it directly."""

    async def _login(**credentials: Credential) -> SessionState:
        response = await client.get("/result")
        assert response.status_code == 200
        state = await current_session(client, session_store)
        assert state is not None
        state.credentials.update(credentials)
        await session_store.save(state)
        return state

    return _login
