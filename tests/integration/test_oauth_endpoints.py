from urllib.parse import parse_qs

import httpx
import pytest

from src.core.services.pkce import derive_code_challenge

GRAPH = "https://graph.facebook.com/v21.0"
TIKTOK_TOKEN_URL = "https://open.tiktokapis.com/v2/oauth/token/"


async def _start(client, provider: str) -> httpx.URL:
    response = await client.get(f"/auth/{provider}")
    assert response.status_code == 302
    return httpx.URL(response.headers["location"])


@pytest.mark.asyncio
@pytest.mark.integration
async def test_facebook_happy_path(client, upstream, read_session):
    listing = {"data": [{"id": "P1", "name": "My Page", "access_token": "PT1"}]}
    upstream.add("GET", f"{GRAPH}/oauth/access_token", json={"access_token": "T1", "expires_in": 5183944})
    upstream.add("GET", f"{GRAPH}/me/accounts", json=listing)

    auth_url = await _start(client, "facebook")
    assert str(auth_url).startswith("https://www.facebook.com/v21.0/dialog/oauth?")
    assert auth_url.params["client_id"] == "fb-app-id"
    assert auth_url.params["redirect_uri"] == "http://testserver/callback/facebook"
    assert "pages_show_list" in auth_url.params["scope"].split(",")

    response = await client.get(
        "/callback/facebook", params={"code": "CODE1", "state": auth_url.params["state"]}
    )
    assert response.status_code == 302
    assert response.headers["location"] == "/result"

    session = await read_session()
    assert session.last_result.title == "Facebook: Your Pages"
    assert session.last_result.payload == listing
    assert session.credentials["fb"].user_access_token == "T1"
    assert "fb" not in session.pending

    (exchange,) = upstream.calls_to("GET", f"{GRAPH}/oauth/access_token")
    assert exchange.url.params["code"] == "CODE1"
    assert exchange.url.params["client_secret"] == "fb-app-secret"

    page = await client.get("/result")
    assert page.status_code == 200
    assert "Facebook: Your Pages" in page.text
    assert "My Page" in page.text


@pytest.mark.asyncio
@pytest.mark.integration
async def test_facebook_state_mismatch_never_exchanges(client, upstream, read_session):
    auth_url = await _start(client, "facebook")

    response = await client.get("/callback/facebook", params={"code": "CODE1", "state": "forged"})
    assert response.status_code == 302

    session = await read_session()
    assert session.last_result.title == "Facebook OAuth Error"
    assert session.last_result.error == "Invalid or missing state parameter."
    assert "fb" not in session.credentials
    assert session.pending["fb"].state == auth_url.params["state"]
    assert upstream.requests == []


@pytest.mark.asyncio
@pytest.mark.integration
async def test_callback_without_started_flow(client, upstream, read_session):
    response = await client.get("/callback/instagram", params={"code": "CODE1", "state": "whatever"})
    assert response.status_code == 302

    session = await read_session()
    assert session.last_result.title == "Instagram OAuth Error"
    assert upstream.requests == []


@pytest.mark.asyncio
@pytest.mark.integration
async def test_denied_consent_reports_provider_error(client, upstream, read_session):
    auth_url = await _start(client, "facebook")

    await client.get(
        "/callback/facebook",
        params={
            "state": auth_url.params["state"],
            "error": "access_denied",
            "error_description": "Permissions error",
        },
    )

    session = await read_session()
    assert "access_denied" in session.last_result.error
    assert upstream.requests == []


@pytest.mark.asyncio
@pytest.mark.integration
async def test_facebook_page_listing_failure_keeps_credential(client, upstream, read_session):
    upstream.add("GET", f"{GRAPH}/oauth/access_token", json={"access_token": "T1"})
    upstream.add("GET", f"{GRAPH}/me/accounts", status_code=400, json={"error": {"message": "Missing permission"}})

    auth_url = await _start(client, "facebook")
    await client.get("/callback/facebook", params={"code": "C", "state": auth_url.params["state"]})

    session = await read_session()
    assert session.last_result.title == "Facebook OAuth Error"
    assert session.last_result.error == "Missing permission"
    assert session.credentials["fb"].user_access_token == "T1"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_token_exchange_error_is_rendered_not_raised(client, upstream, read_session):
    upstream.add(
        "GET",
        f"{GRAPH}/oauth/access_token",
        status_code=400,
        json={"error": {"message": "This authorization code has expired."}},
    )

    auth_url = await _start(client, "instagram")
    response = await client.get("/callback/instagram", params={"code": "C", "state": auth_url.params["state"]})
    assert response.status_code == 302

    page = await client.get("/result")
    assert "Instagram OAuth Error" in page.text
    assert "This authorization code has expired." in page.text
    session = await read_session()
    assert "ig" not in session.credentials


@pytest.mark.asyncio
@pytest.mark.integration
async def test_instagram_callback_lists_linked_accounts(client, upstream, read_session):
    upstream.add("GET", f"{GRAPH}/oauth/access_token", json={"access_token": "IGT"})
    upstream.add("GET", f"{GRAPH}/me/accounts", json={"data": [{"id": "P1", "name": "One"}]})
    upstream.add(
        "GET",
        f"{GRAPH}/P1",
        json={"id": "P1", "name": "One", "instagram_business_account": {"id": "IG1", "username": "one"}},
    )

    auth_url = await _start(client, "instagram")
    await client.get("/callback/instagram", params={"code": "C", "state": auth_url.params["state"]})

    session = await read_session()
    assert session.last_result.title == "Instagram: Linked IG Business Accounts"
    assert session.last_result.payload[0]["instagram_business_account"]["id"] == "IG1"
    assert session.credentials["ig"].user_access_token == "IGT"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_tiktok_redirect_keeps_verifier_server_side(client, read_session):
    auth_url = await _start(client, "tiktok")

    session = await read_session()
    pending = session.pending["tt"]
    assert auth_url.host == "www.tiktok.com"
    assert auth_url.params["client_key"] == "tt-client-key"
    assert auth_url.params["scope"] == "user.info.basic,video.upload,video.publish"
    assert auth_url.params["code_challenge_method"] == "S256"
    assert auth_url.params["code_challenge"] == derive_code_challenge(pending.code_verifier)
    assert pending.code_verifier not in str(auth_url)


@pytest.mark.asyncio
@pytest.mark.integration
async def test_tiktok_lost_verifier_never_exchanges(client, upstream, read_session, session_store):
    auth_url = await _start(client, "tiktok")
    session = await read_session()
    session.pending["tt"].code_verifier = None
    await session_store.save(session)

    await client.get("/callback/tiktok", params={"code": "C", "state": auth_url.params["state"]})

    session = await read_session()
    assert session.last_result.title == "TikTok OAuth Error"
    assert session.last_result.error == "Missing PKCE code_verifier in session."
    assert "tt" not in session.credentials
    assert upstream.requests == []


@pytest.mark.asyncio
@pytest.mark.integration
async def test_tiktok_callback_alias_exchanges_with_verifier(client, upstream, read_session):
    upstream.add(
        "POST",
        TIKTOK_TOKEN_URL,
        json={
            "access_token": "TT1",
            "refresh_token": "RT1",
            "expires_in": 86400,
            "open_id": "open-1",
            "scope": "user.info.basic",
        },
        headers={"x-tt-logid": "log-1"},
    )

    auth_url = await _start(client, "tiktok")
    verifier = (await read_session()).pending["tt"].code_verifier

    response = await client.get(
        "/auth/tiktok/callback", params={"code": "C", "state": auth_url.params["state"]}
    )
    assert response.status_code == 302

    (exchange,) = upstream.calls_to("POST", TIKTOK_TOKEN_URL)
    form = parse_qs(exchange.content.decode())
    assert form["code_verifier"] == [verifier]
    assert form["grant_type"] == ["authorization_code"]
    assert form["client_key"] == ["tt-client-key"]

    session = await read_session()
    assert session.last_result.title == "TikTok: Access Token"
    assert session.last_result.payload["open_id"] == "open-1"
    assert session.credentials["tt"].access_token == "TT1"
    assert session.credentials["tt"].refresh_token == "RT1"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_unknown_provider_is_404(client):
    assert (await client.get("/auth/myspace")).status_code == 404
    assert (await client.get("/callback/myspace", params={"code": "c"})).status_code == 404
    assert (await client.get("/logout/myspace")).status_code == 404


@pytest.mark.asyncio
@pytest.mark.integration
async def test_unexpected_callback_error_is_generic(client, upstream, read_session):
    def explode(request: httpx.Request) -> httpx.Response:
        raise RuntimeError("kaboom")

    upstream.add("GET", f"{GRAPH}/oauth/access_token", handler=explode)

    auth_url = await _start(client, "facebook")
    response = await client.get("/callback/facebook", params={"code": "C", "state": auth_url.params["state"]})
    assert response.status_code == 302

    session = await read_session()
    assert session.last_result.error == "Facebook OAuth failed."
    assert "kaboom" not in (await client.get("/result")).text
