"""Typed results for outbound provider calls."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx

logger = logging.getLogger(__name__)


@dataclass
class UpstreamResult:
    ok: bool
    status_code: Optional[int] = None
    data: Any = None
    error: Optional[str] = None
    headers: dict[str, str] = field(default_factory=dict)

    def json_dict(self) -> dict:
        return self.data if isinstance(self.data, dict) else {}


def extract_error_message(body: Any) -> Optional[str]:
    """
    Map provider error bodies to a single message.

    Meta Graph API: ``{"error": {"message": ...}}``.
    TikTok OAuth: ``{"error": "...", "error_description": ...}``.
    TikTok Open API: ``{"error": {"code": ..., "message": ...}}`` or ``{"message": ...}``.
    """
    if not isinstance(body, dict):
        return None
    error = body.get("error")
    if isinstance(error, dict):
        message = error.get("message")
        if message:
            return str(message)
    description = body.get("error_description")
    if description:
        return str(description)
    message = body.get("message")
    if message:
        return str(message)
    if isinstance(error, str) and error:
        return error
    return None


def _parse_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return {"raw": response.text[:500]}


async def request_json(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    **kwargs: Any,
) -> UpstreamResult:
    """Issue one request, never raising for HTTP or transport errors."""
    try:
        response = await client.request(method, url, **kwargs)
    except httpx.HTTPError as exc:
        logger.error("Upstream %s %s failed: %s", method, url, exc)
        return UpstreamResult(ok=False, error=str(exc) or exc.__class__.__name__)

    body = _parse_body(response)
    headers = dict(response.headers)
    if response.is_success:
        return UpstreamResult(ok=True, status_code=response.status_code, data=body, headers=headers)

    message = extract_error_message(body)
    logger.warning(
        "Upstream %s %s rejected: status=%s error=%s",
        method,
        url,
        response.status_code,
        message,
    )
    return UpstreamResult(
        ok=False,
        status_code=response.status_code,
        data=body,
        error=message,
        headers=headers,
    )
