"""Environment configuration for the Social OAuth Broker."""

from __future__ import annotations

import os
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator

load_dotenv()

DEFAULT_TIKTOK_SCOPES = "user.info.basic,video.upload,video.publish"


def _bool_env(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _int_env(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _float_env(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _str_env(name: str, default: str = "") -> str:
    return (os.getenv(name, default) or "").strip()


def parse_scopes(raw: Optional[str]) -> list[str]:
    """Split a comma/space separated scope string, keeping order and dropping duplicates."""
    if not raw:
        return []
    parts = [part.strip() for part in raw.replace(",", " ").split() if part.strip()]
    seen: set[str] = set()
    deduped: list[str] = []
    for scope in parts:
        if scope not in seen:
            seen.add(scope)
            deduped.append(scope)
    return deduped


class AppSettings(BaseModel):
    name: str = Field(
        default_factory=lambda: _str_env("APP_NAME", "Social OAuth Broker")
        or "Social OAuth Broker"
    )
    version: str = Field(default_factory=lambda: _str_env("APP_VERSION", "0.1.0") or "0.1.0")
    debug: bool = Field(default_factory=lambda: _bool_env("DEBUG", False))
    log_level: str = Field(default_factory=lambda: _str_env("LOG_LEVEL", "INFO").upper())

    @model_validator(mode="after")
    def _validate(self) -> "AppSettings":
        if self.log_level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(
                "LOG_LEVEL must be one of DEBUG, INFO, WARNING, ERROR, CRITICAL"
            )
        return self


class ServerSettings(BaseModel):
    host: str = Field(default_factory=lambda: _str_env("HOST", "0.0.0.0") or "0.0.0.0")
    port: int = Field(default_factory=lambda: _int_env("PORT", 3000))


class FacebookSettings(BaseModel):
    app_id: str = Field(default_factory=lambda: _str_env("FB_APP_ID"))
    app_secret: str = Field(default_factory=lambda: _str_env("FB_APP_SECRET"))
    redirect_uri: str = Field(default_factory=lambda: _str_env("FB_REDIRECT_URI"))


class InstagramSettings(BaseModel):
    app_id: str = Field(default_factory=lambda: _str_env("IG_APP_ID"))
    app_secret: str = Field(default_factory=lambda: _str_env("IG_APP_SECRET"))
    redirect_uri: str = Field(default_factory=lambda: _str_env("IG_REDIRECT_URI"))


class TikTokSettings(BaseModel):
    client_key: str = Field(default_factory=lambda: _str_env("TT_CLIENT_KEY"))
    client_secret: str = Field(default_factory=lambda: _str_env("TT_CLIENT_SECRET"))
    redirect_uri: str = Field(default_factory=lambda: _str_env("TT_REDIRECT_URI"))
    scopes: list[str] = Field(
        default_factory=lambda: parse_scopes(
            _str_env("TT_SCOPES", DEFAULT_TIKTOK_SCOPES) or DEFAULT_TIKTOK_SCOPES
        )
    )
    callback_path: str = Field(
        default_factory=lambda: _str_env("TT_CALLBACK_PATH", "/auth/tiktok/callback")
    )

    @model_validator(mode="after")
    def _validate(self) -> "TikTokSettings":
        if not self.scopes:
            self.scopes = parse_scopes(DEFAULT_TIKTOK_SCOPES)
        if self.callback_path and not self.callback_path.startswith("/"):
            self.callback_path = f"/{self.callback_path}"
        return self


class MetaSettings(BaseModel):
    graph_version: str = Field(
        default_factory=lambda: _str_env("META_GRAPH_VERSION", "v21.0") or "v21.0"
    )
    auth_base_url: str = Field(
        default_factory=lambda: _str_env("META_AUTH_BASE_URL", "https://www.facebook.com")
        or "https://www.facebook.com"
    )
    graph_base_url: str = Field(
        default_factory=lambda: _str_env("META_GRAPH_BASE_URL", "https://graph.facebook.com")
        or "https://graph.facebook.com"
    )


class SessionSettings(BaseModel):
    cookie_name: str = Field(
        default_factory=lambda: _str_env("SESSION_COOKIE_NAME", "session_id") or "session_id"
    )
    max_age: int = Field(default_factory=lambda: _int_env("SESSION_MAX_AGE", 60 * 60 * 4))
    cookie_secure: bool = Field(default_factory=lambda: _bool_env("SESSION_COOKIE_SECURE", False))
    backend: str = Field(
        default_factory=lambda: _str_env("SESSION_BACKEND", "memory").lower() or "memory"
    )
    redis_url: Optional[str] = Field(default_factory=lambda: _str_env("REDIS_URL") or None)
    encryption_key: Optional[str] = Field(
        default_factory=lambda: _str_env("SESSION_ENCRYPTION_KEY") or None
    )

    @model_validator(mode="after")
    def _validate(self) -> "SessionSettings":
        if self.backend not in {"memory", "redis"}:
            raise ValueError("SESSION_BACKEND must be one of memory, redis")
        if self.backend == "redis" and not self.redis_url:
            raise ValueError("REDIS_URL environment variable must be set for the redis session backend.")
        return self


class HTTPSettings(BaseModel):
    timeout: float = Field(default_factory=lambda: _float_env("HTTP_TIMEOUT", 20.0))


class Settings(BaseModel):
    app: AppSettings = Field(default_factory=AppSettings)
    server: ServerSettings = Field(default_factory=ServerSettings)
    facebook: FacebookSettings = Field(default_factory=FacebookSettings)
    instagram: InstagramSettings = Field(default_factory=InstagramSettings)
    tiktok: TikTokSettings = Field(default_factory=TikTokSettings)
    meta: MetaSettings = Field(default_factory=MetaSettings)
    session: SessionSettings = Field(default_factory=SessionSettings)
    http: HTTPSettings = Field(default_factory=HTTPSettings)

    model_config = dict(extra="ignore")

    # Compatibility helpers -------------------------------------------------
    @property
    def app_name(self) -> str:
        return self.app.name

    @property
    def app_version(self) -> str:
        return self.app.version

    @property
    def debug(self) -> bool:
        return self.app.debug

    @property
    def log_level(self) -> str:
        return self.app.log_level

    @property
    def host(self) -> str:
        return self.server.host

    @property
    def port(self) -> int:
        return self.server.port

    @property
    def graph_url(self) -> str:
        return f"{self.meta.graph_base_url.rstrip('/')}/{self.meta.graph_version}"

    def missing_credentials(self) -> list[str]:
        """Names of provider credential variables that are not configured."""
        required = {
            "FB_APP_ID": self.facebook.app_id,
            "FB_APP_SECRET": self.facebook.app_secret,
            "FB_REDIRECT_URI": self.facebook.redirect_uri,
            "IG_APP_ID": self.instagram.app_id,
            "IG_APP_SECRET": self.instagram.app_secret,
            "IG_REDIRECT_URI": self.instagram.redirect_uri,
            "TT_CLIENT_KEY": self.tiktok.client_key,
            "TT_CLIENT_SECRET": self.tiktok.client_secret,
            "TT_REDIRECT_URI": self.tiktok.redirect_uri,
        }
        return [name for name, value in required.items() if not value]


@lru_cache
def get_settings() -> Settings:
    return Settings()
