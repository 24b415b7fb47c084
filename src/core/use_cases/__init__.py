"""Use cases for authenticated provider actions."""

from src.core.use_cases.facebook_page_use_cases import (
    FetchPageTokenUseCase,
    PublishPagePostUseCase,
)
from src.core.use_cases.instagram_post_use_case import PublishInstagramPostUseCase
from src.core.use_cases.tiktok_profile_use_case import FetchTikTokProfileUseCase

__all__ = [
    "FetchPageTokenUseCase",
    "PublishPagePostUseCase",
    "PublishInstagramPostUseCase",
    "FetchTikTokProfileUseCase",
]
