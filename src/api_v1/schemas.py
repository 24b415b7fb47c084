"""Request bodies accepted by the action endpoints."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class PagePostRequest(BaseModel):
    """Body of ``POST /facebook/page-post/{page_id}``."""

    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    message: Optional[str] = Field(None, max_length=63206, description="Text of the Page post")

    @field_validator("message")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        return v or None


class InstagramPostRequest(BaseModel):
    """Body of ``POST /instagram/post/{ig_user_id}``; accepts ``imageUrl`` or ``image_url``."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True, extra="ignore")

    image_url: Optional[str] = Field(None, alias="imageUrl", description="Public URL of the image")
    caption: Optional[str] = Field(None, max_length=2200, description="Post caption")

    @field_validator("image_url", "caption")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        return v or None
