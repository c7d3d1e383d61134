from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model dumping camelCase keys, accepting either spelling on input."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_json_dict(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class WXRAuthor(CamelModel):
    login: str
    email: str = ""
    display_name: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None


class WXRPost(CamelModel):
    id: int
    title: str = ""
    slug: str = ""
    link: str = ""
    content: str = ""
    excerpt: str = ""
    status: str = "publish"
    type: str = "post"
    author_login: str = ""
    pub_date: Optional[str] = None
    post_date: Optional[str] = None
    post_date_gmt: Optional[str] = None
    parent_id: Optional[int] = None
    menu_order: Optional[int] = None
    attachment_url: Optional[str] = None
    categories: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)

    @field_validator("parent_id", "menu_order", mode="before")
    @classmethod
    def _zero_is_missing(cls, v: Optional[int]):
        # WordPress writes 0 for "no parent" / "default order".
        if v in (0, "0", ""):
            return None
        return v

    @property
    def is_publishable(self) -> bool:
        return self.status == "publish"


class WXRMedia(CamelModel):
    id: int
    url: str = ""
    title: str = ""
    mime_type: Optional[str] = None
    parent_id: Optional[int] = None


class WXRParseResult(CamelModel):
    site_title: str = ""
    site_url: str = ""
    authors: List[WXRAuthor] = Field(default_factory=list)
    posts: List[WXRPost] = Field(default_factory=list)
    pages: List[WXRPost] = Field(default_factory=list)
    attachments: List[WXRMedia] = Field(default_factory=list)

    def author_map(self) -> dict:
        """Map of author login to author for quick lookup."""
        return {author.login: author for author in self.authors}
