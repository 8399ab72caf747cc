"""
Juggernaut Core Types
---------------------
Pydantic models and enums for rows of the local CMS mirror.
"""

from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class PostStatus(str, Enum):
    PUBLISH = "publish"
    DRAFT = "draft"
    PENDING = "pending"
    PRIVATE = "private"
    TRASH = "trash"
    FUTURE = "future"


VALID_STATUSES = tuple(status.value for status in PostStatus)

# Basic post columns a tool may write, in the order changes are logged.
BASIC_FIELDS = ("title", "content", "excerpt", "slug", "status")


class Post(BaseModel):
    # Columns added by newer app schemas pass through untouched.
    model_config = ConfigDict(extra="allow")
    id: int
    post_type: str = "resource"
    title: Optional[str] = None
    slug: Optional[str] = None
    status: Optional[str] = None
    content: Optional[str] = None
    excerpt: Optional[str] = None
    featured_media: Optional[int] = 0
    date_gmt: Optional[str] = None
    modified_gmt: Optional[str] = None
    synced_at: Optional[str] = None
    is_dirty: bool = False


class PostSummary(BaseModel):
    id: int
    title: Optional[str] = None
    slug: Optional[str] = None
    status: Optional[str] = None
    post_type: Optional[str] = None
    is_dirty: bool = False
    modified_gmt: Optional[str] = None
    date_gmt: Optional[str] = None


class Term(BaseModel):
    # (id, taxonomy) is the identity; the same id may exist in several taxonomies.
    id: int
    taxonomy: str
    name: str
    slug: str
    parent_id: Optional[int] = 0


class ChangeLogEntry(BaseModel):
    id: int
    post_id: int
    field: str
    old_value: Optional[str] = None
    new_value: Optional[str] = None
    changed_at: Optional[str] = None


class FieldChange(BaseModel):
    field: str
    old_value: str
    new_value: str


# SEO plugin blob stored under plugin_data(seopress, seo). Unknown keys written
# by the desktop app's SEO tab are kept as extras so a merge never drops them.

class OpenGraph(BaseModel):
    model_config = ConfigDict(extra="allow")
    title: str = ""
    description: str = ""
    image: str = ""


class TwitterCard(BaseModel):
    model_config = ConfigDict(extra="allow")
    title: str = ""
    description: str = ""
    image: str = ""


class Robots(BaseModel):
    model_config = ConfigDict(extra="allow")
    noindex: bool = False
    nofollow: bool = False
    nosnippet: bool = False
    noimageindex: bool = False


class SeoData(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)
    title: str = ""
    description: str = ""
    canonical: str = ""
    target_keywords: str = Field(default="", alias="targetKeywords")
    og: OpenGraph = Field(default_factory=OpenGraph)
    twitter: TwitterCard = Field(default_factory=TwitterCard)
    robots: Robots = Field(default_factory=Robots)

    def to_blob(self) -> dict:
        return self.model_dump(by_alias=True)
