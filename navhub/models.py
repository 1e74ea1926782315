import re
import time
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_CATEGORY_ID = "default"

# Paths the site itself routes; a category may not take one as its uri.
RESERVED_URIS = ["setup", "api", "admin", "login", "logout", "auth", "settings", "config", "top"]


def now_ms() -> int:
    return int(time.time() * 1000)


def generate_uri(name: str) -> str:
    """
    Derive a slug from a category name:
    - whitespace and CJK characters become hyphens
    - anything outside [a-z0-9-] is dropped
    - runs of hyphens collapse, leading/trailing hyphens are stripped
    """
    slug = re.sub(r"[\s\u4e00-\u9fa5]+", "-", name.lower())
    slug = re.sub(r"[^a-z0-9-]", "", slug)
    slug = re.sub(r"-+", "-", slug)
    return slug.strip("-")


def is_reserved_uri(uri: str) -> bool:
    return uri.lower() in RESERVED_URIS


class _Document(BaseModel):
    # Stored JSON uses camelCase keys; Python code uses snake_case.
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def to_json_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Category(_Document):
    id: str
    name: str
    icon: str = "Folder"
    uri: str
    parent_id: Optional[str] = Field(default=None, alias="parentId")
    password: Optional[str] = None
    inherit_password: bool = Field(default=False, alias="inheritPassword")
    order: Optional[int] = None
    created_at: Optional[int] = Field(default=None, alias="createdAt")

    @field_validator("parent_id", "password", mode="before")
    @classmethod
    def blank_is_absent(cls, value):
        if value == "":
            return None
        return value

    @field_validator("inherit_password", mode="before")
    @classmethod
    def null_is_false(cls, value):
        return bool(value) if value is not None else False

    @property
    def has_password(self) -> bool:
        return bool(self.password)


class Link(_Document):
    id: str
    title: str
    url: str
    icon: Optional[str] = None
    description: Optional[str] = None
    category_id: str = Field(default=DEFAULT_CATEGORY_ID, alias="categoryId")
    created_at: int = Field(default_factory=now_ms, alias="createdAt")
    pinned: bool = False
    order: Optional[int] = None
    pinned_order: Optional[int] = Field(default=None, alias="pinnedOrder")

    @field_validator("pinned", mode="before")
    @classmethod
    def null_is_false(cls, value):
        return bool(value) if value is not None else False


def default_category() -> Category:
    return Category(id=DEFAULT_CATEGORY_ID, name="Default", icon="Globe", uri="default", order=0)


def seed_categories() -> List[Category]:
    return [default_category()]


def seed_links() -> List[Link]:
    return [
        Link(
            id="1",
            title="Example",
            url="https://example.com",
            category_id=DEFAULT_CATEGORY_ID,
            description="Example link",
        )
    ]


class AppData(_Document):
    """The single canonical document: every link and every category."""

    links: List[Link] = Field(default_factory=list)
    categories: List[Category] = Field(default_factory=list)

    @classmethod
    def from_json(cls, raw: Any) -> "AppData":
        if isinstance(raw, (str, bytes)):
            return cls.model_validate_json(raw)
        return cls.model_validate(raw or {})

    @classmethod
    def seed(cls) -> "AppData":
        return cls(links=seed_links(), categories=seed_categories())

    def is_empty(self) -> bool:
        return not self.links and not self.categories

    def normalized(self) -> "AppData":
        """
        Copy with the default bucket present and first in the list, and every
        link pointing at a missing category reassigned to it.
        """
        categories = list(self.categories)
        bucket = next((c for c in categories if c.id == DEFAULT_CATEGORY_ID), None)
        if bucket is None:
            bucket = default_category()
        else:
            categories.remove(bucket)
        categories.insert(0, bucket)

        valid_ids = {c.id for c in categories}
        links = [
            l if l.category_id in valid_ids else l.model_copy(update={"category_id": DEFAULT_CATEGORY_ID})
            for l in self.links
        ]
        return AppData(links=links, categories=categories)


class AdminConfig(_Document):
    password: str  # sha256 hex digest
    initialized: bool = False
    created_at: int = Field(default_factory=now_ms, alias="createdAt")


class WebsiteConfig(_Document):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    title: str = "NavHub"
    nav_title: str = Field(default="NavHub", alias="navTitle")
    favicon: str = ""
    card_style: str = Field(default="detailed", alias="cardStyle")  # detailed | simple
    password_expiry_days: int = Field(default=7, alias="passwordExpiryDays")


class ExternalSearchSource(_Document):
    id: str
    name: str
    url: str
    icon: Optional[str] = None
    enabled: bool = True
    created_at: int = Field(default_factory=now_ms, alias="createdAt")


class SearchConfig(_Document):
    mode: str = "internal"  # internal | external
    external_sources: List[ExternalSearchSource] = Field(default_factory=list, alias="externalSources")
    selected_source: Optional[ExternalSearchSource] = Field(default=None, alias="selectedSource")
