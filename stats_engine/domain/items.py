"""Ranked item variants that can appear in a top list.

Each variant is a small Pydantic model tagged by a ``kind`` literal. They do
not share a base class; what they have in common is the
:class:`RankedItemProtocol` contract: an ``id`` that is unique across every
list type, an owned :class:`~stats_engine.domain.metrics.RowRecord` and a
``display_name``.

Identity is a ``(list_type, key)`` pair. Using only the key would make a post
and an author with the same numeric id "1" collide in one list.
"""

# pylint: disable=too-few-public-methods

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Annotated, List, Literal, NamedTuple, Optional, Protocol, Union

from pydantic import BaseModel, Field, TypeAdapter

from .metrics import RowRecord


class TopListType(str, Enum):
    """List types a ranked item can belong to."""

    POSTS_AND_PAGES = "postsAndPages"
    AUTHORS = "authors"
    REFERRERS = "referrers"
    LOCATIONS = "locations"
    DEVICES = "devices"
    VIDEOS = "videos"
    EXTERNAL_LINKS = "externalLinks"
    SEARCH_TERMS = "searchTerms"
    FILE_DOWNLOADS = "fileDownloads"
    ARCHIVE = "archive"
    UTM = "utm"


class ItemID(NamedTuple):
    """Globally unique item identity."""

    list_type: TopListType
    key: str


class RankedItemProtocol(Protocol):
    """Minimal contract shared by every ranked item variant."""

    metrics: RowRecord

    @property
    def id(self) -> ItemID: ...

    @property
    def display_name(self) -> str: ...


class Post(BaseModel):
    kind: Literal["post"] = "post"
    title: str
    post_id: Optional[str] = None
    post_url: Optional[str] = None
    date: Optional[datetime] = None
    type: Optional[str] = None
    author: Optional[str] = None
    metrics: RowRecord = Field(default_factory=RowRecord)

    @property
    def id(self) -> ItemID:
        return ItemID(TopListType.POSTS_AND_PAGES, self.post_id or self.title)

    @property
    def display_name(self) -> str:
        return self.title


class Referrer(BaseModel):
    """Referring site; ``children`` are display-only sub-referrers."""

    kind: Literal["referrer"] = "referrer"
    name: str
    domain: Optional[str] = None
    icon_url: Optional[str] = None
    children: List[Referrer] = Field(default_factory=list)
    metrics: RowRecord = Field(default_factory=RowRecord)

    @property
    def id(self) -> ItemID:
        return ItemID(TopListType.REFERRERS, (self.domain or "–") + self.name)

    @property
    def display_name(self) -> str:
        return self.name


class Location(BaseModel):
    kind: Literal["location"] = "location"
    name: str
    flag: Optional[str] = None
    country_code: Optional[str] = None
    metrics: RowRecord = Field(default_factory=RowRecord)

    @property
    def id(self) -> ItemID:
        return ItemID(TopListType.LOCATIONS, self.name)

    @property
    def display_name(self) -> str:
        return self.name


class Device(BaseModel):
    kind: Literal["device"] = "device"
    name: str
    breakdown: str = "platform"
    metrics: RowRecord = Field(default_factory=RowRecord)

    @property
    def id(self) -> ItemID:
        return ItemID(TopListType.DEVICES, self.name)

    @property
    def display_name(self) -> str:
        return self.name.capitalize()


class Author(BaseModel):
    kind: Literal["author"] = "author"
    name: str
    user_id: str
    role: Optional[str] = None
    avatar_url: Optional[str] = None
    posts: Optional[List[Post]] = None
    metrics: RowRecord = Field(default_factory=RowRecord)

    @property
    def id(self) -> ItemID:
        return ItemID(TopListType.AUTHORS, self.user_id)

    @property
    def display_name(self) -> str:
        return self.name


class ExternalLink(BaseModel):
    kind: Literal["external_link"] = "external_link"
    url: str
    title: Optional[str] = None
    children: List[ExternalLink] = Field(default_factory=list)
    metrics: RowRecord = Field(default_factory=RowRecord)

    @property
    def id(self) -> ItemID:
        return ItemID(TopListType.EXTERNAL_LINKS, self.url + (self.title or ""))

    @property
    def display_name(self) -> str:
        return self.title or self.url


class FileDownload(BaseModel):
    kind: Literal["file_download"] = "file_download"
    file_name: str
    file_path: Optional[str] = None
    metrics: RowRecord = Field(default_factory=RowRecord)

    @property
    def id(self) -> ItemID:
        return ItemID(TopListType.FILE_DOWNLOADS, self.file_path or self.file_name)

    @property
    def display_name(self) -> str:
        return self.file_name


class SearchTerm(BaseModel):
    kind: Literal["search_term"] = "search_term"
    term: str
    metrics: RowRecord = Field(default_factory=RowRecord)

    @property
    def id(self) -> ItemID:
        return ItemID(TopListType.SEARCH_TERMS, self.term)

    @property
    def display_name(self) -> str:
        return self.term


class Video(BaseModel):
    kind: Literal["video"] = "video"
    title: str
    post_id: str
    video_url: Optional[str] = None
    metrics: RowRecord = Field(default_factory=RowRecord)

    @property
    def id(self) -> ItemID:
        return ItemID(TopListType.VIDEOS, self.post_id)

    @property
    def display_name(self) -> str:
        return self.title


class ArchiveItem(BaseModel):
    kind: Literal["archive_item"] = "archive_item"
    href: str
    value: str
    metrics: RowRecord = Field(default_factory=RowRecord)

    @property
    def id(self) -> ItemID:
        return ItemID(TopListType.ARCHIVE, self.href)

    @property
    def display_name(self) -> str:
        return self.value


class ArchiveSection(BaseModel):
    """Archive group (pages, categories, tags...) owning its entries."""

    kind: Literal["archive_section"] = "archive_section"
    section_name: str
    items: List[ArchiveItem] = Field(default_factory=list)
    metrics: RowRecord = Field(default_factory=RowRecord)

    @property
    def id(self) -> ItemID:
        return ItemID(TopListType.ARCHIVE, self.section_name)

    @property
    def display_name(self) -> str:
        return self.section_name.capitalize()


class UTMMetric(BaseModel):
    kind: Literal["utm"] = "utm"
    label: str
    values: List[str] = Field(default_factory=list)
    posts: Optional[List[Post]] = None
    metrics: RowRecord = Field(default_factory=RowRecord)

    @property
    def id(self) -> ItemID:
        return ItemID(TopListType.UTM, self.label)

    @property
    def display_name(self) -> str:
        return self.label


RankedItem = Annotated[
    Union[
        Post,
        Referrer,
        Location,
        Device,
        Author,
        ExternalLink,
        FileDownload,
        SearchTerm,
        Video,
        ArchiveItem,
        ArchiveSection,
        UTMMetric,
    ],
    Field(discriminator="kind"),
]

ranked_items_adapter: TypeAdapter[List[RankedItem]] = TypeAdapter(List[RankedItem])
