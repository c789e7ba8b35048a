from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Protocol


class ItemStatus(str, Enum):
    NEW = "new"
    PROCESSED = "processed"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class Item:
    """One structured record extracted from a fetched page."""

    url: str
    title: str = ""
    content: str = ""
    description: str = ""
    author: str = ""
    source: str = ""
    publish_date: Optional[datetime] = None
    timestamp: datetime = field(default_factory=datetime.now)
    keywords: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)
    category: str = ""
    links: List[str] = field(default_factory=list)
    images: List[str] = field(default_factory=list)
    videos: List[str] = field(default_factory=list)
    language: str = ""
    status: ItemStatus = ItemStatus.NEW
    metadata: Dict[str, Any] = field(default_factory=dict)
    # Engagement counters stay None unless the page exposes them.
    view_count: Optional[int] = None
    comment_count: Optional[int] = None
    like_count: Optional[int] = None
    share_count: Optional[int] = None

    @property
    def id(self) -> str:
        """Stable identifier derived from the URL (the upsert key)."""
        return hashlib.md5(self.url.encode("utf-8")).hexdigest()

    def is_valid(self) -> bool:
        return bool(self.url and self.title)

    def set_metadata(self, key: str, value: Any) -> None:
        self.metadata[key] = value

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "url": self.url,
            "title": self.title,
            "content": self.content,
            "description": self.description,
            "author": self.author,
            "source": self.source,
            "publish_date": self.publish_date.isoformat() if self.publish_date else None,
            "timestamp": self.timestamp.isoformat(),
            "keywords": list(self.keywords),
            "tags": list(self.tags),
            "category": self.category,
            "links": list(self.links),
            "images": list(self.images),
            "videos": list(self.videos),
            "language": self.language,
            "status": self.status.value,
            "metadata": dict(self.metadata),
            "view_count": self.view_count,
            "comment_count": self.comment_count,
            "like_count": self.like_count,
            "share_count": self.share_count,
        }


@dataclass
class ExtractResult:
    item: Item
    # Absolute candidate links to feed back into the frontier.
    links: List[str] = field(default_factory=list)


class Extractor(Protocol):
    """
    Interface for page extraction.
    The engine owns HTTP, queueing and depth control; extractors only parse.
    """

    def extract(
        self,
        selectors: Mapping[str, str],
        html: str,
        url: str,
        fetched_at: Optional[datetime] = None,
    ) -> ExtractResult:
        ...
