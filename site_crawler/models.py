from __future__ import annotations

import re
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Set

from .config import CrawlConfig
from .errors import ValidationError
from .utils.parsing import domain_of


class TaskStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    STOPPED = "stopped"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskStatus.COMPLETED, TaskStatus.FAILED, TaskStatus.STOPPED)


#: Selector keys understood by the extractor.
SELECTOR_FIELDS = (
    "item",
    "title",
    "content",
    "description",
    "keywords",
    "author",
    "links",
    "images",
    "publish_date",
    "tags",
    "videos",
)


@dataclass
class CrawlRules:
    """
    Per-task crawl rules. ``None`` means "inherit the global default".
    Use :meth:`resolve` to get a fully populated copy before a run.
    """
    max_depth: Optional[int] = None
    max_pages: Optional[int] = None  # 0 = unlimited
    concurrency: Optional[int] = None
    delay_ms: Optional[int] = None
    allowed_domains: Optional[Set[str]] = None  # empty = unrestricted
    forbidden_domains: Optional[Set[str]] = None
    url_patterns: Optional[List[str]] = None
    content_types: Optional[Set[str]] = None
    per_domain_concurrency: Optional[int] = None
    respect_robots: Optional[bool] = None
    # Stricter opt-in policy: only follow URLs on the task's base domain.
    same_domain_only: bool = False

    def resolve(self, config: CrawlConfig, base_url: str = "") -> "CrawlRules":
        def pick(value, default):
            return default if value is None else value

        concurrency = pick(self.concurrency, config.concurrency)
        allowed = {d.lower() for d in pick(self.allowed_domains, config.allowed_domains)}
        if self.same_domain_only and base_url:
            allowed = {domain_of(base_url)}
        return CrawlRules(
            max_depth=pick(self.max_depth, config.max_depth),
            max_pages=pick(self.max_pages, config.max_pages),
            concurrency=concurrency,
            delay_ms=pick(self.delay_ms, config.delay_ms),
            allowed_domains=allowed,
            forbidden_domains={d.lower() for d in pick(self.forbidden_domains, config.forbidden_domains)},
            url_patterns=list(pick(self.url_patterns, config.url_patterns)),
            content_types={c.lower() for c in pick(self.content_types, config.content_types)},
            per_domain_concurrency=pick(self.per_domain_concurrency, concurrency),
            respect_robots=pick(self.respect_robots, config.respect_robots),
            same_domain_only=self.same_domain_only,
        )

    def validate(self) -> None:
        """Check a resolved rule set; raises :class:`ValidationError`."""
        if self.max_depth is None or self.max_depth < 0:
            raise ValidationError("rules.max_depth must be >= 0")
        if self.max_pages is None or self.max_pages < 0:
            raise ValidationError("rules.max_pages must be >= 0 (0 means unlimited)")
        if self.concurrency is None or self.concurrency <= 0:
            raise ValidationError("rules.concurrency must be > 0")
        if self.per_domain_concurrency is None or self.per_domain_concurrency <= 0:
            raise ValidationError("rules.per_domain_concurrency must be > 0")
        if self.delay_ms is None or self.delay_ms < 0:
            raise ValidationError("rules.delay_ms must be >= 0")
        for pattern in self.url_patterns or []:
            try:
                re.compile(pattern)
            except re.error as exc:
                raise ValidationError(f"rules.url_patterns: invalid regex {pattern!r}: {exc}") from exc


@dataclass
class TaskCounters:
    total_urls: int = 0
    processed_urls: int = 0
    success_urls: int = 0
    failed_urls: int = 0
    items_count: int = 0
    storage_errors: int = 0


@dataclass
class CrawlTask:
    """
    A crawl task and its live progress. The engine owns it during a run;
    callers may read it at any time for progress reporting.
    """
    base_url: str
    start_urls: List[str] = field(default_factory=list)
    name: str = ""
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    selectors: Dict[str, str] = field(default_factory=dict)
    rules: CrawlRules = field(default_factory=CrawlRules)
    status: TaskStatus = TaskStatus.PENDING
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    counters: TaskCounters = field(default_factory=TaskCounters)
    error_message: str = ""

    @property
    def duration(self) -> float:
        """Seconds spent running so far (or in total once finished)."""
        if self.start_time is None:
            return 0.0
        end = self.end_time or datetime.now()
        return (end - self.start_time).total_seconds()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "base_url": self.base_url,
            "start_urls": list(self.start_urls),
            "status": self.status.value,
            "start_time": self.start_time.isoformat() if self.start_time else None,
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "total_urls": self.counters.total_urls,
            "processed_urls": self.counters.processed_urls,
            "success_urls": self.counters.success_urls,
            "failed_urls": self.counters.failed_urls,
            "items_count": self.counters.items_count,
            "storage_errors": self.counters.storage_errors,
            "error_message": self.error_message,
        }


@dataclass(frozen=True)
class FrontierEntry:
    url: str
    depth: int
    domain: str
    retry_count: int = 0

    def next_attempt(self) -> "FrontierEntry":
        return replace(self, retry_count=self.retry_count + 1)
