from __future__ import annotations

from dataclasses import dataclass, field, asdict
from typing import List, Dict, Any
import os
import json
import re

from .version import __version__, CONFIG_SCHEMA_VERSION


DEFAULT_USER_AGENT = f"site_crawler/{__version__}"


def _split_csv(value: str) -> List[str]:
    return [v.strip() for v in value.split(",") if v.strip()]


@dataclass
class CrawlConfig:
    """
    Global defaults consumed by the engine. Loaded once before a run and
    treated as read-only afterwards; per-task rules override these values.
    """
    schema_version: int = CONFIG_SCHEMA_VERSION
    concurrency: int = 5
    delay_ms: int = 1000
    request_timeout: float = 30.0
    retries: int = 3
    # Fixed pause between attempts of a transiently failing URL (seconds).
    retry_backoff: float = 2.0
    proxy_url: str = ""
    user_agent: str = DEFAULT_USER_AGENT
    max_depth: int = 10
    max_pages: int = 1000
    allowed_domains: List[str] = field(default_factory=list)
    forbidden_domains: List[str] = field(default_factory=list)
    url_patterns: List[str] = field(default_factory=list)
    content_types: List[str] = field(default_factory=lambda: ["text/html", "application/xhtml+xml"])
    respect_robots: bool = True
    # Items per storage call; 1 saves every item as soon as it is extracted.
    batch_size: int = 1
    # Dotted path of the storage collaborator used by the CLI.
    storage: str = "site_crawler.storage.json_file:JSONFileStorage"
    output_path: str = "output/items.json"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    # ---------- Loaders ----------

    @classmethod
    def from_env(cls) -> "CrawlConfig":
        """
        Build config from environment variables (all optional).
        """
        def _get(name: str, default: str) -> str:
            return os.getenv(name, default)

        defaults = cls()
        return cls(
            concurrency=int(_get("CRAWLER_CONCURRENCY", str(defaults.concurrency))),
            delay_ms=int(_get("CRAWLER_DELAY_MS", str(defaults.delay_ms))),
            request_timeout=float(_get("CRAWLER_REQUEST_TIMEOUT", str(defaults.request_timeout))),
            retries=int(_get("CRAWLER_RETRIES", str(defaults.retries))),
            retry_backoff=float(_get("CRAWLER_RETRY_BACKOFF", str(defaults.retry_backoff))),
            proxy_url=_get("CRAWLER_PROXY_URL", ""),
            user_agent=_get("CRAWLER_USER_AGENT", DEFAULT_USER_AGENT),
            max_depth=int(_get("CRAWLER_MAX_DEPTH", str(defaults.max_depth))),
            max_pages=int(_get("CRAWLER_MAX_PAGES", str(defaults.max_pages))),
            allowed_domains=_split_csv(_get("CRAWLER_ALLOWED_DOMAINS", "")),
            forbidden_domains=_split_csv(_get("CRAWLER_FORBIDDEN_DOMAINS", "")),
            # Regexes may contain commas, so patterns are newline separated.
            url_patterns=[p for p in _get("CRAWLER_URL_PATTERNS", "").splitlines() if p.strip()],
            content_types=_split_csv(_get("CRAWLER_CONTENT_TYPES", ",".join(defaults.content_types))),
            respect_robots=_get("CRAWLER_RESPECT_ROBOTS", "true").lower() in ("1", "true", "yes"),
            batch_size=int(_get("CRAWLER_BATCH_SIZE", str(defaults.batch_size))),
            storage=_get("CRAWLER_STORAGE", defaults.storage),
            output_path=_get("CRAWLER_OUTPUT_PATH", defaults.output_path),
        )

    @classmethod
    def from_file(cls, path: str | os.PathLike[str]) -> "CrawlConfig":
        """
        Load configuration from a JSON file. Supports schema migration for older versions.
        """
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        data = migrate_config(data)
        return cls(**data)

    # ---------- Validation ----------

    def validate(self) -> None:
        if self.concurrency <= 0:
            raise ValueError("concurrency must be > 0")
        if self.delay_ms < 0:
            raise ValueError("delay_ms must be >= 0")
        if self.request_timeout <= 0:
            raise ValueError("request_timeout must be > 0")
        if self.retries < 0:
            raise ValueError("retries must be >= 0")
        if self.retry_backoff < 0:
            raise ValueError("retry_backoff must be >= 0")
        if self.max_depth < 0:
            raise ValueError("max_depth must be >= 0")
        if self.max_pages < 0:
            raise ValueError("max_pages must be >= 0 (0 means unlimited)")
        if self.batch_size <= 0:
            raise ValueError("batch_size must be > 0")
        for pattern in self.url_patterns:
            try:
                re.compile(pattern)
            except re.error as exc:
                raise ValueError(f"invalid url pattern {pattern!r}: {exc}") from exc


def migrate_config(raw: Dict[str, Any]) -> Dict[str, Any]:
    """
    Migrate config dict to the latest schema version.
    Keep this pure and additive. Add migrations here as you bump schema.
    """
    raw = dict(raw)
    schema = raw.get("schema_version", 1)

    if schema < 2:
        # v1 files came from the single-engine crawler.
        if "max_concurrency" in raw:
            raw.setdefault("concurrency", raw.pop("max_concurrency"))
        for obsolete in ("start_urls", "engine", "exporter", "extra_adapters", "keywords"):
            raw.pop(obsolete, None)
        if raw.get("allowed_domains") is None:
            raw["allowed_domains"] = []

    raw["schema_version"] = CONFIG_SCHEMA_VERSION
    return raw
