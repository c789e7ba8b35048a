from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, List, Mapping, Optional, Sequence

from bs4 import BeautifulSoup, Tag
from soupsieve import SelectorSyntaxError

from .base import ExtractResult, Item
from ..utils.parsing import (
    clean_text,
    detect_language,
    domain_of,
    normalize_count,
    parse_date,
    resolve_urls,
)

logger = logging.getLogger(__name__)

# Ordered fallbacks used when a task does not provide a selector for a field.
TITLE_SELECTORS = (
    "title",
    "h1",
    ".title",
    ".headline",
    "h1.title",
    "h1.headline",
    "meta[property='og:title']",
    "meta[name='twitter:title']",
)
CONTENT_SELECTORS = (
    ".content",
    ".article-content",
    ".post-content",
    ".entry-content",
    ".main-content",
    "article",
    ".article-body",
    ".post-body",
    "main",
    "body",
)
DESCRIPTION_SELECTORS = (
    "meta[name='description']",
    "meta[property='og:description']",
    "meta[name='twitter:description']",
    ".description",
    ".summary",
    ".excerpt",
)
AUTHOR_SELECTORS = (
    ".author",
    ".by-author",
    ".post-author",
    ".article-author",
    "meta[name='author']",
    "meta[property='article:author']",
    ".byline",
    ".writer",
)
PUBLISH_DATE_SELECTORS = (
    "meta[property='article:published_time']",
    "meta[name='publish_date']",
    ".publish-date",
    ".date",
    ".post-date",
    ".article-date",
    "time",
)
CATEGORY_SELECTORS = (
    "meta[property='article:section']",
    ".category",
)
KEYWORD_META = "meta[name='keywords']"
KEYWORD_SELECTOR = ".tag, .keyword, .label"
TAG_SELECTOR = ".tag, .tags a, .category"
LINK_SELECTOR = "a[href]"
IMAGE_SELECTOR = "img[src]"
VIDEO_SELECTOR = "video[src], video source[src], iframe[src*='youtube'], iframe[src*='youtu.be']"
ENGAGEMENT_SELECTORS = {
    "view_count": (".view-count", ".views", ".read-count"),
    "comment_count": (".comment-count", ".comments-count", ".comments"),
    "like_count": (".like-count", ".likes"),
    "share_count": (".share-count", ".shares"),
}

_NOISE_TAGS = ("script", "style", "noscript", "template")


class SelectorExtractor:
    """
    Selector-driven extractor. A task selector wins when present; otherwise
    the ordered fallback list for the field is tried and the first non-empty
    match is used. Missing fields are left empty, never an error.
    """
    name = "selectors"

    def extract(
        self,
        selectors: Mapping[str, str],
        html: str,
        url: str,
        fetched_at: Optional[datetime] = None,
    ) -> ExtractResult:
        fetched_at = fetched_at or datetime.now()
        soup = BeautifulSoup(html, "html.parser")
        for tag in soup(_NOISE_TAGS):
            tag.decompose()

        scope = self._scope(soup, selectors.get("item"))

        item = Item(url=url, source=domain_of(url), timestamp=fetched_at)
        item.title = self._first_text(scope, selectors.get("title"), TITLE_SELECTORS)
        item.content = self._first_text(scope, selectors.get("content"), CONTENT_SELECTORS)
        item.description = self._first_text(scope, selectors.get("description"), DESCRIPTION_SELECTORS)
        item.author = self._first_text(scope, selectors.get("author"), AUTHOR_SELECTORS)
        item.category = self._first_text(scope, None, CATEGORY_SELECTORS)
        item.publish_date = self._publish_date(scope, selectors.get("publish_date"), fetched_at)
        item.keywords = self._keywords(scope, selectors.get("keywords"))
        item.tags = self._all_text(scope, selectors.get("tags") or TAG_SELECTOR)

        # Links and media are page-wide even when fields are scoped to a container.
        item.links = self._urls(soup, selectors.get("links") or LINK_SELECTOR, "href", url)
        item.images = self._urls(soup, selectors.get("images") or IMAGE_SELECTOR, "src", url)
        item.videos = self._urls(soup, selectors.get("videos") or VIDEO_SELECTOR, "src", url)

        for field_name, candidates in ENGAGEMENT_SELECTORS.items():
            text = self._first_text(scope, None, candidates)
            setattr(item, field_name, normalize_count(text))

        item.language = detect_language(" ".join(filter(None, [item.title, item.content[:500]])))
        return ExtractResult(item=item, links=list(item.links))

    # ---- Selection helpers --------------------------------------------------

    def _select(self, root: Tag, selector: str) -> List[Tag]:
        try:
            return root.select(selector)
        except SelectorSyntaxError as exc:
            logger.debug("Ignoring invalid selector %r: %s", selector, exc)
            return []

    def _scope(self, soup: BeautifulSoup, item_selector: Optional[str]) -> Tag:
        if item_selector:
            matches = self._select(soup, item_selector)
            if matches:
                return matches[0]
        return soup

    def _candidates(self, custom: Optional[str], fallbacks: Sequence[str]) -> Sequence[str]:
        if custom and custom.strip():
            return (custom,)
        return fallbacks

    def _first_text(self, root: Tag, custom: Optional[str], fallbacks: Sequence[str]) -> str:
        return self._first_value(root, custom, fallbacks, str) or ""

    def _first_value(self, root: Tag, custom: Optional[str], fallbacks: Sequence[str], convert: Callable):
        for selector in self._candidates(custom, fallbacks):
            for node in self._select(root, selector):
                value = convert(_node_value(node))
                if value:
                    return value
        return None

    def _all_text(self, root: Tag, selector: str) -> List[str]:
        out: List[str] = []
        for node in self._select(root, selector):
            text = _node_value(node)
            if text and text not in out:
                out.append(text)
        return out

    def _keywords(self, root: Tag, custom: Optional[str]) -> List[str]:
        if custom and custom.strip():
            values = self._all_text(root, custom)
        else:
            values = self._all_text(root, KEYWORD_META) or self._all_text(root, KEYWORD_SELECTOR)
        keywords: List[str] = []
        for value in values:
            for part in value.split(","):
                part = part.strip()
                if part and part not in keywords:
                    keywords.append(part)
        return keywords

    def _publish_date(self, root: Tag, custom: Optional[str], fetched_at: datetime) -> Optional[datetime]:
        return self._first_value(
            root, custom, PUBLISH_DATE_SELECTORS, lambda text: parse_date(text, now=fetched_at)
        )

    def _urls(self, root: Tag, selector: str, attr: str, base_url: str) -> List[str]:
        raw: List[str] = []
        for node in self._select(root, selector):
            if node.get(attr):
                raw.append(node.get(attr))
            else:
                # A container selector: collect matching descendants.
                raw.extend(child.get(attr) for child in node.find_all(attrs={attr: True}))
        return resolve_urls(raw, base_url)


def _node_value(node: Tag) -> str:
    if node.name == "meta":
        return clean_text(node.get("content", ""))
    if node.name == "time" and node.get("datetime"):
        return node.get("datetime", "").strip()
    return clean_text(node.get_text(" "))
