"""Tests for selector-driven extraction and its fallback chains."""

from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from site_crawler.extractors.base import ItemStatus
from site_crawler.extractors.selectors import SelectorExtractor

FETCHED_AT = datetime(2024, 5, 20, 12, 0, 0)

_ARTICLE_HTML = """\
<!DOCTYPE html>
<html>
<head>
  <title>Battery breakthrough | Energy News</title>
  <meta name="description" content="  Solid-state cells hit a new record.  ">
  <meta name="keywords" content="battery, energy,  solid-state ">
  <meta property="article:published_time" content="2024-05-18T08:30:00Z">
  <meta name="author" content="Meta Author">
  <script>var tracking = "ignore me";</script>
</head>
<body>
  <nav><a href="/">Home</a> <a href="/news/">News</a></nav>
  <article class="post">
    <h1 class="headline">Battery breakthrough</h1>
    <span class="author">Dana Reyes</span>
    <div class="article-content">
      <p>Researchers   announced
         a new record.</p>
      <p>More details follow.</p>
    </div>
    <img src="/img/cell.png"> <img src="https://cdn.example/chart.jpg">
    <a href="related.html#comments">Related</a>
    <a href="#top">Back to top</a>
    <span class="tag">science</span><span class="tag">energy</span>
    <span class="view-count">1.2k views</span>
    <span class="comment-count">34</span>
  </article>
  <iframe src="https://www.youtube.com/embed/abc123"></iframe>
</body>
</html>
"""


@pytest.fixture
def extractor() -> SelectorExtractor:
    return SelectorExtractor()


# ---------------------------------------------------------------------------
# Fallback chains
# ---------------------------------------------------------------------------

class TestFallbacks:
    def test_generic_fields(self, extractor: SelectorExtractor) -> None:
        result = extractor.extract({}, _ARTICLE_HTML, "https://news.example/2024/battery", FETCHED_AT)
        item = result.item

        assert item.title == "Battery breakthrough | Energy News"
        assert item.description == "Solid-state cells hit a new record."
        assert item.content == "Researchers announced a new record. More details follow."
        assert item.author == "Dana Reyes"
        assert item.source == "news.example"
        assert item.timestamp == FETCHED_AT
        assert item.publish_date == datetime(2024, 5, 18, 8, 30, 0)
        assert item.keywords == ["battery", "energy", "solid-state"]
        assert item.tags == ["science", "energy"]
        assert item.language == "en"
        assert item.status is ItemStatus.NEW

    def test_links_and_media_are_absolute(self, extractor: SelectorExtractor) -> None:
        result = extractor.extract({}, _ARTICLE_HTML, "https://news.example/2024/battery", FETCHED_AT)

        assert result.links == [
            "https://news.example/",
            "https://news.example/news/",
            "https://news.example/2024/related.html#comments",
        ]
        assert result.item.images == ["https://news.example/img/cell.png", "https://cdn.example/chart.jpg"]
        assert result.item.videos == ["https://www.youtube.com/embed/abc123"]

    def test_engagement_counters(self, extractor: SelectorExtractor) -> None:
        item = extractor.extract({}, _ARTICLE_HTML, "https://news.example/a", FETCHED_AT).item

        assert item.view_count == 1200
        assert item.comment_count == 34
        assert item.like_count is None
        assert item.share_count is None

    def test_script_text_never_leaks_into_content(self, extractor: SelectorExtractor) -> None:
        html = "<html><head><script>var x = 1;</script></head><body>Plain  body\ttext</body></html>"
        item = extractor.extract({}, html, "https://a.example/", FETCHED_AT).item

        assert item.content == "Plain body text"
        assert "var x" not in item.content

    def test_og_title_used_when_nothing_else(self, extractor: SelectorExtractor) -> None:
        html = '<html><head><meta property="og:title" content="From OG"></head><body></body></html>'
        assert extractor.extract({}, html, "https://a.example/", FETCHED_AT).item.title == "From OG"

    def test_missing_fields_stay_empty(self, extractor: SelectorExtractor) -> None:
        item = extractor.extract({}, "<html><body></body></html>", "https://a.example/", FETCHED_AT).item

        assert item.title == ""
        assert item.description == ""
        assert item.author == ""
        assert item.publish_date is None
        assert item.keywords == []
        assert item.links == []
        assert item.view_count is None
        assert not item.is_valid()


# ---------------------------------------------------------------------------
# Task-provided selectors
# ---------------------------------------------------------------------------

class TestTaskSelectors:
    def test_task_selector_wins(self, extractor: SelectorExtractor) -> None:
        selectors = {"title": "h1.headline", "author": "meta[name='author']", "content": "nav"}
        item = extractor.extract(selectors, _ARTICLE_HTML, "https://news.example/a", FETCHED_AT).item

        assert item.title == "Battery breakthrough"
        assert item.author == "Meta Author"
        assert item.content == "Home News"

    def test_blank_task_selector_falls_back(self, extractor: SelectorExtractor) -> None:
        item = extractor.extract({"title": "  "}, _ARTICLE_HTML, "https://news.example/a", FETCHED_AT).item
        assert item.title == "Battery breakthrough | Energy News"

    def test_unmatched_task_selector_leaves_field_empty(self, extractor: SelectorExtractor) -> None:
        item = extractor.extract({"author": ".nobody"}, _ARTICLE_HTML, "https://news.example/a", FETCHED_AT).item
        assert item.author == ""

    def test_invalid_selector_is_not_an_error(self, extractor: SelectorExtractor) -> None:
        item = extractor.extract({"title": "h1[[["}, _ARTICLE_HTML, "https://news.example/a", FETCHED_AT).item
        assert item.title == ""

    def test_item_selector_scopes_fields(self, extractor: SelectorExtractor) -> None:
        html = """
        <html><head><title>Site</title></head><body>
          <div class="card"><h2 class="title">First card</h2><p class="summary">One</p></div>
          <a href="/elsewhere">elsewhere</a>
        </body></html>
        """
        selectors = {"item": ".card", "title": ".title", "description": ".summary"}
        result = extractor.extract(selectors, html, "https://a.example/list", FETCHED_AT)

        assert result.item.title == "First card"
        assert result.item.description == "One"
        # Links stay page-wide.
        assert result.links == ["https://a.example/elsewhere"]

    def test_links_selector_limits_discovery(self, extractor: SelectorExtractor) -> None:
        result = extractor.extract({"links": "nav"}, _ARTICLE_HTML, "https://news.example/a", FETCHED_AT)
        assert result.links == ["https://news.example/", "https://news.example/news/"]

    def test_keywords_selector_splits_commas(self, extractor: SelectorExtractor) -> None:
        html = '<html><body><ul><li class="kw">a, b</li><li class="kw">c</li></ul></body></html>'
        item = extractor.extract({"keywords": ".kw"}, html, "https://a.example/", FETCHED_AT).item
        assert item.keywords == ["a", "b", "c"]


# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------

class TestDates:
    @pytest.mark.parametrize(
        "markup, expected",
        [
            ('<span class="date">2024-03-01</span>', datetime(2024, 3, 1)),
            ('<time datetime="2023-12-24 18:00:00">Christmas Eve</time>', datetime(2023, 12, 24, 18, 0)),
            ('<span class="post-date">March 5, 2024</span>', datetime(2024, 3, 5)),
            ('<span class="date">3 hours ago</span>', FETCHED_AT - timedelta(hours=3)),
            ('<span class="date">2 days ago</span>', FETCHED_AT - timedelta(days=2)),
        ],
    )
    def test_publish_date_formats(self, extractor: SelectorExtractor, markup: str, expected: datetime) -> None:
        html = f"<html><body>{markup}</body></html>"
        assert extractor.extract({}, html, "https://a.example/", FETCHED_AT).item.publish_date == expected

    def test_unparsable_date_is_none(self, extractor: SelectorExtractor) -> None:
        html = '<html><body><span class="date">sometime soon</span></body></html>'
        assert extractor.extract({}, html, "https://a.example/", FETCHED_AT).item.publish_date is None
