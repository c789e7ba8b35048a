from __future__ import annotations

import re
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional
from urllib.parse import urljoin, urlparse, urlunparse


def normalize_url(url: str) -> str:
    """
    Normalize URL: strip the fragment, lowercase scheme and host,
    and give an empty path a trailing slash.
    """
    parsed = urlparse(url.strip())
    path = parsed.path or "/"
    return urlunparse((parsed.scheme.lower(), parsed.netloc.lower(), path, parsed.params, parsed.query, ""))


def domain_of(url: str) -> str:
    return urlparse(url).netloc.lower()


def is_http_url(url: str) -> bool:
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def resolve_urls(values: Iterable[str], base_url: str) -> List[str]:
    """
    Resolve raw href/src values against ``base_url``, keeping discovery order
    and dropping empties, pure fragments and duplicates.
    """
    out: List[str] = []
    seen = set()
    for value in values:
        if not value:
            continue
        value = value.strip()
        if not value or value.startswith("#"):
            continue
        absolute = urljoin(base_url, value)
        if absolute not in seen:
            seen.add(absolute)
            out.append(absolute)
    return out


# ---- Text cleaning ----------------------------------------------------------

_TAG_RE = re.compile(r"<[^>]*>")
_WS_RE = re.compile(r"\s+")
_CONTROL_RE = re.compile(r"[\x00-\x1f\x7f-\x9f]")


def clean_text(text: str) -> str:
    """Strip markup, collapse whitespace, drop control characters and trim."""
    if not text:
        return ""
    text = _TAG_RE.sub("", text)
    text = _WS_RE.sub(" ", text)
    text = _CONTROL_RE.sub("", text)
    return text.strip()


def normalize_count(text: str) -> Optional[int]:
    """Turn display counts such as ``"1,204"``, ``"3.2k"`` or ``"1M views"`` into ints."""
    if not text:
        return None
    match = re.search(r"(\d[\d,]*(?:\.\d+)?)\s*([kKmMwW万]?)", text)
    if not match:
        return None
    number = float(match.group(1).replace(",", ""))
    suffix = match.group(2).lower()
    multiplier = {"k": 1_000, "m": 1_000_000, "w": 10_000, "万": 10_000}.get(suffix, 1)
    return int(round(number * multiplier))


# ---- Dates ------------------------------------------------------------------

DATE_FORMATS = (
    "%Y-%m-%dT%H:%M:%SZ",
    "%Y-%m-%dT%H:%M:%S%z",
    "%Y-%m-%dT%H:%M:%S.%fZ",
    "%Y-%m-%dT%H:%M:%S.%f%z",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%m/%d/%Y",
    "%d-%m-%Y",
    "%B %d, %Y",
    "%b %d, %Y",
    "%d %B %Y",
    "%d %b %Y",
)

_RELATIVE_UNITS: Dict[str, timedelta] = {
    "minute": timedelta(minutes=1),
    "hour": timedelta(hours=1),
    "day": timedelta(days=1),
    "week": timedelta(weeks=1),
    "month": timedelta(days=30),
    "year": timedelta(days=365),
}

_RELATIVE_EN = re.compile(r"(\d+)\s*(minute|min|hour|hr|day|week|month|year)s?\s+ago", re.IGNORECASE)
_RELATIVE_CJK = {
    "分钟前": "minute",
    "小时前": "hour",
    "天前": "day",
    "周前": "week",
    "月前": "month",
    "年前": "year",
}
_UNIT_ALIASES = {"min": "minute", "hr": "hour"}


def parse_date(text: str, now: Optional[datetime] = None) -> Optional[datetime]:
    """
    Parse an absolute or relative ("3 hours ago") date. Returns None when
    nothing matches; relative phrases are computed against ``now``.
    """
    if not text:
        return None
    text = text.strip()
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return parse_relative_time(text, now)


def parse_relative_time(text: str, now: Optional[datetime] = None) -> Optional[datetime]:
    now = now or datetime.now()
    match = _RELATIVE_EN.search(text)
    if match:
        unit = match.group(2).lower()
        unit = _UNIT_ALIASES.get(unit, unit)
        return now - int(match.group(1)) * _RELATIVE_UNITS[unit]
    for suffix, unit in _RELATIVE_CJK.items():
        cjk = re.search(r"(\d+)\s*(?:个)?" + suffix, text)
        if cjk:
            return now - int(cjk.group(1)) * _RELATIVE_UNITS[unit]
    return None


# ---- Language ---------------------------------------------------------------

# Checked in order: kana before han so Japanese is not reported as Chinese.
LANGUAGE_PATTERNS = (
    ("ja", re.compile(r"[぀-ゟ゠-ヿ]")),
    ("ko", re.compile(r"[가-힯]")),
    ("zh", re.compile(r"[一-鿿]")),
    ("ar", re.compile(r"[؀-ۿ]")),
    ("ru", re.compile(r"[Ѐ-ӿ]")),
    ("en", re.compile(r"[a-zA-Z]")),
)


def detect_language(text: str) -> str:
    """Best-effort script-based language guess; empty string when unknown."""
    if not text:
        return ""
    sample = text[:2000]
    for code, pattern in LANGUAGE_PATTERNS:
        if pattern.search(sample):
            return code
    return ""
