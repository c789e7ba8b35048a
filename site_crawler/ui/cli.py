from __future__ import annotations

import argparse
import asyncio
import logging
import signal
from typing import Dict, List

from ..config import CrawlConfig
from ..engines.site_engine import SiteCrawlEngine
from ..errors import StorageError, ValidationError
from ..models import SELECTOR_FIELDS, CrawlRules, CrawlTask, TaskStatus
from ..utils.loader import build_storage
from ..utils.logging import setup_logging

logger = logging.getLogger(__name__)


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Rule-driven site crawler")
    p.add_argument("urls", nargs="*", help="Start URLs (space-separated)")
    p.add_argument("--config", type=str, help="Path to config JSON with global defaults", default=None)
    p.add_argument("--name", type=str, default="", help="Task name used in logs")
    p.add_argument("--base-url", type=str, default=None, help="Base URL of the site (default: first start URL)")
    p.add_argument("--max-depth", type=int, default=None, help="Max crawl depth (default from config)")
    p.add_argument("--max-pages", type=int, default=None, help="Max pages to fetch, 0 = unlimited")
    p.add_argument("--concurrency", type=int, default=None, help="Worker count (default from config)")
    p.add_argument("--delay-ms", type=int, default=None, help="Minimum delay between requests to one domain")
    p.add_argument("--allowed-domains", type=str, default=None,
                   help="Comma-separated list of allowed domains (default: unrestricted)")
    p.add_argument("--forbidden-domains", type=str, default=None, help="Comma-separated list of forbidden domains")
    p.add_argument("--url-pattern", action="append", default=None,
                   help="Regex a discovered URL must match (repeatable)")
    p.add_argument("--selector", action="append", default=[], metavar="FIELD=CSS",
                   help=f"Field selector override (repeatable); fields: {', '.join(SELECTOR_FIELDS)}")
    p.add_argument("--same-domain-only", action="store_true", help="Only follow links on the base URL's domain")
    p.add_argument("--storage", type=str, default=None, help="Storage dotted path (module:ClassName)")
    p.add_argument("--output", type=str, default=None, help="Output file path")
    p.add_argument("--log-level", type=str, default=None, help="Log level (DEBUG, INFO, WARNING, ERROR)")
    p.add_argument("--log-file", type=str, default=None, help="Also write logs to this file")
    return p


def _split(value: str | None) -> List[str]:
    return [v.strip() for v in (value or "").split(",") if v.strip()]


def _parse_selectors(values: List[str]) -> Dict[str, str]:
    selectors: Dict[str, str] = {}
    for raw in values:
        field_name, sep, css = raw.partition("=")
        field_name = field_name.strip()
        if not sep or not css.strip():
            raise ValidationError(f"selector must look like FIELD=CSS, got {raw!r}")
        if field_name not in SELECTOR_FIELDS:
            raise ValidationError(f"unknown selector field {field_name!r}")
        selectors[field_name] = css.strip()
    return selectors


def _load_config(args: argparse.Namespace) -> CrawlConfig:
    if args.config:
        cfg = CrawlConfig.from_file(args.config)
    else:
        cfg = CrawlConfig.from_env()

    if args.storage:
        cfg.storage = args.storage
    if args.output:
        cfg.output_path = args.output

    cfg.validate()
    return cfg


def _build_task(args: argparse.Namespace) -> CrawlTask:
    rules = CrawlRules(
        max_depth=args.max_depth,
        max_pages=args.max_pages,
        concurrency=args.concurrency,
        delay_ms=args.delay_ms,
        allowed_domains=set(_split(args.allowed_domains)) if args.allowed_domains else None,
        forbidden_domains=set(_split(args.forbidden_domains)) if args.forbidden_domains else None,
        url_patterns=args.url_pattern,
        same_domain_only=args.same_domain_only,
    )
    start_urls = list(args.urls)
    return CrawlTask(
        name=args.name,
        base_url=args.base_url or (start_urls[0] if start_urls else ""),
        start_urls=start_urls,
        selectors=_parse_selectors(args.selector),
        rules=rules,
    )


async def _run(engine: SiteCrawlEngine) -> CrawlTask:
    handle = engine.start()
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, engine.stop)
        loop.add_signal_handler(signal.SIGTERM, engine.stop)
    except (NotImplementedError, RuntimeError):  # pragma: no cover - Windows event loops
        pass
    return await handle


def run_cli(argv: List[str] | None = None) -> int:
    args = build_arg_parser().parse_args(argv)
    setup_logging(args.log_level, args.log_file)

    try:
        cfg = _load_config(args)
        task = _build_task(args)
        storage = build_storage(cfg.storage, cfg.output_path)
    except (ValueError, TypeError, OSError, ImportError, ValidationError) as exc:
        logger.error("Invalid configuration: %s", exc)
        return 2

    engine = SiteCrawlEngine(task, config=cfg, storage=storage)
    try:
        task = asyncio.run(_run(engine))
    except ValidationError as exc:
        logger.error("Task rejected: %s", exc)
        return 2
    finally:
        try:
            storage.close()
        except StorageError as exc:
            logger.error("Closing storage failed: %s", exc)

    logger.info("Status: %s | Total: %s | Processed: %s | Failed: %s | Items: %s | Output: %s",
                task.status.value,
                task.counters.total_urls,
                task.counters.processed_urls,
                task.counters.failed_urls,
                task.counters.items_count,
                cfg.output_path)
    return 0 if task.status in (TaskStatus.COMPLETED, TaskStatus.STOPPED) else 1
