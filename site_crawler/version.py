"""Central versioning and schema constants for the crawler."""

__all__ = ["__version__", "CONFIG_SCHEMA_VERSION"]

#: Semantic version of this codebase (bump using SemVer).
__version__ = "0.1.0"

#: Configuration schema version (increment if breaking changes to config format).
#: v2 replaced ``max_concurrency``/``engine``/``exporter`` with the site-crawl rule defaults.
CONFIG_SCHEMA_VERSION = 2
