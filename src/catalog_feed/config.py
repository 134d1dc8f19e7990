"""Configuration loader and validator."""

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from catalog_feed.models import FeedFilter, ListingStatus, SortMode

REQUIRED_FIELDS = {
    "api.base_url": str,
    "feed.page_size": int,
}

DEFAULTS = {
    "api.timeout": 10,
    "api.max_retries": 2,
    "api.retry_delay": 1.0,
    "feed.sort_mode": "hot",
    "feed.max_pages": 10,
    "feed.filter.status": "active",
    "database.path": "data/catalog.db",
    "logging.dir": None,
}

# Environment overrides, applied after the YAML file.
ENV_OVERRIDES = {
    "CATALOG_API_URL": "api.base_url",
    "DATABASE_PATH": "database.path",
}


@dataclass
class ApiConfig:
    base_url: str
    timeout: int | float = 10
    max_retries: int = 2
    retry_delay: float = 1.0


@dataclass
class FeedConfig:
    page_size: int
    sort_mode: SortMode = SortMode.HOT
    max_pages: int = 10
    filter: FeedFilter = field(default_factory=FeedFilter)


@dataclass
class Config:
    api: ApiConfig
    feed: FeedConfig
    database_path: str = "data/catalog.db"
    log_dir: str | None = None


def _get_nested(data: dict, dotted_key: str):
    """Get a value from nested dict using dotted key notation."""
    keys = dotted_key.split(".")
    current = data
    for key in keys:
        if not isinstance(current, dict) or key not in current:
            return None
        current = current[key]
    return current


def _set_nested(data: dict, dotted_key: str, value) -> None:
    keys = dotted_key.split(".")
    current = data
    for key in keys[:-1]:
        if not isinstance(current.get(key), dict):
            current[key] = {}
        current = current[key]
    current[keys[-1]] = value


def _validate(raw: dict) -> list[str]:
    """Validate required fields and types. Returns list of error messages."""
    errors = []
    for dotted_key, expected_type in REQUIRED_FIELDS.items():
        value = _get_nested(raw, dotted_key)
        if value is None:
            errors.append(f"Missing required field: {dotted_key}")
        elif not isinstance(value, expected_type) or isinstance(value, bool):
            errors.append(
                f"Invalid type for {dotted_key}: expected {expected_type.__name__}, got {type(value).__name__}"
            )
    return errors


def _validate_feed(feed: dict, filter_raw: dict) -> list[str]:
    """Validate feed settings and filter ranges."""
    errors: list[str] = []

    page_size = feed.get("page_size")
    if isinstance(page_size, int) and page_size < 1:
        errors.append("feed.page_size must be >= 1")

    max_pages = feed.get("max_pages", DEFAULTS["feed.max_pages"])
    if not isinstance(max_pages, int) or max_pages < 1:
        errors.append("feed.max_pages must be a positive integer")

    sort_mode = feed.get("sort_mode", DEFAULTS["feed.sort_mode"])
    if not isinstance(sort_mode, str) or sort_mode not in {m.value for m in SortMode}:
        errors.append(f"feed.sort_mode must be one of {', '.join(m.value for m in SortMode)}")

    status = filter_raw.get("status", DEFAULTS["feed.filter.status"])
    if status is not None and (not isinstance(status, str) or status not in {s.value for s in ListingStatus}):
        errors.append(f"feed.filter.status must be one of {', '.join(s.value for s in ListingStatus)}")

    for name in ("price", "year"):
        bounds = filter_raw.get(name) or {}
        if not isinstance(bounds, dict):
            errors.append(f"feed.filter.{name} must be a mapping with min/max")
            continue
        lo, hi = bounds.get("min"), bounds.get("max")
        for key, value in (("min", lo), ("max", hi)):
            if value is not None and (not isinstance(value, (int, float)) or isinstance(value, bool)):
                errors.append(f"feed.filter.{name}.{key} must be a number")
        if isinstance(lo, (int, float)) and isinstance(hi, (int, float)) and lo > hi:
            errors.append(f"feed.filter.{name}.min must be <= feed.filter.{name}.max")

    return errors


def build_filter(filter_raw: dict) -> FeedFilter:
    """Build a FeedFilter from the ``feed.filter`` config section."""
    price = filter_raw.get("price") or {}
    year = filter_raw.get("year") or {}
    status = filter_raw.get("status", DEFAULTS["feed.filter.status"])
    return FeedFilter(
        status=ListingStatus(status) if status else None,
        brand=filter_raw.get("brand"),
        min_price=price.get("min"),
        max_price=price.get("max"),
        min_year=year.get("min"),
        max_year=year.get("max"),
        city=filter_raw.get("city"),
        state=filter_raw.get("state"),
        search_text=filter_raw.get("search"),
    )


def load_config(path: str | Path = "config.yaml") -> Config:
    """Load and validate configuration from a YAML file."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(
            f"Config file not found: {path}. "
            "Copy config.example.yaml to config.yaml and fill in your values."
        )

    with open(path) as f:
        raw = yaml.safe_load(f)

    if not isinstance(raw, dict):
        raise ValueError(f"Invalid config format: expected a YAML mapping, got {type(raw).__name__}")

    for env_var, dotted_key in ENV_OVERRIDES.items():
        value = os.environ.get(env_var)
        if value:
            _set_nested(raw, dotted_key, value)

    errors = _validate(raw)
    feed = raw.get("feed") or {}
    filter_raw = feed.get("filter") or {}
    if not isinstance(filter_raw, dict):
        errors.append("feed.filter must be a mapping")
        filter_raw = {}
    errors.extend(_validate_feed(feed, filter_raw))
    if errors:
        raise ValueError("Config validation failed:\n" + "\n".join(f"  - {e}" for e in errors))

    api = raw.get("api", {})

    return Config(
        api=ApiConfig(
            base_url=api["base_url"],
            timeout=api.get("timeout", DEFAULTS["api.timeout"]),
            max_retries=api.get("max_retries", DEFAULTS["api.max_retries"]),
            retry_delay=api.get("retry_delay", DEFAULTS["api.retry_delay"]),
        ),
        feed=FeedConfig(
            page_size=feed["page_size"],
            sort_mode=SortMode(feed.get("sort_mode", DEFAULTS["feed.sort_mode"])),
            max_pages=feed.get("max_pages", DEFAULTS["feed.max_pages"]),
            filter=build_filter(filter_raw),
        ),
        database_path=(raw.get("database") or {}).get("path", DEFAULTS["database.path"]),
        log_dir=(raw.get("logging") or {}).get("dir", DEFAULTS["logging.dir"]),
    )
