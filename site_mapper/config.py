# === FILE: site_mapper/config.py ===
"""
Loading and validation of the SiteMapper configuration.

The whole run is driven by one immutable :class:`SitemapConfig`, built once by
:func:`load_config` and handed explicitly to the crawler, the writer and the
helpers they use. Pydantic describes the schema and checks the data.
"""
from __future__ import annotations

import errno
import json
import os
from pathlib import Path
from typing import Any, Dict, Literal, Optional, Tuple, Union

import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    HttpUrl,
    ValidationError,
    field_validator,
    model_validator,
)

Changefreq = Literal["always", "hourly", "daily", "weekly", "monthly", "yearly", "never"]


class _Section(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


class NormalizeConfig(_Section):
    """How discovered URLs are canonicalised."""

    strip_queries: bool = True
    strip_anchors: bool = True
    canonicalize: bool = True
    enforce_https: bool = True
    enforce_www: Optional[bool] = Field(
        None, description="None: leave host as is, True: add www., False: strip www."
    )
    strip_trailing_slash: bool = True
    force_trailing_slash: bool = False


class Soft404Config(_Section):
    """Soft-404 heuristic: the body must match *body_pattern* AND the title a keyword."""

    body_pattern: str = r"(404|not found|error)"
    title_keywords: Tuple[str, ...] = ("404", "error")


class IncludeRule(_Section):
    images: Optional[bool] = None
    videos: Optional[bool] = None


class IncludeConfig(_Section):
    urls: bool = True
    images: bool = True
    videos: bool = True
    languages: bool = True
    rules: Dict[str, IncludeRule] = Field(default_factory=dict)


class AssetDefaults(_Section):
    title: str
    description: str


class DbLastmod(_Section):
    strategy: Literal["db"]
    table: str = Field(..., min_length=1)
    lookup: str = "slug"
    column: str = "updated_at"


class CallbackLastmod(_Section):
    strategy: Literal["callback"]
    callback: str = Field(..., min_length=1, description="Name of a registered resolver.")


LastmodSetting = Union[Literal["now", "file"], DbLastmod, CallbackLastmod]


class SeoDefaults(_Section):
    changefreq: Changefreq = "weekly"
    priority: float = Field(0.8, ge=0.0, le=1.0)
    lastmod: LastmodSetting = "now"


class SeoRuleConfig(_Section):
    """One entry of ``rules``. Only the fields written in the config override."""

    changefreq: Optional[Changefreq] = None
    priority: Optional[float] = Field(None, ge=0.0, le=1.0)
    priority_boost: Optional[float] = None
    lastmod: Optional[LastmodSetting] = None


class PriorityWeights(_Section):
    depth: float = 0.4
    links: float = 0.4
    freshness: float = 0.2


class PriorityScoringConfig(_Section):
    enabled: bool = True
    weights: PriorityWeights = Field(default_factory=PriorityWeights)
    min: float = Field(0.1, ge=0.0, le=1.0)
    max: float = Field(1.0, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def _check_bounds(self) -> PriorityScoringConfig:
        if self.min > self.max:
            raise ValueError(f"priority_scoring.min ({self.min}) is greater than max ({self.max})")
        return self


class HttpClientConfig(_Section):
    timeout: float = Field(10.0, gt=0, description="Total timeout of one request (seconds).")
    connect_timeout: float = Field(5.0, gt=0, description="Connect timeout (seconds).")
    verify: bool = False
    headers: Dict[str, str] = Field(
        default_factory=lambda: {"User-Agent": "SiteMapperBot/1.0"}
    )


class HttpConfig(_Section):
    validate_links: HttpClientConfig = Field(default_factory=HttpClientConfig)
    validate_alternates: HttpClientConfig = Field(
        default_factory=lambda: HttpClientConfig(timeout=5.0, connect_timeout=1.0)
    )


class SitemapConfig(BaseModel):
    """Configuration of one crawl-and-write run."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    base_url: HttpUrl = Field(..., description="Site root, also the crawl seed.")
    xdefault: Optional[str] = Field(None, description="href of the x-default alternate.")

    max_depth: int = Field(2, ge=0, description="Maximum link depth from the seed.")
    traversal: Literal["depth_first", "breadth_first"] = "depth_first"
    concurrency: int = Field(1, ge=1, description="Number of crawl workers.")

    validate_links: bool = False
    indexability_audit: bool = True
    max_errors: int = Field(5000, ge=0)

    exclude_urls: Tuple[str, ...] = ()
    exclude_assets: Tuple[str, ...] = ()
    normalize: NormalizeConfig = Field(default_factory=NormalizeConfig)
    soft_404: Soft404Config = Field(default_factory=Soft404Config)

    default_lang: str = "en"
    lang_mode: Literal["path", "subdomain", "query"] = "path"
    validate_alternates: bool = False
    alternate_concurrency: int = Field(10, ge=1)
    alternates: Dict[str, str] = Field(default_factory=dict)

    include: IncludeConfig = Field(default_factory=IncludeConfig)
    image_whitelist: Tuple[str, ...] = ()
    image_defaults: AssetDefaults = AssetDefaults(title="Image Title", description="Image Caption")
    video_whitelist: Tuple[str, ...] = ()
    video_defaults: AssetDefaults = AssetDefaults(
        title="Video Title", description="Video Description"
    )

    defaults: SeoDefaults = Field(default_factory=SeoDefaults)
    rules: Dict[str, SeoRuleConfig] = Field(default_factory=dict)

    max_urls_per_sitemap: int = Field(50_000, ge=1)
    max_file_size: int = Field(52_428_800, ge=1, description="Shard size ceiling in bytes.")
    use_index: bool = True

    ping: bool = False
    ping_targets: Dict[str, str] = Field(
        default_factory=lambda: {"Google": "https://www.google.com/ping?sitemap="}
    )

    priority_scoring: PriorityScoringConfig = Field(default_factory=PriorityScoringConfig)
    http: HttpConfig = Field(default_factory=HttpConfig)

    public_dir: Path = Field(Path("public"), description="Document root for the file strategy.")
    state_file: Path = Field(Path(".site_mapper/state.json"))
    database: Optional[Path] = Field(None, description="SQLite file for the db strategy.")

    @field_validator("exclude_urls", "exclude_assets", "image_whitelist", "video_whitelist")
    @classmethod
    def _drop_empty_patterns(cls, v: Tuple[str, ...]) -> Tuple[str, ...]:
        return tuple(p for p in v if p)

    @property
    def site_url(self) -> str:
        """``base_url`` without the trailing slash pydantic adds."""
        return str(self.base_url).rstrip("/")


_DEFAULT_CFG = Path("configs/default.yaml")


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"Top level of the YAML must be a mapping, got {type(data).__name__}")
    return data


def _read_json(path: Path) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8")) or {}
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"Top level of the JSON must be a mapping, got {type(data).__name__}")
    return data


def load_config(path: Union[str, Path, None]) -> SitemapConfig:
    """
    Read a YAML or JSON file and return a validated :class:`SitemapConfig`.
    Raises FileNotFoundError when the file (or the default one) is missing.
    """
    if path is None:
        if not _DEFAULT_CFG.exists():
            raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), str(_DEFAULT_CFG))
        path_obj = _DEFAULT_CFG
    else:
        path_obj = Path(path).expanduser().resolve()
        if not path_obj.is_file():
            raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), str(path_obj))

    suffix = path_obj.suffix.lower()
    if suffix in (".yaml", ".yml"):
        data = _read_yaml(path_obj)
    elif suffix == ".json":
        data = _read_json(path_obj)
    else:
        raise ValueError(f"Unsupported config format: {suffix}")

    try:
        return SitemapConfig(**data)
    except ValidationError:
        raise


__all__ = [
    "AssetDefaults",
    "CallbackLastmod",
    "Changefreq",
    "DbLastmod",
    "HttpClientConfig",
    "HttpConfig",
    "IncludeConfig",
    "IncludeRule",
    "LastmodSetting",
    "NormalizeConfig",
    "PriorityScoringConfig",
    "PriorityWeights",
    "SeoDefaults",
    "SeoRuleConfig",
    "SitemapConfig",
    "Soft404Config",
    "load_config",
]
