"""Configuration loader and typed settings for the photo indexer."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

SUPPORTED_ENGINES: frozenset[str] = frozenset({"local", "elasticsearch"})


def _project_root() -> Path:
    """Best-effort detection of the repository root for config discovery."""

    module_path = Path(__file__).resolve()
    try:
        return module_path.parents[2]
    except IndexError:  # pragma: no cover - installed without a checkout
        return module_path.parent


def _build_default_settings_paths() -> list[Path]:
    """Return candidate settings paths ordered by preference."""

    cwd_candidate = (Path.cwd() / "config" / "settings.yaml").resolve()
    repo_candidate = (_project_root() / "config" / "settings.yaml").resolve()

    candidates: list[Path] = []
    seen: set[Path] = set()
    for candidate in (cwd_candidate, repo_candidate):
        if candidate in seen:
            continue
        seen.add(candidate)
        candidates.append(candidate)
    return candidates


_DEFAULT_SETTINGS_PATHS = _build_default_settings_paths()


def _resolve_settings_path(settings_path: Path | str | None) -> Path:
    """Determine which settings file to load, honoring overrides."""

    if settings_path:
        return Path(settings_path).expanduser().resolve()

    env_override = os.getenv("PHOTO_INDEXER_SETTINGS")
    if env_override:
        return Path(env_override).expanduser().resolve()

    for candidate in _DEFAULT_SETTINGS_PATHS:
        if candidate.exists():
            return candidate
    return _DEFAULT_SETTINGS_PATHS[0]


def normalize_extension(value: str) -> str:
    """Lowercase an extension and ensure it carries a leading dot."""

    text = str(value).strip().lower()
    if not text:
        return text
    return text if text.startswith(".") else f".{text}"


@dataclass
class ScanConfig:
    """Where to look for images and which files count as images."""

    directory: Path = Path("photos")
    allowed_extensions: frozenset[str] = field(
        default_factory=lambda: frozenset({".jpg", ".jpeg", ".png", ".gif", ".webp", ".bmp", ".tiff"})
    )


@dataclass
class SearchConfig:
    """Backend selection and connection parameters for the document store."""

    engine: str = "local"
    local_index_path: Path = Path("data/index")
    elasticsearch_url: str = "http://localhost:9200"
    elasticsearch_index: str = "images"
    request_timeout: float = 30.0
    # Refresh policy for pipeline writes; web-initiated writes always wait for refresh.
    refresh: bool | str = False


@dataclass
class ThumbnailConfig:
    """Thumbnail output directory and encoding parameters."""

    directory: Path = Path("data/thumbnails")
    max_side: int = 256
    quality: int = 85

    def path_for(self, file_hash: str) -> Path:
        """Return the hash-addressed thumbnail location ``<directory>/<hash>.jpg``."""

        return self.directory / f"{file_hash}.jpg"


@dataclass
class IndexingConfig:
    """Worker pool and queue sizing for the indexing job."""

    num_workers: int = 4
    queue_size: int = 1024
    incremental: bool = True


@dataclass
class WebConfig:
    """Bind address for the HTTP API."""

    host: str = "0.0.0.0"
    port: int = 8080


@dataclass
class LoggingConfig:
    """Process log verbosity."""

    level: str = "INFO"


@dataclass
class Settings:
    """Top-level application settings."""

    scan: ScanConfig = field(default_factory=ScanConfig)
    search: SearchConfig = field(default_factory=SearchConfig)
    thumbnails: ThumbnailConfig = field(default_factory=ThumbnailConfig)
    indexing: IndexingConfig = field(default_factory=IndexingConfig)
    web: WebConfig = field(default_factory=WebConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def _as_dict(value: Any) -> dict[str, Any]:
    if isinstance(value, dict):
        return value
    return {}


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def load_settings(settings_path: Path | str | None = None) -> Settings:
    """Load application settings from a YAML file, falling back to defaults.

    The loader is deliberately defensive: if the file is missing or malformed,
    it returns a :class:`Settings` instance populated with default values, and
    individual keys with the wrong type are ignored.
    """

    path = _resolve_settings_path(settings_path)
    settings = Settings()

    if not path.exists() or not path.is_file():
        return settings

    raw: Any
    try:
        with path.open("r", encoding="utf-8") as fp:
            raw = yaml.safe_load(fp) or {}
    except yaml.YAMLError:
        return settings

    if not isinstance(raw, dict):
        return settings

    scan_raw = _as_dict(raw.get("scan"))
    scan_cfg = settings.scan
    if isinstance(scan_raw.get("directory"), str):
        scan_cfg.directory = Path(scan_raw["directory"]).expanduser()
    extensions_raw = scan_raw.get("allowed_extensions")
    if isinstance(extensions_raw, list):
        parsed_extensions = {normalize_extension(item) for item in extensions_raw if isinstance(item, str)}
        parsed_extensions.discard("")
        if parsed_extensions:
            scan_cfg.allowed_extensions = frozenset(parsed_extensions)

    search_raw = _as_dict(raw.get("search"))
    search_cfg = settings.search
    if isinstance(search_raw.get("engine"), str):
        search_cfg.engine = search_raw["engine"].strip().lower()
    if isinstance(search_raw.get("local_index_path"), str):
        search_cfg.local_index_path = Path(search_raw["local_index_path"]).expanduser()
    if isinstance(search_raw.get("elasticsearch_url"), str):
        search_cfg.elasticsearch_url = search_raw["elasticsearch_url"]
    if isinstance(search_raw.get("elasticsearch_index"), str):
        search_cfg.elasticsearch_index = search_raw["elasticsearch_index"]
    if isinstance(search_raw.get("request_timeout"), (int, float)) and not isinstance(
        search_raw.get("request_timeout"), bool
    ):
        search_cfg.request_timeout = float(search_raw["request_timeout"])
    if isinstance(search_raw.get("refresh"), (bool, str)):
        search_cfg.refresh = search_raw["refresh"]

    thumbnails_raw = _as_dict(raw.get("thumbnails"))
    thumbnails_cfg = settings.thumbnails
    if isinstance(thumbnails_raw.get("directory"), str):
        thumbnails_cfg.directory = Path(thumbnails_raw["directory"]).expanduser()
    if _is_int(thumbnails_raw.get("max_side")):
        thumbnails_cfg.max_side = thumbnails_raw["max_side"]
    if _is_int(thumbnails_raw.get("quality")):
        thumbnails_cfg.quality = thumbnails_raw["quality"]

    indexing_raw = _as_dict(raw.get("indexing"))
    indexing_cfg = settings.indexing
    if _is_int(indexing_raw.get("num_workers")):
        indexing_cfg.num_workers = indexing_raw["num_workers"]
    if _is_int(indexing_raw.get("queue_size")):
        indexing_cfg.queue_size = indexing_raw["queue_size"]
    if isinstance(indexing_raw.get("incremental"), bool):
        indexing_cfg.incremental = indexing_raw["incremental"]

    web_raw = _as_dict(raw.get("web"))
    web_cfg = settings.web
    if isinstance(web_raw.get("host"), str):
        web_cfg.host = web_raw["host"]
    if _is_int(web_raw.get("port")):
        web_cfg.port = web_raw["port"]

    logging_raw = _as_dict(raw.get("logging"))
    if isinstance(logging_raw.get("level"), str):
        settings.logging.level = logging_raw["level"]

    return settings


__all__ = [
    "SUPPORTED_ENGINES",
    "ScanConfig",
    "SearchConfig",
    "ThumbnailConfig",
    "IndexingConfig",
    "WebConfig",
    "LoggingConfig",
    "Settings",
    "load_settings",
    "normalize_extension",
]
