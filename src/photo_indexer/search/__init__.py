"""Search backends and the factory that picks one from settings."""

from __future__ import annotations

from photo_indexer.config import SUPPORTED_ENGINES, Settings
from photo_indexer.errors import ConfigurationError
from photo_indexer.search.base import MAX_RESULTS, Searcher
from utils.logging import get_logger

LOGGER = get_logger(__name__)


def create_searcher(settings: Settings) -> Searcher:
    """Instantiate the backend named by ``search.engine``."""

    engine = settings.search.engine
    if engine == "local":
        from photo_indexer.search.local import LocalSearcher

        LOGGER.info("searcher_selected", extra={"engine": engine, "path": str(settings.search.local_index_path)})
        return LocalSearcher(settings.search.local_index_path)

    if engine == "elasticsearch":
        from photo_indexer.search.remote import ElasticsearchSearcher

        LOGGER.info(
            "searcher_selected",
            extra={"engine": engine, "url": settings.search.elasticsearch_url, "index": settings.search.elasticsearch_index},
        )
        return ElasticsearchSearcher(
            settings.search.elasticsearch_url,
            settings.search.elasticsearch_index,
            request_timeout=settings.search.request_timeout,
            refresh=settings.search.refresh,
        )

    raise ConfigurationError(
        f"unsupported search engine {engine!r}; expected one of {', '.join(sorted(SUPPORTED_ENGINES))}"
    )


__all__ = ["MAX_RESULTS", "Searcher", "create_searcher"]
