from __future__ import annotations

import logging
from typing import Any, Protocol

from .cache import CacheStore
from .errors import DocumentNotFound, UpstreamUnavailable


logger = logging.getLogger(__name__)


class FileStore(Protocol):
    async def list_files(self, name: str, folder_id: str) -> list[dict[str, Any]]: ...

    async def download(self, file_id: str) -> bytes: ...


def raw_cache_key(filename: str) -> str:
    return f"original_{filename}"


class DocumentOrigin:
    """Source PDFs from the origin folder, cached by file name."""

    def __init__(self, store: FileStore, folder_id: str, cache: CacheStore) -> None:
        self._store = store
        self._folder_id = folder_id
        self._cache = cache

    async def fetch(self, filename: str) -> bytes:
        key = raw_cache_key(filename)
        cached = self._cache.get(key)
        if cached is not None:
            logger.debug("Raw document cache hit", extra={"doc": filename})
            return cached

        try:
            files = await self._store.list_files(filename, self._folder_id)
            if not files:
                raise DocumentNotFound()
            if len(files) > 1:
                logger.warning(
                    "Multiple origin files share a name; using the first",
                    extra={"doc": filename, "matches": len(files)},
                )
            data = await self._store.download(str(files[0]["id"]))
        except (DocumentNotFound, UpstreamUnavailable):
            raise
        except Exception as exc:
            raise UpstreamUnavailable("origin", detail=f"{type(exc).__name__}: {exc}") from exc

        self._cache.set(key, data)
        logger.info("Fetched document from origin", extra={"doc": filename, "size": len(data)})
        return data
