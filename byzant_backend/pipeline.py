from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Protocol

from starlette.concurrency import run_in_threadpool

from .approval import ApprovalOutcome, Approved
from .cache import CacheStore
from .errors import AccessDenied
from .security import validate_pdf_filename, watermark_cache_key
from .watermark import stamp as stamp_pdf


logger = logging.getLogger(__name__)

DEFAULT_WATERMARK_NAME = "Approved User"


class Resolver(Protocol):
    async def resolve(self, email: str) -> ApprovalOutcome: ...


class Origin(Protocol):
    async def fetch(self, filename: str) -> bytes: ...


@dataclass(frozen=True)
class Delivery:
    filename: str
    content: bytes
    cache_hit: bool


class DeliveryPipeline:
    """Approval check, source lookup and watermarking for one requested PDF.

    Watermarked copies are cached per (file, normalized display name). Two
    concurrent misses on one key both do the work and the last write wins.
    """

    def __init__(
        self,
        resolver: Resolver,
        origin: Origin,
        watermark_cache: CacheStore,
        *,
        stamp: Callable[[bytes, str, datetime], bytes] = stamp_pdf,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.resolver = resolver
        self.origin = origin
        self.watermark_cache = watermark_cache
        self._stamp = stamp
        self._clock = clock

    async def deliver(self, email: str, filename: str) -> Delivery:
        filename = validate_pdf_filename(filename)

        outcome = await self.resolver.resolve(email)
        if not isinstance(outcome, Approved):
            raise AccessDenied(email, outcome)
        name = outcome.display_name or DEFAULT_WATERMARK_NAME

        key = watermark_cache_key(filename, name)
        cached = self.watermark_cache.get(key)
        if cached is not None:
            logger.info("Watermark cache hit", extra={"doc": filename, "email": email})
            return Delivery(filename=filename, content=cached, cache_hit=True)

        source = await self.origin.fetch(filename)
        # PDF rewriting is CPU-bound; keep it off the event loop.
        content = await run_in_threadpool(self._stamp, source, name, self._clock())
        self.watermark_cache.set(key, content)
        logger.info("Generated watermarked document", extra={"doc": filename, "email": email})
        return Delivery(filename=filename, content=content, cache_hit=False)
