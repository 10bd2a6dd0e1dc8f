"""
Shared machinery for entity readers.

List queries discover candidate ids from a projection, then fetch the
current value of every candidate from contract storage with bounded
concurrency. One bad id is logged and skipped; anything else fails the
whole read.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING, ClassVar, Generic, TypeVar

from datatrust.core.errors import NotFoundError, OperationCancelledError, RevertedError
from datatrust.core.logging import get_logger

if TYPE_CHECKING:
    from datatrust.chain.client import ChainClient
    from datatrust.chain.projector import EventProjector

logger = get_logger(__name__)

KeyT = TypeVar("KeyT")
ItemT = TypeVar("ItemT")

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 200


@dataclass(frozen=True, slots=True)
class Page(Generic[ItemT]):
    items: list[ItemT]
    total: int
    skip: int
    take: int


def paginate(items: Sequence[ItemT], skip: int = 0, take: int = DEFAULT_PAGE_SIZE) -> Page[ItemT]:
    """Slice a result list; skip and take are clamped to the available count."""
    total = len(items)
    start = min(max(skip, 0), total)
    size = min(max(take, 0), MAX_PAGE_SIZE)
    return Page(items=list(items[start : start + size]), total=total, skip=start, take=size)


class EntityReader(ABC, Generic[KeyT, ItemT]):
    """Base class for per-domain readers.

    Subclasses implement ``fetch`` (the atomic getter) and build their list
    queries from ``fetch_many`` inside ``deadline``.
    """

    entity_name: ClassVar[str] = "entity"

    def __init__(
        self,
        client: ChainClient,
        projector: EventProjector,
        *,
        concurrency: int = 8,
        list_timeout: float | None = None,
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be positive")
        self._client = client
        self._projector = projector
        self._concurrency = concurrency
        self._list_timeout = list_timeout

    @abstractmethod
    async def fetch(self, key: KeyT) -> ItemT:
        """Read one item from contract storage; absent items raise NotFoundError."""

    async def fetch_many(self, keys: Sequence[KeyT]) -> list[ItemT]:
        """Fetch every key concurrently, preserving the order of ``keys``.

        ``NotFoundError`` and ``RevertedError`` for a single key are logged and
        that key is dropped. Any other failure cancels the remaining reads and
        propagates.
        """
        if not keys:
            return []
        semaphore = asyncio.Semaphore(self._concurrency)
        results: list[tuple[bool, ItemT | None]] = [(False, None)] * len(keys)

        async def _read(index: int, key: KeyT) -> None:
            async with semaphore:
                try:
                    results[index] = (True, await self.fetch(key))
                except (NotFoundError, RevertedError) as exc:
                    logger.warning(
                        "entity_read_skipped",
                        entity=self.entity_name,
                        item_id=str(key),
                        error=exc.kind,
                        message=exc.message,
                    )

        try:
            async with asyncio.TaskGroup() as group:
                for index, key in enumerate(keys):
                    group.create_task(_read(index, key))
        except ExceptionGroup as eg:
            raise eg.exceptions[0] from None

        return [item for ok, item in results if ok]  # type: ignore[misc]

    @asynccontextmanager
    async def deadline(self, timeout: float | None = None) -> AsyncIterator[None]:
        """Bound a whole list operation; expiry aborts in-flight reads."""
        limit = timeout if timeout is not None else self._list_timeout
        try:
            async with asyncio.timeout(limit):
                yield
        except TimeoutError as exc:
            logger.warning("entity_list_cancelled", entity=self.entity_name, timeout=limit)
            raise OperationCancelledError(
                f"Listing {self.entity_name} records exceeded {limit}s"
            ) from exc
