"""
Event log projections.

The contracts expose point lookups and creation events but no bulk listing,
so list queries start by replaying an event stream from the deployment block
to the chain head. ``EventProjector`` is a pure replay; ``ProjectionCache``
adds a checkpoint per event type and only scans blocks it has not seen.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Hashable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, TypeVar

from datatrust.chain.bindings import ContractEvent
from datatrust.chain.client import LogEntry
from datatrust.core.logging import get_logger

if TYPE_CHECKING:
    from datatrust.chain.client import ChainClient

logger = get_logger(__name__)

EventT = TypeVar("EventT", bound=ContractEvent)
KeyT = TypeVar("KeyT", bound=Hashable)


class EventProjector:
    """Replays one contract event stream over the full history."""

    def __init__(self, client: ChainClient, *, from_block: int = 0, chunk_size: int = 5000) -> None:
        if chunk_size < 1:
            raise ValueError("chunk_size must be positive")
        self._client = client
        self._from_block = from_block
        self._chunk_size = chunk_size

    @property
    def from_block(self) -> int:
        return self._from_block

    async def latest_block(self) -> int:
        return await self._client.block_number()

    async def project(
        self,
        event_type: type[EventT],
        predicate: Callable[[EventT], bool] | None = None,
        *,
        from_block: int | None = None,
        to_block: int | None = None,
    ) -> list[LogEntry[EventT]]:
        """Return every matching event in node order.

        The range is fetched in chunks; a failure in any chunk fails the whole
        projection instead of returning a truncated list.
        """
        start = self._from_block if from_block is None else from_block
        end = await self.latest_block() if to_block is None else to_block

        entries: list[LogEntry[EventT]] = []
        chunks = 0
        for chunk_start in range(start, end + 1, self._chunk_size):
            chunk_end = min(chunk_start + self._chunk_size - 1, end)
            entries.extend(await self._client.get_logs(event_type, chunk_start, chunk_end))
            chunks += 1

        if predicate is not None:
            entries = [entry for entry in entries if predicate(entry.event)]

        logger.debug(
            "projection_scanned",
            contract=event_type.contract,
            event_name=event_type.event,
            from_block=start,
            to_block=end,
            chunks=chunks,
            matched=len(entries),
        )
        return entries

    async def discover(
        self,
        event_type: type[EventT],
        key: Callable[[EventT], KeyT],
        predicate: Callable[[EventT], bool] | None = None,
    ) -> list[KeyT]:
        """Distinct identifiers carried by the events, in first-emission order."""
        entries = await self.project(event_type, predicate)
        return distinct_keys(entries, key)


def distinct_keys(entries: list[LogEntry[EventT]], key: Callable[[EventT], KeyT]) -> list[KeyT]:
    return list(dict.fromkeys(key(entry.event) for entry in entries))


@dataclass(slots=True)
class _Checkpoint:
    last_block: int
    entries: list[LogEntry[Any]] = field(default_factory=list)


class ProjectionCache:
    """Checkpointed log-replay cache keyed by event type.

    Each refresh scans ``(last_block, head]`` only. The checkpoint advances
    only after the delta scan succeeds.
    """

    def __init__(self, projector: EventProjector) -> None:
        self._projector = projector
        self._checkpoints: dict[type[ContractEvent], _Checkpoint] = {}
        self._locks: dict[type[ContractEvent], asyncio.Lock] = {}

    def checkpoint(self, event_type: type[ContractEvent]) -> int | None:
        current = self._checkpoints.get(event_type)
        return None if current is None else current.last_block

    async def entries(self, event_type: type[EventT]) -> list[LogEntry[EventT]]:
        lock = self._locks.setdefault(event_type, asyncio.Lock())
        async with lock:
            head = await self._projector.latest_block()
            current = self._checkpoints.get(event_type)
            start = self._projector.from_block if current is None else current.last_block + 1
            if current is not None and start > head:
                return list(current.entries)

            delta = await self._projector.project(event_type, from_block=start, to_block=head)
            merged = [*(current.entries if current else []), *delta]
            self._checkpoints[event_type] = _Checkpoint(last_block=head, entries=merged)
            logger.info(
                "projection_cache_refreshed",
                event_name=event_type.event,
                from_block=start,
                to_block=head,
                new_entries=len(delta),
                total_entries=len(merged),
            )
            return list(merged)

    def invalidate(self, event_type: type[ContractEvent] | None = None) -> None:
        if event_type is None:
            self._checkpoints.clear()
        else:
            self._checkpoints.pop(event_type, None)
