"""Process-wide wiring of the chain layer, created once in the app lifespan."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, Request

from datatrust.chain.abi import AbiRegistry
from datatrust.chain.bindings import CONTRACT_NAMES, verify_bindings
from datatrust.chain.client import ChainClient
from datatrust.chain.projector import EventProjector, ProjectionCache
from datatrust.core.config import Settings
from datatrust.core.errors import ConfigurationMissingError, to_http_exception
from datatrust.core.logging import get_logger

logger = get_logger(__name__)


@dataclass(slots=True)
class LedgerRuntime:
    settings: Settings
    registry: AbiRegistry
    client: ChainClient
    projector: EventProjector
    cache: ProjectionCache

    @classmethod
    def from_settings(cls, settings: Settings) -> LedgerRuntime:
        """Validate configuration and artifacts, then build the shared components.

        Raises ConfigurationMissingError, ArtifactMissingError or
        ArtifactMalformedError; all are fatal at startup.
        """
        settings.require_chain_config()
        registry = AbiRegistry(settings.chain_abi_dir)
        for name in CONTRACT_NAMES:
            registry.load(name)
        verify_bindings(registry)

        client = ChainClient.from_settings(settings, registry)
        projector = EventProjector(
            client,
            from_block=settings.chain_from_block,
            chunk_size=settings.chain_log_chunk_size,
        )
        logger.info(
            "ledger_runtime_ready",
            contracts=list(settings.contract_addresses),
            from_block=settings.chain_from_block,
        )
        return cls(
            settings=settings,
            registry=registry,
            client=client,
            projector=projector,
            cache=ProjectionCache(projector),
        )

    async def close(self) -> None:
        await self.client.close()


def get_ledger(request: Request) -> LedgerRuntime:
    runtime: LedgerRuntime | None = getattr(request.app.state, "ledger", None)
    if runtime is None:
        raise to_http_exception(ConfigurationMissingError("Ledger runtime is not initialised"))
    return runtime


Ledger = Annotated[LedgerRuntime, Depends(get_ledger)]
