"""Response envelopes shared by every domain router."""

from __future__ import annotations

from typing import Generic, TypeVar

from pydantic import BaseModel, Field

from datatrust.chain.reader import Page
from datatrust.chain.writer import SubmittedTransaction

ItemT = TypeVar("ItemT")


class TransactionResponse(BaseModel):
    """Result of a submitted write; inclusion is not awaited."""

    success: bool = True
    message: str
    transaction_hash: str
    explorer_url: str

    @classmethod
    def from_submitted(cls, tx: SubmittedTransaction, message: str) -> TransactionResponse:
        return cls(message=message, transaction_hash=tx.tx_hash, explorer_url=tx.explorer_url)


class PageResponse(BaseModel, Generic[ItemT]):
    """Paginated list response."""

    items: list[ItemT] = Field(default_factory=list)
    total: int
    skip: int
    take: int

    @classmethod
    def from_page(cls, page: Page[ItemT]) -> PageResponse[ItemT]:
        return cls(items=page.items, total=page.total, skip=page.skip, take=page.take)


class CountResponse(BaseModel):
    total: int
