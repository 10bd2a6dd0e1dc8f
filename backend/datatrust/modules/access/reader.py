"""Reads access permissions from the AccessControl contract."""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import TYPE_CHECKING

from datatrust.chain.bindings import AccessGranted, GetPermission
from datatrust.chain.encoding import is_zero_address, narrow_int, normalize_address, same_address
from datatrust.chain.reader import DEFAULT_PAGE_SIZE, EntityReader, Page, paginate
from datatrust.core.errors import NotFoundError
from datatrust.modules.access.schemas import AccessPermission, has_valid_access
from datatrust.modules.data.reader import require_record_id

if TYPE_CHECKING:
    from datatrust.chain.client import ChainClient
    from datatrust.chain.projector import EventProjector

PermissionKey = tuple[str, str]


def _unix_now() -> int:
    return int(time.time())


class AccessPermissionReader(EntityReader[PermissionKey, AccessPermission]):
    entity_name = "access_permission"

    def __init__(
        self,
        client: ChainClient,
        projector: EventProjector,
        *,
        concurrency: int = 8,
        list_timeout: float | None = None,
        clock: Callable[[], int] = _unix_now,
    ) -> None:
        super().__init__(client, projector, concurrency=concurrency, list_timeout=list_timeout)
        self._clock = clock

    async def get(self, record_id: str, grantee: str) -> AccessPermission:
        """Read one permission by caller-supplied record id and grantee."""
        return await self.fetch((require_record_id(record_id), grantee))

    async def fetch(self, key: PermissionKey) -> AccessPermission:
        record_id = key[0]
        grantee = normalize_address(key[1], field="grantee_address")
        (
            owner,
            permission_type,
            grant_reason,
            granted_at,
            expires_at,
            is_active,
        ) = await self._client.call(GetPermission(record_id, grantee))
        if is_zero_address(owner) or granted_at == 0:
            raise NotFoundError(f"No permission for {grantee} on {record_id}")
        expires = narrow_int(expires_at, field="expires_at")
        return AccessPermission(
            record_id=record_id,
            grantee=grantee,
            owner=owner,
            permission_type=permission_type,
            grant_reason=grant_reason,
            granted_at=narrow_int(granted_at, field="granted_at"),
            expires_at=expires,
            is_active=is_active,
            has_valid_access=has_valid_access(is_active, expires, self._clock()),
        )

    async def check_access(self, record_id: str, grantee: str) -> bool:
        """Evaluate the stored permission against the local clock; absent means no access."""
        try:
            permission = await self.get(record_id, grantee)
        except NotFoundError:
            return False
        return permission.has_valid_access

    async def list_for_record(
        self,
        record_id: str,
        *,
        active_only: bool = True,
        skip: int = 0,
        take: int = DEFAULT_PAGE_SIZE,
        timeout: float | None = None,
    ) -> Page[AccessPermission]:
        wanted = require_record_id(record_id)
        return await self._list(
            lambda event: event.record_id == wanted,
            lambda permission: permission.record_id == wanted,
            active_only=active_only,
            skip=skip,
            take=take,
            timeout=timeout,
        )

    async def list_granted_by(
        self,
        owner: str,
        *,
        active_only: bool = True,
        skip: int = 0,
        take: int = DEFAULT_PAGE_SIZE,
        timeout: float | None = None,
    ) -> Page[AccessPermission]:
        owner_address = normalize_address(owner, field="owner")
        return await self._list(
            lambda event: same_address(event.owner, owner_address),
            lambda permission: same_address(permission.owner, owner_address),
            active_only=active_only,
            skip=skip,
            take=take,
            timeout=timeout,
        )

    async def list_received_by(
        self,
        grantee: str,
        *,
        active_only: bool = True,
        skip: int = 0,
        take: int = DEFAULT_PAGE_SIZE,
        timeout: float | None = None,
    ) -> Page[AccessPermission]:
        grantee_address = normalize_address(grantee, field="grantee_address")
        return await self._list(
            lambda event: same_address(event.grantee, grantee_address),
            lambda permission: same_address(permission.grantee, grantee_address),
            active_only=active_only,
            skip=skip,
            take=take,
            timeout=timeout,
        )

    async def _list(
        self,
        discover: Callable[[AccessGranted], bool],
        keep: Callable[[AccessPermission], bool],
        *,
        active_only: bool,
        skip: int,
        take: int,
        timeout: float | None,
    ) -> Page[AccessPermission]:
        async with self.deadline(timeout):
            keys = await self._projector.discover(
                AccessGranted,
                lambda event: (event.record_id, event.grantee),
                discover,
            )
            permissions = await self.fetch_many(keys)
        permissions = [permission for permission in permissions if keep(permission)]
        if active_only:
            permissions = [permission for permission in permissions if permission.is_active]
        return paginate(permissions, skip, take)
