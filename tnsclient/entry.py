"""
Registry entry resolution: one authoritative status record per label.

The permanent registrar is the only source; a legacy registrar is treated as
absent. Block time, not wall-clock time, decides whether an expired name is
still inside its grace period.
"""

import asyncio
import logging
from datetime import timedelta
from typing import Optional

from tnsclient.config import is_empty_address
from tnsclient.errors import RemoteCallError
from tnsclient.labelhash import is_encoded_labelhash, label_token_id, normalize_label
from tnsclient.schema import PermanentEntry, RegistrarEntry, from_timestamp
from tnsclient.session import Session

logger = logging.getLogger(__name__)


class EntryResolver:
    """Builds RegistrarEntry values; caches only the registry's grace period."""

    def __init__(self, session: Session):
        self._session = session
        self._grace_period: Optional[timedelta] = None

    async def get_grace_period(self) -> timedelta:
        if self._grace_period is None:
            seconds = await self._session.rpc.call(self._session.base_registrar("GRACE_PERIOD"))
            self._grace_period = timedelta(seconds=int(seconds))
        return self._grace_period

    async def _available(self, label: str) -> bool:
        # The controller adds its own validity rules (e.g. minimum length);
        # encoded labels have no plaintext for it, so ask the registrar.
        if is_encoded_labelhash(label):
            call = self._session.base_registrar("available", label_token_id(label))
        else:
            call = self._session.controller("available", label)
        return bool(await self._session.rpc.call(call))

    async def _owner_of(self, token_id: int) -> Optional[str]:
        """ownerOf reverts for names that were never registered or have expired."""
        try:
            owner = await self._session.rpc.call(self._session.base_registrar("ownerOf", token_id))
        except RemoteCallError as e:
            logger.debug("ownerOf(%d) reverted, treating as unowned: %s", token_id, e.message)
            return None
        return None if is_empty_address(owner) else owner

    async def get_permanent_entry(self, label: str) -> PermanentEntry:
        """
        Snapshot the permanent registrar for `label`.

        Raises RemoteCallError when availability, expiry or the grace period
        cannot be read; an ownerOf revert only leaves owner_of empty.
        """
        label = _plain_or_encoded(label)
        token_id = label_token_id(label)
        rpc = self._session.rpc
        available, expires, grace_period, owner = await asyncio.gather(
            self._available(label),
            rpc.call(self._session.base_registrar("nameExpires", token_id)),
            self.get_grace_period(),
            self._owner_of(token_id),
        )
        expires = int(expires)
        return PermanentEntry(
            available=available,
            name_expires=from_timestamp(expires) if expires > 0 else None,
            grace_period=grace_period,
            owner_of=owner,
        )

    async def resolve_entry(self, label: str) -> RegistrarEntry:
        """
        Merged availability, ownership and expiry of `label`.

        A failed registrar snapshot does not abort the read: the entry comes
        back with null registrar fields and `error` set.
        """
        label = _plain_or_encoded(label)
        block_task = asyncio.ensure_future(self._session.rpc.get_block())
        try:
            permanent: Optional[PermanentEntry] = await self.get_permanent_entry(label)
            error = None
        except RemoteCallError as e:
            logger.warning("Permanent registrar lookup for '%s' failed: %s", label, e.message)
            permanent, error = None, e.message
        except BaseException:
            block_task.cancel()
            raise
        block = await block_task

        entry = RegistrarEntry(current_block_date=block.date, error=error)
        if permanent is None:
            return entry

        entry.available = permanent.available
        entry.name_expires = permanent.name_expires
        entry.grace_period = permanent.grace_period
        entry.owner_of = permanent.owner_of

        if permanent.owner_of:
            entry.registrant = permanent.owner_of
            entry.is_new_registrar = True
        elif permanent.name_expires:
            grace_end = permanent.name_expires + permanent.grace_period
            if permanent.name_expires < entry.current_block_date < grace_end:
                entry.is_new_registrar = True
                entry.grace_period_end_date = grace_end
        return entry


def _plain_or_encoded(label: str) -> str:
    return label if is_encoded_labelhash(label) else normalize_label(label)
